"""Diagnostic and repair oracles for auto-heal."""

from auto_heal.oracles.base import DiagnosticOracle, OracleType, RepairOracle
from auto_heal.oracles.client import ChatCompletionClient
from auto_heal.oracles.exceptions import (
    OracleAPIError,
    OracleAuthError,
    OracleError,
    OracleResponseError,
)
from auto_heal.oracles.factory import OracleFactory
from auto_heal.oracles.openai import ChatDiagnosticOracle, ChatRepairOracle
from auto_heal.oracles.parsing import parse_diagnosis, parse_repair, strip_code_fences
from auto_heal.oracles.prompts import create_diagnosis_prompt, create_repair_prompt

__all__ = [
    "ChatCompletionClient",
    "ChatDiagnosticOracle",
    "ChatRepairOracle",
    "DiagnosticOracle",
    "OracleAPIError",
    "OracleAuthError",
    "OracleError",
    "OracleFactory",
    "OracleResponseError",
    "OracleType",
    "RepairOracle",
    "create_diagnosis_prompt",
    "create_repair_prompt",
    "parse_diagnosis",
    "parse_repair",
    "strip_code_fences",
]
