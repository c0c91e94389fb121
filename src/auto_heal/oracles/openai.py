"""Oracles backed by an OpenAI-compatible chat completions API."""

import logging

from auto_heal.ledger.models import DiscoveredIssue, Issue
from auto_heal.oracles.base import DiagnosticOracle, OracleType, RepairOracle
from auto_heal.oracles.client import ChatCompletionClient
from auto_heal.oracles.parsing import parse_diagnosis, parse_repair
from auto_heal.oracles.prompts import create_diagnosis_prompt, create_repair_prompt

logger = logging.getLogger(__name__)


class _ChatOracle:
    """Shared connection settings for chat-backed oracles."""

    oracle_type = OracleType.OPENAI_COMPATIBLE

    def __init__(self, api_base: str, api_key: str, model: str, timeout: float = 120.0) -> None:
        """Initialize the oracle.

        Args:
            api_base: Base URL of the API
            api_key: Bearer token
            model: Model name
            timeout: Request timeout in seconds
        """
        self.api_base = api_base
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def _client(self) -> ChatCompletionClient:
        return ChatCompletionClient(self.api_base, self.api_key, self.model, timeout=self.timeout)


class ChatDiagnosticOracle(_ChatOracle, DiagnosticOracle):
    """Diagnostic oracle asking a chat model for a JSON issue list."""

    async def analyze(self, output: str, source_hints: list[str]) -> list[DiscoveredIssue]:
        """Ask the model which source defects explain the output."""
        prompt = create_diagnosis_prompt(output, source_hints)
        async with self._client() as client:
            reply = await client.complete(prompt)

        issues = parse_diagnosis(reply)
        logger.debug(f"Diagnostic oracle reported {len(issues)} issue(s)")
        return issues


class ChatRepairOracle(_ChatOracle, RepairOracle):
    """Repair oracle asking a chat model for the complete fixed file."""

    async def repair(self, issue: Issue, file_content: str, test_output_snippet: str) -> str:
        """Ask the model for the corrected content of issue.file."""
        prompt = create_repair_prompt(issue, file_content, test_output_snippet)
        async with self._client() as client:
            reply = await client.complete(prompt)
        return parse_repair(reply)
