"""Factory for creating oracle instances."""

from typing import TYPE_CHECKING

from auto_heal.oracles.base import DiagnosticOracle, OracleType, RepairOracle
from auto_heal.oracles.openai import ChatDiagnosticOracle, ChatRepairOracle

if TYPE_CHECKING:
    from auto_heal.config import AutoHealConfig


class OracleFactory:
    """Factory for creating the diagnostic and repair oracles."""

    @staticmethod
    def create_diagnostic(config: "AutoHealConfig") -> DiagnosticOracle:
        """Create the diagnostic oracle configured for this run.

        Args:
            config: Application configuration

        Returns:
            Diagnostic oracle

        Raises:
            ValueError: If the oracle type is not supported
        """
        if config.oracle_type == OracleType.OPENAI_COMPATIBLE:
            return ChatDiagnosticOracle(
                api_base=config.oracle_api_base,
                api_key=config.oracle_api_key,
                model=config.oracle_model,
                timeout=config.oracle_timeout,
            )

        raise ValueError(f"Unsupported oracle type: {config.oracle_type}")

    @staticmethod
    def create_repair(config: "AutoHealConfig") -> RepairOracle:
        """Create the repair oracle configured for this run.

        Args:
            config: Application configuration

        Returns:
            Repair oracle

        Raises:
            ValueError: If the oracle type is not supported
        """
        if config.oracle_type == OracleType.OPENAI_COMPATIBLE:
            return ChatRepairOracle(
                api_base=config.oracle_api_base,
                api_key=config.oracle_api_key,
                model=config.oracle_model,
                timeout=config.oracle_timeout,
            )

        raise ValueError(f"Unsupported oracle type: {config.oracle_type}")
