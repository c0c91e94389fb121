"""Base classes and types for the diagnostic and repair oracles."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auto_heal.ledger.models import DiscoveredIssue, Issue


class OracleType(str, Enum):
    """Supported oracle backends."""

    OPENAI_COMPATIBLE = "openai-compatible"

    @property
    def display_name(self) -> str:
        """Get human-readable display name.

        Returns:
            Display name for the backend
        """
        return {
            OracleType.OPENAI_COMPATIBLE: "OpenAI-compatible API",
        }[self]


class DiagnosticOracle(ABC):
    """Localizes failures in test/build output to source files."""

    oracle_type: OracleType

    @abstractmethod
    async def analyze(self, output: str, source_hints: list[str]) -> "list[DiscoveredIssue]":
        """Find the defects behind a failing run.

        Args:
            output: Test/build output, already bounded by the caller
            source_hints: Repository-relative source paths

        Returns:
            Findings with repository-relative paths and kinds from the closed set

        Raises:
            OracleError: If the backend cannot be reached
        """


class RepairOracle(ABC):
    """Rewrites one file to fix one issue."""

    oracle_type: OracleType

    @abstractmethod
    async def repair(self, issue: "Issue", file_content: str, test_output_snippet: str) -> str:
        """Produce the fixed content of the issue's file.

        Args:
            issue: The issue to fix
            file_content: Current content of issue.file
            test_output_snippet: Failing output for context

        Returns:
            Complete replacement content for the file

        Raises:
            OracleError: If the backend fails or returns nothing usable
        """
