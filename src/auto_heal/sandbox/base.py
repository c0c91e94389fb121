"""Abstract sandbox interface."""

from abc import ABC, abstractmethod
from pathlib import Path

from auto_heal.sandbox.models import SandboxResult


class Sandbox(ABC):
    """Runs a shell command against a copy of a working tree in isolation."""

    @abstractmethod
    async def execute(self, root: Path, command: str, image: str) -> SandboxResult:
        """Execute a command against the working tree.

        Implementations never raise for infrastructure problems; they return a
        failed result describing what went wrong.

        Args:
            root: Working tree to transfer into the sandbox
            command: Shell command to run
            image: Execution image identifier

        Returns:
            Result of the execution
        """
