"""Base classes and types for runtime engines."""

import shlex
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from auto_heal.sandbox.models import SandboxResult

FailurePredicate = Callable[[str], str | None]
"""Returns the failure marker found in the output, or None."""


def marker_predicate(markers: Sequence[str]) -> FailurePredicate:
    """Build a predicate matching any of the given substrings.

    Args:
        markers: Output substrings that indicate an actionable failure

    Returns:
        Predicate returning the first marker present in the output
    """

    def predicate(output: str) -> str | None:
        for marker in markers:
            if marker in output:
                return marker
        return None

    return predicate


class EngineType(str, Enum):
    """Supported project runtimes."""

    NODE = "node"
    PYTHON = "python"

    @property
    def display_name(self) -> str:
        """Get human-readable display name.

        Returns:
            Display name for the runtime
        """
        return {
            EngineType.NODE: "Node.js",
            EngineType.PYTHON: "Python",
        }[self]


class RuntimeProfile(BaseModel):
    """Image and command sequence used to check a project."""

    engine_type: EngineType = Field(description="Runtime family")
    image: str = Field(description="Execution image identifier")
    install_command: str = Field(description="Dependency installation command")
    check_command: str | None = Field(
        default=None,
        description="Test, lint or build command; None when the project declares none",
    )
    subdirectory: str = Field(default=".", description="Project directory relative to the repository root")
    failure_predicate: FailurePredicate | None = Field(
        default=None,
        exclude=True,
        description="Output check that forces a failure despite a zero exit code",
    )

    @property
    def command(self) -> str:
        """Single shell command running install and check in order."""
        steps = [self.install_command]
        if self.check_command:
            steps.append(self.check_command)
        command = " && ".join(steps)
        if self.subdirectory != ".":
            command = f"cd {shlex.quote(self.subdirectory)} && {command}"
        return command

    def evaluate(self, result: SandboxResult) -> SandboxResult:
        """Apply the profile's failure predicate to a sandbox result.

        Only successful results are inspected: a zero exit code with a strong
        failure marker in the output is turned into a failure.

        Args:
            result: Raw sandbox result

        Returns:
            The result, or a failed copy if a failure marker was found
        """
        if not result.success or self.failure_predicate is None:
            return result
        marker = self.failure_predicate(result.output)
        if marker is None:
            return result
        return result.with_forced_failure(marker)


class Engine(ABC):
    """Detects one runtime family and builds its profile."""

    engine_type: EngineType
    image: str

    @abstractmethod
    def discover(self, root: Path) -> str | None:
        """Locate the project's manifest.

        Args:
            root: Working tree root

        Returns:
            Project subdirectory ("." for the root), or None if not this runtime
        """

    @abstractmethod
    def build_profile(self, root: Path, subdirectory: str) -> RuntimeProfile:
        """Build the runtime profile for a discovered project.

        Args:
            root: Working tree root
            subdirectory: Value returned by discover

        Returns:
            Runtime profile

        Raises:
            EngineDetectionError: If the manifest cannot be understood
        """

    def detect(self, root: Path) -> RuntimeProfile | None:
        """Discover and build in one step.

        Args:
            root: Working tree root

        Returns:
            Runtime profile, or None if this engine does not apply
        """
        subdirectory = self.discover(root)
        if subdirectory is None:
            return None
        return self.build_profile(root, subdirectory)
