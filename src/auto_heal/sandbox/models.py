"""Models for sandboxed command execution."""

from enum import Enum

from pydantic import BaseModel, Field


class SandboxOutcome(str, Enum):
    """How a sandboxed command ended."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
    ERROR = "ERROR"


class SandboxResult(BaseModel):
    """Result of one sandboxed execution.

    ``success`` is derived from the process exit code only, unless a runtime
    profile forces a failure because the output carries a strong failure
    marker (see ``with_forced_failure``).
    """

    success: bool = Field(description="Whether the command succeeded")
    output: str = Field(default="", description="Combined stdout and stderr")
    exit_code: int | None = Field(default=None, description="Process exit code, if the command ran")
    outcome: SandboxOutcome = Field(description="How the execution ended")
    forced_failure_marker: str | None = Field(
        default=None,
        description="Output marker that forced a failure despite a zero exit code",
    )
    duration_seconds: float = Field(default=0.0, description="Wall-clock duration")

    @classmethod
    def from_exit_code(cls, exit_code: int, output: str, duration_seconds: float = 0.0) -> "SandboxResult":
        """Build a result for a command that ran to completion."""
        success = exit_code == 0
        return cls(
            success=success,
            output=output,
            exit_code=exit_code,
            outcome=SandboxOutcome.PASSED if success else SandboxOutcome.FAILED,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def error(cls, message: str, duration_seconds: float = 0.0) -> "SandboxResult":
        """Build a result for an infrastructure failure."""
        return cls(
            success=False,
            output=f"Sandbox execution failed: {message}",
            outcome=SandboxOutcome.ERROR,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def timeout(cls, seconds: float, duration_seconds: float = 0.0) -> "SandboxResult":
        """Build a result for a command that exceeded its time budget."""
        return cls(
            success=False,
            output=f"Sandbox execution timed out after {seconds:g} seconds",
            outcome=SandboxOutcome.TIMEOUT,
            duration_seconds=duration_seconds,
        )

    @property
    def timed_out(self) -> bool:
        """Check if the command was killed by the timeout."""
        return self.outcome is SandboxOutcome.TIMEOUT

    def with_forced_failure(self, marker: str) -> "SandboxResult":
        """Return a copy marked as failed because of an output marker.

        Args:
            marker: The failure marker found in the output

        Returns:
            Failed copy of this result
        """
        return self.model_copy(
            update={
                "success": False,
                "outcome": SandboxOutcome.FAILED,
                "forced_failure_marker": marker,
            }
        )
