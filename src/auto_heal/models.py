"""Top-level models for auto-heal."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from auto_heal.ledger.models import Issue, IssueKind, IssueStatus, RunStatus, utc_now

__all__ = [
    "AppliedFix",
    "HealReport",
    "LoopState",
    "RunSession",
    "RunStatus",
]


class LoopState(str, Enum):
    """States of the healing loop."""

    INIT = "INIT"
    TESTING = "TESTING"
    DIAGNOSING = "DIAGNOSING"
    REPAIRING = "REPAIRING"
    DONE = "DONE"


class AppliedFix(BaseModel):
    """A repair written to disk during the run."""

    file: str
    kind: IssueKind
    line: int = 0
    description: str = ""
    iteration: int


class RunSession(BaseModel):
    """Mutable state of one healing run."""

    run_id: str
    repo_url: str
    working_tree: Path | None = None
    branch_name: str | None = None
    iteration: int = 0
    state: LoopState = LoopState.INIT
    status: RunStatus = RunStatus.RUNNING
    applied_fixes: list[AppliedFix] = Field(default_factory=list)
    last_output: str = ""
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None
    log: list[str] = Field(default_factory=list, description="Human-readable progress lines")


class HealReport(BaseModel):
    """Terminal summary of a healing run."""

    run_id: str
    repo_url: str
    branch_name: str | None = None
    status: RunStatus
    iterations: int = 0
    total_open_failures: int = Field(default=0, description="Issues not FIXED at the end of the run")
    total_fixes_applied: int = Field(default=0, description="Repairs written to disk during the run")
    commits: list[str] = Field(default_factory=list, description="Commit SHAs created for fixes")
    pushed: bool = False
    error_message: str | None = None
    issues: list[Issue] = Field(default_factory=list)
    ledger_path: Path | None = None
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None
    log: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        """Check if the suite passed at the end of the run."""
        return self.status is RunStatus.PASSED

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the run (0 while it is still running)."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def count(self, status: IssueStatus) -> int:
        """Count issues with the given status."""
        return sum(1 for issue in self.issues if issue.status is status)

    def to_results_dict(self) -> dict[str, Any]:
        """Serialize for the results file consumed by dashboards.

        Returns:
            JSON-compatible dictionary with camelCase keys
        """
        return {
            "runId": self.run_id,
            "repoUrl": self.repo_url,
            "branchName": self.branch_name,
            "status": self.status.value,
            "iterations": self.iterations,
            "totalOpenFailures": self.total_open_failures,
            "totalFixesApplied": self.total_fixes_applied,
            "commits": self.commits,
            "pushed": self.pushed,
            "errorMessage": self.error_message,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "durationSeconds": round(self.duration_seconds, 2),
            "issues": [
                {
                    "file": issue.file,
                    "type": issue.kind.value,
                    "line": issue.line,
                    "description": issue.description,
                    "status": issue.status.value,
                    "commitMessage": issue.commit_message,
                }
                for issue in self.issues
            ],
            "logs": self.log,
        }
