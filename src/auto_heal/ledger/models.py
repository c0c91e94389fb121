"""Models for issues and the persisted issue ledger."""

from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import NamedTuple, Self

from pydantic import BaseModel, Field, field_validator, model_validator

# Directories whose contents are never repair targets
DEPENDENCY_DIRS = frozenset({
    "node_modules",
    ".venv",
    "venv",
    "site-packages",
    "__pycache__",
    ".git",
})

REGRESSION_NOTE = "[NOTE: Previous fix failed. Try a different approach.]"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class IssueKind(str, Enum):
    """Closed set of defect categories."""

    LINTING = "LINTING"
    SYNTAX = "SYNTAX"
    LOGIC = "LOGIC"
    TYPE_ERROR = "TYPE_ERROR"
    IMPORT = "IMPORT"
    INDENTATION = "INDENTATION"
    RUNTIME = "RUNTIME"

    @classmethod
    def parse(cls, value: "str | IssueKind") -> "IssueKind":
        """Parse a kind case-insensitively.

        Args:
            value: Kind name (e.g. "syntax", "TYPE_ERROR")

        Returns:
            Matching IssueKind

        Raises:
            ValueError: If the value is not a known kind
        """
        if isinstance(value, IssueKind):
            return value
        return cls(str(value).strip().upper().replace("-", "_").replace(" ", "_"))


class IssueStatus(str, Enum):
    """Lifecycle status of an issue."""

    OPEN = "OPEN"
    FIXED = "FIXED"
    FAILED_FILE_NOT_FOUND = "FAILED_FILE_NOT_FOUND"
    FAILED_GENERATION = "FAILED_GENERATION"

    @property
    def is_failure(self) -> bool:
        """Check if this is one of the FAILED_* states."""
        return self in (IssueStatus.FAILED_FILE_NOT_FOUND, IssueStatus.FAILED_GENERATION)

    @property
    def is_terminal(self) -> bool:
        """Check if this status takes the issue out of the open set."""
        return self is not IssueStatus.OPEN


class IssueKey(NamedTuple):
    """Identity of a defect across iterations."""

    file: str
    kind: IssueKind
    line: int

    def fallback(self) -> "IssueKey":
        """Key used when the oracle could not pinpoint a line."""
        return IssueKey(self.file, self.kind, 0)

    def __str__(self) -> str:
        return f"{self.file}::{self.kind.value}::{self.line}"


def normalize_issue_path(value: str) -> str:
    """Normalize an issue path to a repository-relative POSIX path.

    Args:
        value: Path reported by a collaborator

    Returns:
        Normalized relative path

    Raises:
        ValueError: If the path is empty, absolute, escapes the repository,
            or points inside a dependency directory
    """
    cleaned = value.strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    if not cleaned:
        raise ValueError("Issue path must not be empty")
    if cleaned.startswith("/") or (len(cleaned) > 1 and cleaned[1] == ":"):
        raise ValueError(f"Issue path must be repository-relative: {value}")

    parts = PurePosixPath(cleaned).parts
    if ".." in parts:
        raise ValueError(f"Issue path escapes the repository: {value}")
    if any(part in DEPENDENCY_DIRS for part in parts):
        raise ValueError(f"Issue path is inside a dependency directory: {value}")
    return str(PurePosixPath(*parts))


class DiscoveredIssue(BaseModel):
    """A finding reported by the diagnostic oracle."""

    model_config = {"extra": "ignore"}

    file: str = Field(description="Repository-relative path of the faulty file")
    kind: IssueKind = Field(description="Defect category")
    line: int = Field(default=0, ge=0, description="Line number, 0 when unknown")
    description: str = Field(default="", description="Explanation of the defect")

    @field_validator("file")
    @classmethod
    def validate_file(cls, v: str) -> str:
        """Normalize and validate the file path."""
        return normalize_issue_path(v)

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v: str | IssueKind) -> IssueKind:
        """Accept kinds in any case."""
        return IssueKind.parse(v)

    @field_validator("line", mode="before")
    @classmethod
    def parse_line(cls, v: int | str | None) -> int:
        """Treat missing or non-numeric lines as unknown."""
        if v is None:
            return 0
        try:
            return int(v)
        except (TypeError, ValueError):
            return 0

    @property
    def key(self) -> IssueKey:
        """Identity key of the finding."""
        return IssueKey(self.file, self.kind, self.line)


class Issue(DiscoveredIssue):
    """A defect record tracked by the ledger."""

    status: IssueStatus = Field(default=IssueStatus.OPEN, description="Current status")
    discovered_at: int = Field(default=0, ge=0, description="Iteration the issue was first seen")
    fixed_at: datetime | None = Field(default=None, description="When the issue was marked FIXED")
    reopen_count: int = Field(default=0, ge=0, description="How many times a fix regressed")
    commit_message: str | None = Field(default=None, description="Message of the commit carrying the fix")

    @model_validator(mode="after")
    def check_fixed_at(self) -> Self:
        """Ensure fixed_at is set if and only if the issue is FIXED."""
        if (self.status is IssueStatus.FIXED) != (self.fixed_at is not None):
            msg = f"fixed_at must be set exactly when status is FIXED (status={self.status.value})"
            raise ValueError(msg)
        return self

    @classmethod
    def from_discovered(cls, discovered: DiscoveredIssue, iteration: int) -> "Issue":
        """Create a new OPEN issue from an oracle finding.

        Args:
            discovered: Oracle finding
            iteration: Iteration in which it was discovered

        Returns:
            New ledger entry
        """
        return cls(
            file=discovered.file,
            kind=discovered.kind,
            line=discovered.line,
            description=discovered.description,
            discovered_at=iteration,
        )


class MergeResult(BaseModel):
    """Outcome of merging oracle findings into the ledger."""

    new: list[Issue] = Field(default_factory=list)
    reopened: list[Issue] = Field(default_factory=list)
    skipped: int = Field(default=0, description="Findings that matched an already-known issue")

    @property
    def has_changes(self) -> bool:
        """Check if the merge produced anything to repair."""
        return bool(self.new or self.reopened)


class RunStatus(str, Enum):
    """Terminal status of a healing run."""

    RUNNING = "RUNNING"
    PASSED = "PASSED"
    FAILED = "FAILED"


class LedgerRecord(BaseModel):
    """Durable ledger document, keyed by run identifier."""

    run_id: str
    repo_url: str
    branch_name: str
    status: RunStatus = RunStatus.RUNNING
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None
    issues: list[Issue] = Field(default_factory=list)
