"""Abstract base class for version control operations used by the healing loop."""

import time
from abc import ABC, abstractmethod
from pathlib import Path

from auto_heal.ledger.models import Issue

SUBJECT_DESCRIPTION_LIMIT = 60


def build_branch_name(
    team_name: str | None = None,
    leader_name: str | None = None,
    timestamp: int | None = None,
) -> str:
    """Build the name of the branch receiving the fixes.

    Format is ``TEAM_LEADER_AI_Fix_<timestamp>`` with names uppercased and
    spaces replaced by underscores; parts that are not given are left out.

    Args:
        team_name: Optional team name
        leader_name: Optional team leader name
        timestamp: Milliseconds since the epoch (default: now)

    Returns:
        Branch name
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    parts = [
        "_".join(name.strip().upper().split())
        for name in (team_name, leader_name)
        if name and name.strip()
    ]
    parts.extend(["AI_Fix", str(timestamp)])
    return "_".join(parts)


class VCSManager(ABC):
    """Version control operations needed by a healing run."""

    repo_path: Path

    @classmethod
    @abstractmethod
    def clone(cls, url: str, destination: Path, token: str | None = None) -> "VCSManager":
        """Clone a repository.

        Args:
            url: Remote repository URL
            destination: Local directory to clone into
            token: Optional access token for https remotes

        Returns:
            Manager for the cloned working tree

        Raises:
            VCSOperationError: If the clone fails
        """

    @abstractmethod
    def configure_identity(self, name: str, email: str) -> None:
        """Set the author identity used for commits in this repository.

        Raises:
            VCSOperationError: If the configuration cannot be written
        """

    @abstractmethod
    def create_branch(self, name: str) -> None:
        """Create a branch from the current commit and check it out.

        Raises:
            VCSOperationError: If the branch cannot be created
        """

    @abstractmethod
    def get_current_branch(self) -> str:
        """Get the name of the current branch.

        Raises:
            VCSOperationError: If unable to determine branch
        """

    @abstractmethod
    def stage_and_commit(self, file: str, message: str) -> str | None:
        """Stage one file and commit it.

        Args:
            file: Repository-relative path
            message: Commit message

        Returns:
            Commit identifier, or None if there was nothing to commit

        Raises:
            VCSOperationError: If the commit fails
        """

    @abstractmethod
    def push(self, branch: str, force: bool = True, set_upstream: bool = True) -> None:
        """Push a branch to the origin remote.

        Raises:
            VCSOperationError: If the push fails
        """

    def commit_fix(self, issue: Issue) -> tuple[str | None, str]:
        """Commit the file repaired for an issue.

        Args:
            issue: A FIXED issue

        Returns:
            Tuple of (commit identifier or None if nothing changed, message)

        Raises:
            VCSOperationError: If the commit fails
        """
        message = self._create_commit_message(issue)
        return self.stage_and_commit(issue.file, message), message

    def _create_commit_message(self, issue: Issue) -> str:
        """Create a formatted commit message for a fix.

        Args:
            issue: The issue that was fixed

        Returns:
            Formatted commit message
        """
        description = issue.description.strip()
        subject = f"fix: [{issue.kind.value}] {issue.file}: {description[:SUBJECT_DESCRIPTION_LIMIT]}"
        if len(description) > SUBJECT_DESCRIPTION_LIMIT:
            subject = subject.rstrip() + "..."

        location = f"{issue.file}:{issue.line}" if issue.line else issue.file
        body_parts = [
            f"Type: {issue.kind.value}",
            f"Location: {location}",
            f"Discovered in iteration: {issue.discovered_at}",
        ]
        if issue.reopen_count:
            body_parts.append(f"Reopened: {issue.reopen_count} time(s)")

        body_parts.extend([
            "",
            description,
            "",
            "Fixed by: auto-heal",
        ])

        body = "\n".join(body_parts)

        return f"{subject}\n\n{body}"
