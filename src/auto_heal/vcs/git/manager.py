"""Git operations manager."""

import logging
from pathlib import Path

import git

from auto_heal.vcs.base import VCSManager
from auto_heal.vcs.exceptions import NotARepositoryError, VCSOperationError

logger = logging.getLogger(__name__)


def inject_token(url: str, token: str | None) -> str:
    """Embed an access token into an https remote URL.

    Args:
        url: Remote URL
        token: Access token, or None

    Returns:
        URL carrying the token, or the original URL for other schemes
    """
    if token and url.startswith("https://"):
        return url.replace("https://", f"https://{token}@", 1)
    return url


def _redact(text: str, token: str | None) -> str:
    return text.replace(token, "***") if token else text


class GitManager(VCSManager):
    """Manages Git operations for auto-heal."""

    def __init__(self, repo_path: str | Path | None = None, token: str | None = None) -> None:
        """Initialize Git manager.

        Args:
            repo_path: Path to Git repository (default: current directory)
            token: Access token embedded in the remote URL, kept out of error messages

        Raises:
            NotARepositoryError: If path is not a Git repository
        """
        self.repo_path = Path(repo_path or Path.cwd())
        self._token = token

        try:
            self.repo = git.Repo(self.repo_path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            msg = f"Not a Git repository: {self.repo_path}"
            raise NotARepositoryError(msg) from e
        except git.GitError as e:
            msg = f"Git error: {e}"
            raise VCSOperationError(msg) from e

    @classmethod
    def clone(cls, url: str, destination: Path, token: str | None = None) -> "GitManager":
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
        logger.info(f"Cloning {url} to {destination}")
        try:
            git.Repo.clone_from(inject_token(url, token), destination)
        except git.GitError as e:
            msg = f"Failed to clone {url}: {_redact(str(e), token)}"
            raise VCSOperationError(msg) from e
        return cls(destination, token=token)

    def configure_identity(self, name: str, email: str) -> None:
        """Set user.name and user.email in the repository config.

        Raises:
            VCSOperationError: If the configuration cannot be written
        """
        try:
            with self.repo.config_writer() as writer:
                writer.set_value("user", "name", name)
                writer.set_value("user", "email", email)
        except (git.GitError, OSError) as e:
            msg = f"Failed to configure Git identity: {e}"
            raise VCSOperationError(msg) from e

    def create_branch(self, name: str) -> None:
        """Create a branch from HEAD and check it out.

        Raises:
            VCSOperationError: If the branch cannot be created
        """
        try:
            branch = self.repo.create_head(name)
            branch.checkout()
        except (git.GitError, ValueError, OSError) as e:
            msg = f"Failed to create branch {name}: {e}"
            raise VCSOperationError(msg) from e
        logger.info(f"Checked out new branch {name}")

    def get_current_branch(self) -> str:
        """Get the name of the current branch.

        Returns:
            Current branch name

        Raises:
            VCSOperationError: If unable to determine branch
        """
        try:
            return self.repo.active_branch.name
        except Exception as e:
            msg = f"Unable to get current branch: {e}"
            raise VCSOperationError(msg) from e

    def stage_and_commit(self, file: str, message: str) -> str | None:
        """Stage one file and commit it if it changed.

        Args:
            file: Repository-relative path
            message: Commit message

        Returns:
            Commit SHA, or None if there were no changes to commit

        Raises:
            VCSOperationError: If the commit fails
        """
        try:
            self.repo.index.add([file])

            # Nothing staged happens when an earlier commit already carried this file
            if not self.repo.index.diff("HEAD"):
                logger.debug(f"Nothing to commit for {file}")
                return None

            commit = self.repo.index.commit(message)
            return commit.hexsha

        except (git.GitError, OSError) as e:
            msg = f"Failed to create commit: {e}"
            raise VCSOperationError(msg) from e

    def push(self, branch: str, force: bool = True, set_upstream: bool = True) -> None:
        """Push a branch to origin.

        Args:
            branch: Branch name
            force: Overwrite the remote branch
            set_upstream: Track the remote branch

        Raises:
            VCSOperationError: If the push fails
        """
        args: list[str] = []
        if force:
            args.append("--force")
        if set_upstream:
            args.append("--set-upstream")
        args.extend(["origin", branch])

        try:
            self.repo.git.push(*args)
        except git.GitError as e:
            msg = f"Failed to push {branch}: {_redact(str(e), self._token)}"
            raise VCSOperationError(msg) from e
        logger.info(f"Pushed branch {branch}")
