"""Version Control System abstraction for auto-heal."""

from auto_heal.vcs.base import VCSManager, build_branch_name
from auto_heal.vcs.exceptions import NotARepositoryError, VCSError, VCSOperationError
from auto_heal.vcs.git import GitManager

__all__ = [
    "GitManager",
    "NotARepositoryError",
    "VCSError",
    "VCSManager",
    "VCSOperationError",
    "build_branch_name",
]
