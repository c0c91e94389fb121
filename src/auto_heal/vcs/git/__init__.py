"""Git VCS implementation for auto-heal."""

from auto_heal.vcs.git.manager import GitManager, inject_token

__all__ = [
    "GitManager",
    "inject_token",
]
