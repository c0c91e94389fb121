"""Sandboxed execution of project commands in disposable containers."""

from auto_heal.sandbox.base import Sandbox
from auto_heal.sandbox.models import SandboxOutcome, SandboxResult
from auto_heal.sandbox.runtime import DockerSandbox, SandboxSession, build_tree_archive

__all__ = [
    "DockerSandbox",
    "Sandbox",
    "SandboxOutcome",
    "SandboxResult",
    "SandboxSession",
    "build_tree_archive",
]
