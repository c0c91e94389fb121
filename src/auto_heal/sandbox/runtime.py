"""Docker-backed sandbox runtime.

Each execution gets its own container:

1. Create a container from the image with a keep-alive command and start it
2. Stream the working tree into ``/app`` as a tar archive (no bind mounts)
3. Run the command with ``/bin/sh -c`` and capture stdout and stderr together
4. Force-remove the container, whatever happened in steps 1-3
"""

import asyncio
import io
import logging
import tarfile
import time
from pathlib import Path, PurePosixPath
from typing import Any

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.models.containers import Container

from auto_heal.sandbox.base import Sandbox
from auto_heal.sandbox.models import SandboxResult

logger = logging.getLogger(__name__)

WORKDIR = "/app"
KEEP_ALIVE_COMMAND = ["/bin/sh", "-c", "sleep 3600"]
CONTAINER_LABELS = {"managed-by": "auto-heal"}


def build_tree_archive(root: Path) -> bytes:
    """Pack a working tree into an in-memory tar archive.

    Args:
        root: Directory to pack

    Returns:
        Uncompressed tar archive with paths relative to root, .git left out
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        tar.add(str(root), arcname=".", filter=_skip_vcs_metadata)
    return buffer.getvalue()


def _skip_vcs_metadata(member: tarfile.TarInfo) -> tarfile.TarInfo | None:
    if ".git" in PurePosixPath(member.name).parts:
        return None
    return member


class SandboxSession:
    """One live container, released on every exit path.

    Usage::

        async with SandboxSession(client, "python:3.11-alpine") as session:
            await session.transfer(Path("/tmp/repo"))
            exit_code, output = await session.run("pytest")
    """

    def __init__(
        self,
        client: docker.DockerClient,
        image: str,
        memory_limit: str | None = None,
        cpu_limit: float | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            client: Docker client
            image: Image to create the container from
            memory_limit: Optional memory limit (e.g. "1g")
            cpu_limit: Optional CPU limit in cores
        """
        self.client = client
        self.image = image
        self.memory_limit = memory_limit
        self.cpu_limit = cpu_limit
        self.container: Container | None = None
        self._released = False

    async def __aenter__(self) -> "SandboxSession":
        """Create and start the container.

        Returns:
            Self
        """
        try:
            await asyncio.to_thread(self._acquire)
        except BaseException:
            await self.release()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Destroy the container.

        Args:
            exc_type: Exception type
            exc_val: Exception value
            exc_tb: Exception traceback
        """
        await self.release()

    def _ensure_image(self) -> None:
        try:
            self.client.images.get(self.image)
        except ImageNotFound:
            logger.info(f"Pulling image {self.image}...")
            self.client.images.pull(self.image)

    def _acquire(self) -> None:
        self._ensure_image()

        options: dict[str, Any] = {
            "image": self.image,
            "command": KEEP_ALIVE_COMMAND,
            "working_dir": WORKDIR,
            "labels": CONTAINER_LABELS,
        }
        if self.memory_limit:
            options["mem_limit"] = self.memory_limit
        if self.cpu_limit:
            options["nano_cpus"] = int(self.cpu_limit * 1e9)

        self.container = self.client.containers.create(**options)
        self.container.start()
        logger.debug(f"Container {self.container.short_id} started (image={self.image})")

    async def transfer(self, root: Path) -> None:
        """Copy the working tree into the container's working directory.

        Args:
            root: Working tree on the host

        Raises:
            RuntimeError: If the session has no container or the copy is rejected
        """
        container = self._require_container()
        archive = await asyncio.to_thread(build_tree_archive, root)
        accepted = await asyncio.to_thread(container.put_archive, WORKDIR, archive)
        if not accepted:
            msg = f"Container rejected the archive of {root}"
            raise RuntimeError(msg)
        logger.debug(f"Transferred {len(archive)} bytes into {container.short_id}")

    async def run(self, command: str) -> tuple[int, str]:
        """Run a shell command and capture combined output.

        Args:
            command: Shell command

        Returns:
            Tuple of (exit code, combined stdout and stderr)
        """
        container = self._require_container()
        result = await asyncio.to_thread(
            container.exec_run,
            ["/bin/sh", "-c", command],
            stdout=True,
            stderr=True,
            demux=False,
            workdir=WORKDIR,
        )
        output = (result.output or b"").decode("utf-8", errors="replace")
        return result.exit_code, output

    async def release(self) -> None:
        """Force-remove the container. Never raises; runs at most once."""
        if self._released:
            return
        self._released = True

        container = self.container
        if container is None:
            return
        try:
            await asyncio.to_thread(container.remove, force=True)
            logger.debug(f"Container {container.short_id} destroyed")
        except NotFound:
            logger.debug(f"Container {container.short_id} already gone")
        except Exception as e:
            logger.warning(f"Failed to destroy container {container.short_id}: {e}")

    def _require_container(self) -> Container:
        if self.container is None:
            msg = "Sandbox session is not active. Use async context manager."
            raise RuntimeError(msg)
        return self.container


class DockerSandbox(Sandbox):
    """Sandbox runtime creating one throwaway Docker container per execution."""

    def __init__(
        self,
        client: docker.DockerClient | None = None,
        timeout: float = 600,
        memory_limit: str | None = None,
        cpu_limit: float | None = None,
    ) -> None:
        """Initialize the sandbox.

        Args:
            client: Docker client (default: created from the environment on first use)
            timeout: Timeout in seconds for the sandboxed command
            memory_limit: Optional container memory limit
            cpu_limit: Optional container CPU limit in cores
        """
        self._client = client
        self.timeout = timeout
        self.memory_limit = memory_limit
        self.cpu_limit = cpu_limit

    @property
    def client(self) -> docker.DockerClient:
        """Docker client, created lazily from the environment."""
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    async def execute(self, root: Path, command: str, image: str) -> SandboxResult:
        """Execute a command against a copy of the working tree.

        Args:
            root: Working tree to transfer into the container
            command: Shell command to run
            image: Docker image to run it in

        Returns:
            Result of the execution; infrastructure failures come back as
            failed results rather than exceptions
        """
        started = time.monotonic()
        logger.info(f"Running in sandbox ({image}): {command}")

        try:
            async with SandboxSession(
                self.client,
                image,
                memory_limit=self.memory_limit,
                cpu_limit=self.cpu_limit,
            ) as session:
                await session.transfer(root)
                try:
                    exit_code, output = await asyncio.wait_for(session.run(command), timeout=self.timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Sandbox command timed out after {self.timeout} seconds")
                    return SandboxResult.timeout(self.timeout, time.monotonic() - started)

        except ImageNotFound:
            return self._error(f"Docker image '{image}' not found", started)
        except APIError as e:
            return self._error(f"Docker API error: {e.explanation or e}", started)
        except DockerException as e:
            return self._error(f"Docker error: {e}", started)
        except Exception as e:
            return self._error(str(e) or type(e).__name__, started)

        result = SandboxResult.from_exit_code(exit_code, output, time.monotonic() - started)
        logger.info(f"Sandbox finished with exit code {exit_code} in {result.duration_seconds:.1f}s")
        return result

    @staticmethod
    def _error(message: str, started: float) -> SandboxResult:
        logger.error(f"Sandbox execution failed: {message}")
        return SandboxResult.error(message, time.monotonic() - started)
