"""Node.js runtime engine."""

import json
import logging
from pathlib import Path

from auto_heal.engines.base import Engine, EngineType, RuntimeProfile
from auto_heal.engines.exceptions import EngineDetectionError

logger = logging.getLogger(__name__)

MANIFEST = "package.json"
# Directories searched for the manifest, in order
PROJECT_DIRS = (".", "frontend")
# Declared scripts tried in order; the first one present is run
SCRIPT_COMMANDS = (
    ("test", "npm test"),
    ("lint", "npm run lint"),
    ("build", "npm run build"),
)


class NodeEngine(Engine):
    """Projects with a package.json at the root or in frontend/."""

    engine_type = EngineType.NODE
    image = "node:18-alpine"
    install_command = "npm install --no-audit --no-fund --prefer-offline"

    def discover(self, root: Path) -> str | None:
        """Find package.json at the root or in frontend/."""
        for directory in PROJECT_DIRS:
            if (root / directory / MANIFEST).is_file():
                return directory
        return None

    def build_profile(self, root: Path, subdirectory: str) -> RuntimeProfile:
        """Pick the check command from the project's declared scripts.

        Raises:
            EngineDetectionError: If package.json is unreadable or not an object
        """
        manifest_path = root / subdirectory / MANIFEST
        try:
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            msg = f"Error reading {manifest_path}: {e}"
            raise EngineDetectionError(msg) from e

        if not isinstance(manifest, dict):
            msg = f"{manifest_path} does not contain a JSON object"
            raise EngineDetectionError(msg)

        scripts = manifest.get("scripts") or {}
        check_command = None
        if isinstance(scripts, dict):
            for script, command in SCRIPT_COMMANDS:
                if scripts.get(script):
                    check_command = command
                    break

        if check_command is None:
            logger.warning(f"{manifest_path} declares no test, lint or build script; only installing")

        return RuntimeProfile(
            engine_type=self.engine_type,
            image=self.image,
            install_command=self.install_command,
            check_command=check_command,
            subdirectory=subdirectory,
        )
