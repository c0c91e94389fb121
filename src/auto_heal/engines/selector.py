"""Engine selection by manifest inspection."""

import logging
from pathlib import Path

from auto_heal.engines.base import Engine, RuntimeProfile
from auto_heal.engines.node import NodeEngine
from auto_heal.engines.python import PythonEngine

logger = logging.getLogger(__name__)


class EngineSelector:
    """Chooses the runtime profile for a working tree.

    Engines are tried in a fixed precedence order (Node.js before Python) and
    the first match wins. Detection only reads manifest files.
    """

    def __init__(self, engines: list[Engine] | None = None) -> None:
        """Initialize the selector.

        Args:
            engines: Engines in precedence order (default: Node.js, then Python)
        """
        self.engines = engines if engines is not None else [NodeEngine(), PythonEngine()]

    def detect(self, root: Path) -> RuntimeProfile | None:
        """Detect the runtime profile for a working tree.

        Args:
            root: Working tree root

        Returns:
            Profile of the first matching engine, or None if nothing matches

        Raises:
            EngineDetectionError: If a matching manifest cannot be understood
        """
        for engine in self.engines:
            profile = engine.detect(root)
            if profile is not None:
                logger.info(f"Detected {engine.engine_type.display_name} project in {profile.subdirectory!r}")
                return profile

        logger.warning(f"No supported runtime detected in {root}")
        return None
