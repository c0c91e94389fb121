"""Python runtime engine."""

from pathlib import Path

from auto_heal.engines.base import Engine, EngineType, RuntimeProfile, marker_predicate

# Manifests in precedence order, with the install step each one implies
MANIFEST_INSTALLS = (
    ("requirements.txt", "pip install -r requirements.txt flake8 pytest"),
    ("pyproject.toml", "pip install . flake8 pytest"),
)

CHECK_COMMAND = "flake8 . --count --select=E9,F63,F7,F82,F401 --show-source --statistics && pytest"

# flake8 and pytest can exit 0 while still reporting these
FAILURE_MARKERS = ("SyntaxError:", " F401 ")


class PythonEngine(Engine):
    """Projects with requirements.txt or pyproject.toml at the root."""

    engine_type = EngineType.PYTHON
    image = "python:3.11-alpine"

    def discover(self, root: Path) -> str | None:
        """Find a Python manifest at the root."""
        for manifest, _ in MANIFEST_INSTALLS:
            if (root / manifest).is_file():
                return "."
        return None

    def build_profile(self, root: Path, subdirectory: str) -> RuntimeProfile:
        """Lint with flake8, then run pytest."""
        install_command = next(
            command for manifest, command in MANIFEST_INSTALLS if (root / subdirectory / manifest).is_file()
        )
        return RuntimeProfile(
            engine_type=self.engine_type,
            image=self.image,
            install_command=install_command,
            check_command=CHECK_COMMAND,
            subdirectory=subdirectory,
            failure_predicate=marker_predicate(FAILURE_MARKERS),
        )
