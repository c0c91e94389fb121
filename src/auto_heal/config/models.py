"""Configuration models."""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from auto_heal.config.exceptions import InvalidConfigurationError
from auto_heal.oracles.base import OracleType

ENV_FILES = [".env.autoheal", ".env"]


class AutoHealConfig(BaseSettings):
    """Configuration for auto-heal application."""

    # Oracle settings
    oracle_api_key: str = Field(description="API key for the oracle backend")
    oracle_api_base: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    oracle_model: str = Field(default="gpt-4-turbo", description="Model used by both oracles")
    oracle_type: OracleType = Field(
        default=OracleType.OPENAI_COMPATIBLE,
        description="Oracle backend implementation",
    )
    oracle_timeout: float = Field(default=120.0, description="Timeout in seconds for a single oracle call")

    # Loop settings
    max_iterations: int = Field(default=6, description="Iteration ceiling for the healing loop")
    diagnosis_output_limit: int = Field(
        default=12000,
        description="Maximum characters of test output sent to the diagnostic oracle",
    )
    repair_context_limit: int = Field(
        default=3000,
        description="Maximum characters of test output sent to the repair oracle",
    )

    # Sandbox settings
    sandbox_timeout: int = Field(default=600, description="Timeout in seconds for one sandboxed command")
    sandbox_memory_limit: str | None = Field(default=None, description="Container memory limit (e.g. '1g')")
    sandbox_cpu_limit: float | None = Field(default=None, description="Container CPU limit in cores")

    # Storage settings
    workspace_dir: Path = Field(
        default=Path(".auto-heal/workspaces"),
        description="Directory where repositories are cloned",
    )
    ledger_dir: Path = Field(
        default=Path(".auto-heal/ledgers"),
        description="Directory where issue ledgers are persisted",
    )
    results_file: Path | None = Field(
        default=None,
        description="Optional JSON file receiving the final run report",
    )

    # Git settings
    github_token: str | None = Field(default=None, description="Token injected into https clone URLs")
    git_author_name: str = Field(default="auto-heal", description="Commit author name")
    git_author_email: str = Field(default="auto-heal@localhost", description="Commit author email")

    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(
        self,
        _env_file: str | Path | None = None,
        _settings_customise_sources_was_called: bool = False,
        **kwargs: Any,
    ) -> None:
        """Initialize configuration.

        Args:
            _env_file: Optional path to custom env file (use env_file for public API)
            _settings_customise_sources_was_called: Internal flag
            **kwargs: Additional configuration values

        Raises:
            InvalidConfigurationError: If the env file is specified but does not exist
        """
        env_file = kwargs.pop("env_file", _env_file)

        if env_file is not None:
            env_path = Path(env_file)
            if not env_path.exists():
                raise InvalidConfigurationError(f"Environment file not found: {env_file}")
            kwargs["_custom_env_file"] = env_path

        super().__init__(**kwargs)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to support a custom env file.

        Args:
            settings_cls: The settings class being instantiated
            init_settings: Settings from __init__ arguments
            env_settings: Settings from environment variables
            dotenv_settings: Settings from .env files
            file_secret_settings: Settings from secret files

        Returns:
            Tuple of settings sources in priority order
        """
        init_kwargs = init_settings.init_kwargs  # type: ignore[attr-defined]
        custom_env_path = init_kwargs.get("_custom_env_file")

        if custom_env_path is not None:
            custom_dotenv = DotEnvSettingsSource(
                settings_cls,
                env_file=custom_env_path,
                env_file_encoding="utf-8",
            )
            return (init_settings, custom_dotenv, env_settings, file_secret_settings)

        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @field_validator("oracle_type", mode="before")
    @classmethod
    def parse_oracle_type(cls, v: str | OracleType) -> OracleType:
        """Parse oracle type from string or enum.

        Args:
            v: Oracle type value

        Returns:
            Parsed OracleType

        Raises:
            InvalidConfigurationError: If the value is not a known oracle type
        """
        if isinstance(v, OracleType):
            return v
        if isinstance(v, str):
            try:
                return OracleType(v.lower())
            except ValueError as e:
                valid = [t.value for t in OracleType]
                raise InvalidConfigurationError(f"Invalid oracle type: {v}. Valid options: {valid}") from e
        raise InvalidConfigurationError(f"Invalid oracle type: {type(v)}")

    @field_validator("oracle_api_base")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("max_iterations")
    @classmethod
    def validate_max_iterations(cls, v: int) -> int:
        """Keep the iteration ceiling small and positive.

        Raises:
            InvalidConfigurationError: If the value is outside 1..20
        """
        if not 1 <= v <= 20:
            raise InvalidConfigurationError(f"max_iterations must be between 1 and 20, got {v}")
        return v

    @field_validator("diagnosis_output_limit", "repair_context_limit", "sandbox_timeout")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Reject non-positive limits.

        Raises:
            InvalidConfigurationError: If the value is zero or negative
        """
        if v <= 0:
            raise InvalidConfigurationError(f"Value must be positive, got {v}")
        return v

    @staticmethod
    def find_env_file() -> Path | None:
        """Find the environment file being used.

        Checks for .env.autoheal and .env in current directory in that order.

        Returns:
            Path to the env file if found, None otherwise
        """
        for env_file in ENV_FILES:
            path = Path(env_file)
            if path.exists():
                return path.absolute()
        return None
