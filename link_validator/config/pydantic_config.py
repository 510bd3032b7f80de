"""
Pydantic-based configuration system for the Link Validator.

Settings are grouped into validation, store, server and logging sections.
Values come from (in increasing priority) model defaults, a TOML or JSON
configuration file, environment variables and command-line arguments.
"""

import json
import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import toml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from ..utils.error_handler import ConfigurationError


class _SectionModel(BaseModel):
    """Accepts both snake_case and camelCase keys"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ValidationSettings(_SectionModel):
    """Batch engine, prober and retry settings."""

    batch_size: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Records fetched and committed per batch",
    )
    max_parallelism: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Maximum outstanding probes within a batch",
    )
    timeout_seconds: float = Field(
        default=5,
        gt=0,
        le=300,
        description="Deadline for one probe attempt in seconds",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries after the first attempt for transient failures",
    )
    retry_backoff_ms: int = Field(
        default=100,
        ge=0,
        le=60_000,
        description="Linear backoff step between retries in milliseconds",
    )
    max_redirects: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Redirect hops followed before a 3xx is taken as final",
    )
    verify_ssl: bool = Field(
        default=False,
        description="Verify TLS certificates when probing",
    )
    user_agent: str = Field(
        default="LinkValidator/1.0",
        min_length=1,
        description="User-Agent header sent with probes",
    )

    @field_validator("max_parallelism")
    @classmethod
    def validate_max_parallelism(cls, v):
        """Warn about parallelism levels likely to trip remote rate limits."""
        if v > 100:
            warnings.warn(
                f"High parallelism ({v}) may trigger rate limiting from "
                f"remote hosts. Consider 10-50 for large backlogs.",
                UserWarning,
            )
        return v

    @property
    def retry_backoff_seconds(self) -> float:
        return self.retry_backoff_ms / 1000.0


class StoreConfig(_SectionModel):
    """Record store connection settings."""

    backend: Literal["mongodb", "sqlite"] = Field(
        default="mongodb", description="Record store backend"
    )
    connection_string: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    database_name: str = Field(default="LinksDb", min_length=1)
    collection_name: str = Field(default="links", min_length=1)
    server_selection_timeout_ms: int = Field(default=5000, ge=100, le=120_000)
    sqlite_path: Path = Field(
        default=Path("link_validator.db"),
        description="SQLite database file (sqlite backend only)",
    )

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def validate_sqlite_path(cls, v):
        if isinstance(v, str):
            return Path(v)
        return v


class ServerConfig(_SectionModel):
    """HTTP server settings."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)


class LoggingConfig(_SectionModel):
    """Logging settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Optional[str] = Field(
        default=None,
        description="Log file name; written under a logs/ directory when set",
    )
    console_output: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class LinkValidatorConfig(_SectionModel):
    """Root configuration model."""

    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    store: StoreConfig = Field(default_factory=StoreConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Environment variable -> (section, option)
ENV_OVERRIDES = {
    "LINK_VALIDATOR_STORE_BACKEND": ("store", "backend"),
    "LINK_VALIDATOR_MONGODB_URI": ("store", "connection_string"),
    "LINK_VALIDATOR_DATABASE": ("store", "database_name"),
    "LINK_VALIDATOR_COLLECTION": ("store", "collection_name"),
    "LINK_VALIDATOR_SQLITE_PATH": ("store", "sqlite_path"),
    "LINK_VALIDATOR_LOG_LEVEL": ("logging", "level"),
}

# CLI argument name -> (section, option)
CLI_OVERRIDES = {
    "batch_size": ("validation", "batch_size"),
    "max_parallelism": ("validation", "max_parallelism"),
    "timeout_seconds": ("validation", "timeout_seconds"),
    "max_retries": ("validation", "max_retries"),
    "host": ("server", "host"),
    "port": ("server", "port"),
    "log_level": ("logging", "level"),
}

DEFAULT_CONFIG_FILES = ("link_validator.toml", "link_validator.json")


class ConfigurationManager:
    """Manages loading and validation of configuration from multiple sources."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file (TOML or JSON)
            environ: Environment mapping (defaults to ``os.environ``)
        """
        self._environ = os.environ if environ is None else environ
        self._config: Optional[LinkValidatorConfig] = None
        self._load_configuration(Path(config_path) if config_path else None)

    def _get_default_config_paths(self) -> list:
        cwd = Path.cwd()
        return [cwd / name for name in DEFAULT_CONFIG_FILES]

    def _load_configuration(self, config_path: Optional[Path]) -> None:
        """Load configuration from file or use defaults."""
        config_data: Dict[str, Any] = {}

        if config_path:
            config_data = self._load_config_file(config_path)
        else:
            for path in self._get_default_config_paths():
                if path.exists():
                    config_data = self._load_config_file(path)
                    break

        self._apply_env_overrides(config_data)
        self._config = self._build(config_data)

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from TOML or JSON file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        suffix = config_path.suffix.lower()
        try:
            if suffix == ".toml":
                return toml.load(config_path)
            if suffix == ".json":
                with open(config_path, "r", encoding="utf-8") as f:
                    return json.load(f)
        except (toml.TomlDecodeError, json.JSONDecodeError, OSError) as e:
            raise ConfigurationError(
                f"Failed to load configuration from {config_path}: {e}"
            ) from e

        raise ConfigurationError(
            f"Unsupported configuration file format: {config_path.suffix}"
        )

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> None:
        for env_name, (section, option) in ENV_OVERRIDES.items():
            value = self._environ.get(env_name)
            if value:
                section_data = config_data.setdefault(section, {})
                # The alias is read before the field name, so it must go
                section_data.pop(to_camel(option), None)
                section_data[option] = value

    @staticmethod
    def _build(config_data: Dict[str, Any]) -> LinkValidatorConfig:
        try:
            return LinkValidatorConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(format_config_error(e)) from e

    def update_from_cli_args(self, args: Dict[str, Any]) -> None:
        """Update configuration from command-line arguments."""
        config_dict = self.config.model_dump()

        for arg_name, (section, option) in CLI_OVERRIDES.items():
            value = args.get(arg_name)
            if value is not None:
                config_dict[section][option] = value

        self._config = self._build(config_dict)

    @property
    def config(self) -> LinkValidatorConfig:
        """Get the current configuration."""
        if not self._config:
            raise ConfigurationError("Configuration not loaded")
        return self._config


def format_config_error(error: ValidationError) -> str:
    """
    Convert a pydantic ValidationError into a readable message.

    Args:
        error: Pydantic ValidationError instance

    Returns:
        One line per invalid field, prefixed with a header
    """
    lines = []
    for detail in error.errors():
        location = " -> ".join(str(part) for part in detail["loc"]) or "configuration"
        message = detail.get("msg", "Invalid value")
        input_value = detail.get("input", "N/A")
        lines.append(f"  {location}: {message} (got: {input_value!r})")

    return "Configuration validation failed:\n" + "\n".join(lines)


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[Dict[str, Any]] = None,
) -> LinkValidatorConfig:
    """Load configuration from file, environment and optional CLI overrides."""
    manager = ConfigurationManager(config_path)
    if cli_args:
        manager.update_from_cli_args(cli_args)
    return manager.config
