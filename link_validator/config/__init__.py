"""Configuration package for the Link Validator."""

from .pydantic_config import (
    ConfigurationManager,
    LinkValidatorConfig,
    LoggingConfig,
    ServerConfig,
    StoreConfig,
    ValidationSettings,
    format_config_error,
    load_config,
)

__all__ = [
    "ConfigurationManager",
    "LinkValidatorConfig",
    "LoggingConfig",
    "ServerConfig",
    "StoreConfig",
    "ValidationSettings",
    "format_config_error",
    "load_config",
]
