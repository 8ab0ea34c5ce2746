"""Configuration models and loaders for forumpost."""

from .loader import (
    ConfigError,
    DEFAULT_CONFIG_PATH,
    TOKEN_ENV_VAR,
    dump_example_config,
    load_config,
    read_structured_file,
)
from .models import ApiConfig, ProviderConfig, RetryConfig, RuntimeConfig

__all__ = [
    "ApiConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "ProviderConfig",
    "RetryConfig",
    "RuntimeConfig",
    "TOKEN_ENV_VAR",
    "dump_example_config",
    "load_config",
    "read_structured_file",
]
