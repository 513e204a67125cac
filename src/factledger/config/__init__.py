"""Application configuration helpers."""

from __future__ import annotations

from .api import ApiConfig, get_api_config
from .env import (
    optional_env_bool,
    optional_env_float,
    optional_env_int,
    require_env_var,
    require_env_vars,
)
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging, log_level_from_env
from .policy import ConflictPolicyConfig, get_conflict_policy_config
from .storage import (
    DatabaseConfig,
    StorageConfig,
    default_data_dir,
    get_database_config,
    get_storage_config,
)

__all__ = [
    "ApiConfig",
    "ConfigurationError",
    "ConflictPolicyConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "default_data_dir",
    "get_api_config",
    "get_conflict_policy_config",
    "get_database_config",
    "get_storage_config",
    "log_level_from_env",
    "optional_env_bool",
    "optional_env_float",
    "optional_env_int",
    "require_env_var",
    "require_env_vars",
]
