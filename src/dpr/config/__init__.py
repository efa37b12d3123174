"""dpr configuration.

This module provides loading and validation of the YAML config file that
declares the services of a session.

Example:
    >>> from dpr.config import load_config
    >>> config = load_config("dpr.yaml")
    >>> [service.id for service in config.services]
    ['db', 'api', 'web']
"""

from dpr.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigNotFoundError,
    ConfigValidationError,
)

from ._discovery import (
    CONFIG_FILE_NAMES,
    get_search_paths,
    get_user_config_path,
    resolve_config_path,
)
from ._loader import load_config, read_yaml_file, transform_config, validate_config_file
from ._models import (
    DEFAULT_COLORS,
    DEFAULT_LOGS_DIR,
    DEFAULT_READY_DELAY_MS,
    MAX_SERVICES,
    MIN_SERVICES,
    Config,
    GlobalConfig,
    RawConfig,
    RawServiceConfig,
    ServiceColor,
)
from ._validation import check_services, parse_config

__all__ = [
    "CONFIG_FILE_NAMES",
    "DEFAULT_COLORS",
    "DEFAULT_LOGS_DIR",
    "DEFAULT_READY_DELAY_MS",
    "MAX_SERVICES",
    "MIN_SERVICES",
    "Config",
    "ConfigError",
    "ConfigLoadError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "GlobalConfig",
    "RawConfig",
    "RawServiceConfig",
    "ServiceColor",
    "check_services",
    "get_search_paths",
    "get_user_config_path",
    "load_config",
    "parse_config",
    "read_yaml_file",
    "resolve_config_path",
    "transform_config",
    "validate_config_file",
]
