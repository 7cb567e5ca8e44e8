"""
================================================================================
Webtest Tools Common Utilities
================================================================================

This module provides shared configuration management and logging setup for
the UI synchronization framework and its test suites.

Exports:
    - GlobalConfig: Singleton configuration manager
    - get_config: Convenience function to get configuration values
    - init_logger: Function to initialize loguru logger with standard settings

Usage:
    from webtest_tools.common import get_config, init_logger

    init_logger()
    base_url = get_config("ui.base_url", "http://localhost:3000")

================================================================================
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

# ============================================================
# Configuration Management
# ============================================================

# Environment variables mapped onto configuration keys
ENV_MAPPING: Dict[str, str] = {
    "UI_BASE_URL": "ui.base_url",
    "UI_BROWSER": "ui.browser",
    "UI_HEADLESS": "ui.headless",
    "UI_IMPLICIT_WAIT": "ui.implicit_wait",
    "UI_EXPLICIT_WAIT": "ui.explicit_wait",
    "UI_LONG_WAIT": "ui.long_wait",
    "UI_PAGE_LOAD_TIMEOUT": "ui.page_load_timeout",
    "UI_SCREENSHOT_DIR": "ui.screenshot_dir",
    "UI_RETRY_COUNT": "ui.retry_count",
    "LOG_LEVEL": "logging.level",
    "LOG_FILE": "logging.file",
}


class GlobalConfig:
    """
    Singleton class to manage global configuration.

    Loads settings from a YAML configuration file and environment variables.
    Environment variables take precedence over file-based configuration.
    """
    _instance: Optional["GlobalConfig"] = None
    _config: Dict[str, Any] = {}
    _initialized: bool = False

    def __new__(cls, config_path: Optional[Path] = None) -> "GlobalConfig":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_path: Optional[Path] = None):
        if self._initialized:
            return
        self._config = {}
        self._load_configs(config_path)
        self._initialized = True

    def _load_configs(self, config_path: Optional[Path] = None) -> None:
        """
        Loads configuration from YAML files and environment variables.
        """
        config_paths = [
            os.getenv("WEBTEST_CONFIG", ""),
            "config/config.yaml",
            os.path.join(os.path.dirname(__file__), "..", "..", "config", "config.yaml"),
        ]
        if config_path is not None:
            config_paths.insert(0, str(config_path))

        for path in config_paths:
            if path and os.path.exists(path):
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        file_config = yaml.safe_load(f) or {}
                        self._config.update(file_config)
                    logger.debug(f"Loaded configuration from {path}")
                    break
                except (OSError, yaml.YAMLError) as e:
                    logger.warning(f"Failed to load config from {path}: {e}")

        for env_key, config_key in ENV_MAPPING.items():
            if env_key in os.environ:
                self._set_nested(config_key, os.environ[env_key])

    def _set_nested(self, key: str, value: Any) -> None:
        """
        Sets a nested configuration value using dot notation.
        """
        keys = key.split(".")
        current = self._config
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieves a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "ui.base_url")
            default: Default value if key is not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Returns a copy of a top-level section, or an empty dict."""
        value = self._config.get(section, {})
        return dict(value) if isinstance(value, dict) else {}

    def set(self, key: str, value: Any) -> None:
        """
        Sets a configuration value.

        Args:
            key: Configuration key (e.g., "ui.retry_count")
            value: Value to set
        """
        self._set_nested(key, value)

    @classmethod
    def reset(cls) -> None:
        """
        Reset singleton instance.

        Useful for testing when configuration needs to be reloaded
        with different settings.
        """
        cls._instance = None
        cls._config = {}
        cls._initialized = False


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get a configuration value.

    Args:
        key: Configuration key using dot notation
        default: Default value if not found

    Returns:
        Configuration value or default

    Example:
        retries = get_config("ui.retry_count", 2)
    """
    return GlobalConfig().get(key, default)


# ============================================================
# Logging Setup
# ============================================================

_logger_initialized = False


def init_logger(
    level: str = None,
    format_string: str = None,
    log_file: str = None
) -> None:
    """
    Initializes the loguru logger with standard settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to config value.
        format_string: Log format string. Uses default if not provided.
        log_file: Optional file path to write logs to.

    Example:
        init_logger()  # Use defaults
        init_logger(level="DEBUG", log_file="logs/ui.log")
    """
    global _logger_initialized

    if _logger_initialized:
        return

    logger.remove()

    level = level or get_config("logging.level", "INFO")
    format_string = format_string or get_config(
        "logging.format",
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{thread.name}</cyan> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        format=format_string,
        level=str(level).upper(),
        colorize=True,
    )

    log_file = log_file or get_config("logging.file")
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # enqueue=True keeps writes from parallel workers intact
        logger.add(
            log_file,
            format=format_string,
            level=str(level).upper(),
            rotation=get_config("logging.rotation", "10 MB"),
            retention=get_config("logging.retention", "7 days"),
            enqueue=True,
        )

    _logger_initialized = True
    logger.debug("Logger initialized successfully")


# ============================================================
# Common Utilities
# ============================================================

def ensure_directory(path) -> Path:
    """
    Ensures a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The path (for chaining)
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


__all__ = [
    "GlobalConfig",
    "get_config",
    "init_logger",
    "ensure_directory",
]
