"""
================================================================================
Framework Settings
================================================================================

Typed view over the key-value configuration surface consumed by the core.

Features:
    - Documented defaults for every key
    - Reads the ``ui`` section of the YAML config (env overrides included)
    - Malformed numeric values fall back to the default with a warning
    - Never raises at config-read time

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from webtest_tools.common import GlobalConfig


# Settings that must be strictly greater than zero
POSITIVE_SETTINGS = frozenset({
    "implicit_wait",
    "explicit_wait",
    "long_wait",
    "poll_interval",
    "page_load_timeout",
    "script_timeout",
})


@dataclass(frozen=True)
class FrameworkSettings:
    """
    Settings for the UI synchronization core.

    All durations are in seconds.

    Attributes:
        base_url: Location opened by every test on setup
        browser: Default browser name for runners ("chromium", "firefox", ...)
        headless: Default headless flag
        implicit_wait: Default element wait applied to the browser context
        explicit_wait: Default wait tier for WaitEngine
        long_wait: Long wait tier for slow operations
        poll_interval: Interval between condition evaluations
        page_load_timeout: Navigation ceiling
        script_timeout: Script execution ceiling
        screenshot_dir: Evidence archival directory
        retry_count: Extra attempts allowed for a failing test
        evidence_retention_days: Age after which archived evidence is pruned
    """
    base_url: str = "http://localhost:3000"
    browser: str = "chromium"
    headless: bool = True
    implicit_wait: float = 10.0
    explicit_wait: float = 10.0
    long_wait: float = 30.0
    poll_interval: float = 0.5
    page_load_timeout: float = 30.0
    script_timeout: float = 30.0
    screenshot_dir: str = "reports/screenshots"
    retry_count: int = 2
    evidence_retention_days: int = 7

    @property
    def screenshot_path(self) -> Path:
        return Path(self.screenshot_dir)

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "FrameworkSettings":
        """
        Build settings from a flat key-value mapping.

        Unknown keys are ignored. Missing keys use defaults. Values that
        cannot be converted to the field's type are replaced by the default
        and a warning is logged.

        Args:
            values: Mapping of setting name to raw value (strings allowed)

        Returns:
            FrameworkSettings instance
        """
        values = values or {}
        defaults = cls()
        kwargs: Dict[str, Any] = {}

        for f in fields(cls):
            if f.name not in values or values[f.name] is None:
                continue
            default = getattr(defaults, f.name)
            kwargs[f.name] = _coerce(f.name, values[f.name], default)

        return cls(**kwargs)


def _coerce(key: str, raw: Any, default: Any) -> Any:
    """Convert a raw value to the type of ``default``; warn and fall back on failure."""
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("true", "1", "yes", "on")

    if isinstance(default, (int, float)):
        converter = int if isinstance(default, int) else float
        try:
            value = converter(raw)
        except (TypeError, ValueError, OverflowError):
            logger.warning(
                f"Malformed value for setting '{key}': {raw!r}. "
                f"Using default {default!r}"
            )
            return default
        if isinstance(value, float) and not math.isfinite(value):
            logger.warning(
                f"Non-finite value for setting '{key}': {raw!r}. "
                f"Using default {default!r}"
            )
            return default
        if value < 0 or (value == 0 and key in POSITIVE_SETTINGS):
            logger.warning(
                f"Out of range value for setting '{key}': {raw!r}. "
                f"Using default {default!r}"
            )
            return default
        return value

    return str(raw)


def load_settings(source: Optional[Mapping[str, Any]] = None) -> FrameworkSettings:
    """
    Load framework settings.

    Args:
        source: Explicit key-value mapping. When omitted, the ``ui`` section
            of the global YAML configuration (with environment overrides) is used.

    Returns:
        FrameworkSettings instance
    """
    if source is None:
        source = GlobalConfig().get_section("ui")
    settings = FrameworkSettings.from_mapping(source)
    logger.debug(f"Framework settings loaded: {settings}")
    return settings


__all__ = [
    "FrameworkSettings",
    "load_settings",
]
