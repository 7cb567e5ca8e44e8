"""
Repository-level pytest configuration.

Why this exists:
  - Provide safe defaults for local runs (no secrets embedded)
  - Initialize the shared loguru configuration once per run
  - Keep behavior explicit and discoverable
"""

from __future__ import annotations

import os
from typing import Generator

import pytest

from webtest_tools.common import init_logger


@pytest.fixture(scope="session", autouse=True)
def _safe_env_defaults() -> Generator[None, None, None]:
    """
    Set safe environment defaults if not already provided by the user/CI.

    This keeps local runs predictable.
    """
    defaults = {
        "UI_BASE_URL": "http://localhost:3000",
        "LOG_LEVEL": "INFO",
    }

    for k, v in defaults.items():
        os.environ.setdefault(k, v)

    init_logger()
    yield
