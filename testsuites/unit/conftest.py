"""
Unit test fixtures.

Every fixture here is browser-free; see ``fakes`` for the Playwright doubles.
"""

from typing import List

import pytest
from loguru import logger

from testsuites.ui_testing.framework import (
    BrowserKind,
    EvidenceCollector,
    FrameworkSettings,
    Session,
    SessionRegistry,
)
from testsuites.unit.fakes import FakeClock, FakeDriverFactory, FakePage, FakeResource


@pytest.fixture
def settings(tmp_path) -> FrameworkSettings:
    return FrameworkSettings(
        base_url="http://app.test/",
        explicit_wait=5,
        long_wait=20,
        poll_interval=0.5,
        screenshot_dir=str(tmp_path / "screenshots"),
        retry_count=2,
    )


@pytest.fixture
def factory() -> FakeDriverFactory:
    return FakeDriverFactory()


@pytest.fixture
def registry(factory, settings) -> SessionRegistry:
    registry = SessionRegistry(driver_factory=factory, settings=settings)
    yield registry
    registry.release()


@pytest.fixture
def fake_session(settings) -> Session:
    page = FakePage(url="http://app.test/home")
    return Session(kind=BrowserKind.HEADLESS_CHROMIUM, page=page, context=FakeResource(page))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def collector(settings, tmp_path) -> EvidenceCollector:
    return EvidenceCollector(archive_dir=tmp_path / "evidence", settings=settings)


@pytest.fixture
def log_messages() -> List[str]:
    """Collect loguru messages emitted during a test."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="TRACE")
    yield messages
    logger.remove(handler_id)
