"""
================================================================================
UI Testing Pytest Configuration
================================================================================

This module configures pytest for the end-to-end UI suite, providing fixtures
for browser sessions, page objects, and test setup/teardown.

Key Features:
- One browser session per test, owned by the worker thread
- Failure evidence (screenshot, URL, page source) captured before teardown
- Evidence pruning once per run
- Tests are skipped, not failed, when no browser can be launched

================================================================================
"""

import dataclasses
import time
from pathlib import Path
from typing import Generator

import pytest
from loguru import logger

from testsuites.ui_testing.framework import (
    EvidenceCollector,
    FrameworkSettings,
    PageComponents,
    Session,
    SessionCreationError,
    SessionRegistry,
    TestLifecycleCoordinator,
    TestOutcome,
    TestResult,
    load_settings,
)
from testsuites.ui_testing.pages import MarkerPage


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ================================================================================
# Pytest Configuration
# ================================================================================

def pytest_addoption(parser):
    """Browser selection for the UI suite."""
    group = parser.getgroup("ui", "UI synchronization suite")
    group.addoption(
        "--ui-browser",
        action="store",
        default=None,
        help="Browser for UI tests: chromium, firefox, webkit, edge (default: config)",
    )
    group.addoption(
        "--ui-headed",
        action="store_true",
        default=False,
        help="Run the UI browser with a visible window",
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Expose each phase's report on the item.

    The ``ui_session`` fixture reads ``rep_call`` during teardown to decide
    whether failure evidence must be captured.
    """
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


# ================================================================================
# Settings & Coordinator Fixtures
# ================================================================================

@pytest.fixture(scope="session")
def ui_settings(pytestconfig, tmp_path_factory) -> FrameworkSettings:
    """
    Session-scoped settings for the UI suite.

    The base URL points at the bundled static fixtures, so the suite needs
    no running application.
    """
    base = load_settings()
    overrides = {
        "base_url": FIXTURES_DIR.as_uri() + "/",
        "screenshot_dir": str(tmp_path_factory.mktemp("screenshots")),
        "explicit_wait": 5,
        "long_wait": 15,
        "poll_interval": 0.1,
    }
    browser = pytestconfig.getoption("--ui-browser")
    if browser:
        overrides["browser"] = browser
    if pytestconfig.getoption("--ui-headed"):
        overrides["headless"] = False

    values = {**dataclasses.asdict(base), **overrides}
    return FrameworkSettings.from_mapping(values)


@pytest.fixture(scope="session")
def coordinator(ui_settings: FrameworkSettings) -> Generator[TestLifecycleCoordinator, None, None]:
    """
    Session-scoped lifecycle coordinator.

    Prunes archived evidence at suite start and logs the run time at the end.
    """
    coordinator = TestLifecycleCoordinator(
        registry=SessionRegistry(settings=ui_settings),
        collector=EvidenceCollector(settings=ui_settings),
        settings=ui_settings,
    )
    started = time.monotonic()
    coordinator.start_suite("UI synchronization suite")
    yield coordinator
    coordinator.finish_suite("UI synchronization suite", time.monotonic() - started)


# ================================================================================
# Session Fixtures
# ================================================================================

@pytest.fixture
def ui_session(request, coordinator: TestLifecycleCoordinator) -> Generator[Session, None, None]:
    """
    Function-scoped browser session bound to the current worker thread.

    Opens the base URL on setup. On teardown the test's outcome is reported,
    evidence is captured for failures, and the session is always released.
    """
    test_name = request.node.nodeid
    try:
        session = coordinator.before_test(test_name)
    except SessionCreationError as e:
        pytest.skip(f"Browser unavailable: {e}")

    started = time.monotonic()
    yield session

    report = getattr(request.node, "rep_call", None)
    if report is None or report.skipped:
        outcome = TestOutcome.SKIPPED
    elif report.failed:
        outcome = TestOutcome.FAILED
    else:
        outcome = TestOutcome.PASSED

    error = None
    if outcome is TestOutcome.FAILED:
        error = AssertionError(str(report.longrepr))
    result = TestResult(
        name=test_name,
        outcome=outcome,
        duration_ms=int((time.monotonic() - started) * 1000),
        error=error,
    )
    evidence = coordinator.after_test(result)
    if evidence is not None:
        logger.info(f"Failure evidence recorded for {test_name}")


@pytest.fixture
def components(ui_session: Session, ui_settings: FrameworkSettings) -> PageComponents:
    """Wait and action helpers bound to the test's session."""
    return PageComponents(ui_session, ui_settings)


# ================================================================================
# Page Object Fixtures
# ================================================================================

@pytest.fixture
def marker_page(components: PageComponents) -> MarkerPage:
    """
    Provides an opened MarkerPage.

    Use this fixture for tests that interact with the static marker page.
    """
    return MarkerPage(components).open()
