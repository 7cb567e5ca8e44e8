"""
================================================================================
Test Lifecycle Coordinator
================================================================================

Per-test setup and teardown around a browser session, independent of any
page logic.

State machine (per worker thread):

    IDLE -> SESSION_ACTIVE -> EVIDENCE_CAPTURED -> SESSION_RELEASED
                           \\-------------------> SESSION_RELEASED

Teardown always ends in SESSION_RELEASED, whatever happened before it.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import threading
import time
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger

from webtest_tools.report_tools.allure_utils import AllureReportingSink, ReportingSink

from .browser_manager import Session, SessionRegistry, get_registry
from .evidence_collector import EvidenceCollector, FailureEvidence
from .retry_policy import RetryPolicy
from .settings import FrameworkSettings, load_settings


SEPARATOR = "=" * 60


class LifecycleState(Enum):
    IDLE = "idle"
    SESSION_ACTIVE = "session-active"
    EVIDENCE_CAPTURED = "evidence-captured"
    SESSION_RELEASED = "session-released"


class TestOutcome(Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TestResult:
    """
    Outcome of one test invocation.

    Attributes:
        name: Test identity
        outcome: Passed, failed or skipped
        duration_ms: Wall time of the invocation in milliseconds
        error: Failure cause, if any
        attempt: 1 for the first run, 2 for the first retry, ...
    """
    __test__ = False

    name: str
    outcome: TestOutcome
    duration_ms: int = 0
    error: Optional[BaseException] = None
    attempt: int = 1

    @property
    def failed(self) -> bool:
        return self.outcome is TestOutcome.FAILED


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class TestLifecycleCoordinator:
    """
    Orchestrates session acquisition, failure evidence and session release.

    Usage:
        coordinator = TestLifecycleCoordinator()
        session = coordinator.before_test("test_search", "chromium", headless=True)
        try:
            ...  # test body
            result = TestResult("test_search", TestOutcome.PASSED)
        except AssertionError as e:
            result = TestResult("test_search", TestOutcome.FAILED, error=e)
        coordinator.after_test(result)

        # Or let the coordinator drive attempts and retries
        result = coordinator.run(test_fn, "test_search", "chromium", headless=True)
    """

    __test__ = False

    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        collector: Optional[EvidenceCollector] = None,
        sink: Optional[ReportingSink] = None,
        settings: Optional[FrameworkSettings] = None,
    ):
        self.settings = settings or load_settings()
        self.registry = registry or get_registry()
        self.collector = collector or EvidenceCollector(settings=self.settings)
        self.sink = sink if sink is not None else AllureReportingSink()
        self._states: Dict[threading.Thread, LifecycleState] = {}
        self._states_lock = threading.Lock()

    @property
    def state(self) -> LifecycleState:
        """Lifecycle state of the calling thread."""
        return self._states.get(threading.current_thread(), LifecycleState.IDLE)

    def _set_state(self, state: LifecycleState) -> None:
        # Entries of exited worker threads are dropped on every transition
        with self._states_lock:
            for thread in list(self._states):
                if not thread.is_alive():
                    del self._states[thread]
            self._states[threading.current_thread()] = state

    # =========================================================================
    # Suite Hooks
    # =========================================================================

    def start_suite(self, name: str = "UI suite") -> int:
        """
        Log suite start and prune archived evidence.

        Returns:
            Number of archived files pruned
        """
        logger.info(SEPARATOR)
        logger.info(f"TEST SUITE STARTED: {name}")
        logger.info(SEPARATOR)
        try:
            return self.collector.prune()
        except Exception as e:
            logger.warning(f"Evidence pruning failed: {e}")
            return 0

    def finish_suite(self, name: str = "UI suite", duration_s: float = 0.0) -> None:
        """Log suite completion."""
        logger.info(SEPARATOR)
        logger.info(f"TEST SUITE FINISHED: {name}")
        logger.info(f"Total Run Time: {duration_s:.1f} seconds")
        logger.info(SEPARATOR)

    # =========================================================================
    # Test Hooks
    # =========================================================================

    def before_test(
        self,
        test_name: str,
        kind: Any = None,
        headless: Optional[bool] = None,
    ) -> Session:
        """
        Acquire a session and open the base URL.

        Args:
            test_name: Test identity (for logging)
            kind: BrowserKind or browser name (defaults to settings.browser)
            headless: Headless flag (defaults to settings.headless)

        Returns:
            The thread's new Session

        Raises:
            SessionCreationError: Browser could not start; nothing to release
            Exception: Navigation to the base URL failed; the session has
                already been released
        """
        kind = kind if kind is not None else self.settings.browser
        headless = self.settings.headless if headless is None else headless

        logger.info(f"===== Starting test: {test_name} =====")
        logger.info(f"Browser: {kind}, Headless: {headless}")
        self._set_state(LifecycleState.IDLE)

        session = self.registry.create(kind, headless)
        self._set_state(LifecycleState.SESSION_ACTIVE)

        try:
            logger.info(f"Navigating to: {self.settings.base_url}")
            session.page.goto(self.settings.base_url)
        except Exception as e:
            logger.error(f"Could not open base URL {self.settings.base_url}: {e}")
            self.registry.release()
            self._set_state(LifecycleState.SESSION_RELEASED)
            raise

        return session

    def after_test(self, result: TestResult) -> Optional[FailureEvidence]:
        """
        Report the result, capture evidence on failure, release the session.

        Never raises: reporting and evidence errors are logged only.

        Args:
            result: Outcome of the test invocation

        Returns:
            FailureEvidence for failed tests, None otherwise
        """
        evidence = None
        try:
            logger.info(
                f"Test: {result.name} - Status: {result.outcome.value.upper()} "
                f"- Duration: {result.duration_ms}ms"
            )
            self._report(result)
            if result.failed:
                evidence = self._capture_failure(result)
        finally:
            self.registry.release()
            self._set_state(LifecycleState.SESSION_RELEASED)
            logger.info(f"===== Test completed: {result.name} =====")
        return evidence

    def _report(self, result: TestResult) -> None:
        try:
            self.sink.report_status(result.name, result.outcome.value, result.duration_ms)
            if result.failed and result.error is not None:
                self.sink.attach_text(result.name, "Error Message", str(result.error))
                self.sink.attach_text(
                    result.name,
                    "Stack Trace",
                    "".join(traceback.format_exception(
                        type(result.error), result.error, result.error.__traceback__
                    )),
                )
        except Exception as e:
            logger.error(f"Failed to report result of {result.name}: {e}")

    def _capture_failure(self, result: TestResult) -> Optional[FailureEvidence]:
        logger.error(f"Test failed: {result.name}")
        if result.error is not None:
            logger.error(f"Failure reason: {result.error!r}")
        try:
            evidence = self.collector.capture(self.registry.current(), result.name)
            self._set_state(LifecycleState.EVIDENCE_CAPTURED)
            if evidence.location:
                logger.error(f"Failed at URL: {evidence.location}")
            self.collector.persist(evidence, self.sink)
            return evidence
        except Exception as e:
            logger.error(f"Failed to capture failure details: {e}")
            return None

    # =========================================================================
    # Reference Runner
    # =========================================================================

    def run(
        self,
        test_fn: Callable[[Session], Any],
        test_name: str,
        kind: Any = None,
        headless: Optional[bool] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> TestResult:
        """
        Run ``test_fn`` with full lifecycle handling and bounded retries.

        Args:
            test_fn: Test body, called with the thread's Session
            test_name: Test identity
            kind: BrowserKind or browser name
            headless: Headless flag
            policy: Retry policy (defaults to settings.retry_count)

        Returns:
            Result of the last attempt
        """
        policy = policy or RetryPolicy(settings=self.settings)
        state = policy.new_state(test_name)
        attempt = 0

        while True:
            attempt += 1
            result = self._run_once(test_fn, test_name, kind, headless, attempt)
            if not result.failed:
                return result
            if not policy.should_retry(state, result.error):
                return result

    def _run_once(
        self,
        test_fn: Callable[[Session], Any],
        test_name: str,
        kind: Any,
        headless: Optional[bool],
        attempt: int,
    ) -> TestResult:
        started = time.monotonic()
        try:
            session = self.before_test(test_name, kind, headless)
        except Exception as e:
            logger.error(f"Setup failed for {test_name}: {e}")
            return TestResult(test_name, TestOutcome.FAILED, _elapsed_ms(started), e, attempt)

        try:
            test_fn(session)
        except Exception as e:
            result = TestResult(test_name, TestOutcome.FAILED, _elapsed_ms(started), e, attempt)
        except BaseException:
            # Skips and interrupts still get a clean teardown
            self.after_test(TestResult(test_name, TestOutcome.SKIPPED, _elapsed_ms(started), None, attempt))
            raise
        else:
            result = TestResult(test_name, TestOutcome.PASSED, _elapsed_ms(started), None, attempt)

        self.after_test(result)
        return result


__all__ = [
    "LifecycleState",
    "TestOutcome",
    "TestResult",
    "TestLifecycleCoordinator",
]
