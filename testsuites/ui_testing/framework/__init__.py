"""
================================================================================
UI Testing Framework
================================================================================

Playwright-based synchronization core for end-to-end UI tests.

Components:
    - browser_manager: Per-thread browser session registry
    - wait_engine: Condition polling with timeout tiers and transient-error tolerance
    - retry_policy: Bounded retry decisions for flaky tests
    - evidence_collector: Failure screenshot / URL / page source capture
    - lifecycle: Per-test setup and teardown orchestration
    - element_actions / page_base: Helpers composed into page objects

Author: Automation Team
License: MIT
================================================================================
"""

from .browser_manager import BrowserKind, Session, SessionRegistry, get_registry
from .errors import (
    BrowserAutomationError,
    ElementNotFoundError,
    EvidenceCaptureError,
    SessionAlreadyBoundError,
    SessionCreationError,
    SessionInvalidError,
    StaleElementError,
    TransientProtocolError,
    UnexpectedConditionError,
    WaitTimeoutError,
)
from .evidence_collector import EvidenceCollector, FailureEvidence
from .lifecycle import LifecycleState, TestLifecycleCoordinator, TestOutcome, TestResult
from .page_base import LoadablePage, PageComponents
from .retry_policy import RetryPolicy, RetryRegistry, RetryState
from .settings import FrameworkSettings, load_settings
from .wait_engine import ErrorKind, WaitEngine, WaitSpec, classify_error

__all__ = [
    "BrowserKind",
    "Session",
    "SessionRegistry",
    "get_registry",
    "BrowserAutomationError",
    "ElementNotFoundError",
    "EvidenceCaptureError",
    "SessionAlreadyBoundError",
    "SessionCreationError",
    "SessionInvalidError",
    "StaleElementError",
    "TransientProtocolError",
    "UnexpectedConditionError",
    "WaitTimeoutError",
    "EvidenceCollector",
    "FailureEvidence",
    "LifecycleState",
    "TestLifecycleCoordinator",
    "TestOutcome",
    "TestResult",
    "LoadablePage",
    "PageComponents",
    "RetryPolicy",
    "RetryRegistry",
    "RetryState",
    "FrameworkSettings",
    "load_settings",
    "ErrorKind",
    "WaitEngine",
    "WaitSpec",
    "classify_error",
]
