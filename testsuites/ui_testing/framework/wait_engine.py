# ================================================================================
# Wait Engine Module
# ================================================================================
#
# Condition-based polling against a live browser session.
#
# Key Features:
#   - Immutable WaitSpec descriptors (condition, timeout, poll interval,
#     ignored transient error kinds)
#   - Tagged error classification (transient vs fatal) independent of the
#     protocol's exception hierarchy
#   - Two timeout tiers: "default" and "long"
#   - Elapsed time logged at every wait boundary
#   - Allure integration for step reporting
#
# Usage:
#   waits = WaitEngine(session, settings)
#   button = waits.await_clickable("#submit")
#   waits.wait_until(waits.spec(lambda s: "/done" in s.page.url, "URL has /done", tier="long"))
#
# ================================================================================

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, FrozenSet, Generic, Iterable, List, Optional, TypeVar

import allure
from loguru import logger
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import (
    ElementNotFoundError,
    SessionInvalidError,
    StaleElementError,
    UnexpectedConditionError,
    WaitTimeoutError,
)
from .settings import FrameworkSettings, load_settings


T = TypeVar("T")


class ErrorKind(Enum):
    """Classification of an error raised by a wait condition."""

    NOT_PRESENT = "not-present"
    STALE = "stale"
    NAVIGATION = "navigation"
    SESSION_LOST = "session-lost"
    FATAL = "fatal"

    @property
    def transient(self) -> bool:
        return self in TRANSIENT_KINDS


TRANSIENT_KINDS: FrozenSet[ErrorKind] = frozenset(
    {ErrorKind.NOT_PRESENT, ErrorKind.STALE, ErrorKind.NAVIGATION}
)

# Element not yet rendered, or re-rendered under us
DEFAULT_IGNORED: FrozenSet[ErrorKind] = frozenset(
    {ErrorKind.NOT_PRESENT, ErrorKind.STALE}
)

_STALE_MARKERS = (
    "not attached to the dom",
    "element is detached",
    "stale element",
    "frame was detached",
)

_NAVIGATION_MARKERS = (
    "execution context was destroyed",
    "because of a navigation",
    "cannot find context with specified id",
)

_SESSION_LOST_MARKERS = (
    "has been closed",
    "browser has disconnected",
    "connection closed",
    "target closed",
)


def classify_error(error: BaseException) -> ErrorKind:
    """
    Classify an error raised while evaluating a wait condition.

    Args:
        error: Exception raised by the condition

    Returns:
        ErrorKind tag used by the poll loop
    """
    if isinstance(error, ElementNotFoundError):
        return ErrorKind.NOT_PRESENT
    if isinstance(error, StaleElementError):
        return ErrorKind.STALE
    if isinstance(error, SessionInvalidError):
        return ErrorKind.SESSION_LOST
    if isinstance(error, PlaywrightTimeoutError):
        # A protocol-level wait inside the condition gave up: nothing matched yet
        return ErrorKind.NOT_PRESENT
    if isinstance(error, PlaywrightError):
        message = str(error).lower()
        if any(marker in message for marker in _SESSION_LOST_MARKERS):
            return ErrorKind.SESSION_LOST
        if any(marker in message for marker in _STALE_MARKERS):
            return ErrorKind.STALE
        if any(marker in message for marker in _NAVIGATION_MARKERS):
            return ErrorKind.NAVIGATION
    return ErrorKind.FATAL


def _is_present(value: Any) -> bool:
    """A condition succeeds when it returns anything but None or False."""
    return value is not None and value is not False


@dataclass(frozen=True)
class WaitSpec(Generic[T]):
    """
    Immutable description of a wait.

    Attributes:
        condition: Callable evaluated against the session; returns a value,
            None/False meaning "not yet"
        timeout: Total time budget in seconds
        poll_interval: Delay between evaluations in seconds
        ignored: Error kinds swallowed while polling
        description: Human-readable description for logs and errors
    """
    condition: Callable[[Any], T]
    timeout: float
    poll_interval: float = 0.5
    ignored: FrozenSet[ErrorKind] = field(default=DEFAULT_IGNORED)
    description: str = "condition"

    def __post_init__(self) -> None:
        if not math.isfinite(self.timeout) or self.timeout < 0:
            raise ValueError(f"timeout must be a finite number >= 0, got {self.timeout}")
        if not math.isfinite(self.poll_interval) or self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be a finite number > 0, got {self.poll_interval}")
        ignored = frozenset(self.ignored)
        non_transient = ignored - TRANSIENT_KINDS
        if non_transient:
            names = ", ".join(sorted(k.value for k in non_transient))
            raise ValueError(f"Only transient error kinds can be ignored, got: {names}")
        object.__setattr__(self, "ignored", ignored)


class WaitEngine:
    """
    Polls conditions against one session until success, timeout, or a
    non-ignored error.

    Example:
        waits = WaitEngine(session)
        element = waits.await_visible("[data-testid='marker']")
        items = waits.await_all_present("li.result", tier="long")
    """

    TIERS = ("default", "long")

    def __init__(
        self,
        session: Any,
        settings: Optional[FrameworkSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the engine.

        Args:
            session: Session whose page the conditions inspect
            settings: Framework settings (tier durations, poll interval)
            clock: Monotonic clock in seconds
            sleep: Blocking sleep function
        """
        self.session = session
        self.settings = settings or load_settings()
        self._clock = clock
        self._sleep = sleep

    @property
    def default_timeout(self) -> float:
        return self.settings.explicit_wait

    @property
    def long_timeout(self) -> float:
        return self.settings.long_wait

    def timeout_for(self, tier: str) -> float:
        """Return the timeout of a named tier."""
        if tier == "default":
            return self.default_timeout
        if tier == "long":
            return self.long_timeout
        raise ValueError(f"Unknown wait tier: {tier!r} (expected one of {self.TIERS})")

    def spec(
        self,
        condition: Callable[[Any], T],
        description: str,
        tier: str = "default",
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        ignored: Optional[Iterable[ErrorKind]] = None,
    ) -> WaitSpec[T]:
        """
        Build a WaitSpec using this engine's tiers and poll interval.

        An explicit ``timeout`` wins over the tier.
        """
        return WaitSpec(
            condition=condition,
            timeout=timeout if timeout is not None else self.timeout_for(tier),
            poll_interval=poll_interval or self.settings.poll_interval,
            ignored=frozenset(ignored) if ignored is not None else DEFAULT_IGNORED,
            description=description,
        )

    def wait_until(self, spec: WaitSpec[T]) -> T:
        """
        Poll ``spec.condition`` until it returns a present value.

        Args:
            spec: Wait description

        Returns:
            The first present value returned by the condition

        Raises:
            WaitTimeoutError: Timeout elapsed without success
            UnexpectedConditionError: Condition raised a non-ignored error
            SessionInvalidError: Session is (or became) unusable
        """
        start = self._clock()
        deadline = start + spec.timeout
        attempt = 0
        last_error: Optional[BaseException] = None

        logger.debug(
            f"Starting wait: {spec.description} "
            f"(timeout={spec.timeout}s, poll={spec.poll_interval}s)"
        )

        with allure.step(f"Wait for: {spec.description}"):
            while True:
                if not getattr(self.session, "alive", True):
                    raise SessionInvalidError(
                        f"Session ended while waiting for: {spec.description}"
                    )

                attempt += 1
                try:
                    value = spec.condition(self.session)
                except Exception as e:
                    kind = classify_error(e)
                    if kind is ErrorKind.SESSION_LOST:
                        logger.error(f"Session lost while waiting for {spec.description}: {e}")
                        raise SessionInvalidError(
                            f"Session lost while waiting for: {spec.description}"
                        ) from e
                    if kind not in spec.ignored:
                        elapsed = self._clock() - start
                        logger.error(
                            f"Wait aborted after {elapsed:.2f}s: {spec.description} "
                            f"raised {type(e).__name__}: {e}"
                        )
                        raise UnexpectedConditionError(spec.description, e) from e
                    last_error = e
                    logger.trace(f"Attempt {attempt}: ignored {kind.value} error: {e}")
                else:
                    if _is_present(value):
                        elapsed = self._clock() - start
                        logger.debug(
                            f"Wait successful after {attempt} attempts "
                            f"({elapsed:.2f}s): {spec.description}"
                        )
                        return value

                now = self._clock()
                remaining = deadline - now
                if remaining <= 0:
                    elapsed = now - start
                    logger.warning(
                        f"Wait timed out after {elapsed:.2f}s and {attempt} attempts: "
                        f"{spec.description}"
                    )
                    raise WaitTimeoutError(spec.description, elapsed, last_error)

                self._sleep(min(spec.poll_interval, remaining))

    def is_condition_met(self, spec: WaitSpec[Any]) -> bool:
        """Boolean wrapper around wait_until; only a timeout maps to False."""
        try:
            self.wait_until(spec)
            return True
        except WaitTimeoutError:
            return False

    # =========================================================================
    # Element Probes
    # =========================================================================

    def try_locate(self, selector: str) -> Optional[Any]:
        """Return the first element matching ``selector`` right now, or None."""
        return self.session.page.query_selector(selector)

    @staticmethod
    def _locate(session: Any, selector: str) -> Any:
        element = session.page.query_selector(selector)
        if element is None:
            raise ElementNotFoundError(f"No element matches: {selector}")
        return element

    # =========================================================================
    # Named Waits
    # =========================================================================

    def await_present(self, selector: str, tier: str = "default") -> Any:
        """Wait until an element matching ``selector`` is attached."""
        return self.wait_until(self.spec(
            lambda s: self._locate(s, selector),
            f"presence of {selector}",
            tier=tier,
        ))

    def await_visible(self, selector: str, tier: str = "default") -> Any:
        """Wait until an element matching ``selector`` is visible."""
        def visible(session: Any) -> Any:
            element = self._locate(session, selector)
            return element if element.is_visible() else None

        return self.wait_until(self.spec(visible, f"visibility of {selector}", tier=tier))

    def await_clickable(self, selector: str, tier: str = "default") -> Any:
        """Wait until an element matching ``selector`` is visible and enabled."""
        def clickable(session: Any) -> Any:
            element = self._locate(session, selector)
            return element if element.is_visible() and element.is_enabled() else None

        return self.wait_until(self.spec(clickable, f"clickability of {selector}", tier=tier))

    def await_all_present(self, selector: str, tier: str = "default") -> List[Any]:
        """Wait until at least one element matches ``selector``; return them all."""
        return self.wait_until(self.spec(
            lambda s: s.page.query_selector_all(selector) or None,
            f"all elements of {selector}",
            tier=tier,
        ))

    def await_text(self, selector: str, text: str, tier: str = "default") -> Any:
        """Wait until the element's text contains ``text``."""
        def has_text(session: Any) -> Any:
            element = self._locate(session, selector)
            return element if text in (element.text_content() or "") else None

        return self.wait_until(self.spec(has_text, f"text '{text}' in {selector}", tier=tier))

    def await_url_contains(self, fragment: str, tier: str = "default") -> str:
        """Wait until the current URL contains ``fragment``."""
        return self.wait_until(self.spec(
            lambda s: s.page.url if fragment in s.page.url else None,
            f"URL containing '{fragment}'",
            tier=tier,
        ))

    def await_page_load(self, tier: str = "long") -> bool:
        """Wait until ``document.readyState`` is complete."""
        return self.wait_until(self.spec(
            lambda s: s.page.evaluate("document.readyState") == "complete",
            "page load complete",
            tier=tier,
            ignored=DEFAULT_IGNORED | {ErrorKind.NAVIGATION},
        ))

    def await_ajax(self, tier: str = "default") -> bool:
        """Wait until jQuery reports no active requests (immediate if jQuery is absent)."""
        return self.wait_until(self.spec(
            lambda s: s.page.evaluate(
                "() => typeof window.jQuery === 'undefined' || window.jQuery.active === 0"
            ),
            "AJAX requests settled",
            tier=tier,
            ignored=DEFAULT_IGNORED | {ErrorKind.NAVIGATION},
        ))


__all__ = [
    "ErrorKind",
    "TRANSIENT_KINDS",
    "DEFAULT_IGNORED",
    "classify_error",
    "WaitSpec",
    "WaitEngine",
]
