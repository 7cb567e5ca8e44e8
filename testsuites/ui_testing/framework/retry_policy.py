# ================================================================================
# Retry Policy Module
# ================================================================================
#
# Bounded retry decisions for flaky UI test outcomes.
#
# The policy never re-runs anything itself. It only answers "should this
# failed invocation be attempted again?" for a RetryState that the caller
# keeps per test identity.
#
# ================================================================================

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from .settings import FrameworkSettings, load_settings


@dataclass
class RetryState:
    """
    Per-test attempt counter.

    Attributes:
        test_name: Identity of the test being retried
        max_attempts: Extra attempts allowed beyond the first run
        attempts: Retries granted so far
    """
    test_name: str
    max_attempts: int
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts


class RetryPolicy:
    """
    Decides whether a failed test should run again.

    Example:
        policy = RetryPolicy(max_attempts=2)
        state = policy.new_state("test_checkout")
        policy.should_retry(state, error)   # True
        policy.should_retry(state, error)   # True
        policy.should_retry(state, error)   # False
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        settings: Optional[FrameworkSettings] = None,
    ):
        """
        Initialize retry policy.

        Args:
            max_attempts: Extra attempts allowed (defaults to settings.retry_count)
            settings: Framework settings
        """
        if max_attempts is None:
            max_attempts = (settings or load_settings()).retry_count
        if max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {max_attempts}")
        self.max_attempts = max_attempts

    def new_state(self, test_name: str) -> RetryState:
        """Create a fresh RetryState bounded by this policy."""
        return RetryState(test_name=test_name, max_attempts=self.max_attempts)

    def should_retry(self, state: RetryState, reason: Any = None) -> bool:
        """
        Decide whether to re-run a failed test.

        Args:
            state: The test's RetryState (incremented when True is returned)
            reason: Failure cause, used for logging only

        Returns:
            True if another attempt is allowed
        """
        if state.attempts < state.max_attempts:
            state.attempts += 1
            logger.warning(
                f"Retrying test '{state.test_name}' - "
                f"Attempt {state.attempts} of {state.max_attempts}"
            )
            if reason is not None:
                logger.warning(f"Retry reason: {reason}")
            return True

        logger.error(
            f"Test '{state.test_name}' failed after {state.max_attempts} retries"
        )
        return False


class RetryRegistry:
    """
    Runner-side bookkeeping: one RetryState per test identity.

    Shared between worker threads, so access is serialized with a lock.
    """

    def __init__(self, policy: RetryPolicy):
        self.policy = policy
        self._states: Dict[str, RetryState] = {}
        self._lock = threading.Lock()

    def state_for(self, test_id: str) -> RetryState:
        """Return the RetryState for ``test_id``, creating it on first use."""
        with self._lock:
            state = self._states.get(test_id)
            if state is None:
                state = self.policy.new_state(test_id)
                self._states[test_id] = state
            return state

    def should_retry(self, test_id: str, reason: Any = None) -> bool:
        """Convenience wrapper: look up the state and ask the policy."""
        return self.policy.should_retry(self.state_for(test_id), reason)

    def forget(self, test_id: str) -> None:
        """Drop bookkeeping for a test that finished for good."""
        with self._lock:
            self._states.pop(test_id, None)


__all__ = [
    "RetryState",
    "RetryPolicy",
    "RetryRegistry",
]
