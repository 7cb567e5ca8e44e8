"""
================================================================================
Browser Manager
================================================================================

Browser session lifecycle management for UI automation.

Features:
    - One browser session per worker thread (context-keyed registry)
    - Hardened launch presets per browser kind
    - Baseline timeouts (element wait, page load, script)
    - Idempotent, never-raising teardown
    - Cheap liveness check

Each worker thread owns its own Playwright driver, browser, context and page.
Nothing in a Session is ever touched by another thread, so the registry
needs no lock: a thread only reads and writes its own key.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple
from uuid import uuid4

from loguru import logger
from playwright.sync_api import sync_playwright

from .errors import SessionAlreadyBoundError, SessionCreationError
from .settings import FrameworkSettings, load_settings


class BrowserKind(Enum):
    """Supported browser kinds."""

    STANDARD_CHROMIUM = "standard-chromium"
    HEADLESS_CHROMIUM = "headless-chromium"
    STANDARD_GECKO = "standard-gecko"
    HEADLESS_GECKO = "headless-gecko"
    SAFARI_ENGINE = "safari-engine"
    EDGE_CHROMIUM = "edge-chromium"

    @property
    def engine(self) -> str:
        """Playwright browser type attribute name."""
        return _KIND_TRAITS[self][0]

    @property
    def channel(self) -> Optional[str]:
        return _KIND_TRAITS[self][1]

    @property
    def headless(self) -> bool:
        return _KIND_TRAITS[self][2]

    def with_headless(self, headless: bool) -> "BrowserKind":
        """
        Return the headless (or headed) twin of this kind.

        Kinds without a headless twin (safari, edge) are returned unchanged
        with a warning when headless mode is requested.
        """
        if headless == self.headless:
            return self
        twin = _HEADLESS_TWINS.get(self) if headless else _HEADED_TWINS.get(self)
        if twin is None:
            logger.warning(
                f"Headless mode not supported for {self.value}. Using regular mode."
            )
            return self
        return twin

    @classmethod
    def resolve(cls, name: Any, headless: bool = False) -> "BrowserKind":
        """
        Map a runner-style browser name plus headless flag to a kind.

        Args:
            name: BrowserKind, kind value ("headless-gecko") or short name
                ("chrome", "chromium", "firefox", "gecko", "safari", "webkit", "edge")
            headless: Whether a headless browser is requested

        Returns:
            Resolved BrowserKind (unknown names default to chromium)
        """
        if isinstance(name, cls):
            return name.with_headless(headless) if headless else name

        key = str(name or "").strip().lower()
        for kind in cls:
            if kind.value == key:
                return kind.with_headless(headless) if headless else kind

        base = _SHORT_NAMES.get(key)
        if base is None:
            logger.warning(f"Unknown browser: {name}. Defaulting to chromium.")
            base = cls.STANDARD_CHROMIUM
        return base.with_headless(headless)


# kind -> (playwright engine, channel, headless)
_KIND_TRAITS: Dict[BrowserKind, Tuple[str, Optional[str], bool]] = {
    BrowserKind.STANDARD_CHROMIUM: ("chromium", None, False),
    BrowserKind.HEADLESS_CHROMIUM: ("chromium", None, True),
    BrowserKind.STANDARD_GECKO: ("firefox", None, False),
    BrowserKind.HEADLESS_GECKO: ("firefox", None, True),
    BrowserKind.SAFARI_ENGINE: ("webkit", None, False),
    BrowserKind.EDGE_CHROMIUM: ("chromium", "msedge", False),
}

_HEADLESS_TWINS: Dict[BrowserKind, BrowserKind] = {
    BrowserKind.STANDARD_CHROMIUM: BrowserKind.HEADLESS_CHROMIUM,
    BrowserKind.STANDARD_GECKO: BrowserKind.HEADLESS_GECKO,
}

_HEADED_TWINS: Dict[BrowserKind, BrowserKind] = {
    v: k for k, v in _HEADLESS_TWINS.items()
}

_SHORT_NAMES: Dict[str, BrowserKind] = {
    "chrome": BrowserKind.STANDARD_CHROMIUM,
    "chromium": BrowserKind.STANDARD_CHROMIUM,
    "firefox": BrowserKind.STANDARD_GECKO,
    "gecko": BrowserKind.STANDARD_GECKO,
    "safari": BrowserKind.SAFARI_ENGINE,
    "webkit": BrowserKind.SAFARI_ENGINE,
    "edge": BrowserKind.EDGE_CHROMIUM,
    "msedge": BrowserKind.EDGE_CHROMIUM,
}


@dataclass(eq=False)
class Session:
    """
    Opaque handle to one browser instance.

    Attributes:
        kind: Browser kind this session was launched as
        page: Playwright Page used by page objects and waits
        context: Owning BrowserContext
        browser: Owning Browser
        driver: Playwright driver started for this session
        session_id: Unique identifier
        created_at: Creation timestamp
        owner: Name of the thread that owns the session
        script_timeout: Script execution ceiling in seconds
        alive: False once the session has been released
    """
    kind: BrowserKind
    page: Any
    context: Any = None
    browser: Any = None
    driver: Any = None
    session_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    owner: str = field(default_factory=lambda: threading.current_thread().name)
    script_timeout: float = 30.0
    alive: bool = True

    def invalidate(self) -> None:
        """Mark the session unusable."""
        self.alive = False

    def __repr__(self) -> str:
        state = "alive" if self.alive else "released"
        return f"<Session {self.session_id[:8]} {self.kind.value} {state} owner={self.owner}>"


class PlaywrightDriverFactory:
    """
    Launches Playwright browsers with hardened defaults.

    Launch presets mirror what flaky end-to-end suites usually need:
    automation banners and notification prompts disabled, a fixed
    1920x1080 window and a clean cookie jar.
    """

    CHROMIUM_ARGS: List[str] = [
        "--disable-blink-features=AutomationControlled",
        "--disable-notifications",
        "--disable-popup-blocking",
        "--disable-translate",
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--window-size=1920,1080",
    ]

    FIREFOX_PREFS: Dict[str, Any] = {
        "dom.webnotifications.enabled": False,
        "dom.push.enabled": False,
        "dom.disable_open_during_load": True,
    }

    DEFAULT_CONTEXT_OPTIONS: Dict[str, Any] = {
        "viewport": {"width": 1920, "height": 1080},
        "ignore_https_errors": True,
    }

    def launch_options(self, kind: BrowserKind) -> Dict[str, Any]:
        """Build Playwright launch options for a browser kind."""
        options: Dict[str, Any] = {"headless": kind.headless}
        if kind.engine == "chromium":
            options["args"] = list(self.CHROMIUM_ARGS)
            if kind.channel:
                options["channel"] = kind.channel
        elif kind.engine == "firefox":
            options["firefox_user_prefs"] = dict(self.FIREFOX_PREFS)
        return options

    def context_options(self, kind: BrowserKind) -> Dict[str, Any]:
        """Build Playwright context options for a browser kind."""
        options = dict(self.DEFAULT_CONTEXT_OPTIONS)
        if kind.engine != "webkit":
            # Nothing granted: notification and geolocation prompts stay denied
            options["permissions"] = []
        return options

    def launch(self, kind: BrowserKind, settings: FrameworkSettings) -> Session:
        """
        Start a driver and open a fresh page.

        Partially started objects are closed before the error is re-raised.
        """
        opened: List[Any] = []
        driver = sync_playwright().start()
        try:
            launcher = getattr(driver, kind.engine)
            browser = launcher.launch(**self.launch_options(kind))
            opened.append(browser)

            context = browser.new_context(**self.context_options(kind))
            opened.append(context)
            context.clear_cookies()
            context.set_default_timeout(settings.implicit_wait * 1000)
            context.set_default_navigation_timeout(settings.page_load_timeout * 1000)

            page = context.new_page()
        except Exception:
            for resource in reversed(opened):
                try:
                    resource.close()
                except Exception as close_error:
                    logger.debug(f"Cleanup after failed launch: {close_error}")
            driver.stop()
            raise

        return Session(
            kind=kind,
            page=page,
            context=context,
            browser=browser,
            driver=driver,
            script_timeout=settings.script_timeout,
        )


class SessionRegistry:
    """
    Maps each worker thread to exactly one active browser session.

    Usage:
        registry = SessionRegistry()
        session = registry.create(BrowserKind.STANDARD_CHROMIUM, headless=True)
        session.page.goto("https://example.com")
        registry.release()

        # Or scoped
        with registry.session_scope("firefox", headless=True) as session:
            ...
    """

    def __init__(
        self,
        driver_factory: Optional[Any] = None,
        settings: Optional[FrameworkSettings] = None,
    ):
        """
        Initialize the registry.

        Args:
            driver_factory: Object with ``launch(kind, settings) -> Session``.
                Defaults to PlaywrightDriverFactory.
            settings: Framework settings (loaded from config if omitted)
        """
        self._driver_factory = driver_factory or PlaywrightDriverFactory()
        self._settings = settings
        self._sessions: Dict[threading.Thread, Session] = {}

    @property
    def settings(self) -> FrameworkSettings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    @staticmethod
    def _context_key() -> threading.Thread:
        return threading.current_thread()

    def create(
        self,
        kind: Any = BrowserKind.STANDARD_CHROMIUM,
        headless: bool = False,
        settings: Optional[FrameworkSettings] = None,
    ) -> Session:
        """
        Create a browser session and bind it to the calling thread.

        Args:
            kind: BrowserKind or browser name
            headless: Run headless when the kind supports it
            settings: Per-call settings override

        Returns:
            The new Session

        Raises:
            SessionAlreadyBoundError: Calling thread already owns a session
            SessionCreationError: Browser or driver could not start
        """
        key = self._context_key()
        bound = self._sessions.get(key)
        if bound is not None:
            raise SessionAlreadyBoundError(
                f"Thread '{key.name}' already owns {bound!r}; release it first"
            )

        resolved = BrowserKind.resolve(kind, headless)
        settings = settings or self.settings
        logger.info(f"Creating {resolved.value} session on thread '{key.name}'")

        try:
            session = self._driver_factory.launch(resolved, settings)
        except Exception as e:
            logger.error(f"Failed to start {resolved.value} browser: {e}")
            raise SessionCreationError(
                f"Could not start {resolved.value} browser: {e}"
            ) from e

        self._sessions[key] = session
        logger.info(f"{resolved.value} session created: {session.session_id}")
        return session

    def current(self) -> Optional[Session]:
        """Return the session bound to the calling thread, or None."""
        return self._sessions.get(self._context_key())

    def release(self) -> None:
        """
        Tear down the calling thread's session.

        Safe to call any number of times. Shutdown errors are logged and
        never propagated; the thread binding is always cleared.
        """
        key = self._context_key()
        session = self._sessions.get(key)
        if session is None:
            logger.debug(f"No session bound to thread '{key.name}'; nothing to release")
            return

        try:
            self._shutdown(session)
        finally:
            session.invalidate()
            self._sessions.pop(key, None)
            logger.info(f"Session released: {session.session_id}")

    @staticmethod
    def _shutdown(session: Session) -> None:
        """Close context, browser and driver; log every failure."""
        steps = (
            ("context", session.context, "close"),
            ("browser", session.browser, "close"),
            ("driver", session.driver, "stop"),
        )
        for label, resource, method in steps:
            if resource is None:
                continue
            try:
                getattr(resource, method)()
            except Exception as e:
                logger.warning(
                    f"Error closing {label} of session {session.session_id}: {e}"
                )

    def is_active(self, session: Optional[Session] = None) -> bool:
        """
        Cheap liveness check.

        Args:
            session: Session to check (defaults to the calling thread's)

        Returns:
            True if the session answers a trivial read, False otherwise
        """
        session = session if session is not None else self.current()
        if session is None or not session.alive:
            return False
        try:
            session.page.title()
            return True
        except Exception:
            return False

    def active_count(self) -> int:
        """Number of sessions currently bound across all threads."""
        return len(self._sessions)

    def reap_orphans(self) -> int:
        """
        Drop bindings whose owning thread has exited without releasing.

        The orphaned browsers cannot be closed from another thread; they
        are invalidated and logged so the leak is visible.

        Returns:
            Number of bindings dropped
        """
        dropped = 0
        for thread, session in list(self._sessions.items()):
            if not thread.is_alive():
                session.invalidate()
                self._sessions.pop(thread, None)
                logger.warning(
                    f"Dropped orphaned session {session.session_id} "
                    f"of exited thread '{thread.name}'"
                )
                dropped += 1
        return dropped

    @contextmanager
    def session_scope(
        self,
        kind: Any = BrowserKind.STANDARD_CHROMIUM,
        headless: bool = False,
    ) -> Iterator[Session]:
        """Create a session for the duration of a ``with`` block."""
        session = self.create(kind, headless)
        try:
            yield session
        finally:
            self.release()


_default_registry: Optional[SessionRegistry] = None
_default_registry_lock = threading.Lock()


def get_registry() -> SessionRegistry:
    """Return the process-wide default registry, creating it once."""
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = SessionRegistry()
    return _default_registry


__all__ = [
    "BrowserKind",
    "Session",
    "PlaywrightDriverFactory",
    "SessionRegistry",
    "get_registry",
]
