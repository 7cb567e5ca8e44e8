"""
Playwright test doubles for framework unit tests.

Fakes stand in for Page, BrowserContext, Browser and the driver so the
framework core can be exercised without launching a browser.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError

from testsuites.ui_testing.framework import (
    BrowserKind,
    FrameworkSettings,
    Session,
)


CLOSED_MESSAGE = "Target page, context or browser has been closed"


class FakeElement:
    def __init__(self, text: str = "", visible: bool = True, enabled: bool = True):
        self.text = text
        self.visible = visible
        self.enabled = enabled
        self.clicks = 0
        self.value = ""
        self.frame: Optional[Any] = None

    def is_visible(self) -> bool:
        return self.visible

    def is_enabled(self) -> bool:
        return self.enabled

    def text_content(self) -> str:
        return self.text

    def inner_text(self) -> str:
        return self.text

    def click(self) -> None:
        self.clicks += 1

    def fill(self, text: str) -> None:
        self.value = text

    def hover(self) -> None:
        pass

    def content_frame(self) -> Optional[Any]:
        return self.frame


class FakePage:
    """
    Minimal sync Page double.

    ``elements`` maps a selector to a list of elements, or to a callable
    returning one, so tests can make elements appear over time.
    """

    def __init__(self, url: str = "about:blank", title: str = "Fake Page"):
        self.url = url
        self.title_value = title
        self.source = "<html><body>fake</body></html>"
        self.screenshot_bytes = b"\x89PNG fake"
        self.ready_state = "complete"
        self.elements: Dict[str, Any] = {}
        self.visited: List[str] = []
        self.closed = False
        self.fail_goto: Optional[Exception] = None
        self.fail_screenshot: Optional[Exception] = None
        self.fail_content: Optional[Exception] = None
        self.scripts: List[Any] = []
        self.handlers: Dict[str, Callable[[Any], None]] = {}
        self.reloads = 0
        self.main_frame = object()
        self.frame_selectors: List[str] = []

    def _check_open(self) -> None:
        if self.closed:
            raise PlaywrightError(CLOSED_MESSAGE)

    def _matches(self, selector: str) -> List[Any]:
        found = self.elements.get(selector, [])
        if callable(found):
            found = found()
        return list(found or [])

    def goto(self, url: str) -> None:
        self._check_open()
        if self.fail_goto is not None:
            raise self.fail_goto
        self.visited.append(url)
        self.url = url

    def frame_locator(self, selector: str) -> Any:
        self.frame_selectors.append(selector)
        return ("frame_locator", selector)

    def reload(self) -> None:
        self._check_open()
        self.reloads += 1

    def once(self, event: str, handler: Callable[[Any], None]) -> None:
        self.handlers[event] = handler

    def fire(self, event: str, payload: Any) -> None:
        handler = self.handlers.pop(event, None)
        if handler is not None:
            handler(payload)

    def title(self) -> str:
        self._check_open()
        return self.title_value

    def content(self) -> str:
        self._check_open()
        if self.fail_content is not None:
            raise self.fail_content
        return self.source

    def screenshot(self, full_page: bool = False) -> bytes:
        self._check_open()
        if self.fail_screenshot is not None:
            raise self.fail_screenshot
        return self.screenshot_bytes

    def query_selector(self, selector: str) -> Optional[Any]:
        self._check_open()
        matches = self._matches(selector)
        return matches[0] if matches else None

    def query_selector_all(self, selector: str) -> List[Any]:
        self._check_open()
        return self._matches(selector)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        self._check_open()
        self.scripts.append((script, arg))
        if "readyState" in script:
            return self.ready_state
        if "jQuery" in script:
            return True
        return None


class FakeResource:
    """Stands in for a BrowserContext, Browser or Playwright driver."""

    def __init__(self, page: Optional[FakePage] = None, fail: bool = False):
        self.page = page
        self.fail = fail
        self.closed = 0
        self.stopped = 0
        self.cookie_jar: List[Dict[str, Any]] = []

    def close(self) -> None:
        self.closed += 1
        if self.page is not None:
            self.page.closed = True
        if self.fail:
            raise RuntimeError("close failed")

    def stop(self) -> None:
        self.stopped += 1
        if self.fail:
            raise RuntimeError("stop failed")

    def cookies(self) -> List[Dict[str, Any]]:
        return list(self.cookie_jar)

    def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.cookie_jar.extend(cookies)


class FakeDriverFactory:
    """Driver factory producing fake sessions; can be told to fail."""

    def __init__(self, error: Optional[Exception] = None, page_factory: Callable[[], FakePage] = FakePage):
        self.error = error
        self.page_factory = page_factory
        self.launched: List[Session] = []

    def launch(self, kind: BrowserKind, settings: FrameworkSettings) -> Session:
        if self.error is not None:
            raise self.error
        page = self.page_factory()
        session = Session(
            kind=kind,
            page=page,
            context=FakeResource(page),
            browser=FakeResource(),
            driver=FakeResource(),
            script_timeout=settings.script_timeout,
        )
        self.launched.append(session)
        return session


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


