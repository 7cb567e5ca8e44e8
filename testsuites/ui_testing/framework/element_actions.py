# ================================================================================
# Element Actions Module
# ================================================================================
#
# UI element interaction helpers composed into page objects.
#
# Every element wait goes through the WaitEngine, so actions inherit its
# transient-error tolerance and timeout tiers instead of retrying on their own.
#
# Key Features:
#   - Click / type / read text on the first matching element
#   - Optional-returning state checks (is_present / is_visible never raise)
#   - JavaScript helpers (js click, scroll, highlight, arbitrary scripts)
#   - Dialog, cookie and navigation helpers
#   - Allure step integration
#
# ================================================================================

from typing import Any, Callable, Dict, List, Optional

import allure
from loguru import logger
from playwright.sync_api import Error as PlaywrightError

from .wait_engine import WaitEngine


HIGHLIGHT_SCRIPT = """
el => {
    const original = el.getAttribute('style') || '';
    el.style.border = '2px solid red';
    setTimeout(() => el.setAttribute('style', original), 100);
}
"""


class ElementActions:
    """
    Element interaction helpers for one session.

    Example:
        actions = ElementActions(session, waits)
        actions.click("button#submit", description="Submit button")
        actions.type_text("#username", "testuser", description="Username field")
    """

    def __init__(self, session: Any, waits: WaitEngine, highlight: bool = False):
        """
        Initialize ElementActions.

        Args:
            session: Session whose page is driven
            waits: WaitEngine bound to the same session
            highlight: Outline elements before interacting (debugging aid)
        """
        self.session = session
        self.waits = waits
        self.highlight_elements = highlight

    @property
    def page(self) -> Any:
        return self.session.page

    @allure.step("Click element: {selector}")
    def click(self, selector: str, description: str = "", tier: str = "default") -> None:
        """
        Click an element once it is visible and enabled.

        Args:
            selector: CSS selector
            description: Human-readable description for logging
            tier: Wait tier ("default" or "long")
        """
        logger.info(f"Clicking element: {description or selector}")
        element = self.waits.await_clickable(selector, tier=tier)
        self.highlight(element)
        element.click()
        logger.debug(f"Successfully clicked: {description or selector}")

    @allure.step("Type text into: {selector}")
    def type_text(
        self,
        selector: str,
        text: str,
        description: str = "",
        clear_first: bool = True,
        tier: str = "default",
    ) -> None:
        """
        Type text into an input once it is visible.

        Args:
            selector: CSS selector
            text: Text to enter
            description: Human-readable description for logging
            clear_first: Replace the current value instead of appending
            tier: Wait tier
        """
        logger.info(f"Typing into: {description or selector}")
        element = self.waits.await_visible(selector, tier=tier)
        self.highlight(element)
        if clear_first:
            element.fill(text)
        else:
            element.focus()
            self.page.keyboard.press("End")
            self.page.keyboard.insert_text(text)

    def get_text(self, selector: str, tier: str = "default") -> str:
        """Return the trimmed visible text of an element."""
        element = self.waits.await_visible(selector, tier=tier)
        text = (element.inner_text() or "").strip()
        logger.debug(f"Got text from {selector}: '{text}'")
        return text

    def get_texts(self, selector: str, tier: str = "default") -> List[str]:
        """Return the trimmed text of every matching element."""
        elements = self.waits.await_all_present(selector, tier=tier)
        return [(el.text_content() or "").strip() for el in elements]

    @allure.step("Hover over: {selector}")
    def hover(self, selector: str, tier: str = "default") -> None:
        """Hover over a visible element."""
        self.waits.await_visible(selector, tier=tier).hover()

    @allure.step("Force click using JavaScript: {selector}")
    def js_click(self, selector: str, tier: str = "default") -> None:
        """Click through JavaScript, for elements covered by overlays."""
        element = self.waits.await_present(selector, tier=tier)
        self.page.evaluate("el => el.click()", element)

    def scroll_to(self, selector: str, tier: str = "default") -> None:
        """Scroll an element into the middle of the viewport."""
        element = self.waits.await_present(selector, tier=tier)
        self.page.evaluate(
            "el => el.scrollIntoView({behavior: 'instant', block: 'center'})",
            element,
        )

    # =========================================================================
    # State Checks
    # =========================================================================

    def is_present(self, selector: str) -> bool:
        """True if an element matches right now."""
        return self.waits.try_locate(selector) is not None

    def is_visible(self, selector: str) -> bool:
        """True if the first match is visible right now; never raises on stale nodes."""
        element = self.waits.try_locate(selector)
        if element is None:
            return False
        try:
            return element.is_visible()
        except PlaywrightError:
            return False

    def highlight(self, element: Any) -> None:
        """Briefly outline an element in red when highlighting is enabled."""
        if not self.highlight_elements:
            return
        try:
            self.page.evaluate(HIGHLIGHT_SCRIPT, element)
        except PlaywrightError as e:
            logger.trace(f"Highlight skipped: {e}")

    # =========================================================================
    # Page-Level Helpers
    # =========================================================================

    def execute_script(self, script: str, arg: Any = None) -> Any:
        """Evaluate a JavaScript expression or function in the page."""
        return self.page.evaluate(script, arg)

    @allure.step("Accept dialog")
    def accept_dialog(self, trigger: Callable[[], Any]) -> Optional[str]:
        """
        Run ``trigger`` and accept the dialog it opens.

        Returns:
            The dialog message, or None if no dialog appeared
        """
        return self._handle_dialog(trigger, accept=True)

    @allure.step("Dismiss dialog")
    def dismiss_dialog(self, trigger: Callable[[], Any]) -> Optional[str]:
        """Run ``trigger``, dismiss the dialog it opens and return its message."""
        return self._handle_dialog(trigger, accept=False)

    def _handle_dialog(self, trigger: Callable[[], Any], accept: bool) -> Optional[str]:
        messages: List[str] = []

        def _handle(dialog: Any) -> None:
            messages.append(dialog.message)
            logger.info(f"Dialog '{dialog.message}' {'accepted' if accept else 'dismissed'}")
            if accept:
                dialog.accept()
            else:
                dialog.dismiss()

        self.page.once("dialog", _handle)
        trigger()
        return messages[0] if messages else None

    @allure.step("Refresh page")
    def refresh(self) -> None:
        """Reload the page and wait for it to finish loading."""
        logger.info("Refreshing page")
        self.page.reload()
        self.waits.await_page_load()

    def title(self) -> str:
        return self.page.title()

    def current_url(self) -> str:
        return self.page.url

    def cookies(self) -> List[Dict[str, Any]]:
        return self.session.context.cookies()

    def set_cookie(self, name: str, value: str, url: Optional[str] = None) -> None:
        """Add a cookie scoped to ``url`` (defaults to the current page)."""
        self.session.context.add_cookies(
            [{"name": name, "value": value, "url": url or self.page.url}]
        )

    # =========================================================================
    # Frames
    # =========================================================================

    @allure.step("Enter frame: {selector}")
    def frame(self, selector: str, tier: str = "default") -> Any:
        """
        Wait for an iframe to attach and return its content frame.

        The returned Frame takes the same selector calls as the page
        (``query_selector``, ``click``, ``fill``).
        """
        def content_frame(session: Any) -> Any:
            element = session.page.query_selector(selector)
            return element.content_frame() if element is not None else None

        logger.info(f"Entering frame: {selector}")
        return self.waits.wait_until(self.waits.spec(content_frame, f"frame {selector}", tier=tier))

    def frame_locator(self, selector: str) -> Any:
        """Lazy locator scoped to an iframe; resolves on first use."""
        return self.page.frame_locator(selector)

    def main_frame(self) -> Any:
        """Top-level frame of the page, for leaving an iframe context."""
        return self.page.main_frame


__all__ = [
    "ElementActions",
]
