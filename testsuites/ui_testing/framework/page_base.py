"""
================================================================================
Page Object Plumbing
================================================================================

Capability interface and shared helpers for page objects.

A page object is anything that can tell whether it is loaded. Shared wait and
action helpers live in ``PageComponents`` and are injected into each page,
so pages are independent implementations rather than a subclass chain.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

import allure
from loguru import logger

from .element_actions import ElementActions
from .settings import FrameworkSettings, load_settings
from .wait_engine import WaitEngine


@runtime_checkable
class LoadablePage(Protocol):
    """Capability every page object exposes."""

    def is_loaded(self) -> bool:
        ...


class PageComponents:
    """
    Helpers injected into page objects.

    Usage:
        class SearchPage:
            URL_PATH = "/search"

            def __init__(self, components: PageComponents):
                self.c = components

            def is_loaded(self) -> bool:
                return self.c.actions.is_visible("#search-box")

        page = SearchPage(PageComponents(session))
        page.c.open(page)

    Attributes:
        session: Session driven by the page
        settings: Framework settings
        waits: WaitEngine bound to the session
        actions: ElementActions bound to the session
    """

    def __init__(
        self,
        session: Any,
        settings: Optional[FrameworkSettings] = None,
        highlight: bool = False,
    ):
        self.session = session
        self.settings = settings or load_settings()
        self.waits = WaitEngine(session, self.settings)
        self.actions = ElementActions(session, self.waits, highlight=highlight)

    @property
    def page(self) -> Any:
        return self.session.page

    def url_for(self, path: str) -> str:
        """Join a path onto the configured base URL."""
        if path.startswith(("http://", "https://", "file://", "data:")):
            return path
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def open(self, page_object: LoadablePage, tier: str = "default") -> LoadablePage:
        """
        Navigate to ``page_object.URL_PATH`` and wait until it reports loaded.

        Returns:
            The same page object, for chaining
        """
        url = self.url_for(getattr(page_object, "URL_PATH", "/"))
        with allure.step(f"Navigate to {url}"):
            self.page.goto(url)
            logger.debug(f"Navigated to: {url}")
        self.wait_loaded(page_object, tier=tier)
        return page_object

    def wait_loaded(self, page_object: LoadablePage, tier: str = "default") -> None:
        """
        Wait until the document is complete and ``is_loaded()`` holds.

        Raises:
            WaitTimeoutError: The page never reported loaded
        """
        self.waits.await_page_load()
        self.waits.wait_until(self.waits.spec(
            lambda _session: page_object.is_loaded(),
            f"{type(page_object).__name__} loaded",
            tier=tier,
        ))


__all__ = [
    "LoadablePage",
    "PageComponents",
]
