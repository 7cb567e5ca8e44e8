"""
================================================================================
Marker Page Object
================================================================================

Page object for the static marker fixture used by the end-to-end suite.

The page shows a heading and a marker element immediately, and renders a
result list 400 ms after the "Reveal" button is clicked.

================================================================================
"""

from __future__ import annotations

from typing import List

import allure

from testsuites.ui_testing.framework.page_base import PageComponents


class MarkerPage:
    """Marker fixture page."""

    URL_PATH = "marker.html"

    TITLE = "[data-testid='page-title']"
    MARKER = "[data-testid='marker']"
    REVEAL_BUTTON = "[data-testid='reveal']"
    RESULT_ITEMS = "li.result"

    def __init__(self, components: PageComponents):
        self.c = components

    def is_loaded(self) -> bool:
        return self.c.actions.is_visible(self.TITLE)

    @allure.step("Open marker page")
    def open(self) -> "MarkerPage":
        self.c.open(self)
        return self

    def marker_text(self) -> str:
        return self.c.actions.get_text(self.MARKER)

    @allure.step("Reveal delayed results")
    def reveal_results(self) -> List[str]:
        """Click reveal and wait for the delayed list to render."""
        self.c.actions.click(self.REVEAL_BUTTON, description="Reveal button")
        return self.c.actions.get_texts(self.RESULT_ITEMS)
