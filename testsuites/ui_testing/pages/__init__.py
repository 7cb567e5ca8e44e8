"""
================================================================================
Page Objects
================================================================================

Page Object implementations for the end-to-end suite.

Each page class is independent and receives its helpers through
``PageComponents``:
    - Element locators
    - Page-specific actions
    - An ``is_loaded()`` check

Author: Automation Team
License: MIT
================================================================================
"""

from .marker_page import MarkerPage

__all__ = [
    "MarkerPage",
]
