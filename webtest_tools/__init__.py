"""
================================================================================
Webtest Tools
================================================================================

Shared infrastructure for the UI synchronization framework.

Modules:
    - common: Configuration (YAML + environment overrides) and logging setup
    - report_tools: Reporting sink backed by Allure

Example:
    from webtest_tools.common import get_config, init_logger
    from webtest_tools.report_tools.allure_utils import AllureReportingSink

    init_logger()
    sink = AllureReportingSink()
    base_url = get_config("ui.base_url", "http://localhost:3000")
    sink.report_status("test_home", "passed", 1250)

================================================================================
"""

__version__ = "1.0.0"

__all__ = [
    "common",
    "report_tools",
]
