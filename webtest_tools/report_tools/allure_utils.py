"""
================================================================================
Allure Report Utilities
================================================================================

This module provides the reporting sink used by the UI framework: named
text/binary attachments keyed by test identity, and per-test status with
duration.

Features:
- Text attachment helper
- ReportingSink protocol
- Allure-backed sink implementation
- Failure evidence attachment

================================================================================
"""

import threading
from typing import Any, Dict, List, Protocol, Tuple

import allure
from loguru import logger


# ================================================================================
# Attachment Helpers
# ================================================================================

def attach_text(text: str, name: str = "Text"):
    """
    Attach text content to Allure report.

    Args:
        text: Text to attach
        name: Attachment name
    """
    allure.attach(
        text,
        name=name,
        attachment_type=allure.attachment_type.TEXT
    )


# ================================================================================
# Reporting Sink
# ================================================================================

class ReportingSink(Protocol):
    """Destination for per-test attachments and status."""

    def attach_text(self, test_name: str, name: str, content: str, kind: str = "text") -> None:
        ...

    def attach_binary(self, test_name: str, name: str, content: bytes, kind: str = "png") -> None:
        ...

    def report_status(self, test_name: str, status: str, duration_ms: int) -> None:
        ...


_TEXT_TYPES = {
    "text": allure.attachment_type.TEXT,
    "html": allure.attachment_type.HTML,
    "json": allure.attachment_type.JSON,
}

_BINARY_TYPES = {
    "png": allure.attachment_type.PNG,
    "jpg": allure.attachment_type.JPG,
}


class AllureReportingSink:
    """
    Reporting sink that writes to the running Allure test.

    Allure attaches to whichever test is active on the calling thread, so
    the test name is only used to prefix the attachment for readability.
    """

    def attach_text(self, test_name: str, name: str, content: str, kind: str = "text") -> None:
        allure.attach(
            content,
            name=name,
            attachment_type=_TEXT_TYPES.get(kind, allure.attachment_type.TEXT),
        )

    def attach_binary(self, test_name: str, name: str, content: bytes, kind: str = "png") -> None:
        allure.attach(
            content,
            name=name,
            attachment_type=_BINARY_TYPES.get(kind, allure.attachment_type.PNG),
        )

    def report_status(self, test_name: str, status: str, duration_ms: int) -> None:
        attach_text(status.upper(), name="Status")
        attach_text(f"{duration_ms} ms", name="Test Duration")


class MemoryReportingSink:
    """
    In-process sink that records everything it receives.

    Handy for unit tests and for aggregating results across worker threads.
    """

    def __init__(self):
        self.attachments: Dict[str, List[Tuple[str, Any, str]]] = {}
        self.statuses: Dict[str, Tuple[str, int]] = {}
        self._lock = threading.Lock()

    def attach_text(self, test_name: str, name: str, content: str, kind: str = "text") -> None:
        with self._lock:
            self.attachments.setdefault(test_name, []).append((name, content, kind))

    def attach_binary(self, test_name: str, name: str, content: bytes, kind: str = "png") -> None:
        with self._lock:
            self.attachments.setdefault(test_name, []).append((name, content, kind))

    def report_status(self, test_name: str, status: str, duration_ms: int) -> None:
        with self._lock:
            self.statuses[test_name] = (status, duration_ms)

    def names(self, test_name: str) -> List[str]:
        """Attachment names recorded for a test."""
        return [name for name, _, _ in self.attachments.get(test_name, [])]


def attach_evidence(sink: ReportingSink, evidence: Any) -> None:
    """
    Attach a failure evidence bundle to a sink.

    Empty fields are skipped so placeholders never show up as attachments.

    Args:
        sink: Reporting sink
        evidence: FailureEvidence bundle
    """
    test_name = evidence.test_name
    if evidence.screenshot:
        sink.attach_binary(test_name, "Failure Screenshot", evidence.screenshot, "png")
    if evidence.location:
        sink.attach_text(test_name, "Failed URL", evidence.location)
    if evidence.page_title:
        sink.attach_text(test_name, "Page Title", evidence.page_title)
    if evidence.page_source:
        sink.attach_text(test_name, "Page Source", evidence.page_source, "html")
    if evidence.errors:
        sink.attach_text(test_name, "Evidence Capture Errors", "\n".join(evidence.errors))
    logger.debug(f"Evidence attached for {test_name}")


__all__ = [
    "attach_text",
    "ReportingSink",
    "AllureReportingSink",
    "MemoryReportingSink",
    "attach_evidence",
]
