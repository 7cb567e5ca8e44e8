"""
================================================================================
Evidence Collector
================================================================================

Best-effort capture of failure evidence from a browser session.

Captures:
    - Full-page screenshot
    - Current URL
    - Page source
    - Page title

Every sub-capture is guarded on its own, and nothing in this module raises
to the caller: evidence must never hide the failure it documents.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple
from uuid import uuid4

import allure
from loguru import logger

from webtest_tools.common import ensure_directory
from webtest_tools.report_tools.allure_utils import ReportingSink, attach_evidence

from .errors import EvidenceCaptureError
from .settings import FrameworkSettings, load_settings


TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

PLACEHOLDER_LOCATION = ""
PLACEHOLDER_TEXT = ""


@dataclass(frozen=True)
class FailureEvidence:
    """
    Immutable evidence bundle for one failing invocation.

    Attributes:
        test_name: Test the evidence belongs to
        timestamp: Capture time
        screenshot: PNG bytes (empty when unavailable)
        location: Current URL (empty when unavailable)
        page_source: Serialized page markup (empty when unavailable)
        page_title: Document title (empty when unavailable)
        errors: Descriptions of sub-captures that failed
    """
    test_name: str
    timestamp: datetime = field(default_factory=datetime.now)
    screenshot: bytes = b""
    location: str = PLACEHOLDER_LOCATION
    page_source: str = PLACEHOLDER_TEXT
    page_title: str = PLACEHOLDER_TEXT
    errors: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.screenshot or self.location or self.page_source or self.page_title)


def safe_file_stem(test_name: str) -> str:
    """Reduce a test name (possibly a pytest node id) to a filesystem-safe stem."""
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", test_name).strip("._")
    return stem[:120] or "test"


class EvidenceCollector:
    """
    Captures, reports and archives failure evidence.

    Usage:
        collector = EvidenceCollector()
        evidence = collector.capture(session, "test_checkout")
        collector.persist(evidence, sink)

        # Once per suite start
        collector.prune()
    """

    def __init__(
        self,
        archive_dir: Optional[Path] = None,
        settings: Optional[FrameworkSettings] = None,
    ):
        """
        Initialize collector.

        Args:
            archive_dir: Directory for archived evidence
                (defaults to settings.screenshot_dir)
            settings: Framework settings
        """
        self.settings = settings or load_settings()
        self.archive_dir = Path(archive_dir) if archive_dir else self.settings.screenshot_path

    # =========================================================================
    # Capture
    # =========================================================================

    def capture(self, session: Any, test_name: str) -> FailureEvidence:
        """
        Collect evidence from a session without ever raising.

        Args:
            session: Session to capture (None or dead sessions yield placeholders)
            test_name: Name of the failing test

        Returns:
            FailureEvidence, possibly with empty fields
        """
        if session is None or not getattr(session, "alive", False):
            logger.warning(f"No live session to capture evidence for {test_name}")
            return FailureEvidence(
                test_name=test_name,
                errors=("session unavailable",),
            )

        page = session.page
        errors: List[str] = []

        screenshot = self._guarded("screenshot", lambda: page.screenshot(full_page=True), b"", errors)
        location = self._guarded("location", lambda: page.url, PLACEHOLDER_LOCATION, errors)
        page_source = self._guarded("page source", page.content, PLACEHOLDER_TEXT, errors)
        page_title = self._guarded("page title", page.title, PLACEHOLDER_TEXT, errors)

        evidence = FailureEvidence(
            test_name=test_name,
            screenshot=screenshot or b"",
            location=location or PLACEHOLDER_LOCATION,
            page_source=page_source or PLACEHOLDER_TEXT,
            page_title=page_title or PLACEHOLDER_TEXT,
            errors=tuple(errors),
        )
        logger.info(
            f"Evidence captured for {test_name}: "
            f"screenshot={len(evidence.screenshot)} bytes, url={evidence.location!r}"
        )
        return evidence

    @staticmethod
    def _guarded(label: str, capture: Callable[[], Any], placeholder: Any, errors: List[str]) -> Any:
        try:
            return capture()
        except Exception as e:
            error = EvidenceCaptureError(f"Failed to capture {label}: {e}")
            logger.error(str(error))
            errors.append(str(error))
            return placeholder

    # =========================================================================
    # Persist
    # =========================================================================

    def persist(
        self,
        evidence: FailureEvidence,
        sink: Optional[ReportingSink] = None,
    ) -> List[Path]:
        """
        Hand evidence to the reporting sink and archive it on disk.

        Args:
            evidence: Evidence bundle
            sink: Reporting sink (skipped when None)

        Returns:
            Paths of archived files (empty on archival failure)
        """
        if sink is not None:
            try:
                with allure.step("Capture failure details"):
                    attach_evidence(sink, evidence)
            except Exception as e:
                logger.error(f"Failed to hand evidence to reporting sink: {e}")

        try:
            return self._archive(evidence)
        except OSError as e:
            logger.error(f"Failed to archive evidence for {evidence.test_name}: {e}")
            return []

    def _archive(self, evidence: FailureEvidence) -> List[Path]:
        items = [
            ("png", evidence.screenshot),
            ("html", evidence.page_source.encode("utf-8")),
            ("txt", evidence.location.encode("utf-8")),
        ]
        items = [(ext, data) for ext, data in items if data]
        if not items:
            logger.debug(f"Nothing to archive for {evidence.test_name}")
            return []

        ensure_directory(self.archive_dir)
        stem = f"{safe_file_stem(evidence.test_name)}_{evidence.timestamp.strftime(TIMESTAMP_FORMAT)}"

        saved = []
        for ext, data in items:
            path = self._write_exclusive(stem, ext, data)
            logger.info(f"Evidence saved: {path}")
            saved.append(path)
        return saved

    def _write_exclusive(self, stem: str, ext: str, data: bytes) -> Path:
        """Create a new file, adding a short suffix if the name is taken."""
        path = self.archive_dir / f"{stem}.{ext}"
        while True:
            try:
                with open(path, "xb") as f:
                    f.write(data)
                return path
            except FileExistsError:
                path = self.archive_dir / f"{stem}_{uuid4().hex[:8]}.{ext}"

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def prune(self, max_age_days: Optional[float] = None) -> int:
        """
        Delete archived evidence older than a threshold.

        Args:
            max_age_days: Age threshold (defaults to settings.evidence_retention_days)

        Returns:
            Number of files deleted
        """
        if max_age_days is None:
            max_age_days = self.settings.evidence_retention_days

        if not self.archive_dir.exists():
            return 0

        cutoff = time.time() - max_age_days * 24 * 60 * 60
        deleted = 0
        for path in self.archive_dir.iterdir():
            if not path.is_file():
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
                    logger.info(f"Deleted old evidence: {path.name}")
            except FileNotFoundError:
                # Another worker pruned it first
                continue
            except OSError as e:
                logger.warning(f"Could not prune {path}: {e}")

        return deleted


__all__ = [
    "FailureEvidence",
    "EvidenceCollector",
    "safe_file_stem",
]
