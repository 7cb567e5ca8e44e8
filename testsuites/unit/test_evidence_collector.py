"""Evidence capture, archival and pruning tests."""

import os
import re
import threading
import time
from datetime import datetime

import pytest

from testsuites.ui_testing.framework.evidence_collector import (
    EvidenceCollector,
    FailureEvidence,
    safe_file_stem,
)
from webtest_tools.report_tools.allure_utils import MemoryReportingSink


class BrokenSink(MemoryReportingSink):
    def attach_binary(self, test_name, name, content, kind="png"):
        raise RuntimeError("report directory is read-only")


class TestCapture:

    def test_captures_all_fields(self, collector, fake_session):
        evidence = collector.capture(fake_session, "test_checkout")

        assert evidence.test_name == "test_checkout"
        assert evidence.screenshot == fake_session.page.screenshot_bytes
        assert evidence.location == "http://app.test/home"
        assert evidence.page_source == fake_session.page.source
        assert evidence.page_title == "Fake Page"
        assert evidence.errors == ()
        assert not evidence.is_empty

    def test_screenshot_failure_keeps_other_fields(self, collector, fake_session):
        fake_session.page.fail_screenshot = RuntimeError("GPU process crashed")

        evidence = collector.capture(fake_session, "test_checkout")

        assert evidence.screenshot == b""
        assert evidence.location == "http://app.test/home"
        assert evidence.page_source
        assert len(evidence.errors) == 1
        assert "screenshot" in evidence.errors[0]

    def test_source_failure_keeps_screenshot(self, collector, fake_session):
        fake_session.page.fail_content = RuntimeError("content unavailable")

        evidence = collector.capture(fake_session, "test_checkout")

        assert evidence.screenshot
        assert evidence.page_source == ""

    def test_dead_session_yields_placeholder(self, collector, fake_session):
        fake_session.invalidate()

        evidence = collector.capture(fake_session, "test_checkout")

        assert evidence.is_empty
        assert evidence.errors == ("session unavailable",)

    def test_missing_session_yields_placeholder(self, collector):
        assert collector.capture(None, "test_checkout").is_empty

    def test_crashed_browser_does_not_raise(self, collector, fake_session, log_messages):
        fake_session.page.closed = True

        evidence = collector.capture(fake_session, "test_checkout")

        assert evidence.screenshot == b""
        assert evidence.page_title == ""
        assert any("Failed to capture screenshot" in m for m in log_messages)


class TestPersist:

    def test_archives_files_with_timestamped_names(self, collector, fake_session):
        evidence = collector.capture(fake_session, "test_checkout")

        paths = collector.persist(evidence)

        assert sorted(p.suffix for p in paths) == [".html", ".png", ".txt"]
        for path in paths:
            assert re.fullmatch(r"test_checkout_\d{8}_\d{6}\.(png|html|txt)", path.name)
            assert path.parent == collector.archive_dir
        png = next(p for p in paths if p.suffix == ".png")
        assert png.read_bytes() == fake_session.page.screenshot_bytes

    def test_hands_evidence_to_sink(self, collector, fake_session):
        sink = MemoryReportingSink()
        evidence = collector.capture(fake_session, "test_checkout")

        collector.persist(evidence, sink)

        assert sink.names("test_checkout") == [
            "Failure Screenshot",
            "Failed URL",
            "Page Title",
            "Page Source",
        ]

    def test_colliding_names_never_overwrite(self, collector):
        evidence = FailureEvidence(
            test_name="test_checkout",
            timestamp=datetime(2024, 5, 1, 12, 0, 0),
            screenshot=b"png",
        )

        first = collector.persist(evidence)
        second = collector.persist(evidence)

        assert first[0].name == "test_checkout_20240501_120000.png"
        assert second[0] != first[0]
        assert second[0].name.startswith("test_checkout_20240501_120000_")
        assert len(list(collector.archive_dir.glob("*.png"))) == 2

    def test_concurrent_writers_get_distinct_files(self, collector):
        evidence = FailureEvidence(
            test_name="test_parallel",
            timestamp=datetime(2024, 5, 1, 12, 0, 0),
            screenshot=b"png",
        )
        threads = [threading.Thread(target=collector.persist, args=(evidence,)) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(list(collector.archive_dir.glob("test_parallel_*.png"))) == 6

    def test_sink_errors_are_contained(self, collector, fake_session):
        evidence = collector.capture(fake_session, "test_checkout")

        paths = collector.persist(evidence, BrokenSink())

        assert len(paths) == 3

    def test_archive_errors_are_contained(self, settings, tmp_path, fake_session):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        collector = EvidenceCollector(archive_dir=blocker / "evidence", settings=settings)

        evidence = collector.capture(fake_session, "test_checkout")
        assert collector.persist(evidence) == []

    def test_placeholder_evidence_archives_nothing(self, collector):
        assert collector.persist(FailureEvidence(test_name="test_checkout")) == []
        assert not collector.archive_dir.exists()

    def test_errors_are_attached(self, collector, fake_session):
        sink = MemoryReportingSink()
        fake_session.invalidate()

        collector.persist(collector.capture(fake_session, "test_checkout"), sink)

        assert sink.names("test_checkout") == ["Evidence Capture Errors"]


class TestPrune:

    def test_deletes_only_old_files(self, collector):
        collector.archive_dir.mkdir(parents=True)
        old = collector.archive_dir / "test_old_20200101_000000.png"
        fresh = collector.archive_dir / "test_new_20240101_000000.png"
        old.write_bytes(b"old")
        fresh.write_bytes(b"new")
        ten_days_ago = time.time() - 10 * 24 * 60 * 60
        os.utime(old, (ten_days_ago, ten_days_ago))

        assert collector.prune() == 1
        assert not old.exists()
        assert fresh.exists()

    def test_custom_threshold(self, collector):
        collector.archive_dir.mkdir(parents=True)
        path = collector.archive_dir / "test_x_20240101_000000.png"
        path.write_bytes(b"x")
        two_hours_ago = time.time() - 2 * 60 * 60
        os.utime(path, (two_hours_ago, two_hours_ago))

        assert collector.prune(max_age_days=1) == 0
        assert collector.prune(max_age_days=0.05) == 1

    def test_missing_directory(self, collector):
        assert collector.prune() == 0


@pytest.mark.parametrize("name,stem", [
    ("test_checkout", "test_checkout"),
    ("testsuites/ui/test_a.py::TestX::test_y[chromium]", "testsuites_ui_test_a.py_TestX_test_y_chromium"),
    ("///", "test"),
])
def test_safe_file_stem(name, stem):
    assert safe_file_stem(name) == stem
