"""Session registry tests with a fake driver factory (no browser)."""

import threading
import time

import pytest

from testsuites.ui_testing.framework import browser_manager
from testsuites.ui_testing.framework.browser_manager import (
    BrowserKind,
    PlaywrightDriverFactory,
    SessionRegistry,
    get_registry,
)
from testsuites.ui_testing.framework.errors import (
    SessionAlreadyBoundError,
    SessionCreationError,
)
from testsuites.unit.fakes import FakeDriverFactory, FakePage


class TestBrowserKind:

    @pytest.mark.parametrize("name,headless,kind", [
        ("chromium", False, BrowserKind.STANDARD_CHROMIUM),
        ("chrome", True, BrowserKind.HEADLESS_CHROMIUM),
        ("firefox", False, BrowserKind.STANDARD_GECKO),
        ("gecko", True, BrowserKind.HEADLESS_GECKO),
        ("Safari", False, BrowserKind.SAFARI_ENGINE),
        ("edge", False, BrowserKind.EDGE_CHROMIUM),
        ("headless-gecko", False, BrowserKind.HEADLESS_GECKO),
        (BrowserKind.STANDARD_CHROMIUM, True, BrowserKind.HEADLESS_CHROMIUM),
    ])
    def test_resolve(self, name, headless, kind):
        assert BrowserKind.resolve(name, headless) is kind

    def test_unknown_browser_defaults_to_chromium(self, log_messages):
        assert BrowserKind.resolve("netscape", False) is BrowserKind.STANDARD_CHROMIUM
        assert any("netscape" in m for m in log_messages)

    @pytest.mark.parametrize("name", ["safari", "edge"])
    def test_headless_unsupported_kinds_stay_headed(self, name, log_messages):
        kind = BrowserKind.resolve(name, headless=True)
        assert kind.headless is False
        assert any("Headless mode not supported" in m for m in log_messages)

    def test_engine_and_channel(self):
        assert BrowserKind.HEADLESS_GECKO.engine == "firefox"
        assert BrowserKind.SAFARI_ENGINE.engine == "webkit"
        assert BrowserKind.EDGE_CHROMIUM.channel == "msedge"
        assert BrowserKind.STANDARD_CHROMIUM.channel is None


class TestLaunchPresets:

    def test_chromium_options_are_hardened(self):
        options = PlaywrightDriverFactory().launch_options(BrowserKind.HEADLESS_CHROMIUM)

        assert options["headless"] is True
        assert "--disable-notifications" in options["args"]
        assert "--disable-blink-features=AutomationControlled" in options["args"]
        assert "--window-size=1920,1080" in options["args"]

    def test_edge_uses_msedge_channel(self):
        options = PlaywrightDriverFactory().launch_options(BrowserKind.EDGE_CHROMIUM)
        assert options["channel"] == "msedge"

    def test_firefox_prefs(self):
        options = PlaywrightDriverFactory().launch_options(BrowserKind.STANDARD_GECKO)
        assert options["firefox_user_prefs"]["dom.webnotifications.enabled"] is False
        assert "args" not in options

    def test_context_viewport(self):
        options = PlaywrightDriverFactory().context_options(BrowserKind.SAFARI_ENGINE)
        assert options["viewport"] == {"width": 1920, "height": 1080}

    def test_presets_are_not_shared(self):
        factory = PlaywrightDriverFactory()
        factory.launch_options(BrowserKind.STANDARD_CHROMIUM)["args"].append("--extra")
        assert "--extra" not in factory.launch_options(BrowserKind.STANDARD_CHROMIUM)["args"]


class TestSessionRegistry:

    def test_create_binds_session_to_thread(self, registry, factory, settings):
        session = registry.create("chromium", headless=True)

        assert registry.current() is session
        assert session.kind is BrowserKind.HEADLESS_CHROMIUM
        assert session.alive
        assert session.owner == threading.current_thread().name
        assert session.script_timeout == settings.script_timeout
        assert registry.active_count() == 1

    def test_second_create_on_same_thread_fails(self, registry, factory):
        first = registry.create("chromium")

        with pytest.raises(SessionAlreadyBoundError):
            registry.create("firefox")

        assert registry.current() is first
        assert len(factory.launched) == 1

    def test_creation_failure_is_wrapped(self, settings):
        cause = RuntimeError("Executable doesn't exist")
        registry = SessionRegistry(driver_factory=FakeDriverFactory(error=cause), settings=settings)

        with pytest.raises(SessionCreationError) as exc_info:
            registry.create("chromium")

        assert exc_info.value.__cause__ is cause
        assert registry.current() is None

    def test_create_after_release(self, registry):
        first = registry.create("chromium")
        registry.release()
        second = registry.create("chromium")

        assert second is not first
        assert registry.current() is second

    def test_release_is_idempotent(self, registry):
        registry.release()
        registry.create("chromium")
        registry.release()
        registry.release()

        assert registry.current() is None
        assert registry.active_count() == 0

    def test_release_closes_resources(self, registry):
        session = registry.create("chromium")
        registry.release()

        assert session.context.closed == 1
        assert session.browser.closed == 1
        assert session.driver.stopped == 1
        assert session.alive is False

    def test_release_survives_shutdown_errors(self, registry, log_messages):
        session = registry.create("chromium")
        session.context.fail = True
        session.driver.fail = True

        registry.release()

        assert registry.current() is None
        assert session.browser.closed == 1
        assert any("Error closing context" in m for m in log_messages)

    def test_is_active(self, registry):
        assert registry.is_active() is False

        session = registry.create("chromium")
        assert registry.is_active() is True
        assert registry.is_active(session) is True

        registry.release()
        assert registry.is_active(session) is False

    def test_is_active_false_when_browser_crashed(self, registry):
        session = registry.create("chromium")
        session.page.closed = True
        assert registry.is_active() is False

    def test_sessions_are_isolated_per_thread(self, registry, factory):
        main_session = registry.create("chromium")
        seen = {}
        barrier = threading.Barrier(3)

        def worker(name):
            session = registry.create("firefox")
            barrier.wait()
            seen[name] = (session, registry.current())
            registry.release()

        threads = [threading.Thread(target=worker, args=(f"w{i}",)) for i in range(2)]
        for t in threads:
            t.start()
        barrier.wait()
        for t in threads:
            t.join()

        assert registry.current() is main_session
        first, second = seen["w0"], seen["w1"]
        assert first[0] is first[1]
        assert second[0] is second[1]
        assert first[0] is not second[0]
        assert first[0] is not main_session
        assert registry.active_count() == 1

    def test_reap_orphans(self, registry):
        thread = threading.Thread(target=registry.create, args=("chromium",))
        thread.start()
        thread.join()

        assert registry.active_count() == 1
        assert registry.reap_orphans() == 1
        assert registry.active_count() == 0

    def test_session_scope(self, registry):
        with registry.session_scope("chromium") as session:
            assert registry.current() is session
        assert registry.current() is None
        assert session.alive is False

    def test_session_scope_releases_on_error(self, registry):
        with pytest.raises(AssertionError):
            with registry.session_scope("chromium"):
                assert False
        assert registry.current() is None

    def test_pages_come_from_factory(self, settings):
        factory = FakeDriverFactory(page_factory=lambda: FakePage(title="Custom"))
        registry = SessionRegistry(driver_factory=factory, settings=settings)
        with registry.session_scope("chromium") as session:
            assert session.page.title() == "Custom"


class TestDefaultRegistry:

    def test_concurrent_first_use_shares_one_registry(self, monkeypatch, settings):
        class SlowRegistry(SessionRegistry):
            def __init__(self):
                time.sleep(0.05)
                super().__init__(driver_factory=FakeDriverFactory(), settings=settings)

        monkeypatch.setattr(browser_manager, "_default_registry", None)
        monkeypatch.setattr(browser_manager, "SessionRegistry", SlowRegistry)
        barrier = threading.Barrier(8)
        seen = []

        def worker():
            barrier.wait()
            seen.append(get_registry())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(seen) == 8
        assert len({id(registry) for registry in seen}) == 1
        assert get_registry() is seen[0]
