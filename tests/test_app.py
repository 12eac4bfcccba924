"""Tests for the start/stop capability adapter."""

import pytest

from coldswap.app import AppState, StructuralApp
from coldswap.errors import StartupError


class Service:
    def __init__(self, fail_start: bool = False, fail_stop: bool = False):
        self.calls: list[str] = []
        self.fail_start = fail_start
        self.fail_stop = fail_stop

    def start(self):
        self.calls.append("start")
        if self.fail_start:
            raise RuntimeError("cannot start")

    def stop(self):
        self.calls.append("stop")
        if self.fail_stop:
            raise RuntimeError("cannot stop")


class TestStructuralApp:
    """Tests for StructuralApp."""

    def test_requires_start_and_stop(self):
        """Objects without the capability pair are rejected."""

        class NoStop:
            def start(self):
                pass

        with pytest.raises(StartupError, match="stop"):
            StructuralApp(NoStop(), "pkg:NoStop")

    def test_non_callable_attribute_is_rejected(self):
        """A start attribute that is not callable does not count."""

        class Odd:
            start = "yes"

            def stop(self):
                pass

        with pytest.raises(StartupError, match="start"):
            StructuralApp(Odd())

    def test_start_then_stop(self):
        """Lifecycle moves from created to started to stopped."""
        service = Service()
        app = StructuralApp(service, "pkg:Service")

        assert app.state == AppState.CREATED
        app.start()
        assert app.state == AppState.STARTED
        app.stop()
        assert app.state == AppState.STOPPED
        assert service.calls == ["start", "stop"]

    def test_failed_start_propagates_and_marks_failed(self):
        """start() errors reach the caller and leave the app failed."""
        app = StructuralApp(Service(fail_start=True))

        with pytest.raises(RuntimeError):
            app.start()
        assert app.state == AppState.FAILED

    def test_stop_is_noop_unless_started(self):
        """Stopping a created, failed or stopped app does not call the target."""
        service = Service(fail_start=True)
        app = StructuralApp(service)

        app.stop()
        with pytest.raises(RuntimeError):
            app.start()
        app.stop()

        assert service.calls == ["start"]

    def test_stop_twice_calls_target_once(self):
        """A second stop() is a no-op."""
        service = Service()
        app = StructuralApp(service)
        app.start()

        app.stop()
        app.stop()

        assert service.calls == ["start", "stop"]

    def test_failed_stop_still_counts_as_stopped(self):
        """An instance whose stop() raised is not stopped again."""
        service = Service(fail_stop=True)
        app = StructuralApp(service)
        app.start()

        with pytest.raises(RuntimeError):
            app.stop()
        app.stop()

        assert app.state == AppState.STOPPED
        assert service.calls == ["start", "stop"]

    def test_default_name(self):
        """Without an explicit name the class path is used."""
        app = StructuralApp(Service())
        assert app.name.endswith("Service")
