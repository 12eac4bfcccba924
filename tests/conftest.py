"""Pytest configuration and fixtures."""

import sys
import threading
import time
import types
from collections.abc import Callable
from pathlib import Path

import pytest

from coldswap.isolation import GenerationFinder

RECORDER_MODULE = "coldswap_recorder"

APP_SOURCE = '''"""Reloadable demo application."""

from coldswap_recorder import recorder

VERSION = {version!r}


class App:
    """Records every lifecycle call on the host-level recorder."""

    def __init__(self):
        self.version = VERSION
        recorder.record("init", VERSION)

    def start(self):
        recorder.enter()
        try:
            recorder.record("start", VERSION)
            recorder.pause()
            if recorder.fail_start:
                raise RuntimeError("boom on start")
        finally:
            recorder.exit()

    def stop(self):
        recorder.record("stop", VERSION)
        if recorder.fail_stop:
            raise RuntimeError("boom on stop")
'''


class Recorder:
    """Shared, host-level sink for calls made by reloaded apps."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.fail_start = False
        self.fail_stop = False
        self.delay = 0.0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def record(self, action: str, version: str) -> None:
        with self._lock:
            self.events.append((action, version))

    def enter(self) -> None:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def exit(self) -> None:
        with self._lock:
            self.active -= 1

    def pause(self) -> None:
        if self.delay:
            time.sleep(self.delay)

    def actions(self, action: str) -> list[str]:
        with self._lock:
            return [version for name, version in self.events if name == action]


@pytest.fixture
def recorder():
    """Install a recorder module the demo app imports from the host scope."""
    module = types.ModuleType(RECORDER_MODULE)
    module.recorder = Recorder()
    sys.modules[RECORDER_MODULE] = module
    yield module.recorder
    sys.modules.pop(RECORDER_MODULE, None)


@pytest.fixture(autouse=True)
def isolated_imports(tmp_path: Path):
    """Drop finders and modules that tests loaded from under tmp_path."""
    yield
    sys.meta_path[:] = [f for f in sys.meta_path if not isinstance(f, GenerationFinder)]
    for name, module in list(sys.modules.items()):
        file = getattr(module, "__file__", None)
        if isinstance(file, str) and Path(file).is_relative_to(tmp_path):
            del sys.modules[name]


@pytest.fixture
def write_app() -> Callable[[Path, str], Path]:
    """Write the demo app module into a root directory."""

    def write(root: Path, version: str, module: str = "demoapp") -> Path:
        root.mkdir(parents=True, exist_ok=True)
        path = root / f"{module}.py"
        path.write_text(APP_SOURCE.format(version=version))
        return path

    return write


@pytest.fixture
def app_root(tmp_path: Path, write_app) -> Path:
    """A single root holding version 1.0 of the demo app."""
    root = tmp_path / "classes"
    write_app(root, "1.0")
    return root
