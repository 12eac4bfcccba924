"""Per-generation loading boundary for application code.

Each IsolationContext is one generation of the application:
- a meta path finder that resolves top-level imports against the load path
- an arena of every module loaded from under the load path in that generation

Modules living outside the load path (stdlib, installed libraries, coldswap
itself) belong to the host and are loaded once. Modules under the load path
are loaded fresh by every generation, and the arena is discarded as a whole
when the generation is released.
"""

import importlib
import importlib.abc
import inspect
import logging
import sys
import sysconfig
import threading
from collections.abc import Iterable, Sequence
from enum import Enum
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path
from types import ModuleType
from typing import Any

from coldswap.app import StructuralApp
from coldswap.errors import StartupError

logger = logging.getLogger(__name__)

# Never treated as application code, even if a root happens to contain them
_HOST_PREFIXES = tuple(
    Path(sysconfig.get_path(key)).absolute()
    for key in ("stdlib", "platstdlib", "purelib", "platlib")
    if sysconfig.get_path(key)
)
_HOST_PACKAGE = __name__.partition(".")[0]


def _is_host_location(location: str | None) -> bool:
    if not location:
        return False
    candidate = Path(location).absolute()
    return any(candidate.is_relative_to(prefix) for prefix in _HOST_PREFIXES)


def _spec_location(spec: ModuleSpec) -> str | None:
    if spec.origin and spec.has_location:
        return spec.origin
    return next(iter(spec.submodule_search_locations or []), None)


class ContextState(str, Enum):
    """Lifecycle states of an isolation context."""

    CREATED = "created"
    ATTACHED = "attached"
    RELEASED = "released"


class GenerationFinder(importlib.abc.MetaPathFinder):
    """Resolves top-level imports against one generation's load path.

    The host scope is consulted first: stdlib names and names the host
    resolves from the stdlib or site-packages are left to the regular
    finders, and a bare directory under a root never becomes a namespace
    package for a name the host already knows.

    Submodule imports (``path`` is not None) fall through to the regular
    machinery, which follows the parent package's ``__path__`` and so stays
    inside the same root.
    """

    def __init__(self, load_path: Sequence[str], generation: int):
        self.load_path = list(load_path)
        self.generation = generation

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None = None,
        target: ModuleType | None = None,
    ) -> ModuleSpec | None:
        if path is not None or fullname in sys.stdlib_module_names:
            return None

        host_spec = PathFinder.find_spec(fullname, sys.path)
        if host_spec is not None and _is_host_location(_spec_location(host_spec)):
            return None

        spec = PathFinder.find_spec(fullname, self.load_path, target)
        if spec is None:
            return None
        if spec.origin is None and host_spec is not None:
            # namespace package from a plain directory; the host's module wins
            return None
        return spec

    def __repr__(self) -> str:
        return f"GenerationFinder#{self.generation}"


def split_entry_point(entry_point: str) -> list[tuple[str, str]]:
    """Candidate (module, attribute) splits for an entry point name.

    ``pkg.app:Main`` has exactly one split. The dotted form ``pkg.app.Main``
    is tried longest module first.
    """
    if ":" in entry_point:
        module_name, _, attr = entry_point.partition(":")
        if not module_name or not attr:
            raise StartupError(entry_point, "expected 'module:Class'")
        return [(module_name, attr)]

    parts = entry_point.split(".")
    if len(parts) < 2 or not all(parts):
        raise StartupError(entry_point, "expected a fully qualified class name")
    return [(".".join(parts[:i]), ".".join(parts[i:])) for i in range(len(parts) - 1, 0, -1)]


def _module_locations(module: Any) -> list[str]:
    file = getattr(module, "__file__", None)
    if isinstance(file, str):
        return [file]
    try:
        return [p for p in getattr(module, "__path__", None) or [] if isinstance(p, str)]
    except TypeError:
        return []


class IsolationContext:
    """One generation of loaded application code plus its loading boundary.

    Creating a context evicts the modules of earlier generations from
    ``sys.modules`` (their arenas keep them alive for whoever still holds
    them) and installs this generation's finder in front of ``sys.meta_path``.
    """

    def __init__(self, load_path: Iterable[str | Path], generation: int):
        self.generation = generation
        self.load_path: tuple[Path, ...] = tuple(Path(p).absolute() for p in load_path)
        self._finder = GenerationFinder([str(p) for p in self.load_path], generation)
        self._modules: dict[str, ModuleType] = {}
        self._state = ContextState.CREATED
        self._lock = threading.Lock()

        evicted = self._evict_stale()
        importlib.invalidate_caches()
        sys.meta_path.insert(0, self._finder)
        logger.debug(f"Created {self!r} ({evicted} stale modules evicted)")

    @property
    def state(self) -> ContextState:
        with self._lock:
            return self._state

    @property
    def modules(self) -> dict[str, ModuleType]:
        """Snapshot of the modules this generation owns."""
        with self._lock:
            return dict(self._modules)

    def owns_location(self, location: str | Path) -> bool:
        """Check whether a file or package directory is application code."""
        if _is_host_location(str(location)):
            return False
        candidate = Path(location).absolute()
        return any(candidate.is_relative_to(entry) for entry in self.load_path)

    def _is_app_module(self, name: str, module: Any) -> bool:
        if module is None or name.partition(".")[0] == _HOST_PACKAGE:
            return False
        return any(self.owns_location(loc) for loc in _module_locations(module))

    def _evict_stale(self) -> int:
        stale = [name for name, module in list(sys.modules.items()) if self._is_app_module(name, module)]
        for name in stale:
            sys.modules.pop(name, None)
        return len(stale)

    def adopt(self) -> int:
        """Move newly loaded application modules into this generation's arena.

        Returns:
            Number of modules adopted.
        """
        with self._lock:
            if self._state == ContextState.RELEASED:
                return 0
            adopted = 0
            for name, module in list(sys.modules.items()):
                if name not in self._modules and self._is_app_module(name, module):
                    self._modules[name] = module
                    adopted += 1
            return adopted

    def load(self, entry_point: str) -> Any:
        """Import and return the object named by ``entry_point`` inside this boundary."""
        if self.state == ContextState.RELEASED:
            raise StartupError(entry_point, f"{self!r} is released")

        last_error: Exception | None = None
        for module_name, attr in split_entry_point(entry_point):
            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                # only skip when the candidate module itself is missing
                if e.name and (module_name == e.name or module_name.startswith(e.name + ".")):
                    last_error = e
                    continue
                raise StartupError(entry_point, f"{type(e).__name__}: {e}") from e
            except Exception as e:
                raise StartupError(entry_point, f"{type(e).__name__}: {e}") from e

            target: Any = module
            try:
                for part in attr.split("."):
                    target = getattr(target, part)
            except AttributeError as e:
                raise StartupError(entry_point, f"{module_name} has no attribute {attr}") from e
            finally:
                self.adopt()
            return target

        raise StartupError(entry_point, f"module not found under {list(map(str, self.load_path))}") from last_error

    def instantiate(self, entry_point: str) -> StructuralApp:
        """Load the entry point class, construct it and wrap it as an app."""
        cls = self.load(entry_point)
        if not inspect.isclass(cls):
            raise StartupError(entry_point, f"{type(cls).__name__} object is not a class")

        try:
            signature = inspect.signature(cls)
        except (TypeError, ValueError):
            signature = None
        if signature is not None:
            required = [
                p.name
                for p in signature.parameters.values()
                if p.default is p.empty and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
            ]
            if required:
                raise StartupError(
                    entry_point, f"constructor requires arguments: {', '.join(required)}"
                )

        try:
            instance = cls()
        except Exception as e:
            raise StartupError(entry_point, f"{type(e).__name__}: {e}") from e
        finally:
            self.adopt()

        return StructuralApp(instance, entry_point)

    def attach(self, app: StructuralApp) -> None:
        """Record that a started instance now lives in this generation."""
        with self._lock:
            if self._state == ContextState.RELEASED:
                raise StartupError(app.name, f"{self!r} is released")
            self._state = ContextState.ATTACHED
        adopted = self.adopt()
        logger.debug(f"{app.name} attached to {self!r} ({adopted} late modules adopted)")

    def release(self) -> None:
        """Discard the loading boundary and every module in the arena.

        Safe to call more than once. Only ``sys.modules`` entries that are
        this generation's own module objects are removed.
        """
        with self._lock:
            if self._state == ContextState.RELEASED:
                return
            self._state = ContextState.RELEASED
            try:
                sys.meta_path.remove(self._finder)
            except ValueError:
                logger.debug(f"{self._finder!r} already removed from sys.meta_path")
            for name, module in self._modules.items():
                if sys.modules.get(name) is module:
                    del sys.modules[name]
            count = len(self._modules)
            self._modules.clear()
        logger.debug(f"Released {self!r} ({count} modules)")

    def __repr__(self) -> str:
        return f"IsolationContext#{self.generation}@{[str(p) for p in self.load_path]}"
