"""Start/stop capability of the reloaded application.

Targets are duck-typed: any class with a no-argument constructor and
``start()``/``stop()`` methods qualifies. The orchestrator never calls the
target directly. It goes through an AppCapability, and StructuralApp is the
adapter that checks and wraps such an object.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from coldswap.errors import StartupError

logger = logging.getLogger(__name__)


class AppState(str, Enum):
    """Lifecycle states of an application instance."""

    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"
    FAILED = "failed"


class AppCapability(ABC):
    """What the orchestrator needs from an application instance."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Entry point name the instance was created from."""
        ...

    @property
    @abstractmethod
    def state(self) -> AppState:
        """Current lifecycle state."""
        ...

    @abstractmethod
    def start(self) -> None:
        """Start the application. Errors propagate to the caller."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the application. A no-op unless the instance is started."""
        ...


class StructuralApp(AppCapability):
    """Adapts any object exposing callable ``start`` and ``stop`` attributes."""

    def __init__(self, target: Any, name: str | None = None):
        for method in ("start", "stop"):
            if not callable(getattr(target, method, None)):
                raise StartupError(
                    name or type(target).__qualname__,
                    f"{type(target).__qualname__} has no callable {method}()",
                )
        self.target = target
        self._name = name or f"{type(target).__module__}.{type(target).__qualname__}"
        self._state = AppState.CREATED
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    def start(self) -> None:
        try:
            self.target.start()
        except Exception:
            self._set_state(AppState.FAILED)
            raise
        self._set_state(AppState.STARTED)
        logger.debug(f"Started {self._name}")

    def stop(self) -> None:
        with self._lock:
            if self._state != AppState.STARTED:
                logger.debug(f"{self._name} is {self._state.value}, nothing to stop")
                return
            # stopped even if target.stop() raises; the instance is never restarted
            self._state = AppState.STOPPED
        self.target.stop()
        logger.debug(f"Stopped {self._name}")

    def _set_state(self, state: AppState) -> None:
        with self._lock:
            self._state = state

    def __repr__(self) -> str:
        return f"StructuralApp({self._name!r}, state={self.state.value})"
