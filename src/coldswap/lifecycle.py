"""Reload orchestration.

Flow of one reload, always on the single reload worker:
1. Take the current generation (context + app) out of the holder
2. Stop its app
3. Build a new IsolationContext, instantiate and start the entry point
4. Release the previous context, whether or not step 3 worked
5. Publish the new generation
"""

import gc
import itertools
import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from coldswap.app import AppCapability
from coldswap.errors import StartupError, TeardownError, WatchCallbackError
from coldswap.filters import PathFilter, is_relevant
from coldswap.isolation import IsolationContext
from coldswap.runtime import live_redefinition_supported
from coldswap.watcher import ChangeKind

logger = logging.getLogger(__name__)


class ReloadStatus(Enum):
    """Outcome of a reload."""

    SUCCESS = "success"
    FAILED_STARTUP = "failed_startup"
    CANCELLED = "cancelled"


@dataclass
class ReloadResult:
    """Result of one reload."""

    generation: int
    status: ReloadStatus
    error_message: str | None = None
    teardown_errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success(self) -> bool:
        return self.status == ReloadStatus.SUCCESS


@dataclass(frozen=True)
class Generation:
    """The context and app that are current together.

    ``app`` is None when the generation's start failed.
    """

    context: IsolationContext | None = None
    app: AppCapability | None = None


class CurrentGeneration:
    """Lock-guarded holder for the current generation.

    Written by the reload worker, read from watcher and caller threads. A
    Generation is immutable and published in one assignment, so a reader
    sees either the old pair or the new one, never a partially built app.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = Generation()

    def get(self) -> Generation:
        with self._lock:
            return self._generation

    def publish(self, generation: Generation) -> None:
        with self._lock:
            self._generation = generation

    def take(self) -> Generation:
        """Return the current generation and leave the holder empty."""
        with self._lock:
            generation, self._generation = self._generation, Generation()
            return generation


class LifecycleManager:
    """Owns the running app and serializes every reload onto one worker.

    Qualifying change events each enqueue one full reload. Nothing is
    coalesced, so N events give N reloads, run one after another in
    arrival order.
    """

    def __init__(
        self,
        entry_point: str,
        roots: Iterable[str | Path],
        includes: PathFilter | str = "",
        excludes: PathFilter | str = "",
        load_path: Iterable[str | Path] | None = None,
        history_limit: int = 100,
    ):
        if history_limit < 1:
            raise ValueError(f"history_limit must be at least 1, got {history_limit}")
        self.entry_point = entry_point
        self.roots: tuple[Path, ...] = tuple(Path(r).absolute() for r in roots)
        self.load_path: tuple[Path, ...] = (
            tuple(Path(p).absolute() for p in load_path) if load_path is not None else self.roots
        )
        self.includes = includes if isinstance(includes, PathFilter) else PathFilter(includes)
        self.excludes = excludes if isinstance(excludes, PathFilter) else PathFilter(excludes)
        self.live_redefinition = live_redefinition_supported()

        self._current = CurrentGeneration()
        self._generations = itertools.count(1)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="coldswap-reload")
        self._closed = False
        self._close_lock = threading.Lock()
        self._history_limit = history_limit
        self._reload_history: list[ReloadResult] = []
        self._history_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        with self._close_lock:
            return self._closed

    @property
    def current(self) -> Generation:
        return self._current.get()

    @property
    def current_app(self) -> AppCapability | None:
        return self._current.get().app

    @property
    def current_context(self) -> IsolationContext | None:
        return self._current.get().context

    def relative_path(self, path: str | Path) -> Path | None:
        """Relativize ``path`` against the first root containing it.

        Returns:
            The relative path, or None when no root contains ``path``.
        """
        candidate = Path(path).absolute()
        for root in self.roots:
            if candidate.is_relative_to(root):
                return candidate.relative_to(root)
        return None

    def start(self) -> Future[ReloadResult]:
        """Bring up the first generation."""
        logger.info(f"Starting {self.entry_point}")
        return self.request_reload()

    def request_reload(self) -> Future[ReloadResult]:
        """Enqueue a full reload on the worker."""
        return self._executor.submit(self.reload)

    def on_change(self, kind: ChangeKind, path: str | Path) -> Future[ReloadResult] | None:
        """Watcher callback. Filters the event and enqueues a reload if relevant.

        Runs on the watcher's thread and never waits for the reload itself.
        Errors are logged and swallowed so the watcher keeps running.

        Returns:
            The queued reload, or None when the event was ignored.
        """
        try:
            candidate = self.relative_path(path)
            if candidate is None:
                logger.debug(f"Can't resolve path: {path}... ignoring it")
                return None
            if not is_relevant(candidate, self.includes, self.excludes):
                return None
            logger.info(f"{getattr(kind, 'value', kind)}: {candidate}, reloading {self.entry_point}")
            return self.request_reload()
        except Exception as e:
            error = WatchCallbackError(path, f"{type(e).__name__}: {e}")
            logger.error(str(error), exc_info=e)
            return None

    def reload(self) -> ReloadResult:
        """Stop the current app, build a new generation and start it.

        Meant to run on the reload worker. Never raises.
        """
        started_at = time.monotonic()
        generation = next(self._generations)
        if self.closed:
            logger.debug(f"Skipping reload {generation} of {self.entry_point}: shutting down")
            result = ReloadResult(generation=generation, status=ReloadStatus.CANCELLED)
            self._record(result)
            return result

        previous = self._current.take()
        teardown_errors: list[str] = []

        if previous.app is not None:
            try:
                previous.app.stop()
            except Exception as e:
                error = TeardownError("stop", f"couldn't stop {previous.app.name}: {type(e).__name__}: {e}")
                logger.error(str(error), exc_info=e)
                teardown_errors.append(str(error))

        context: IsolationContext | None = None
        app: AppCapability | None = None
        error_message = None
        try:
            context = IsolationContext(self.load_path, generation)
            candidate = context.instantiate(self.entry_point)
            candidate.start()
            context.attach(candidate)
            app = candidate
        except Exception as e:
            error = e if isinstance(e, StartupError) else StartupError(self.entry_point, f"{type(e).__name__}: {e}")
            logger.error(str(error), exc_info=e)
            error_message = str(error)
        finally:
            if previous.context is not None:
                try:
                    previous.context.release()
                except Exception as e:
                    error = TeardownError("release", f"can't release {previous.context!r}: {type(e).__name__}: {e}")
                    logger.error(str(error), exc_info=e)
                    teardown_errors.append(str(error))
                gc.collect()

        # a failed context stays current without an app, so the next reload releases it
        self._current.publish(Generation(context, app))

        result = ReloadResult(
            generation=generation,
            status=ReloadStatus.SUCCESS if app is not None else ReloadStatus.FAILED_STARTUP,
            error_message=error_message,
            teardown_errors=teardown_errors,
            duration_seconds=time.monotonic() - started_at,
        )
        if result.success:
            logger.info(f"Generation {generation} of {self.entry_point} started in {result.duration_seconds:.3f}s")
        self._record(result)
        return result

    def stop_current(self) -> bool:
        """Stop the current app on the worker.

        Returns:
            True if an app was stopped, False when there was none (not an error).
        """
        return self._executor.submit(self._stop_current).result()

    def _stop_current(self) -> bool:
        current = self._current.get()
        if current.app is None:
            logger.debug("No current app to stop")
            return False
        self._current.publish(Generation(current.context, None))
        try:
            current.app.stop()
        except Exception as e:
            error = TeardownError("stop", f"couldn't stop {current.app.name}: {type(e).__name__}: {e}")
            logger.error(str(error), exc_info=e)
        return True

    def flush(self, timeout: float | None = None) -> None:
        """Block until every reload queued so far has run."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the current app and release its context, then stop the worker.

        The in-flight reload finishes; reloads still queued are skipped. The
        teardown itself runs on the worker, after everything queued before it.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.submit(self._teardown)
        self._executor.shutdown(wait=wait)

    def _teardown(self) -> None:
        current = self._current.take()
        if current.app is not None:
            try:
                current.app.stop()
            except Exception as e:
                logger.error(str(TeardownError("stop", f"{type(e).__name__}: {e}")), exc_info=e)
        if current.context is not None:
            try:
                current.context.release()
            except Exception as e:
                logger.error(str(TeardownError("release", f"{type(e).__name__}: {e}")), exc_info=e)
        logger.info(f"Shut down {self.entry_point}")

    def _record(self, result: ReloadResult) -> None:
        with self._history_lock:
            self._reload_history.append(result)
            del self._reload_history[: -self._history_limit]

    def get_reload_history(self, limit: int = 10) -> list[ReloadResult]:
        """Get recent reload history.

        Args:
            limit: Maximum number of results to return.

        Returns:
            List of recent ReloadResults, oldest first.
        """
        with self._history_lock:
            return self._reload_history[-limit:]
