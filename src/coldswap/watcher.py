"""File change watching for reloads.

Thin adapter over watchdog: every root is scheduled recursively and each
file event is handed to a callback as ``(ChangeKind, Path)`` on the
observer's own thread.
"""

import logging
import os
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """Kinds of file changes reported to the callback."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"


ChangeCallback = Callable[[ChangeKind, Path], Any]

# watchdog event types we report; open/close events are dropped
_EVENT_KINDS = {kind.value: kind for kind in ChangeKind}


class _DispatchHandler(FileSystemEventHandler):
    """Forwards watchdog file events to a ChangeCallback."""

    def __init__(self, callback: ChangeCallback):
        super().__init__()
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        kind = _EVENT_KINDS.get(event.event_type)
        if kind is None:
            return

        raw = event.dest_path if kind == ChangeKind.MOVED else event.src_path
        path = Path(os.fsdecode(raw))
        try:
            self.callback(kind, path)
        except Exception as e:
            logger.error(f"Error in change callback for {path}: {e}", exc_info=e)


class ChangeWatcher:
    """Watches a set of root directories for file changes.

    Missing roots are skipped with a warning. Uses the platform's native
    observer unless ``poll`` is set, which helps on network or container
    filesystems where native events are not delivered.
    """

    def __init__(
        self,
        roots: Iterable[str | Path],
        callback: ChangeCallback,
        poll: bool = False,
        poll_interval: float = 1.0,
    ):
        self.roots = [Path(r).absolute() for r in roots]
        self.callback = callback
        self.poll = poll
        self.poll_interval = poll_interval
        self._observer: Any = None

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """Schedule every existing root and start the observer thread."""
        if self._observer is not None:
            return

        observer = PollingObserver(timeout=self.poll_interval) if self.poll else Observer()
        handler = _DispatchHandler(self.callback)
        scheduled = 0
        for root in self.roots:
            if not root.is_dir():
                logger.warning(f"Not watching {root}: not a directory")
                continue
            observer.schedule(handler, str(root), recursive=True)
            scheduled += 1
            logger.debug(f"Watching {root}")

        observer.start()
        self._observer = observer
        logger.info(f"Watching {scheduled} directories ({'polling' if self.poll else 'native'})")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the observer and wait for its thread to exit."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None
        logger.debug("Stopped watching")

    def __enter__(self) -> "ChangeWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
