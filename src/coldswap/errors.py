"""Error taxonomy for the reload orchestrator.

Only ArgumentError is fatal. The others are raised inside a reload or a
watcher callback, logged with full tracebacks and then dropped; the next
qualifying file change is the only retry.
"""

from pathlib import Path


class ColdswapError(Exception):
    """Base class for all coldswap errors."""


class ArgumentError(ColdswapError):
    """Raised when a launcher token is not a path and not a known key=value option."""

    def __init__(self, token: str, reason: str = "Unknown option"):
        self.token = token
        self.reason = reason
        super().__init__(f"{reason}: {token}")


class StartupError(ColdswapError):
    """Raised while building a generation or starting its entry point."""

    def __init__(self, entry_point: str, reason: str):
        self.entry_point = entry_point
        self.reason = reason
        super().__init__(f"Error found while starting {entry_point}: {reason}")


class TeardownError(ColdswapError):
    """Raised while stopping an instance or releasing its isolation context."""

    def __init__(self, stage: str, reason: str):
        self.stage = stage
        self.reason = reason
        super().__init__(f"Teardown failed during {stage}: {reason}")


class WatchCallbackError(ColdswapError):
    """Raised while resolving or filtering a change event."""

    def __init__(self, path: str | Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Error found while processing {path}: {reason}")
