"""coldswap - development-time cold swap reloader.

Watches directories and, on a relevant change, stops the running
application, throws away its loaded code and starts a freshly loaded
instance in the same process.
"""

from coldswap.app import AppCapability, AppState, StructuralApp
from coldswap.errors import (
    ArgumentError,
    ColdswapError,
    StartupError,
    TeardownError,
    WatchCallbackError,
)
from coldswap.filters import PathFilter, is_relevant
from coldswap.isolation import ContextState, IsolationContext
from coldswap.lifecycle import Generation, LifecycleManager, ReloadResult, ReloadStatus
from coldswap.watcher import ChangeKind, ChangeWatcher

__version__ = "0.1.0"

__all__ = [
    "AppCapability",
    "AppState",
    "ArgumentError",
    "ChangeKind",
    "ChangeWatcher",
    "ColdswapError",
    "ContextState",
    "Generation",
    "IsolationContext",
    "LifecycleManager",
    "PathFilter",
    "ReloadResult",
    "ReloadStatus",
    "StartupError",
    "StructuralApp",
    "TeardownError",
    "WatchCallbackError",
    "is_relevant",
    "__version__",
]
