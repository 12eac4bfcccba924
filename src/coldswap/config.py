"""Launcher configuration.

``launcher ENTRY_POINT [TOKEN]...`` tokens are interpreted as:
- an existing path: a load path entry (directories are also watched)
- ``includes=...`` / ``excludes=...``: comma separated glob expressions
Anything else is an ArgumentError.
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from pydantic import BaseModel, Field, ValidationError, field_validator

from coldswap.errors import ArgumentError
from coldswap.filters import PathFilter

logger = logging.getLogger(__name__)

DEFAULT_ROOTS: Final = ("public", "config", "target/classes")
DEFAULT_INCLUDES: Final = "**/*.class,**/*.conf,**/*.properties"
DEFAULT_EXCLUDES: Final = ""

OPTION_KEYS: Final = ("includes", "excludes")


class LauncherConfig(BaseModel):
    """Everything needed to wire a watcher to a LifecycleManager."""

    entry_point: str = Field(min_length=1)
    load_path: list[Path] = Field(default_factory=list)
    includes: str = DEFAULT_INCLUDES
    excludes: str = DEFAULT_EXCLUDES
    poll: bool = False

    @field_validator("entry_point")
    @classmethod
    def _strip_entry_point(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("entry point must not be blank")
        return value

    @property
    def roots(self) -> list[Path]:
        """Load path entries that are directories; these are watched."""
        return [p for p in self.load_path if p.is_dir()]

    def include_filter(self) -> PathFilter:
        return PathFilter(self.includes)

    def exclude_filter(self) -> PathFilter:
        return PathFilter(self.excludes)


def parse_option(token: str) -> tuple[str, str]:
    """Split a ``key=value`` token, validating the key.

    Raises:
        ArgumentError: If the token is malformed or the key is unknown.
    """
    key, sep, value = token.partition("=")
    if not sep or not key or not value:
        raise ArgumentError(token)
    key = key.strip().lower()
    if key not in OPTION_KEYS:
        raise ArgumentError(token)
    return key, value


def default_load_path(cwd: Path) -> list[Path]:
    """The default directories that exist under ``cwd``."""
    return [cwd / d for d in DEFAULT_ROOTS if (cwd / d).exists()]


def parse_launcher_args(
    entry_point: str,
    tokens: Sequence[str],
    cwd: Path | None = None,
    poll: bool = False,
) -> LauncherConfig:
    """Build a LauncherConfig from the tokens following the entry point.

    Args:
        entry_point: Fully qualified name of the application class.
        tokens: Remaining command line tokens.
        cwd: Base directory for relative paths (defaults to the process cwd).
        poll: Use a polling observer instead of native file events.

    Raises:
        ArgumentError: On the first token that is neither a path nor a known option.
    """
    base = cwd or Path.cwd()
    load_path: list[Path] = []
    options: dict[str, str] = {}

    for token in tokens:
        candidate = Path(token)
        if not candidate.is_absolute():
            candidate = base / candidate
        if candidate.exists():
            load_path.append(candidate)
            continue
        key, value = parse_option(token)
        options[key] = value

    if not load_path:
        load_path = default_load_path(base)
        logger.debug(f"No directories given, using defaults: {[str(p) for p in load_path]}")

    try:
        return LauncherConfig(entry_point=entry_point, load_path=load_path, poll=poll, **options)
    except ValidationError as e:
        raise ArgumentError(entry_point, "Invalid entry point") from e
