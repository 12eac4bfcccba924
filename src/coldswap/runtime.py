"""Host interpreter capability check.

Reported in the startup banner only. Reloads are always full cold swaps,
whatever the check says.
"""

import importlib.util
import logging
from functools import cache
from typing import Final

logger = logging.getLogger(__name__)

# Tools able to patch live functions and classes in place
LIVE_PATCHERS: Final = ("jurigged", "reloadium")

LIVE_PATCHER_URL: Final = "https://github.com/breuleux/jurigged"


@cache
def live_redefinition_supported() -> bool:
    """Check whether unlimited live code redefinition is available in this interpreter."""
    for name in LIVE_PATCHERS:
        try:
            if importlib.util.find_spec(name) is not None:
                logger.debug(f"Live patcher available: {name}")
                return True
        except (ImportError, ValueError) as e:
            logger.debug("Failed to check %s: %s: %s", name, type(e).__name__, e)
    return False


def describe_live_redefinition() -> str:
    """Banner text for the check result."""
    if live_redefinition_supported():
        return "yes"
    return f"no (see {LIVE_PATCHER_URL})"
