"""
Runtime configuration read from the environment.
"""

import logging
import os

SETTINGS = {
    "log_level": os.getenv("STACKPLAN_LOG_LEVEL", "WARNING"),
    "apply_timeout": os.getenv("STACKPLAN_APPLY_TIMEOUT"),
    "max_workers": os.getenv("STACKPLAN_MAX_WORKERS", "4"),
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_apply_timeout():
    """Per-callback timeout in seconds, or None when unset."""
    value = SETTINGS["apply_timeout"]
    if value in (None, ""):
        return None
    timeout = float(value)
    return timeout if timeout > 0 else None


def get_max_workers() -> int:
    return max(1, int(SETTINGS["max_workers"]))


def configure_logging(level=None):
    """Configure root logging once for CLI and API entry points."""
    level = level or SETTINGS["log_level"]
    logging.basicConfig(level=str(level).upper(), format=LOG_FORMAT)
