"""
Shared helpers.
"""
import logging
import sys

from rcaccess.core import config


_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger("rcaccess")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL.upper())
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Return a module logger under the application's logging hierarchy.

    Usage:
        log = get_logger(__name__)
        log.info("Granted access")
    """
    _configure_root()
    if not name.startswith("rcaccess"):
        name = f"rcaccess.{name}"
    return logging.getLogger(name)
