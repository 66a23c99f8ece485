"""Logging setup for the vault sync backend.

Everything goes through the standard library under the ``vaultsync``
namespace. Payloads, passwords and tokens are never logged.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str = "INFO", debug: bool = False) -> None:
    """Attach a stderr handler to the ``vaultsync`` logger once."""
    global _configured
    root = logging.getLogger("vaultsync")
    root.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger; names outside the ``vaultsync`` tree are nested under it."""
    if name != "vaultsync" and not name.startswith("vaultsync."):
        name = f"vaultsync.{name}"
    return logging.getLogger(name)


_sync_logger = get_logger("vaultsync.sync")
_auth_logger = get_logger("vaultsync.auth")


def log_sync_operation(
    log_prefix: str,
    operation: str,
    item_count: int,
    success: bool,
    error: str | None = None,
) -> None:
    """One line per sync call outcome."""
    if success:
        _sync_logger.info(f"{operation.upper()} | {log_prefix} | {item_count} items | ok")
    else:
        _sync_logger.warning(
            f"{operation.upper()} | {log_prefix} | {item_count} items | failed: {error}"
        )


def log_auth_event(event: str, username: str, success: bool, reason: str | None = None) -> None:
    """Record a register/login attempt."""
    if success:
        _auth_logger.info(f"AUTH {event} | {username} | ok")
    else:
        _auth_logger.warning(f"AUTH {event} | {username} | failed: {reason}")
