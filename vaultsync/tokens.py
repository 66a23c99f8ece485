"""Sync token issuance.

A sync token is an opaque cache-freshness hint handed to clients after a
sync. It is derived from the owner and the sync timestamp only; the server
never validates a token a client echoes back.

Format: ``st1.<owner digest>.<epoch microseconds as 16 hex digits>``. The
fixed-width time field makes tokens for the same owner sort by time.
"""

import hashlib
from datetime import datetime, timezone
from typing import Optional

from .types import ensure_utc

TOKEN_PREFIX = "st1"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _owner_digest(owner: str) -> str:
    return hashlib.sha256(owner.encode("utf-8")).hexdigest()[:16]


def _epoch_micros(timestamp: datetime) -> int:
    delta = ensure_utc(timestamp) - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def issue_token(owner: str, timestamp: datetime) -> str:
    """Derive the sync token for ``owner`` at ``timestamp``."""
    return f"{TOKEN_PREFIX}.{_owner_digest(owner)}.{_epoch_micros(timestamp):016x}"


def token_timestamp(token: Optional[str]) -> Optional[datetime]:
    """Recover the timestamp from a token, or None if it is not one of ours."""
    if not token:
        return None
    parts = token.split(".")
    if len(parts) != 3 or parts[0] != TOKEN_PREFIX or len(parts[2]) != 16:
        return None
    try:
        micros = int(parts[2], 16)
    except ValueError:
        return None
    return datetime.fromtimestamp(micros // 1_000_000, tz=timezone.utc).replace(
        microsecond=micros % 1_000_000
    )


def token_belongs_to(token: Optional[str], owner: str) -> bool:
    """Check whether a token was issued for ``owner``."""
    if token_timestamp(token) is None:
        return False
    return token.split(".")[1] == _owner_digest(owner)
