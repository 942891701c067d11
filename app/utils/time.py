from __future__ import annotations

from datetime import datetime, timezone


def utc_now_naive() -> datetime:
    """Current UTC time without tzinfo, the form stored in story and comment rows."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
