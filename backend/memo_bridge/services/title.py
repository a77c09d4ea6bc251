"""
Memo Bridge Backend — Page Title Generator
===========================================

Titles look like `メモ_2025-01-15_1430`: the wall-clock instant shifted to
UTC+9 (JST), minute precision.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

TITLE_PREFIX = "メモ"

# JST has no daylight saving, so a fixed offset is exact
JST_OFFSET = timedelta(hours=9)


def generate_title(now: Optional[datetime] = None) -> str:
    """
    Build the page title for an instant (defaults to the current time).

    The host timezone is never consulted: naive datetimes are taken as UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    jst = now.astimezone(timezone.utc) + JST_OFFSET
    return f"{TITLE_PREFIX}_{jst:%Y-%m-%d_%H%M}"
