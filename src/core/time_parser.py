"""Clock-time parsing and formatting — pure business logic.

Finds the first "7", "7am", "9:30 pm" style token in free text and turns it
into a 24-hour (hour, minute) pair.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"(\d{1,2})(:\d{2})?\s*(am|pm)?", re.IGNORECASE)


def parse_clock_time(text: str) -> tuple[int, int] | None:
    """Return (hour, minute) in 24h form for the first time token, or None.

    Minute defaults to 0. "12am" is midnight and "12pm" is noon. A first
    token that isn't a real clock time (e.g. "45" minutes) counts as no match.
    """
    match = _TIME_RE.search(text)
    if match is None:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)[1:]) if match.group(2) else 0
    meridiem = (match.group(3) or "").lower()

    if meridiem == "pm" and hour < 12:
        hour += 12
    if meridiem == "am" and hour == 12:
        hour = 0

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        logger.debug("Ignoring out-of-range time token %r", match.group(0))
        return None
    return hour, minute


def resolve_time(text: str, now: datetime) -> datetime:
    """Apply the first time token in `text` to `now`'s date.

    Falls back to `now` itself when the text carries no usable time.
    """
    parsed = parse_clock_time(text)
    if parsed is None:
        return now
    hour, minute = parsed
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)


def format_12h(value: datetime) -> str:
    """Render as 12-hour "HH:MM AM/PM", e.g. "02:00 PM"."""
    return value.strftime("%I:%M %p")
