"""Natural-language date resolution for the ``( ... )`` clause of an entry.

The resolver is a plain callable ``(text, anchor) -> DateRange | None`` so a
different implementation can be passed to the parser.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import dateparser


@dataclass
class DateRange:
    start: datetime
    end: Optional[datetime] = None


DateResolver = Callable[[str, datetime], Optional[DateRange]]

_RANGE_WORDS = re.compile(r"\s+(?:until|till|to)\s+", re.IGNORECASE)
_DASH_RANGE = re.compile(
    r"^(?P<start>.*\d(?:\s*[ap]m)?)\s*[-–]\s*"
    r"(?P<end>\d{1,2}(?::\d{2}(?:\s*[ap]m)?|\s*[ap]m))$",
    re.IGNORECASE,
)
_CLOCK_TIME = re.compile(
    r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>[ap]m)?$", re.IGNORECASE
)
_RELATIVE_WEEKDAY = re.compile(
    r"^(?:next|this)\s+(?P<weekday>mon|tue|wed|thu|fri|sat|sun)(?:day|s|sday|nesday|rs|rsday|urday)?\b"
    r"\s*(?:at\s+)?(?P<rest>.*)$",
    re.IGNORECASE,
)
_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def tz_from_offset(offset_minutes: Optional[int]) -> timezone:
    """Fixed-offset zone for a browser style offset (minutes to add to local time to get UTC)."""
    return timezone(-timedelta(minutes=offset_minutes or 0))


def anchor_for_offset(offset_minutes: Optional[int], now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(tz_from_offset(offset_minutes))


def split_range(text: str) -> Tuple[str, Optional[str]]:
    """Split ``"A until B"`` / ``"A - 14:30"`` into its two sides."""
    parts = _RANGE_WORDS.split(text.strip(), maxsplit=1)
    if len(parts) == 2:
        return parts[0], parts[1]
    match = _DASH_RANGE.match(text.strip())
    if match:
        return match.group("start"), match.group("end")
    return text.strip(), None


def _clock_time(text: str, day: datetime) -> Optional[datetime]:
    match = _CLOCK_TIME.match(text.strip())
    if not match:
        return None
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = (match.group("meridiem") or "").lower()
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return None
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _relative_weekday(text: str, base: datetime) -> Optional[datetime]:
    """``next friday 10am`` / ``this monday``: the weekday strictly after *base*.

    Without a time the middle of the day is used.
    """
    match = _RELATIVE_WEEKDAY.match(text.strip())
    if not match:
        return None
    target = _WEEKDAYS.index(match.group("weekday").lower())
    day = base + timedelta(days=(target - base.weekday() - 1) % 7 + 1)
    rest = match.group("rest").strip()
    if not rest:
        return day.replace(hour=12, minute=0, second=0, microsecond=0)
    midnight = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return _clock_time(rest, day) or _dateparser_side(rest, midnight)


def _parse_side(text: str, base: datetime) -> Optional[datetime]:
    return _relative_weekday(text, base) or _dateparser_side(text, base)


def _dateparser_side(text: str, base: datetime) -> Optional[datetime]:
    parsed = dateparser.parse(
        text,
        languages=["en"],
        settings={
            "RELATIVE_BASE": base.replace(tzinfo=None),
            "PREFER_DATES_FROM": "future",
        },
    )
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=base.tzinfo)
    return parsed.replace(second=0, microsecond=0)


def resolve_date_text(text: str, anchor: datetime) -> Optional[DateRange]:
    """Resolve *text* relative to *anchor*; ``None`` when nothing parses."""
    start_text, end_text = split_range(text)
    start = _parse_side(start_text, anchor)
    if start is None:
        return None

    end = None
    if end_text:
        end = _clock_time(end_text, start)
        if end is not None and end <= start:
            end += timedelta(days=1)
        if end is None:
            end = _parse_side(end_text, start)
    return DateRange(start=start, end=end)
