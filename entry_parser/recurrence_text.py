"""English recurrence phrases <-> RRULE strings.

Understands phrases like "every day", "every 2 weeks on monday, friday",
"every weekday", "every month on the 15th", "weekly for 4 times" and
"every week until october 20, 2026". Anything else can still be given as a
raw ``RRULE:``/``FREQ=`` string.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

import dateparser
from icalendar.prop import vRecur

from calendar_api.rrule_utils import normalize_rrule, parse_rrule

WEEKDAYS = {
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
    "SU": "Sunday",
}
_WEEKDAY_LOOKUP = {}
for _code, _name in WEEKDAYS.items():
    _WEEKDAY_LOOKUP[_name.lower()] = _code
    _WEEKDAY_LOOKUP[_name.lower()[:3]] = _code
    _WEEKDAY_LOOKUP[_name.lower() + "s"] = _code

UNITS = {
    "DAILY": "day",
    "WEEKLY": "week",
    "MONTHLY": "month",
    "YEARLY": "year",
}
_UNIT_LOOKUP = {unit: freq for freq, unit in UNITS.items()}
_ADVERBS = {"daily": "DAILY", "weekly": "WEEKLY", "monthly": "MONTHLY", "yearly": "YEARLY", "annually": "YEARLY"}
_TEXT_KEYS = {"FREQ", "INTERVAL", "BYDAY", "BYMONTHDAY", "COUNT", "UNTIL"}

_COUNT_RE = re.compile(r"\s+for\s+(\d+)\s+times?$")
_UNTIL_RE = re.compile(r"\s+until\s+(.+)$")
_EVERY_RE = re.compile(r"^(?:every|each)\s+(?:(\d+|other)\s+)?(day|week|month|year)s?$")
_ON_RE = re.compile(r"^(?P<head>.+?)\s+on\s+(?P<days>.+)$")
_MONTHDAY_RE = re.compile(r"^(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)?$")
_UNTIL_FORMATS = ("%B %d, %Y %H:%M UTC", "%B %d, %Y %H:%M", "%B %d, %Y")


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _split_list(text: str) -> List[str]:
    return [p for p in re.split(r"\s*,\s*|\s+and\s+|\s+or\s+", text.strip()) if p]


def _weekdays(text: str) -> Optional[List[str]]:
    names = _split_list(text)
    if names == ["weekday"] or names == ["weekdays"]:
        return ["MO", "TU", "WE", "TH", "FR"]
    codes = [_WEEKDAY_LOOKUP.get(name) for name in names]
    if not codes or None in codes:
        return None
    return codes


def _monthdays(text: str) -> Optional[List[int]]:
    days = []
    for part in _split_list(text):
        match = _MONTHDAY_RE.match(part)
        if not match or not 1 <= int(match.group(1)) <= 31:
            return None
        days.append(int(match.group(1)))
    return days or None


def _parse_until(text: str):
    for fmt in _UNTIL_FORMATS:
        try:
            parsed = datetime.strptime(text.strip(), fmt)
        except ValueError:
            continue
        if fmt.endswith("UTC"):
            return parsed.replace(tzinfo=timezone.utc)
        if "%H" not in fmt:
            return parsed.date()
        return parsed
    parsed = dateparser.parse(text, languages=["en"], settings={"PREFER_DATES_FROM": "future"})
    if parsed is None:
        raise ValueError(f"Could not parse {text!r} as an until date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_head(head: str, parts: Dict[str, list]) -> bool:
    if head in _ADVERBS:
        parts["FREQ"] = [_ADVERBS[head]]
        return True

    match = _EVERY_RE.match(head)
    if match:
        interval, unit = match.groups()
        parts["FREQ"] = [_UNIT_LOOKUP[unit]]
        if interval:
            parts["INTERVAL"] = [2 if interval == "other" else int(interval)]
        return True

    if head.startswith(("every ", "each ")):
        days = _weekdays(head.split(" ", 1)[1])
        if days:
            parts["FREQ"] = ["WEEKLY"]
            parts["BYDAY"] = days
            return True
    return False


def text_to_rrule(text: str) -> str:
    """Translate an English recurrence phrase into a normalized RRULE.

    Raises ``ValueError`` when the phrase is not understood.
    """
    phrase = " ".join(text.strip().split())
    if phrase.upper().startswith(("RRULE:", "FREQ=")):
        return normalize_rrule(phrase.upper())

    phrase = phrase.lower()
    parts: Dict[str, list] = {}

    until_match = _UNTIL_RE.search(phrase)
    if until_match:
        parts["UNTIL"] = [_parse_until(until_match.group(1))]
        phrase = phrase[: until_match.start()]

    count_match = _COUNT_RE.search(phrase)
    if count_match:
        parts["COUNT"] = [int(count_match.group(1))]
        phrase = phrase[: count_match.start()]

    on_match = _ON_RE.match(phrase)
    head = on_match.group("head") if on_match else phrase
    if not _parse_head(head, parts):
        raise ValueError(f"Could not parse {text!r} as recur rule")

    if on_match:
        days_text = on_match.group("days")
        weekdays = _weekdays(days_text)
        monthdays = None if weekdays else _monthdays(days_text)
        if weekdays:
            parts["BYDAY"] = weekdays
        elif monthdays:
            parts["BYMONTHDAY"] = monthdays
        else:
            raise ValueError(f"Could not parse {days_text!r} in recur rule {text!r}")

    return vRecur(parts).to_ical().decode("utf-8")


def _format_until(value) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).strftime("%B %d, %Y %H:%M UTC")
        return value.strftime("%B %d, %Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%B %d, %Y")
    return str(value)


def rrule_to_text(rule: str) -> str:
    """Render an RRULE as English; rules the phrase grammar cannot express stay raw."""
    recur = parse_rrule(rule)
    raw = "RRULE:" + recur.to_ical().decode("utf-8")

    freq = str(recur["FREQ"][0]).upper()
    keys = {key.upper() for key in recur.keys()}
    if freq not in UNITS or not keys <= _TEXT_KEYS:
        return raw
    weekdays = [str(day).upper() for day in recur.get("BYDAY", [])]
    if any(day not in WEEKDAYS for day in weekdays):
        return raw
    monthdays = [int(d) for d in recur.get("BYMONTHDAY", [])]
    if any(d < 1 for d in monthdays) or (weekdays and monthdays):
        return raw

    interval = int(recur.get("INTERVAL", [1])[0])
    unit = UNITS[freq]
    text = f"every {interval} {unit}s" if interval != 1 else f"every {unit}"
    if weekdays:
        text += " on " + ", ".join(WEEKDAYS[day] for day in weekdays)
    if monthdays:
        text += " on the " + ", ".join(_ordinal(d) for d in monthdays)
    if "COUNT" in recur:
        count = int(recur["COUNT"][0])
        text += f" for {count} time" if count == 1 else f" for {count} times"
    if "UNTIL" in recur:
        text += " until " + _format_until(recur["UNTIL"][0])
    return text
