"""
Free-text entry parser.

An entry like ``"Meeting (tomorrow 12:30-14:30 | every week) #work @event !!"``
is turned into a :class:`CalendarItem`, and :func:`unparse_entry_text` renders
an item back into the same notation.

Markers:
    #tag            tags
    @type           event, block, reminder, task (default task)
    %status         back, todo, doing, done (default back)
    $ $$ $$$        load
    ^ ^^ ^^^        urgency
    ! !! !!!        importance, ? ?? ??? for negative importance
    *P1DT2H         alarm, always before the start
    (date | recur)  natural language date range and recurrence
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, List, Optional

from calendar_api.data_models import Alarm, CalendarItem, EventStatus, EventType
from calendar_api.errors import MalformedDurationError
from utils.logger import get_logger

from .alarm_duration import alarm_from_string, alarm_to_token
from .date_resolver import DateResolver, anchor_for_offset, resolve_date_text, tz_from_offset
from .recurrence_text import rrule_to_text, text_to_rrule

log = get_logger(__name__)

RecurrenceResolver = Callable[[str], str]

TYPE_RE = re.compile(r"@(?P<match>" + "|".join(t.value for t in EventType) + r")(?: |$)")
STATUS_RE = re.compile(r"%(?P<match>" + "|".join(s.value for s in EventStatus) + r")(?: |$)")
TAG_RE = re.compile(r"(?: |^)?#(?P<match>(?::?bg:|c:)?:?[a-z0-9]+)(?: |$)")
ALARM_RE = re.compile(r"(?: |^)?\*(?P<match>[A-Z0-9]+)(?: |$)")
LOAD_RE = re.compile(r"(?: |^)(?P<match>\${1,3})(?: |$)")
URGENCY_RE = re.compile(r"(?: |^)(?P<match>\^{1,3})(?: |$)")
POSITIVE_IMPORTANCE_RE = re.compile(r"(?: |^)(?P<match>!{1,3})(?: |$)")
NEGATIVE_IMPORTANCE_RE = re.compile(r"(?: |^)(?P<match>\?{1,3})(?: |$)")
DATE_RE = re.compile(r"(?:^| )\((?P<match>.*)\)(?: |$)")


def _strip_once(pattern: re.Pattern, title: str):
    """Remove the first match of *pattern*; return (title, matched group or None)."""
    match = pattern.search(title)
    if not match:
        return title, None
    return title[: match.start()] + " " + title[match.end():], match.group("match")


def _strip_all(pattern: re.Pattern, title: str):
    found: List[str] = []
    match = pattern.search(title)
    while match:
        found.append(match.group("match"))
        title = title[: match.start()] + " " + title[match.end():]
        match = pattern.search(title)
    return title, found


def _parse_alarms(tokens: List[str]) -> List[Alarm]:
    alarms = []
    for token in tokens:
        try:
            # Forced negative: alarms always fire before the start
            alarms.append(alarm_from_string(f"-{token}"))
        except MalformedDurationError as exc:
            log.debug("Dropping alarm token %r: %s", token, exc)
    return alarms


def parse_entry_text(
    text: str,
    tz_offset_minutes: Optional[int] = None,
    *,
    date_resolver: Optional[DateResolver] = None,
    recurrence_resolver: Optional[RecurrenceResolver] = None,
    now: Optional[datetime] = None,
) -> CalendarItem:
    """Parse one line of entry text into a draft :class:`CalendarItem`."""
    date_resolver = date_resolver or resolve_date_text
    recurrence_resolver = recurrence_resolver or text_to_rrule

    title = text
    item = CalendarItem(title="", original_text=text)

    title, tags = _strip_all(TAG_RE, title)
    item.tags = list(dict.fromkeys(tags))

    title, type_match = _strip_once(TYPE_RE, title)
    if type_match:
        item.type = EventType(type_match)

    title, status_match = _strip_once(STATUS_RE, title)
    if status_match:
        item.status = EventStatus(status_match)

    title, load_match = _strip_once(LOAD_RE, title)
    if load_match:
        item.load = len(load_match)

    title, urgency_match = _strip_once(URGENCY_RE, title)
    if urgency_match:
        item.urgency = len(urgency_match)

    title, negative_match = _strip_once(NEGATIVE_IMPORTANCE_RE, title)
    if negative_match:
        item.importance = -len(negative_match)
    title, positive_match = _strip_once(POSITIVE_IMPORTANCE_RE, title)
    if positive_match:
        item.importance = len(positive_match)

    title, alarm_tokens = _strip_all(ALARM_RE, title)
    item.alarms = _parse_alarms(alarm_tokens)

    title, date_clause = _strip_once(DATE_RE, title)
    if date_clause:
        date_text, _, recur_text = date_clause.partition("|")
        anchor = anchor_for_offset(tz_offset_minutes, now)
        resolved = date_resolver(date_text.strip(), anchor) if date_text.strip() else None
        if resolved:
            item.date = resolved.start
            item.end_date = resolved.end
        if recur_text.strip():
            try:
                item.recur = recurrence_resolver(recur_text.strip())
            except ValueError as exc:
                log.debug("Ignoring recurrence %r: %s", recur_text, exc)

    item.title = " ".join(title.split())
    return item


def _format_date(value: datetime, tz_offset_minutes: Optional[int]) -> datetime:
    return value.astimezone(tz_from_offset(tz_offset_minutes)) if value.tzinfo else value


def unparse_entry_text(item: CalendarItem, tz_offset_minutes: Optional[int] = None) -> str:
    """Render *item* back into entry text understood by :func:`parse_entry_text`."""
    text = f"{item.title} @{item.type.value}"

    if item.has_status:
        text += f" %{item.status.value}"

    if item.date:
        start = _format_date(item.date, tz_offset_minutes)
        text += f" ({start:%b %d %Y %H:%M}"
        if item.end_date:
            end = _format_date(item.end_date, tz_offset_minutes)
            end_format = "%H:%M" if end.date() == start.date() else "%b %d %Y %H:%M"
            text += f" until {end.strftime(end_format)}"
        if item.recur:
            text += f" | {rrule_to_text(item.recur)}"
        text += ")"

    for alarm in item.alarms:
        text += f" {alarm_to_token(alarm)}"

    for tag in item.tags:
        text += f" #{tag}"

    if item.is_block:
        return text

    if item.importance:
        symbol = "!" if item.importance > 0 else "?"
        text += " " + symbol * abs(item.importance)
    if item.load > 0:
        text += " " + "$" * item.load
    if item.urgency > 0:
        text += " " + "^" * item.urgency
    return text
