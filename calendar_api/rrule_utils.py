"""Helpers around RRULE strings: normalization and validation."""
from __future__ import annotations

from datetime import datetime, timezone

from dateutil.rrule import rrulestr
from icalendar.prop import vRecur

RRULE_PREFIX = "RRULE:"
_VALIDATION_DTSTART = datetime(2000, 1, 1)


def strip_rrule_prefix(rule: str) -> str:
    rule = rule.strip()
    if rule.upper().startswith(RRULE_PREFIX):
        return rule[len(RRULE_PREFIX):]
    return rule


def parse_rrule(rule: str) -> vRecur:
    """Parse an RRULE value into an :class:`icalendar.prop.vRecur`.

    Raises ``ValueError`` for anything that is not a usable rule.
    """
    body = strip_rrule_prefix(rule)
    if not body:
        raise ValueError("Bad RRule format: empty rule")
    try:
        recur = vRecur.from_ical(body)
    except ValueError as exc:
        raise ValueError(f"Bad RRule format: {rule!r}") from exc
    if "FREQ" not in recur:
        raise ValueError(f"Bad RRule format: {rule!r} has no FREQ")
    return recur


def normalize_rrule(rule: str) -> str:
    """Return the canonical ``FREQ=...;...`` form of *rule* (no ``RRULE:`` prefix)."""
    return parse_rrule(rule).to_ical().decode("utf-8")


def is_valid_rrule(rule: str) -> bool:
    """True when *rule* parses and dateutil can expand it."""
    try:
        body = strip_rrule_prefix(rule)
        parse_rrule(body)
        rrulestr(body, dtstart=_VALIDATION_DTSTART, ignoretz=True)
    except (ValueError, TypeError):
        return False
    return True


def add_until_date(rule: str, until: datetime) -> str:
    """Bound *rule* at *until*, replacing any COUNT; returns the normalized rule."""
    recur = parse_rrule(rule)
    recur.pop("COUNT", None)
    if until.tzinfo is not None:
        until = until.astimezone(timezone.utc)
    recur["UNTIL"] = [until]
    return recur.to_ical().decode("utf-8")
