"""Parsing and rendering of the ``*P1DT2H`` style alarm tokens."""
from __future__ import annotations

import re
from typing import Dict

from calendar_api.data_models import Alarm, AlarmDuration
from calendar_api.errors import MalformedDurationError

DURATION_LETTERS = re.compile(r"[PDWHMTS]")

_UNITS = {
    "D": "days",
    "W": "weeks",
    "H": "hours",
    "M": "minutes",
    "S": "seconds",
}


def _parse_chunk(letter: str, number: str, values: Dict[str, object]) -> int:
    """Store one ``<number><letter>`` chunk in *values*; return 1 if it counts."""
    if letter == "P":
        values["is_negative"] = number == "-"
        return 1

    unit = _UNITS.get(letter)
    if unit is None:
        # "T" only separates date and time parts
        return 0

    if not number:
        raise MalformedDurationError(f'invalid duration value: Missing number before "{letter}"')
    try:
        values[unit] = int(number, 10)
    except ValueError:
        raise MalformedDurationError(
            f'invalid duration value: Invalid number "{number}" before "{letter}"'
        ) from None
    return 1


def alarm_from_string(text: str) -> Alarm:
    """Parse an ISO-8601 like duration (``-P1W2D``, ``PT15M``) into an :class:`Alarm`.

    The period marker ``P`` plus at least one unit must be present.
    """
    rest = text
    values: Dict[str, object] = {}
    chunks = 0

    match = DURATION_LETTERS.search(rest)
    while match:
        letter = match.group(0)
        number = rest[: match.start()]
        rest = rest[match.end():]
        chunks += _parse_chunk(letter, number, values)
        match = DURATION_LETTERS.search(rest)

    if chunks < 2:
        raise MalformedDurationError(
            f'invalid duration value: Not enough duration components in "{text}"'
        )

    is_negative = bool(values.pop("is_negative", False))
    return Alarm(duration=AlarmDuration(**values), is_negative=is_negative, related="START")


def alarm_to_token(alarm: Alarm) -> str:
    """Render the unsigned duration of *alarm* as an entry-text token (``*P1DT2H``)."""
    duration = alarm.duration
    text = "*P"
    if duration.weeks:
        text += f"{duration.weeks}W"
    if duration.days:
        text += f"{duration.days}D"
    if duration.hours or duration.minutes or duration.seconds:
        text += "T"
        if duration.hours:
            text += f"{duration.hours}H"
        if duration.minutes:
            text += f"{duration.minutes}M"
        if duration.seconds:
            text += f"{duration.seconds}S"
    if text == "*P":
        text += "0D"
    return text
