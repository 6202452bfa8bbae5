from datetime import datetime, timedelta, timezone

import pytest

from calendar_api.data_models import Alarm, AlarmDuration, CalendarItem, EventType
from calendar_api.errors import ValidationError
from calendar_api.validation import validate_item

START = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


def test_valid_task_passes_unchanged():
    item = CalendarItem(title="Water plants")
    assert validate_item(item) is item


def test_every_violation_is_reported():
    item = CalendarItem(title="ab", type=EventType.EVENT)
    with pytest.raises(ValidationError) as excinfo:
        validate_item(item)

    err = excinfo.value
    assert err.rules_for("title") == ["min-length"]
    assert err.rules_for("date") == ["required"]
    assert err.rules_for("end_date") == ["required"]


def test_reminder_needs_only_a_start():
    validate_item(CalendarItem(title="Call mom", type=EventType.REMINDER, date=START))
    with pytest.raises(ValidationError) as excinfo:
        validate_item(CalendarItem(title="Call mom", type=EventType.REMINDER))
    assert excinfo.value.rules_for("date") == ["required"]


def test_block_needs_both_dates():
    with pytest.raises(ValidationError) as excinfo:
        validate_item(CalendarItem(title="Deep work", type=EventType.BLOCK, date=START))
    assert excinfo.value.rules_for("end_date") == ["required"]
    validate_item(
        CalendarItem(title="Deep work", type=EventType.BLOCK, date=START, end_date=START + timedelta(hours=2))
    )


def test_ranking_bounds():
    item = CalendarItem(title="Too much", importance=4, urgency=-1, load=5)
    with pytest.raises(ValidationError) as excinfo:
        validate_item(item)
    err = excinfo.value
    assert err.rules_for("importance") == ["max"]
    assert err.rules_for("urgency") == ["min"]
    assert err.rules_for("load") == ["max"]


def test_block_ranking_is_not_checked():
    item = CalendarItem(
        title="Deep work",
        type=EventType.BLOCK,
        date=START,
        end_date=START + timedelta(hours=1),
        importance=9,
    )
    assert validate_item(item) is item


def test_bad_recurrence_rule():
    item = CalendarItem(title="Repeat", date=START, recur="FREQ=SOMETIMES")
    with pytest.raises(ValidationError) as excinfo:
        validate_item(item)
    assert excinfo.value.rules_for("recur") == ["recur"]


def test_alarm_relation_must_be_start():
    item = CalendarItem(title="Alarm", alarms=[Alarm(duration=AlarmDuration(minutes=5), related="END")])
    with pytest.raises(ValidationError) as excinfo:
        validate_item(item)
    assert excinfo.value.rules_for("alarms.0.related") == ["pattern"]
