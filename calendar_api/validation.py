"""Variant-specific validation of calendar items.

Every item shares one shape (:class:`CalendarItem`); the rules that apply
depend on its ``type``:

* block    - start and end required, no status, no ranking
* event    - start and end required, no status
* reminder - start required, status and ranking
* task     - dates optional, status and ranking
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .data_models import CalendarItem, EventStatus, EventType
from .errors import FieldError, ValidationError
from .rrule_utils import is_valid_rrule

TYPE_PATTERN = "^(" + "|".join(t.value for t in EventType) + ")$"
STATUS_PATTERN = "^(" + "|".join(s.value for s in EventStatus) + ")$"

# pydantic error type -> rule name reported to callers
_RULE_NAMES = {
    "missing": "required",
    "string_too_short": "min-length",
    "greater_than_equal": "min",
    "less_than_equal": "max",
    "string_pattern_mismatch": "pattern",
    "recur": "recur",
}


class AlarmDurationSchema(BaseModel):
    weeks: int = Field(0, ge=0)
    days: int = Field(0, ge=0)
    hours: int = Field(0, ge=0)
    minutes: int = Field(0, ge=0)
    seconds: int = Field(0, ge=0)


class AlarmSchema(BaseModel):
    related: str = Field(pattern="^START$")
    is_negative: bool
    duration: AlarmDurationSchema


class BaseItemSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    original_text: str
    title: str = Field(min_length=3)
    type: str = Field(pattern=TYPE_PATTERN)
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    tags: List[str]
    postponed: int
    recur: Optional[str] = None
    alarms: List[AlarmSchema]

    @field_validator("recur")
    @classmethod
    def recur_is_rrule(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_rrule(value):
            raise PydanticCustomError("recur", "{value} is not a valid RRule", {"value": value})
        return value


class RankedItemSchema(BaseItemSchema):
    importance: int = Field(ge=-3, le=3)
    urgency: int = Field(ge=0, le=3)
    load: int = Field(ge=0, le=3)


class StatusItemSchema(RankedItemSchema):
    status: str = Field(pattern=STATUS_PATTERN)


class BlockSchema(BaseItemSchema):
    date: datetime
    end_date: datetime


class EventSchema(RankedItemSchema):
    date: datetime
    end_date: datetime


class ReminderSchema(StatusItemSchema):
    date: datetime


class TaskSchema(StatusItemSchema):
    pass


SCHEMAS: Dict[str, Type[BaseItemSchema]] = {
    EventType.BLOCK.value: BlockSchema,
    EventType.EVENT.value: EventSchema,
    EventType.REMINDER.value: ReminderSchema,
    EventType.TASK.value: TaskSchema,
}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _as_input(item: CalendarItem) -> Dict[str, Any]:
    """Item fields as schema input; ``None`` values are left out so they count as missing."""
    data = {
        "original_text": item.original_text,
        "title": item.title,
        "type": _plain(item.type),
        "date": item.date,
        "end_date": item.end_date,
        "description": item.description,
        "tags": item.tags,
        "postponed": item.postponed,
        "recur": item.recur,
        "alarms": [
            {
                "related": a.related,
                "is_negative": a.is_negative,
                "duration": vars(a.duration),
            }
            for a in item.alarms
        ],
        "importance": item.importance,
        "urgency": item.urgency,
        "load": item.load,
        "status": _plain(item.status),
    }
    return {key: value for key, value in data.items() if value is not None}


def _field_errors(exc: PydanticValidationError) -> List[FieldError]:
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "item"
        rule = _RULE_NAMES.get(err["type"], "type")
        errors.append(FieldError(field=field, rule=rule, message=err["msg"]))
    return errors


def validate_item(item: CalendarItem) -> CalendarItem:
    """Check *item* against the rules of its type.

    Returns the item unchanged when it is valid, otherwise raises
    :class:`ValidationError` listing every violated rule.
    """
    schema = SCHEMAS.get(_plain(item.type), TaskSchema)
    try:
        schema.model_validate(_as_input(item))
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc)) from None
    return item
