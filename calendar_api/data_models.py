"""
Data models representing calendar items (tasks, events, reminders, blocks)
and the local mirror rows that hold their iCalendar text.
"""

import copy
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional


class EventType(str, Enum):
    EVENT = "event"
    BLOCK = "block"
    REMINDER = "reminder"
    TASK = "task"


class EventStatus(str, Enum):
    BACK = "back"  # backlog
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


class ComponentKind(str, Enum):
    TASK = "task"    # VTODO, no start date
    DATED = "dated"  # VEVENT


@dataclass
class AlarmDuration:
    weeks: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    def to_timedelta(self) -> timedelta:
        return timedelta(
            weeks=self.weeks,
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
        )

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> "AlarmDuration":
        """Split an unsigned timedelta into weeks, days, hours, minutes and seconds."""
        total = int(abs(delta).total_seconds())
        days, rest = divmod(total, 86400)
        weeks, days = divmod(days, 7)
        hours, rest = divmod(rest, 3600)
        minutes, seconds = divmod(rest, 60)
        return cls(weeks=weeks, days=days, hours=hours, minutes=minutes, seconds=seconds)


@dataclass
class Alarm:
    duration: AlarmDuration
    is_negative: bool = True
    related: str = "START"


@dataclass
class CalendarItem:
    """A draft or stored record. ``type`` decides which fields are meaningful."""
    title: str
    original_text: str = ""
    type: EventType = EventType.TASK
    id: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    status: EventStatus = EventStatus.BACK
    importance: int = 0
    urgency: int = 0
    load: int = 0
    postponed: int = 0
    alarms: List[Alarm] = field(default_factory=list)
    recur: Optional[str] = None

    @property
    def is_block(self) -> bool:
        return self.type == EventType.BLOCK

    @property
    def has_status(self) -> bool:
        """Only tasks and reminders carry a status."""
        return self.type in (EventType.TASK, EventType.REMINDER)

    @property
    def has_ranking(self) -> bool:
        return self.type != EventType.BLOCK

    @property
    def is_done(self) -> bool:
        return self.has_status and self.status == EventStatus.DONE

    def copy(self) -> "CalendarItem":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["status"] = self.status.value
        data["date"] = self.date.isoformat() if self.date else None
        data["end_date"] = self.end_date.isoformat() if self.end_date else None
        return data


@dataclass
class ItemMeta:
    ical_type: str  # "vevent" or "vtodo"
    recurrence_id: Optional[datetime] = None

    @property
    def component_kind(self) -> ComponentKind:
        return ComponentKind.DATED if self.ical_type == "vevent" else ComponentKind.TASK


@dataclass
class DecodedItem:
    item: CalendarItem
    meta: ItemMeta


@dataclass
class CalendarObjectRecord:
    """One row of the local mirror: the raw iCalendar text plus denormalized fields."""
    id: str
    calendar_ref: str
    remote_url: str
    raw_text: str
    component_kind: ComponentKind
    etag: Optional[str] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    recur: Optional[str] = None
    postponed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["component_kind"] = self.component_kind.value
        data["date"] = self.date.isoformat() if self.date else None
        data["end_date"] = self.end_date.isoformat() if self.end_date else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarObjectRecord":
        values = dict(data)
        values["component_kind"] = ComponentKind(values["component_kind"])
        for key in ("date", "end_date"):
            if values.get(key):
                values[key] = datetime.fromisoformat(values[key])
        return cls(**values)


@dataclass(frozen=True)
class SyncToken:
    """Change markers of a remote collection, kept for a future incremental sync."""
    url: str
    ctag: Optional[str] = None
    sync_token: Optional[str] = None


IMPORTANCE_LABELS = ["Sub-Zero", "Very Low", "Low", None, "Mid", "High", "Very High"]
URGENCY_LABELS = [None, "Soon", "Next Up", "Why are you not doing it"]
LOAD_LABELS = [None, "Mid", "Hard", "Fat Rolling"]


def _label(labels: List[Optional[str]], index: int, suffix: Optional[str]) -> str:
    if index < 0 or index >= len(labels) or not labels[index]:
        return ""
    return f"{labels[index]} {suffix}" if suffix else labels[index]


def importance_label(importance: int = 0, suffix: Optional[str] = None) -> str:
    return _label(IMPORTANCE_LABELS, importance + 3, suffix)


def urgency_label(urgency: int = 0, suffix: Optional[str] = None) -> str:
    return _label(URGENCY_LABELS, urgency, suffix)


def load_label(load: int = 0, suffix: Optional[str] = None) -> str:
    return _label(LOAD_LABELS, load, suffix)
