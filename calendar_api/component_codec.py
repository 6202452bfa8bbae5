"""
Mapping between :class:`CalendarItem` and iCalendar components.

Items with a start date become a VEVENT, items without one a VTODO. Fields the
iCalendar standard has no place for travel in ``X-`` properties so any CalDAV
client keeps them intact.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Union

from icalendar import Alarm as VAlarm
from icalendar import Calendar, Event, Todo
from icalendar.cal import Component

from utils.logger import get_logger

from .data_models import (
    Alarm,
    AlarmDuration,
    CalendarItem,
    DecodedItem,
    EventStatus,
    EventType,
    ItemMeta,
)
from .rrule_utils import normalize_rrule, parse_rrule

log = get_logger(__name__)

PRODID = "-//textcal//textcal 1.0//EN"

VEVENT_PREFIX = "vevent-"
VTODO_PREFIX = "vtodo-"
KIND_PREFIXES = (VTODO_PREFIX, VEVENT_PREFIX)

DEFAULT_EVENT_DURATION = timedelta(minutes=15)
FALLBACK_EVENT_DURATION = timedelta(minutes=30)


class CustomProp:
    TYPE = "X-TYPE"
    TAG = "X-TAG"
    URGENCY = "X-URGENCY"
    LOAD = "X-LOAD"
    IMPORTANCE = "X-IMPORTANCE"
    ORIGINAL_TEXT = "X-ORIGINAL-TEXT"
    STATUS = "X-STATUS"
    POSTPONED = "X-POSTPONED"


@dataclass
class EncodedItem:
    id: str
    component: Calendar
    meta: ItemMeta

    def to_ical(self) -> str:
        return component_to_text(self.component)


def strip_kind_prefix(item_id: str) -> str:
    """Remove the ``vtodo-``/``vevent-`` markers so the id can be re-prefixed."""
    for prefix in KIND_PREFIXES:
        item_id = item_id.replace(prefix, "", 1)
    return item_id


def kind_from_id(item_id: str) -> Optional[str]:
    if item_id.startswith(VEVENT_PREFIX):
        return "vevent"
    if item_id.startswith(VTODO_PREFIX):
        return "vtodo"
    return None


def component_to_text(component: Component) -> str:
    return component.to_ical().decode("utf-8")


def component_from_text(text: Union[str, bytes]) -> Calendar:
    return Calendar.from_ical(text)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _escape_tag(tag: str) -> str:
    return tag.replace(":", "\\:")


def _unescape_tag(tag: str) -> str:
    return tag.replace("\\:", ":")


# --- encoding ---------------------------------------------------------------

def _new_container() -> Calendar:
    container = Calendar()
    container.add("prodid", PRODID)
    container.add("version", "2.0")
    return container


def _add_alarms(vevent: Event, alarms: List[Alarm]) -> None:
    for alarm in alarms:
        valarm = VAlarm()
        valarm.add("action", "DISPLAY")
        valarm.add("description", "Reminder")
        # Force the trigger before the start
        valarm.add("trigger", -alarm.duration.to_timedelta(), parameters={"RELATED": "START"})
        vevent.add_component(valarm)


def _build_vevent(item: CalendarItem, item_id: str) -> Event:
    vevent = Event()
    vevent.add("uid", item_id)
    vevent.add("dtstamp", datetime.now(timezone.utc))
    vevent.add("summary", item.title)
    if item.description:
        vevent.add("description", item.description)
    vevent.add("dtstart", as_utc(item.date))
    if item.end_date:
        vevent.add("dtend", as_utc(item.end_date))
    else:
        vevent.add("duration", DEFAULT_EVENT_DURATION)
    _add_alarms(vevent, item.alarms)
    if item.recur:
        vevent.add("rrule", parse_rrule(item.recur))
    return vevent


def _build_vtodo(item: CalendarItem, item_id: str) -> Todo:
    vtodo = Todo()
    vtodo.add("uid", item_id)
    vtodo.add("dtstamp", datetime.now(timezone.utc))
    vtodo.add("summary", item.title)
    if item.description:
        vtodo.add("description", item.description)
    if item.is_done:
        vtodo.add("completed", datetime.now(timezone.utc))
    return vtodo


def _add_custom_props(component: Component, item: CalendarItem) -> None:
    component.add(CustomProp.ORIGINAL_TEXT, item.original_text or "")
    component.add(CustomProp.TYPE, (item.type or EventType.EVENT).value)
    component.add(CustomProp.POSTPONED, str(item.postponed or 0))

    if item.tags:
        component.add("categories", [_escape_tag(t) for t in item.tags])
        # Older clients only read the flat list
        component.add(CustomProp.TAG, ",".join(item.tags))

    if not item.is_block:
        component.add(CustomProp.URGENCY, str(item.urgency or 0))
        component.add(CustomProp.LOAD, str(item.load or 0))
        component.add(CustomProp.IMPORTANCE, str(item.importance or 0))

    if item.has_status:
        component.add(CustomProp.STATUS, (item.status or EventStatus.TODO).value)


def encode_item(
    item: CalendarItem,
    existing_id: Optional[str] = None,
    container: Optional[Calendar] = None,
) -> EncodedItem:
    """Build the iCalendar container for *item*.

    The returned id carries the kind prefix of the new component, so an item
    that gains or loses its date also gets a new public id.
    """
    base_id = strip_kind_prefix(existing_id) if existing_id else str(uuid.uuid4())
    container = container if container is not None else _new_container()

    if item.date:
        item_id = f"{VEVENT_PREFIX}{base_id}"
        meta = ItemMeta(ical_type="vevent")
        component = _build_vevent(item, item_id)
    else:
        item_id = f"{VTODO_PREFIX}{base_id}"
        meta = ItemMeta(ical_type="vtodo")
        component = _build_vtodo(item, item_id)

    _add_custom_props(component, item)
    container.add_component(component)
    return EncodedItem(id=item_id, component=container, meta=meta)


# --- decoding ---------------------------------------------------------------

def _text(component: Component, name: str, default: Optional[str] = None) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return default
    if isinstance(value, list):
        value = value[0]
    return str(value)


def _int(component: Component, name: str) -> int:
    try:
        return int(_text(component, name, "0"))
    except ValueError:
        return 0


def decoded_datetime(component: Component, name: str) -> Optional[datetime]:
    if component.get(name) is None:
        return None
    value = component.decoded(name)
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return None


def _enum(enum_cls, raw: Optional[str], default):
    try:
        return enum_cls(raw.lower()) if raw else default
    except ValueError:
        log.debug("Unknown %s value %r, using %s", enum_cls.__name__, raw, default.value)
        return default


def parse_tags(component: Component) -> List[str]:
    categories = component.get("categories")
    if categories is not None:
        entries = categories if isinstance(categories, list) else [categories]
        tags = [_unescape_tag(str(cat)) for entry in entries for cat in entry.cats]
        if tags:
            return tags

    flat = (_text(component, CustomProp.TAG) or "").strip()
    return flat.split(",") if flat else []


def _decode_alarms(vevent: Component) -> List[Alarm]:
    alarms = []
    for valarm in vevent.walk("VALARM"):
        # Only display alarms, no email
        if str(valarm.get("action", "")).upper() != "DISPLAY" or valarm.get("trigger") is None:
            continue
        trigger = valarm.decoded("trigger")
        if not isinstance(trigger, timedelta):
            # absolute triggers have no place in the duration model
            continue
        alarms.append(
            Alarm(
                duration=AlarmDuration.from_timedelta(trigger),
                is_negative=trigger <= timedelta(0),
                related="START",
            )
        )
    return alarms


def _decode_common(component: Component) -> CalendarItem:
    return CalendarItem(
        id=_text(component, "uid"),
        title=_text(component, "summary", ""),
        description=_text(component, "description"),
        original_text=_text(component, CustomProp.ORIGINAL_TEXT, ""),
        type=_enum(EventType, _text(component, CustomProp.TYPE), EventType.TASK),
        status=_enum(EventStatus, _text(component, CustomProp.STATUS), EventStatus.TODO),
        tags=parse_tags(component),
        postponed=_int(component, CustomProp.POSTPONED),
        urgency=_int(component, CustomProp.URGENCY),
        load=_int(component, CustomProp.LOAD),
        importance=_int(component, CustomProp.IMPORTANCE),
    )


def _decode_vevent(vevent: Component) -> DecodedItem:
    item = _decode_common(vevent)
    item.date = decoded_datetime(vevent, "dtstart")
    item.end_date = decoded_datetime(vevent, "dtend")
    if item.end_date is None and item.date is not None:
        if vevent.get("duration") is not None:
            item.end_date = item.date + vevent.decoded("duration")
        else:
            item.end_date = item.date + FALLBACK_EVENT_DURATION
    rrule = vevent.get("rrule")
    if isinstance(rrule, list):
        rrule = rrule[0]
    if rrule is not None:
        item.recur = normalize_rrule(rrule.to_ical().decode("utf-8"))
    item.alarms = _decode_alarms(vevent)
    meta = ItemMeta(ical_type="vevent", recurrence_id=decoded_datetime(vevent, "recurrence-id"))
    return DecodedItem(item=item, meta=meta)


def _decode_vtodo(vtodo: Component) -> DecodedItem:
    return DecodedItem(item=_decode_common(vtodo), meta=ItemMeta(ical_type="vtodo"))


def decode_component(component: Component) -> DecodedItem:
    """Decode a single VEVENT or VTODO."""
    if component.name == "VEVENT":
        return _decode_vevent(component)
    if component.name == "VTODO":
        return _decode_vtodo(component)
    raise ValueError(f"Unsupported component {component.name!r}")


def item_components(container: Calendar, ical_type: Optional[str] = None) -> List[Component]:
    names = ("VEVENT", "VTODO") if ical_type is None else (ical_type.upper(),)
    return [c for c in container.subcomponents if c.name in names]


def decode_calendar(data: Union[str, bytes, Calendar], ical_type: Optional[str] = None) -> DecodedItem:
    """Decode the first VEVENT/VTODO of a container (or of its text)."""
    container = data if isinstance(data, Calendar) else component_from_text(data)
    components = item_components(container, ical_type)
    if not components:
        raise ValueError("Calendar object holds no VEVENT or VTODO")
    return decode_component(components[0])
