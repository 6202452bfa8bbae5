"""Find the occurrence of a (possibly recurring) VEVENT inside a time window."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Union

import recurring_ical_events
from icalendar import Calendar

from .component_codec import (
    as_utc,
    decoded_datetime,
    component_from_text,
    decode_component,
    item_components,
)
from .data_models import DecodedItem, ItemMeta

# between() excludes events starting exactly at the stop instant
_INCLUSIVE_END = timedelta(seconds=1)


def _in_window(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def _expanded_starts(container: Calendar, start: datetime, end: datetime) -> List[datetime]:
    """Occurrence starts of the series, bounded by the window, in time order."""
    occurrences = recurring_ical_events.of(container).between(start, end + _INCLUSIVE_END)
    starts = [decoded_datetime(occurrence, "dtstart") for occurrence in occurrences]
    return sorted(s for s in starts if s is not None)


def resolve_occurrence(
    component: Union[str, bytes, Calendar],
    window_start: datetime,
    window_end: datetime,
) -> Optional[DecodedItem]:
    """Return the occurrence of *component* whose start lies in ``[window_start, window_end]``.

    Modified single occurrences (instances with a RECURRENCE-ID) win over the
    expanded series. For regular occurrences the master is returned with its
    dates moved to the occurrence; the duration is the master's.
    """
    container = component if isinstance(component, Calendar) else component_from_text(component)
    window_start, window_end = as_utc(window_start), as_utc(window_end)

    instances = [decode_component(c) for c in item_components(container, "vevent")]
    if not instances:
        return None

    for instance in instances:
        if instance.meta.recurrence_id is not None and _in_window(
            instance.item.date, window_start, window_end
        ):
            return instance

    master = next((i for i in instances if i.meta.recurrence_id is None), None)
    if master is None or master.item.date is None:
        return None

    if not master.item.recur:
        return master if _in_window(master.item.date, window_start, window_end) else None

    duration = (master.item.end_date or master.item.date) - master.item.date
    for start in _expanded_starts(container, window_start, window_end):
        if start < window_start:
            continue
        if start > window_end:
            return None
        item = master.item.copy()
        item.date = start
        item.end_date = start + duration
        return DecodedItem(item=item, meta=ItemMeta(ical_type="vevent", recurrence_id=start))
    return None
