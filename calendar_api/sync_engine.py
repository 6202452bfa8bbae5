"""
Synchronization engine: local mirror CRUD plus best-effort remote push-back.

Writes land in the mirror synchronously and are pushed to the remote calendar
on a background thread pool; push failures are logged and never reach the
caller. Reads are served from the mirror only.
"""
from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional, Set, Union

from utils.config import CalendarInfo
from utils.logger import get_logger

from .caldav_client import RemoteCalendar, RemoteCollection, RemoteObject
from .component_codec import (
    EncodedItem,
    as_utc,
    component_from_text,
    decode_component,
    encode_item,
    item_components,
    kind_from_id,
    strip_kind_prefix,
    VEVENT_PREFIX,
    VTODO_PREFIX,
)
from .data_models import (
    CalendarItem,
    CalendarObjectRecord,
    ComponentKind,
    DecodedItem,
    EventStatus,
    SyncToken,
)
from .errors import NotFoundError, RemoteUnavailableError
from .mirror_store import MirrorStore
from .recurrence import resolve_occurrence
from .validation import validate_item

log = get_logger(__name__)

_KIND_PREFIX = {"vevent": VEVENT_PREFIX, "vtodo": VTODO_PREFIX}


def _ical_kind(kind: ComponentKind) -> str:
    return "vevent" if kind == ComponentKind.DATED else "vtodo"


def _day_window(day: Union[date, datetime], tz_offset_minutes: Optional[int]):
    if isinstance(day, datetime):
        day = day.date()
    start = datetime.combine(day, time.min, tzinfo=timezone(-timedelta(minutes=tz_offset_minutes or 0)))
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def _decode_record(record: CalendarObjectRecord) -> DecodedItem:
    """Decode the master component of a mirror row, public id attached."""
    components = item_components(component_from_text(record.raw_text), _ical_kind(record.component_kind))
    if not components:
        raise NotFoundError(f"Mirror row {record.id} holds no {_ical_kind(record.component_kind)}")
    decoded = [decode_component(c) for c in components]
    master = next((d for d in decoded if d.meta.recurrence_id is None), decoded[0])
    master.item.id = record.id
    return master


class SyncEngine:
    """Keeps one calendar's mirror rows and its remote collection in step."""

    def __init__(
        self,
        calendar_info: CalendarInfo,
        remote: RemoteCalendar,
        mirror: MirrorStore,
        *,
        executor: Optional[Executor] = None,
    ):
        self.calendar_info = calendar_info
        self.remote = remote
        self.mirror = mirror
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="textcal-push")
        self._collection: Optional[RemoteCollection] = None
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    @property
    def calendar_ref(self) -> str:
        return self.calendar_info.ref

    # --- remote collection --------------------------------------------------

    def check(self, calendar_name: Optional[str] = None) -> RemoteCollection:
        """Log in and look up the named collection; any failure is fatal."""
        name = calendar_name or self.calendar_info.calendar
        try:
            self.remote.login()
            collection = self.remote.get_calendar(name)
        except NotFoundError as e:
            raise RemoteUnavailableError(f"Calendar {name!r} is not available: {e}") from e
        self._collection = collection
        log.info("Connected to calendar %s (%s)", collection.name, collection.url)
        return collection

    def _require_collection(self) -> RemoteCollection:
        if self._collection is None:
            self.check()
        return self._collection

    # --- background push ----------------------------------------------------

    def _spawn(self, description: str, fn: Callable, *args) -> Future:
        future = self._executor.submit(self._run_push, description, fn, *args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run_push(description: str, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception:
            log.exception("Remote %s failed", description)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for outstanding pushes; True when none is left running."""
        with self._lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def _store_etag(self, record: CalendarObjectRecord) -> None:
        etag = self.remote.fetch_etag(record.remote_url)
        self.mirror.update_many({"id": record.id, "calendar_ref": record.calendar_ref}, {"etag": etag})
        log.debug("Stored etag %s for %s", etag, record.id)

    def _push_create(self, collection: RemoteCollection, record: CalendarObjectRecord) -> None:
        self.remote.create_object(collection, record.remote_url, record.raw_text, _ical_kind(record.component_kind))
        self._store_etag(record)

    def _push_update(self, collection: RemoteCollection, record: CalendarObjectRecord) -> None:
        self.remote.update_object(collection, record.remote_url, record.raw_text, _ical_kind(record.component_kind))
        self._store_etag(record)

    # --- mirror rows --------------------------------------------------------

    def _find_record(self, item_id: str) -> CalendarObjectRecord:
        if kind_from_id(item_id) is None:
            raise NotFoundError(f"Event id {item_id!r} carries no kind prefix")
        record = self.mirror.find_first(id=item_id, calendar_ref=self.calendar_ref)
        if record is None:
            raise NotFoundError(f"Event {item_id} not found in {self.calendar_ref}")
        return record

    def _record_for(self, encoded: EncodedItem, item: CalendarItem, remote_url: str) -> CalendarObjectRecord:
        return CalendarObjectRecord(
            id=encoded.id,
            calendar_ref=self.calendar_ref,
            remote_url=remote_url,
            raw_text=encoded.to_ical(),
            component_kind=encoded.meta.component_kind,
            date=as_utc(item.date) if item.date else None,
            end_date=as_utc(item.end_date) if item.end_date else None,
            recur=item.recur if item.date else None,
            postponed=item.postponed,
        )

    def _insert(self, item: CalendarItem, encoded: EncodedItem) -> str:
        collection = self._require_collection()
        record = self._record_for(encoded, item, self.remote.object_url(collection, encoded.id))
        self.mirror.create(record)
        self._spawn(f"create of {record.id}", self._push_create, collection, record)
        log.debug("Created %s", record.id)
        return record.id

    # --- sync ---------------------------------------------------------------

    def _record_from_remote(self, obj: RemoteObject, kind: str) -> Optional[CalendarObjectRecord]:
        try:
            components = item_components(component_from_text(obj.data), kind)
        except ValueError as e:
            log.warning("Skipping unreadable object %s: %s", obj.url, e)
            return None
        decoded = [decode_component(c) for c in components]
        master = next((d for d in decoded if d.meta.recurrence_id is None), None)
        if master is None or not master.item.id:
            log.warning("Skipping object %s without a master %s", obj.url, kind)
            return None
        item = master.item
        return CalendarObjectRecord(
            id=_KIND_PREFIX[kind] + strip_kind_prefix(item.id),
            calendar_ref=self.calendar_ref,
            remote_url=obj.url,
            raw_text=obj.data,
            component_kind=master.meta.component_kind,
            etag=obj.etag,
            date=item.date,
            end_date=item.end_date,
            recur=item.recur,
            postponed=item.postponed,
        )

    def initial_sync(self, include_tasks: bool = False) -> SyncToken:
        """Replace this calendar's mirror rows with the remote contents.

        Without ``include_tasks`` only dated rows are replaced and task rows
        are left as they are. Incremental sync is not implemented; the returned
        token is kept for it.
        """
        collection = self._require_collection()
        kinds = ["vevent", "vtodo"] if include_tasks else ["vevent"]

        records: List[CalendarObjectRecord] = []
        for kind in kinds:
            for obj in self.remote.fetch_objects(collection, kind):
                record = self._record_from_remote(obj, kind)
                if record is not None:
                    records.append(record)

        if include_tasks:
            self.mirror.delete_many(calendar_ref=self.calendar_ref)
        else:
            self.mirror.delete_many(calendar_ref=self.calendar_ref, component_kind=ComponentKind.DATED)
        count = self.mirror.create_many(records)
        log.info("Synced %d objects from %s", count, collection.name)
        return SyncToken(url=collection.url, ctag=collection.ctag, sync_token=collection.sync_token)

    # --- writes -------------------------------------------------------------

    def create_event(self, draft: CalendarItem) -> str:
        item = validate_item(draft)
        return self._insert(item, encode_item(item))

    def edit_event(self, item_id: str, draft: CalendarItem) -> str:
        """Replace the stored item; returns the id, which changes with the component kind."""
        current = self._find_record(item_id)
        item = validate_item(draft)
        encoded = encode_item(item, existing_id=item_id)

        if encoded.meta.component_kind != current.component_kind:
            log.info("%s changes kind, recreating it as %s", item_id, encoded.id)
            self.delete_event(item_id)
            return self._insert(item, encoded)

        record = self._record_for(encoded, item, current.remote_url)
        self.mirror.update_many(
            {"id": item_id, "calendar_ref": self.calendar_ref},
            {
                "raw_text": record.raw_text,
                "date": record.date,
                "end_date": record.end_date,
                "recur": record.recur,
                "postponed": record.postponed,
            },
        )
        self._spawn(f"update of {item_id}", self._push_update, self._require_collection(), record)
        return item_id

    def update_status(self, item_id: str, status: Union[EventStatus, str]) -> str:
        item = self.get_event(item_id).item
        if not item.has_status:
            return item_id
        item.status = EventStatus(status)
        return self.edit_event(item_id, item)

    def update_date(
        self,
        item_id: str,
        start: datetime,
        end: Optional[datetime] = None,
        postponing: bool = False,
    ) -> str:
        """Move an item. Without *end* an existing duration is kept."""
        item = self.get_event(item_id).item
        if end is None and item.date and item.end_date:
            end = start + (item.end_date - item.date)
        item.date = start
        item.end_date = end
        if postponing:
            item.postponed += 1
        return self.edit_event(item_id, item)

    def remove_date(self, item_id: str) -> str:
        item = self.get_event(item_id).item
        item.date = None
        item.end_date = None
        item.recur = None
        return self.edit_event(item_id, item)

    def delete_event(self, item_id: str) -> CalendarItem:
        record = self._find_record(item_id)
        item = _decode_record(record).item
        self.mirror.delete_many(id=item_id, calendar_ref=self.calendar_ref)
        self._spawn(f"delete of {item_id}", self.remote.delete_object, record.remote_url)
        log.debug("Deleted %s", item_id)
        return item

    # --- reads --------------------------------------------------------------

    def get_event(self, item_id: str) -> DecodedItem:
        return _decode_record(self._find_record(item_id))

    def list_tasks(self, exclude_done: bool = False) -> List[CalendarItem]:
        rows = self.mirror.find_many(calendar_ref=self.calendar_ref, component_kind=ComponentKind.TASK)
        items = [_decode_record(r).item for r in rows]
        if exclude_done:
            items = [i for i in items if not i.is_done]
        return items

    def _events_in_window(self, calendar_ref: str, start: datetime, end: datetime) -> List[DecodedItem]:
        start, end = as_utc(start), as_utc(end)
        rows = self.mirror.find_many(calendar_ref=calendar_ref, component_kind=ComponentKind.DATED)
        found = []
        for row in rows:
            # The stored date of a series is its first occurrence only
            if not row.recur and (row.date is None or not start <= row.date <= end):
                continue
            occurrence = resolve_occurrence(row.raw_text, start, end)
            if occurrence is None:
                continue
            occurrence.item.id = row.id
            found.append(occurrence)
        return sorted(found, key=lambda d: d.item.date)

    def list_events(self, start: datetime, end: datetime) -> List[DecodedItem]:
        return self._events_in_window(self.calendar_ref, start, end)

    def list_day_events(self, day: Union[date, datetime], tz_offset_minutes: Optional[int] = None) -> List[DecodedItem]:
        start, end = _day_window(day, tz_offset_minutes)
        return self._events_in_window(self.calendar_ref, start, end)

    def list_external_day_events(
        self,
        day: Union[date, datetime],
        tz_offset_minutes: Optional[int],
        calendar_ref: str,
    ) -> List[DecodedItem]:
        """Events of another mirrored calendar, read-only."""
        start, end = _day_window(day, tz_offset_minutes)
        return self._events_in_window(calendar_ref, start, end)

    def shutdown(self, wait_for_pushes: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pushes)
