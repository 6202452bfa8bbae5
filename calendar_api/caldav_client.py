"""Remote calendar collaborator.

:class:`RemoteCalendar` is the narrow interface the sync engine talks to;
:class:`CalDavRemote` implements it on top of the ``caldav`` library. Transport
and server failures surface as :class:`RemoteUnavailableError`, missing
collections and objects as :class:`NotFoundError`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

import caldav
from caldav.elements import dav
from caldav.lib import error as caldav_error

from utils.config import CalendarInfo
from utils.logger import get_logger

from .errors import NotFoundError, RemoteUnavailableError

log = get_logger(__name__)

# Network failures from the HTTP layer derive from OSError
_REMOTE_ERRORS = (caldav_error.DAVError, OSError)


@dataclass(frozen=True)
class RemoteCollection:
    name: str
    url: str
    ctag: Optional[str] = None
    sync_token: Optional[str] = None


@dataclass(frozen=True)
class RemoteObject:
    url: str
    data: str
    etag: Optional[str] = None


class RemoteCalendar(Protocol):
    def login(self) -> None: ...

    def list_calendars(self) -> List[RemoteCollection]: ...

    def get_calendar(self, name: str) -> RemoteCollection: ...

    def fetch_objects(self, calendar: RemoteCollection, kind: str) -> List[RemoteObject]: ...

    def create_object(self, calendar: RemoteCollection, url: str, data: str, kind: str) -> None: ...

    def update_object(self, calendar: RemoteCollection, url: str, data: str, kind: str) -> None: ...

    def delete_object(self, url: str) -> None: ...

    def multi_get(self, calendar: RemoteCollection, urls: List[str]) -> List[RemoteObject]: ...

    def fetch_etag(self, url: str) -> Optional[str]: ...

    def object_url(self, calendar: RemoteCollection, item_id: str) -> str: ...


def _object_class(kind: str):
    if kind == "vevent":
        return caldav.Event
    if kind == "vtodo":
        return caldav.Todo
    raise ValueError(f"Unsupported component kind {kind!r}")


class CalDavRemote:
    """:class:`RemoteCalendar` backed by a CalDAV server."""

    def __init__(self, info: CalendarInfo, client: Optional[caldav.DAVClient] = None):
        self.info = info
        self._client = client
        self._principal = None
        self._calendars: Dict[str, caldav.Calendar] = {}

    def _connect(self) -> caldav.DAVClient:
        if self._client is None:
            self._client = caldav.DAVClient(
                url=self.info.server_url,
                username=self.info.username,
                password=self.info.password,
            )
        return self._client

    def login(self) -> None:
        try:
            self._principal = self._connect().principal()
        except _REMOTE_ERRORS as e:
            log.error("CalDAV login to %s failed: %s", self.info.server_url, e)
            raise RemoteUnavailableError(f"Could not log in to {self.info.server_url}: {e}") from e

    def _require_principal(self):
        if self._principal is None:
            self.login()
        return self._principal

    def _describe(self, calendar: caldav.Calendar) -> RemoteCollection:
        url = str(calendar.url)
        self._calendars[url] = calendar
        try:
            sync_token = calendar.get_property(dav.SyncToken())
        except _REMOTE_ERRORS as e:
            log.debug("No sync token for %s: %s", url, e)
            sync_token = None
        return RemoteCollection(
            name=calendar.get_display_name() or url,
            url=url,
            sync_token=sync_token,
        )

    def list_calendars(self) -> List[RemoteCollection]:
        principal = self._require_principal()
        try:
            return [self._describe(c) for c in principal.calendars()]
        except _REMOTE_ERRORS as e:
            raise RemoteUnavailableError(f"Could not list calendars: {e}") from e

    def get_calendar(self, name: str) -> RemoteCollection:
        for collection in self.list_calendars():
            if collection.name == name:
                return collection
        raise NotFoundError(f"Calendar {name!r} not found on {self.info.server_url}")

    def _calendar(self, collection: RemoteCollection) -> caldav.Calendar:
        calendar = self._calendars.get(collection.url)
        if calendar is None:
            calendar = caldav.Calendar(client=self._connect(), url=collection.url)
            self._calendars[collection.url] = calendar
        return calendar

    @staticmethod
    def _to_remote_object(obj) -> RemoteObject:
        props = getattr(obj, "props", None) or {}
        etag = props.get(dav.GetEtag.tag)
        return RemoteObject(url=str(obj.url), data=obj.data, etag=etag)

    def fetch_objects(self, calendar: RemoteCollection, kind: str) -> List[RemoteObject]:
        target = self._calendar(calendar)
        try:
            if kind == "vtodo":
                found = target.search(todo=True, include_completed=True, props=[dav.GetEtag()])
            else:
                found = target.search(event=True, props=[dav.GetEtag()])
        except _REMOTE_ERRORS as e:
            raise RemoteUnavailableError(f"Could not fetch {kind} objects from {calendar.name}: {e}") from e
        log.debug("Fetched %d %s objects from %s", len(found), kind, calendar.name)
        return [self._to_remote_object(obj) for obj in found]

    def _save(self, calendar: RemoteCollection, url: str, data: str, kind: str) -> None:
        cls = _object_class(kind)
        try:
            cls(client=self._connect(), url=url, data=data, parent=self._calendar(calendar)).save()
        except _REMOTE_ERRORS as e:
            raise RemoteUnavailableError(f"Could not save {url}: {e}") from e

    def create_object(self, calendar: RemoteCollection, url: str, data: str, kind: str) -> None:
        self._save(calendar, url, data, kind)

    def update_object(self, calendar: RemoteCollection, url: str, data: str, kind: str) -> None:
        self._save(calendar, url, data, kind)

    def delete_object(self, url: str) -> None:
        try:
            caldav.CalendarObjectResource(client=self._connect(), url=url).delete()
        except caldav_error.NotFoundError as e:
            raise NotFoundError(f"Remote object {url} not found") from e
        except _REMOTE_ERRORS as e:
            raise RemoteUnavailableError(f"Could not delete {url}: {e}") from e

    def multi_get(self, calendar: RemoteCollection, urls: List[str]) -> List[RemoteObject]:
        if not urls:
            return []
        try:
            found = self._calendar(calendar).calendar_multiget(urls)
        except _REMOTE_ERRORS as e:
            raise RemoteUnavailableError(f"Multi-get on {calendar.name} failed: {e}") from e
        return [self._to_remote_object(obj) for obj in found]

    def fetch_etag(self, url: str) -> Optional[str]:
        try:
            return caldav.CalendarObjectResource(client=self._connect(), url=url).get_property(dav.GetEtag())
        except _REMOTE_ERRORS as e:
            raise RemoteUnavailableError(f"Could not fetch etag of {url}: {e}") from e

    def object_url(self, calendar: RemoteCollection, item_id: str) -> str:
        return calendar.url.rstrip("/") + f"/{item_id}.ics"
