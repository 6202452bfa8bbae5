from pathlib import Path
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from calendar_api.caldav_client import RemoteCollection, RemoteObject
from calendar_api.errors import NotFoundError, RemoteUnavailableError
from calendar_api.mirror_store import InMemoryMirror
from calendar_api.registry import reset_engines
from calendar_api.sync_engine import SyncEngine
from utils.config import CalendarInfo

NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


class FakeRemote:
    """In-memory stand-in for a CalDAV server."""

    def __init__(self, calendars=("Work", "Other")):
        self.calendars = {
            name: RemoteCollection(
                name=name,
                url=f"https://dav.example.com/calendars/{name.lower()}/",
                sync_token=f"sync-{name.lower()}",
            )
            for name in calendars
        }
        self.objects: Dict[str, Dict[str, str]] = {}
        self.logins = 0
        self.fail_login = False
        self.fail_writes = False
        self._etag_counter = 0

    def _next_etag(self) -> str:
        self._etag_counter += 1
        return f'"etag-{self._etag_counter}"'

    def login(self) -> None:
        if self.fail_login:
            raise RemoteUnavailableError("server down")
        self.logins += 1

    def list_calendars(self) -> List[RemoteCollection]:
        return list(self.calendars.values())

    def get_calendar(self, name: str) -> RemoteCollection:
        if name not in self.calendars:
            raise NotFoundError(name)
        return self.calendars[name]

    def put(self, calendar: RemoteCollection, url: str, data: str, kind: str) -> None:
        self.objects[url] = {"data": data, "kind": kind, "etag": self._next_etag(), "calendar": calendar.url}

    def fetch_objects(self, calendar: RemoteCollection, kind: str) -> List[RemoteObject]:
        return [
            RemoteObject(url=url, data=obj["data"], etag=obj["etag"])
            for url, obj in self.objects.items()
            if obj["calendar"] == calendar.url and obj["kind"] == kind
        ]

    def create_object(self, calendar, url, data, kind) -> None:
        if self.fail_writes:
            raise RemoteUnavailableError("write refused")
        self.put(calendar, url, data, kind)

    def update_object(self, calendar, url, data, kind) -> None:
        if self.fail_writes:
            raise RemoteUnavailableError("write refused")
        self.put(calendar, url, data, kind)

    def delete_object(self, url: str) -> None:
        if self.fail_writes:
            raise RemoteUnavailableError("write refused")
        if url not in self.objects:
            raise NotFoundError(url)
        del self.objects[url]

    def multi_get(self, calendar, urls) -> List[RemoteObject]:
        return [RemoteObject(url=u, data=self.objects[u]["data"], etag=self.objects[u]["etag"]) for u in urls]

    def fetch_etag(self, url: str) -> Optional[str]:
        return self.objects[url]["etag"]

    def object_url(self, calendar: RemoteCollection, item_id: str) -> str:
        return f"{calendar.url}{item_id}.ics"


def make_info(ref: str = "work", calendar: str = "Work") -> CalendarInfo:
    return CalendarInfo(
        ref=ref,
        server_url="https://dav.example.com",
        username="alice",
        password="secret",
        calendar=calendar,
    )


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def mirror():
    return InMemoryMirror()


@pytest.fixture
def engine(fake_remote, mirror):
    # one worker keeps pushes in submission order
    engine = SyncEngine(make_info(), fake_remote, mirror, executor=ThreadPoolExecutor(max_workers=1))
    yield engine
    engine.shutdown()


@pytest.fixture(autouse=True)
def _clean_registry():
    yield
    reset_engines()
