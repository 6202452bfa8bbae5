"""
Local mirror of remote calendar objects.

Rows are keyed by ``(calendar_ref, id)``. Filters are plain keyword equality
on :class:`CalendarObjectRecord` attributes.
"""
from __future__ import annotations

import dataclasses
import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from utils.logger import get_logger

from .data_models import CalendarObjectRecord

log = get_logger(__name__)

RowKey = Tuple[str, str]


class MirrorStore(Protocol):
    def find_many(self, **filters: Any) -> List[CalendarObjectRecord]: ...

    def find_first(self, **filters: Any) -> Optional[CalendarObjectRecord]: ...

    def create(self, record: CalendarObjectRecord) -> CalendarObjectRecord: ...

    def create_many(self, records: Iterable[CalendarObjectRecord]) -> int: ...

    def update_many(self, filters: Dict[str, Any], values: Dict[str, Any]) -> int: ...

    def delete_many(self, **filters: Any) -> int: ...


def _matches(record: CalendarObjectRecord, filters: Dict[str, Any]) -> bool:
    return all(getattr(record, key) == value for key, value in filters.items())


class InMemoryMirror:
    """Thread-safe mirror kept in a dict."""

    def __init__(self) -> None:
        self._rows: Dict[RowKey, CalendarObjectRecord] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(record: CalendarObjectRecord) -> RowKey:
        return (record.calendar_ref, record.id)

    def _changed(self) -> None:
        """Hook for persistent subclasses."""

    def find_many(self, **filters: Any) -> List[CalendarObjectRecord]:
        with self._lock:
            return [dataclasses.replace(r) for r in self._rows.values() if _matches(r, filters)]

    def find_first(self, **filters: Any) -> Optional[CalendarObjectRecord]:
        found = self.find_many(**filters)
        return found[0] if found else None

    def create(self, record: CalendarObjectRecord) -> CalendarObjectRecord:
        with self._lock:
            key = self._key(record)
            if key in self._rows:
                raise ValueError(f"Mirror row {record.id} already exists in {record.calendar_ref}")
            self._rows[key] = dataclasses.replace(record)
            self._changed()
        return record

    def create_many(self, records: Iterable[CalendarObjectRecord]) -> int:
        with self._lock:
            count = 0
            for record in records:
                self._rows[self._key(record)] = dataclasses.replace(record)
                count += 1
            self._changed()
        return count

    def update_many(self, filters: Dict[str, Any], values: Dict[str, Any]) -> int:
        with self._lock:
            matching = [k for k, r in self._rows.items() if _matches(r, filters)]
            for key in matching:
                self._rows[key] = dataclasses.replace(self._rows[key], **values)
            if matching:
                self._changed()
        return len(matching)

    def delete_many(self, **filters: Any) -> int:
        with self._lock:
            matching = [k for k, r in self._rows.items() if _matches(r, filters)]
            for key in matching:
                del self._rows[key]
            if matching:
                self._changed()
        return len(matching)


class JsonFileMirror(InMemoryMirror):
    """Mirror persisted to a single JSON file after every write."""

    def __init__(self, path: os.PathLike) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.warning("Could not read mirror file %s (%s); starting empty", self.path, e)
            return
        for data in rows:
            record = CalendarObjectRecord.from_dict(data)
            self._rows[self._key(record)] = record

    def _changed(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in self._rows.values()], f, indent=2)
        os.replace(tmp_path, self.path)
