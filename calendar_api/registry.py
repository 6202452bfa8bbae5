"""Process-wide table of sync engines, one per calendar reference."""
from __future__ import annotations

import threading
from typing import Callable, Dict, Optional

from utils.config import CalendarInfo, mirror_path
from utils.logger import get_logger

from .caldav_client import CalDavRemote, RemoteCalendar
from .mirror_store import JsonFileMirror, MirrorStore
from .sync_engine import SyncEngine

log = get_logger(__name__)

RemoteFactory = Callable[[CalendarInfo], RemoteCalendar]

_engines: Dict[str, SyncEngine] = {}
_shared_mirror: Optional[MirrorStore] = None
_lock = threading.Lock()


def _default_mirror() -> MirrorStore:
    global _shared_mirror
    if _shared_mirror is None:
        _shared_mirror = JsonFileMirror(mirror_path())
    return _shared_mirror


def get_engine(
    calendar_info: CalendarInfo,
    remote_factory: RemoteFactory = CalDavRemote,
    mirror: Optional[MirrorStore] = None,
) -> SyncEngine:
    """Return the engine for ``calendar_info.ref``, creating and checking it on first use.

    A failing ``check`` leaves nothing registered, so the next call retries.
    """
    with _lock:
        engine = _engines.get(calendar_info.ref)
        if engine is not None:
            return engine
        engine = SyncEngine(
            calendar_info,
            remote_factory(calendar_info),
            mirror if mirror is not None else _default_mirror(),
        )
        engine.check()
        _engines[calendar_info.ref] = engine
        log.debug("Registered engine for %s", calendar_info.ref)
        return engine


def reset_engines() -> None:
    """Forget every engine (tests, reconfiguration)."""
    global _shared_mirror
    with _lock:
        for engine in _engines.values():
            engine.shutdown(wait_for_pushes=True)
        _engines.clear()
        _shared_mirror = None
