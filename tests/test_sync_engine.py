"""
Tests for the sync engine, using an in-memory remote and mirror.
"""
import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from calendar_api.component_codec import encode_item, strip_kind_prefix
from calendar_api.data_models import CalendarItem, ComponentKind, EventStatus, EventType
from calendar_api.errors import NotFoundError, RemoteUnavailableError, ValidationError
from calendar_api.sync_engine import SyncEngine

from conftest import make_info

MONDAY = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


def _event(title="Planning", start=MONDAY, hours=1, recur=None):
    return CalendarItem(
        title=title,
        type=EventType.EVENT,
        date=start,
        end_date=start + timedelta(hours=hours),
        recur=recur,
    )


def _task(title="Write report", **kwargs):
    return CalendarItem(title=title, type=EventType.TASK, **kwargs)


class TestCheck:
    def test_check_finds_calendar(self, engine, fake_remote):
        collection = engine.check()
        assert collection.name == "Work"
        assert fake_remote.logins == 1

    def test_unknown_calendar_is_fatal(self, engine):
        with pytest.raises(RemoteUnavailableError):
            engine.check("Nope")

    def test_login_failure_is_fatal(self, engine, fake_remote):
        fake_remote.fail_login = True
        with pytest.raises(RemoteUnavailableError):
            engine.check()


class TestWrites:
    def test_create_writes_row_then_pushes(self, engine, fake_remote, mirror):
        item_id = engine.create_event(_event())
        assert item_id.startswith("vevent-")

        row = mirror.find_first(id=item_id)
        assert row.component_kind == ComponentKind.DATED
        assert row.date == MONDAY
        assert row.remote_url.endswith(f"/{item_id}.ics")

        assert engine.drain(timeout=5)
        assert fake_remote.objects[row.remote_url]["kind"] == "vevent"
        assert mirror.find_first(id=item_id).etag == fake_remote.objects[row.remote_url]["etag"]

    def test_invalid_draft_is_rejected(self, engine, mirror):
        with pytest.raises(ValidationError):
            engine.create_event(CalendarItem(title="No dates", type=EventType.EVENT))
        assert mirror.find_many() == []

    def test_push_failure_is_only_logged(self, engine, fake_remote, mirror, caplog):
        fake_remote.fail_writes = True
        with caplog.at_level(logging.ERROR):
            item_id = engine.create_event(_task())
            assert engine.drain(timeout=5)
        assert mirror.find_first(id=item_id).etag is None
        assert fake_remote.objects == {}
        assert "Remote create" in caplog.text

    def test_edit_same_kind_keeps_id(self, engine, fake_remote):
        item_id = engine.create_event(_task())
        engine.drain(timeout=5)
        draft = engine.get_event(item_id).item
        draft.title = "Write the report"
        assert engine.edit_event(item_id, draft) == item_id
        assert engine.get_event(item_id).item.title == "Write the report"

        engine.drain(timeout=5)
        url = engine.mirror.find_first(id=item_id).remote_url
        assert "Write the report" in fake_remote.objects[url]["data"]

    def test_kind_change_recreates_item(self, engine, fake_remote, mirror):
        task_id = engine.create_event(_task())
        engine.drain(timeout=5)
        old_url = mirror.find_first(id=task_id).remote_url

        new_id = engine.update_date(task_id, MONDAY)
        assert new_id.startswith("vevent-")
        assert strip_kind_prefix(new_id) == strip_kind_prefix(task_id)
        with pytest.raises(NotFoundError):
            engine.get_event(task_id)
        assert engine.get_event(new_id).item.date == MONDAY

        engine.drain(timeout=5)
        assert old_url not in fake_remote.objects
        assert mirror.find_first(id=new_id).remote_url in fake_remote.objects

    def test_update_date_keeps_duration_and_counts_postponing(self, engine):
        item_id = engine.create_event(_event(hours=2))
        later = MONDAY + timedelta(days=1)
        engine.update_date(item_id, later, postponing=True)
        item = engine.get_event(item_id).item
        assert item.date == later
        assert item.end_date == later + timedelta(hours=2)
        assert item.postponed == 1

    def test_update_status(self, engine):
        task_id = engine.create_event(_task())
        engine.update_status(task_id, "done")
        assert engine.get_event(task_id).item.status == EventStatus.DONE
        assert engine.list_tasks(exclude_done=True) == []
        assert len(engine.list_tasks()) == 1

    def test_update_status_of_event_is_a_no_op(self, engine):
        event_id = engine.create_event(_event())
        before = engine.mirror.find_first(id=event_id).raw_text
        assert engine.update_status(event_id, EventStatus.DONE) == event_id
        assert engine.mirror.find_first(id=event_id).raw_text == before

    def test_remove_date_of_event_fails_validation(self, engine):
        event_id = engine.create_event(_event())
        with pytest.raises(ValidationError):
            engine.remove_date(event_id)

    def test_remove_date_of_dated_task(self, engine):
        task_id = engine.create_event(_task(date=MONDAY))
        assert task_id.startswith("vevent-")
        new_id = engine.remove_date(task_id)
        assert new_id.startswith("vtodo-")
        assert engine.get_event(new_id).item.date is None


class TestDelete:
    def test_delete_returns_item_and_is_not_idempotent(self, engine, fake_remote):
        item_id = engine.create_event(_event())
        engine.drain(timeout=5)

        deleted = engine.delete_event(item_id)
        assert deleted.title == "Planning"
        assert deleted.id == item_id

        with pytest.raises(NotFoundError):
            engine.delete_event(item_id)

        engine.drain(timeout=5)
        assert fake_remote.objects == {}

    def test_unprefixed_id_is_not_found(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_event("1234")


class TestReads:
    def test_recurring_rows_are_re_evaluated(self, engine):
        engine.create_event(_event("Weekly", recur="FREQ=WEEKLY"))
        engine.create_event(_event("Once"))

        next_monday = datetime(2026, 10, 26, tzinfo=timezone.utc)
        found = engine.list_events(next_monday, next_monday + timedelta(hours=23))
        assert [d.item.title for d in found] == ["Weekly"]
        assert found[0].item.date == datetime(2026, 10, 26, 10, 0, tzinfo=timezone.utc)
        assert found[0].item.id.startswith("vevent-")

    def test_events_are_sorted(self, engine):
        engine.create_event(_event("Late", start=MONDAY + timedelta(hours=5)))
        engine.create_event(_event("Early", start=MONDAY))
        found = engine.list_day_events(date(2026, 10, 19), 0)
        assert [d.item.title for d in found] == ["Early", "Late"]

    def test_day_uses_timezone_offset(self, engine):
        late = datetime(2026, 10, 19, 23, 30, tzinfo=timezone.utc)
        engine.create_event(_event("Late call", start=late, hours=0))
        # UTC+2: the call is on Oct 20 local time
        assert [d.item.title for d in engine.list_day_events(date(2026, 10, 20), -120)] == ["Late call"]
        assert engine.list_day_events(date(2026, 10, 19), -120) == []

    def test_external_calendar_events(self, fake_remote, mirror):
        other = SyncEngine(make_info("other", "Other"), fake_remote, mirror)
        other.create_event(_event("Their meeting"))
        mine = SyncEngine(make_info(), fake_remote, mirror)

        assert mine.list_day_events(date(2026, 10, 19), 0) == []
        found = mine.list_external_day_events(date(2026, 10, 19), 0, "other")
        assert [d.item.title for d in found] == ["Their meeting"]
        other.shutdown()
        mine.shutdown()

    def test_tasks_are_not_events(self, engine):
        engine.create_event(_task())
        assert engine.list_day_events(date(2026, 10, 19), 0) == []
        assert [t.title for t in engine.list_tasks()] == ["Write report"]


class TestInitialSync:
    def _seed(self, engine, fake_remote):
        task_id = engine.create_event(_task("Local task"))
        engine.create_event(_event("Pushed event"))
        engine.drain(timeout=5)

        collection = fake_remote.calendars["Work"]
        foreign = encode_item(_event("Foreign event", start=MONDAY + timedelta(days=2)))
        url = f"{collection.url}foreign.ics"
        fake_remote.put(collection, url, foreign.to_ical(), "vevent")
        return task_id

    def test_dated_only_keeps_tasks(self, engine, fake_remote, mirror):
        task_id = self._seed(engine, fake_remote)
        mirror.update_many({"id": task_id}, {"raw_text": mirror.find_first(id=task_id).raw_text.replace("Local task", "Edited locally")})

        token = engine.initial_sync(include_tasks=False)
        assert token.url == fake_remote.calendars["Work"].url
        assert token.sync_token == "sync-work"

        dated = mirror.find_many(calendar_ref="work", component_kind=ComponentKind.DATED)
        assert sorted(engine.get_event(r.id).item.title for r in dated) == ["Foreign event", "Pushed event"]
        assert all(r.etag for r in dated)
        # untouched task row
        assert engine.get_event(task_id).item.title == "Edited locally"

    def test_with_tasks_replaces_everything(self, engine, fake_remote, mirror):
        task_id = self._seed(engine, fake_remote)
        mirror.update_many({"id": task_id}, {"raw_text": mirror.find_first(id=task_id).raw_text.replace("Local task", "Edited locally")})

        engine.initial_sync(include_tasks=True)
        assert len(mirror.find_many(calendar_ref="work")) == 3
        assert engine.get_event(task_id).item.title == "Local task"

    def test_failure_keeps_mirror(self, engine, fake_remote, mirror):
        engine.create_event(_event())
        engine.drain(timeout=5)

        def broken(calendar, kind):
            raise RemoteUnavailableError("gone")

        fake_remote.fetch_objects = broken
        with pytest.raises(RemoteUnavailableError):
            engine.initial_sync(include_tasks=True)
        assert len(mirror.find_many()) == 1
