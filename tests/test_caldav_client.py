from unittest.mock import MagicMock, patch

import pytest
from caldav.elements import dav
from caldav.lib import error as caldav_error

from calendar_api.caldav_client import CalDavRemote, RemoteCollection
from calendar_api.errors import NotFoundError, RemoteUnavailableError

from conftest import make_info

CAL_URL = "https://dav.example.com/calendars/alice/work/"


def _calendar(name="Work", url=CAL_URL):
    calendar = MagicMock()
    calendar.url = url
    calendar.get_display_name.return_value = name
    calendar.get_property.return_value = "sync-1"
    return calendar


def _remote(calendars=None):
    client = MagicMock()
    client.principal.return_value.calendars.return_value = calendars if calendars is not None else [_calendar()]
    return CalDavRemote(make_info(), client=client), client


def test_login_failure_is_wrapped():
    remote, client = _remote()
    client.principal.side_effect = caldav_error.AuthorizationError(reason="bad password")
    with pytest.raises(RemoteUnavailableError):
        remote.login()


def test_connection_error_is_wrapped():
    remote, client = _remote()
    client.principal.side_effect = ConnectionError("refused")
    with pytest.raises(RemoteUnavailableError):
        remote.login()


def test_get_calendar():
    remote, _ = _remote([_calendar("Home", "https://dav.example.com/home/"), _calendar()])
    collection = remote.get_calendar("Work")
    assert collection == RemoteCollection(name="Work", url=CAL_URL, sync_token="sync-1")


def test_unknown_calendar():
    remote, _ = _remote()
    with pytest.raises(NotFoundError):
        remote.get_calendar("Nope")


def test_fetch_objects_reads_etags():
    calendar = _calendar()
    found = MagicMock()
    found.url = CAL_URL + "a.ics"
    found.data = "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
    found.props = {dav.GetEtag.tag: '"etag-a"'}
    calendar.search.return_value = [found]

    remote, _ = _remote([calendar])
    objects = remote.fetch_objects(remote.get_calendar("Work"), "vevent")

    assert [(o.url, o.etag) for o in objects] == [(CAL_URL + "a.ics", '"etag-a"')]
    assert calendar.search.call_args.kwargs["event"] is True


def test_fetch_failure_is_wrapped():
    calendar = _calendar()
    calendar.search.side_effect = caldav_error.ReportError(reason="boom")
    remote, _ = _remote([calendar])
    with pytest.raises(RemoteUnavailableError):
        remote.fetch_objects(remote.get_calendar("Work"), "vtodo")


def test_object_url():
    remote, _ = _remote()
    collection = RemoteCollection(name="Work", url=CAL_URL)
    assert remote.object_url(collection, "vevent-1") == CAL_URL + "vevent-1.ics"


def test_delete_missing_object():
    remote, _ = _remote()
    with patch("calendar_api.caldav_client.caldav.CalendarObjectResource") as resource:
        resource.return_value.delete.side_effect = caldav_error.NotFoundError(reason="gone")
        with pytest.raises(NotFoundError):
            remote.delete_object(CAL_URL + "x.ics")


def test_save_uses_component_class():
    remote, client = _remote()
    collection = remote.get_calendar("Work")
    with patch("calendar_api.caldav_client.caldav.Todo") as todo:
        remote.create_object(collection, CAL_URL + "vtodo-1.ics", "DATA", "vtodo")
    todo.assert_called_once()
    assert todo.call_args.kwargs["url"] == CAL_URL + "vtodo-1.ics"
    todo.return_value.save.assert_called_once()


def test_multi_get(mocker):
    calendar = _calendar()
    found = mocker.MagicMock()
    found.url = CAL_URL + "b.ics"
    found.data = "DATA"
    found.props = {}
    calendar.calendar_multiget.return_value = [found]

    remote, _ = _remote([calendar])
    collection = remote.get_calendar("Work")

    assert remote.multi_get(collection, []) == []
    calendar.calendar_multiget.assert_not_called()

    objects = remote.multi_get(collection, [CAL_URL + "b.ics"])
    assert [(o.url, o.data, o.etag) for o in objects] == [(CAL_URL + "b.ics", "DATA", None)]


def test_fetch_etag(mocker):
    resource = mocker.patch("calendar_api.caldav_client.caldav.CalendarObjectResource")
    resource.return_value.get_property.return_value = '"etag-9"'
    remote, _ = _remote()
    assert remote.fetch_etag(CAL_URL + "x.ics") == '"etag-9"'
