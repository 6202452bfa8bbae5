import logging
from pathlib import Path

import pytest

from utils.config import MissingConfigError, get_config, load_calendar_info, mirror_path
from utils.logger import get_logger

ENV = {
    "TEXTCAL_SERVER_URL": "https://dav.example.com",
    "TEXTCAL_USERNAME": "alice",
    "TEXTCAL_PASSWORD": "secret",
    "TEXTCAL_CALENDAR": "Work",
}


@pytest.fixture
def env(monkeypatch):
    for key in ("TEXTCAL_CALENDAR_REF", "TEXTCAL_MIRROR_PATH"):
        monkeypatch.delenv(key, raising=False)
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_calendar_info_from_env(env):
    info = load_calendar_info()
    assert info.server_url == "https://dav.example.com"
    assert info.calendar == "Work"
    assert info.ref == "Work"


def test_calendar_ref_override(env):
    env.setenv("TEXTCAL_CALENDAR_REF", "main")
    assert load_calendar_info().ref == "main"


def test_missing_keys_are_listed(env):
    env.delenv("TEXTCAL_PASSWORD")
    env.delenv("TEXTCAL_CALENDAR")
    with pytest.raises(MissingConfigError) as excinfo:
        load_calendar_info()
    assert "TEXTCAL_PASSWORD" in str(excinfo.value)
    assert "TEXTCAL_CALENDAR" in str(excinfo.value)


def test_mirror_path(env, tmp_path):
    assert mirror_path() == Path.home() / ".textcal" / "mirror.json"
    env.setenv("TEXTCAL_MIRROR_PATH", str(tmp_path / "m.json"))
    assert mirror_path() == tmp_path / "m.json"


def test_get_config_default(monkeypatch):
    monkeypatch.delenv("TEXTCAL_NOT_SET", raising=False)
    assert get_config("TEXTCAL_NOT_SET", "fallback") == "fallback"


def test_loggers_share_namespace():
    log = get_logger("calendar_api.test")
    assert log.name == "textcal.calendar_api.test"
    assert logging.getLogger("textcal").handlers
