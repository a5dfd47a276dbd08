import pytest

from coachtrack.config import load_settings

ENV_KEYS = (
    "BOT_TOKEN",
    "DB_PATH",
    "TZ",
    "COACH_TELEGRAM_IDS",
    "DATE_CHECK_SECONDS",
    "WARNING_CHECK_SECONDS",
    "MIDNIGHT_WARNING_MINUTES",
    "STALE_SESSION_HOURS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")

    s = load_settings()

    assert s.bot_token == "abc"
    assert s.db_path == "data/app.db"
    assert s.tz == "Europe/Istanbul"
    assert s.coach_telegram_ids == frozenset()
    assert (s.date_check_seconds, s.warning_check_seconds) == (60, 300)
    assert s.midnight_warning_minutes == 60
    assert s.stale_session_hours == 24
    assert s.log_level == "INFO"


def test_overrides(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("COACH_TELEGRAM_IDS", "11, 22,,33")
    monkeypatch.setenv("MIDNIGHT_WARNING_MINUTES", "30")
    monkeypatch.setenv("TZ", "UTC")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = load_settings()

    assert s.coach_telegram_ids == frozenset({11, 22, 33})
    assert s.midnight_warning_minutes == 30
    assert s.tz == "UTC"
    assert s.log_level == "DEBUG"


def test_missing_token_raises():
    with pytest.raises(RuntimeError, match="BOT_TOKEN"):
        load_settings()


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_bad_interval_raises(monkeypatch, value):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("DATE_CHECK_SECONDS", value)
    with pytest.raises(RuntimeError, match="DATE_CHECK_SECONDS"):
        load_settings()


def test_bad_coach_id_raises(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("COACH_TELEGRAM_IDS", "12,abc")
    with pytest.raises(RuntimeError, match="COACH_TELEGRAM_IDS"):
        load_settings()
