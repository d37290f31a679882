# tests/test_settings.py
from __future__ import annotations

import importlib
import logging

import pytest
import pytz
from sqlmodel import select

from fill_ledger import settings


def test_report_timezone_default(monkeypatch):
    monkeypatch.delenv("REPORT_TIMEZONE", raising=False)
    assert settings.get_report_timezone() == "UTC"


def test_report_timezone_from_env(monkeypatch):
    monkeypatch.setenv("REPORT_TIMEZONE", "Europe/Berlin")
    assert settings.get_report_timezone() == "Europe/Berlin"


def test_unknown_report_timezone_raises(monkeypatch):
    monkeypatch.setenv("REPORT_TIMEZONE", "Mars/Olympus")
    with pytest.raises(pytz.UnknownTimeZoneError):
        settings.get_report_timezone()


def test_configure_logging_reads_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    try:
        root.handlers = []
        settings.configure_logging()
        assert root.level == logging.DEBUG
    finally:
        root.handlers = handlers
        root.setLevel(level)


def test_database_url_from_env(monkeypatch, tmp_path):
    db_file = tmp_path / "data" / "ledger.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")

    from fill_ledger.db import session as db_session
    db_session = importlib.reload(db_session)
    from fill_ledger.db.models import Account

    db_session.init_db()
    with db_session.get_session() as s:
        s.add(Account(label="env"))
        s.commit()
        assert [a.label for a in s.exec(select(Account)).all()] == ["env"]

    assert db_file.exists()
