"""Tests for engine construction and session helpers."""

from __future__ import annotations

import threading

import pytest

from jobtrack import database
from jobtrack.config import AppConfig
from jobtrack.models import ScanRun


@pytest.fixture(autouse=True)
def _reset_session_factory(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(database, "_SessionLocal", None)


def test_session_factory_requires_init() -> None:
    with pytest.raises(RuntimeError):
        database.get_session_factory()


def test_init_db_installs_session_factory() -> None:
    factory = database.init_db(AppConfig(_env_file=None, database_url="sqlite://"))
    assert database.get_session_factory() is factory

    with database.session_scope() as session:
        session.add(ScanRun(days_back=3))
    with database.session_scope() as session:
        assert session.query(ScanRun).count() == 1


def test_session_scope_rolls_back_on_error() -> None:
    database.init_db(AppConfig(_env_file=None, database_url="sqlite://"))

    with pytest.raises(ValueError):
        with database.session_scope() as session:
            session.add(ScanRun(days_back=3))
            session.flush()
            raise ValueError("abort")

    with database.session_scope() as session:
        assert session.query(ScanRun).count() == 0


def test_in_memory_database_is_shared_across_threads() -> None:
    factory = database.init_db(AppConfig(_env_file=None, database_url="sqlite://"))

    def _write() -> None:
        session = factory()
        try:
            session.add(ScanRun(days_back=1))
            session.commit()
        finally:
            session.close()

    worker = threading.Thread(target=_write)
    worker.start()
    worker.join()

    session = factory()
    try:
        assert session.query(ScanRun).count() == 1
    finally:
        session.close()


def test_file_database_uses_wal(tmp_path) -> None:
    engine = database.build_engine(f"sqlite:///{tmp_path / 'jobtrack.db'}")
    with engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA journal_mode").scalar() == "wal"
