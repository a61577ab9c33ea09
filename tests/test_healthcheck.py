from __future__ import annotations

import pytest

from quizcrawl.crawler import config, db, healthcheck
from quizcrawl.crawler.sessions import SessionManager
from tests.fake_browser import FakeBrowser


def test_run_health_checks_happy_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    db.create_test_session(source_login_url="https://quiz.example.com/login", source_test_url="", status="RUNNING")

    result = healthcheck.run_health_checks(entrypoint="ui")

    assert result.ok is True
    assert result.checks["config"]["ok"] is True
    assert result.checks["config"]["site_host"] == "quiz.example.com"
    assert result.checks["filesystem"]["ok"] is True
    assert "unwritable" not in result.checks["filesystem"]
    assert result.checks["database"] == {
        "ok": True,
        "test_sessions": 1,
        "running_test_sessions": 1,
        "questions": 0,
    }
    assert "sessions" not in result.checks


def test_run_health_checks_handles_invalid_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "SITE_ORIGIN", "not-a-url")

    result = healthcheck.run_health_checks(entrypoint="cli")

    assert result.ok is False
    assert result.checks["config"]["ok"] is False
    assert "SITE_ORIGIN" in result.checks["config"]["error"]


def test_database_failure_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)

    def _broken() -> None:
        raise RuntimeError("db error")

    monkeypatch.setattr(db, "initialize_schema", _broken)

    result = healthcheck.run_health_checks(entrypoint="cli")

    assert result.ok is False
    assert result.checks["database"] == {"ok": False, "error": "db error"}


def test_open_sessions_are_informational(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    manager = SessionManager(launcher=lambda headless: FakeBrowser())
    session = manager.open("job-health")
    session.last_activity -= 30

    try:
        result = healthcheck.run_health_checks(entrypoint="ui", sessions=manager)
    finally:
        manager.close_all(wait=True)

    assert result.ok is True
    assert result.checks["sessions"]["active"] == 1
    assert result.checks["sessions"]["max_idle_seconds"] >= 30
