from pathlib import Path

import pytest

from quizcrawl.crawler import config, db, utils


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "quizcrawl.db"

    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "BATCHES_DIR", data_dir / "batches")
    monkeypatch.setattr(config, "EXPORTS_DIR", data_dir / "exports")
    monkeypatch.setattr(config, "DB_PATH", db_path)
    monkeypatch.setattr(db, "DB_PATH", db_path)
    utils._configure_logger(data_dir / "logs" / "latest.log")


def _configure_fast_timings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "SITE_ORIGIN", "https://quiz.example.com")
    monkeypatch.setattr(config, "ITEM_DELAY_MS", 0)
    monkeypatch.setattr(config, "SHOW_ALL_SETTLE_MS", 0)
    monkeypatch.setattr(config, "SESSION_IDLE_PUMP_MS", 5)
    monkeypatch.setattr(config, "LOGIN_NAVIGATION_WAIT_MS", 80)
    monkeypatch.setattr(config, "LOGIN_CONFLICT_WAIT_MS", 40)
    monkeypatch.setattr(config, "LOGIN_ERROR_WAIT_MS", 40)
    monkeypatch.setattr(config, "LOGIN_POLL_INTERVAL_MS", 5)
    monkeypatch.setattr(config, "LOGIN_RESUBMIT_PAUSE_MS", 1)
    monkeypatch.setattr(config, "LOGIN_RESUBMIT_NAVIGATION_WAIT_MS", 80)


@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    _configure_temp_paths(tmp_path, monkeypatch)
    _configure_fast_timings(monkeypatch)
    db.initialize_schema()
    return config.DATA_DIR
