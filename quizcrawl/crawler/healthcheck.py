"""Readiness checks shared by ``/api/health`` and the command line.

A crawl needs a valid configuration, writable data directories with room for
exports and batch telemetry, and a reachable database. Live browser sessions
are reported for information only.
"""

from __future__ import annotations

import os
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from . import config, db
from .config_validation import validate_runtime_config
from .logging_utils import _crawler_event
from .sessions import SessionManager
from .utils import disk_has_room, ensure_dirs, log_line

Check = Dict[str, Any]


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, Check]


def _check_config(entrypoint: str) -> Check:
    try:
        validate_runtime_config(entrypoint or "cli", mode=None)
    except ValueError as exc:
        return {"ok": False, "error": str(exc)}
    return {
        "ok": True,
        "site_host": urllib.parse.urlparse(config.SITE_ORIGIN).netloc,
        "headless": config.BROWSER_HEADLESS,
    }


def _check_filesystem() -> Check:
    ensure_dirs()
    unwritable = [
        str(path)
        for path in (Path(config.BATCHES_DIR), Path(config.EXPORTS_DIR))
        if not os.access(path, os.W_OK)
    ]
    has_room = disk_has_room(config.MIN_FREE_MB, config.DATA_DIR)
    check: Check = {
        "ok": has_room and not unwritable,
        "data_dir": str(config.DATA_DIR),
        "min_free_mb": config.MIN_FREE_MB,
    }
    if unwritable:
        check["unwritable"] = unwritable
    return check


def _check_database() -> Check:
    try:
        db.initialize_schema()
        conn = db.get_connection()
        row = conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM test_sessions) AS sessions,
                (SELECT COUNT(*) FROM test_sessions WHERE status = 'RUNNING') AS running,
                (SELECT COUNT(*) FROM questions) AS questions
            """
        ).fetchone()
    except Exception as exc:  # noqa: BLE001
        return {"ok": False, "error": str(exc)}
    return {
        "ok": True,
        "test_sessions": int(row["sessions"]),
        "running_test_sessions": int(row["running"]),
        "questions": int(row["questions"]),
    }


def _check_sessions(sessions: SessionManager) -> Check:
    # Informational; open browsers never make the service unhealthy.
    idle = sessions.idle_seconds()
    return {
        "ok": True,
        "active": len(idle),
        "max_idle_seconds": round(max(idle.values()), 1) if idle else None,
    }


def run_health_checks(
    entrypoint: str = "cli", *, sessions: Optional[SessionManager] = None
) -> HealthResult:
    probes: Dict[str, Callable[[], Check]] = {
        "config": lambda: _check_config(entrypoint),
        "filesystem": _check_filesystem,
        "database": _check_database,
    }
    if sessions is not None:
        probes["sessions"] = lambda: _check_sessions(sessions)

    checks = {name: probe() for name, probe in probes.items()}
    overall_ok = all(check.get("ok", False) for check in checks.values())

    _crawler_event(
        "state" if overall_ok else "error",
        phase="health",
        entrypoint=entrypoint,
        ok=overall_ok,
        failed=sorted(name for name, check in checks.items() if not check.get("ok")),
    )
    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        log_line(f"[HEALTH] {name}: {'OK' if info.get('ok') else 'FAIL'} {info}")
    raise SystemExit(0 if result.ok else 1)
