import importlib
import sys

import pytest

from quizcrawl.crawler import config
from quizcrawl.crawler.crawler_service import CrawlerService
from quizcrawl.crawler.page_selectors import LOGIN_SELECTORS
from quizcrawl.crawler.sessions import SessionManager
from tests.fake_browser import FakeBrowser, inline_spawn, navigates_on_click

LOGIN_URL = "https://quiz.example.com/login"


def _reload_main_module():
    if "quizcrawl.main" in sys.modules:
        del sys.modules["quizcrawl.main"]
    return importlib.import_module("quizcrawl.main")


@pytest.fixture()
def browser() -> FakeBrowser:
    fake = FakeBrowser(links=[])
    fake.on_click[LOGIN_SELECTORS.submit_control] = navigates_on_click
    return fake


@pytest.fixture()
def client(browser: FakeBrowser, monkeypatch: pytest.MonkeyPatch):
    main = _reload_main_module()
    service = CrawlerService(
        sessions=SessionManager(launcher=lambda headless: browser),
        spawn=inline_spawn,
    )
    monkeypatch.setattr(main, "crawler_service", service)
    yield main.app.test_client()
    service.shutdown(wait=True)


def _start_payload(**overrides):
    payload = {
        "loginUrl": LOGIN_URL,
        "testUrl": "https://quiz.example.com/tests/7",
        "username": "student@example.com",
        "password": "secret",
        "mode": "AUTO",
        "options": {"includeExplanation": True, "maxQuestions": 50},
    }
    payload.update(overrides)
    return payload


def test_start_and_poll_job(client):
    resp = client.post("/crawl/start", json=_start_payload())
    assert resp.status_code == 200
    started = resp.get_json()
    assert set(started) == {"jobId", "testId"}

    job = client.get(f"/crawl/{started['jobId']}").get_json()
    assert job["jobId"] == started["jobId"]
    assert job["testId"] == started["testId"]
    assert job["status"] == "WAITING_FOR_INPUT"
    assert job["step"] == "WAITING_FOR_USER"


def test_start_rejects_invalid_payload(client):
    resp = client.post("/crawl/start", json={"loginUrl": "ftp://nope", "mode": "AUTO"})

    assert resp.status_code == 400
    payload = resp.get_json()
    assert payload["error"] == "invalid_params"
    assert payload["details"] == ["loginUrl must be an http(s) URL"]


def test_unknown_job_reports_not_found(client):
    resp = client.get("/crawl/does-not-exist")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "NOT_FOUND"}


def test_scan_review_runs_batch(client, browser: FakeBrowser):
    job_id = client.post("/crawl/start", json=_start_payload()).get_json()["jobId"]
    browser.current = "https://quiz.example.com/review/1"

    resp = client.post(f"/crawl/{job_id}/scan-review", json={"topic": "Physics", "testName": "Mock 2"})

    assert resp.status_code == 200
    assert resp.get_json()["jobId"] == job_id
    job = client.get(f"/crawl/{job_id}").get_json()
    assert job["status"] == "WAITING_FOR_INPUT"
    assert job["progress"] == 100


def test_scan_review_errors(client):
    assert client.post("/crawl/missing/scan-review", json={}).status_code == 404

    job_id = client.post("/crawl/start", json=_start_payload()).get_json()["jobId"]
    resp = client.post(f"/crawl/{job_id}/cancel")
    assert resp.status_code == 204

    resp = client.post(f"/crawl/{job_id}/scan-review", json={})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "session_lost"

    job = client.get(f"/crawl/{job_id}").get_json()
    assert job["status"] == "FAILED"
    assert job["errorMessage"] == "Cancelled by user"


def test_cancel_unknown_job_is_noop(client):
    assert client.post("/crawl/unknown/cancel").status_code == 204


def test_delete_cleans_up_job(client):
    job_id = client.post("/crawl/start", json=_start_payload()).get_json()["jobId"]

    resp = client.delete(f"/crawl/{job_id}")

    assert resp.get_json() == {"ok": True, "jobId": job_id, "removed": True}
    assert client.get(f"/crawl/{job_id}").get_json() == {"status": "NOT_FOUND"}


def test_health_reports_sessions(client, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)

    resp = client.get("/api/health")

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["ok"] is True
    assert payload["checks"]["sessions"] == {"ok": True, "active": 0, "max_idle_seconds": None}
