from __future__ import annotations

import os
from typing import Any, Dict

from flask import Flask, Response, jsonify, request, send_file

from quizcrawl.crawler import db, reporting
from quizcrawl.crawler.config_validation import validate_runtime_config
from quizcrawl.crawler.crawler_service import (
    CrawlerService,
    InvalidCrawlRequest,
    InvalidTransitionError,
    parse_crawl_request,
)
from quizcrawl.crawler.export_excel import export_test_session_to_excel
from quizcrawl.crawler.healthcheck import run_health_checks
from quizcrawl.crawler.jobs import JobNotFoundError
from quizcrawl.crawler.logging_utils import _crawler_event
from quizcrawl.crawler.sessions import SessionLostError
from quizcrawl.crawler.utils import ensure_dirs

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

# Initialise storage paths and SQLite schema on import so WSGI entrypoints
# also have the expected environment ready.
ensure_dirs()
db.initialize_schema()

crawler_service = CrawlerService()


def _query_flag(name: str, default: bool) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


# --------------------------------------------------------------------- crawl


@app.post("/crawl/start")
def crawl_start() -> Response:
    """Validate the request, record the job and launch its browser in the background."""

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"ok": False, "error": "invalid_params", "details": ["JSON object body required"]}), 400

    try:
        crawl_request = parse_crawl_request(payload)
    except InvalidCrawlRequest as exc:
        return jsonify({"ok": False, "error": "invalid_params", "details": exc.errors}), 400

    try:
        validate_runtime_config("ui", mode=crawl_request.mode)
    except ValueError as exc:
        return jsonify({"ok": False, "error": "config_invalid", "details": str(exc)}), 500

    _crawler_event(
        "state",
        phase="http",
        context="crawl_start",
        mode=crawl_request.mode,
        remote_addr=request.remote_addr,
    )
    return jsonify(crawler_service.start_crawl(crawl_request))


@app.get("/crawl/<job_id>")
def crawl_status(job_id: str) -> Response:
    job = crawler_service.get_job(job_id)
    if job is None:
        return jsonify({"status": "NOT_FOUND"})
    return jsonify(job)


@app.post("/crawl/<job_id>/cancel")
def crawl_cancel(job_id: str) -> Response:
    crawler_service.cancel_job(job_id)
    return Response(status=204)


@app.post("/crawl/<job_id>/scan-review")
def crawl_scan_review(job_id: str) -> Response:
    """Extract every question listed on the review page the user has open."""

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"ok": False, "error": "invalid_params", "details": ["JSON object body required"]}), 400

    topic = payload.get("topic") or None
    test_name = payload.get("testName") or None
    errors = [
        f"{key} must be a string"
        for key, value in (("topic", topic), ("testName", test_name))
        if value is not None and not isinstance(value, str)
    ]
    if errors:
        return jsonify({"ok": False, "error": "invalid_params", "details": errors}), 400

    try:
        job = crawler_service.scan_review(job_id, topic=topic, test_name=test_name)
    except JobNotFoundError:
        return jsonify({"ok": False, "error": "job_not_found", "jobId": job_id}), 404
    except SessionLostError as exc:
        return jsonify({"ok": False, "error": "session_lost", "details": str(exc)}), 400
    except InvalidTransitionError as exc:
        return jsonify({"ok": False, "error": "invalid_state", "details": str(exc)}), 409
    return jsonify(job)


@app.delete("/crawl/<job_id>")
def crawl_cleanup(job_id: str) -> Response:
    removed = crawler_service.cleanup_job(job_id)
    return jsonify({"ok": True, "jobId": job_id, "removed": removed})


# --------------------------------------------------------------------- tests


@app.get("/tests")
def tests_list() -> Response:
    sessions = reporting.list_test_sessions()
    return jsonify({"ok": True, "count": len(sessions), "tests": sessions})


@app.get("/tests/<int:test_id>")
def tests_detail(test_id: int) -> Response:
    try:
        detail = reporting.get_test_session_detail(test_id)
    except reporting.TestSessionNotFoundError:
        return jsonify({"ok": False, "error": "test_not_found", "testId": test_id}), 404
    return jsonify(detail)


@app.get("/tests/<int:test_id>/questions")
def tests_questions(test_id: int) -> Response:
    try:
        questions = reporting.get_questions(test_id)
    except reporting.TestSessionNotFoundError:
        return jsonify({"ok": False, "error": "test_not_found", "testId": test_id}), 404
    return jsonify(questions)


@app.get("/tests/<int:test_id>/export.json")
def tests_export_json(test_id: int) -> Response:
    try:
        detail = reporting.get_test_session_detail(test_id)
    except reporting.TestSessionNotFoundError:
        return jsonify({"ok": False, "error": "test_not_found", "testId": test_id}), 404
    return jsonify(detail)


@app.get("/tests/<int:test_id>/export.xlsx")
def tests_export_xlsx(test_id: int) -> Response:
    """Download the test session as a workbook.

    ``includeExplanation`` and ``onlyCorrect`` query flags shape the content.
    """

    try:
        path = export_test_session_to_excel(
            test_id,
            include_explanation=_query_flag("includeExplanation", True),
            only_correct=_query_flag("onlyCorrect", False),
        )
    except reporting.TestSessionNotFoundError:
        return jsonify({"ok": False, "error": "test_not_found", "testId": test_id}), 404
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))


# -------------------------------------------------------------------- health


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem, and DB."""

    result = run_health_checks(entrypoint="ui", sessions=crawler_service.sessions)
    status = 200 if result.ok else 503
    payload: Dict[str, Any] = {"ok": result.ok, "checks": result.checks}
    return jsonify(payload), status


if __name__ == "__main__":
    # Direct invocation is primarily for local development; directories and
    # schema are initialised above during module import.
    app.run(host="0.0.0.0", port=8080, threaded=True)
