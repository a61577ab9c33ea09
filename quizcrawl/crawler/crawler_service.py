"""Crawl job orchestration.

A job starts a headed browser session that a human drives: the service opens
the browser, optionally fills the login form and then waits. Each scan request
creates a fresh test session and extracts every question listed on the review
page currently shown in that browser. The browser stays open between scans
until the job is cancelled or cleaned up.

Background work (session start-up, batches) runs through an injectable
``spawn`` callable; the job record is the only channel through which it
reports progress or failure.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import config, db
from .error_codes import ErrorCode
from .jobs import (
    CANCELLED_MESSAGE,
    CrawlJob,
    InMemoryJobRegistry,
    JobNotFoundError,
    JobRegistry,
    JobStatus,
    JobStep,
)
from .logging_utils import _crawler_event
from .login import attempt_login
from .review import run_review_batch
from .sessions import SessionClosedError, SessionLostError, SessionManager
from .utils import log_line

Spawn = Callable[[Callable[[], None], str], None]

CRAWL_MODES = ("AUTO", "RECORDER")

_BATCH_STEPS = frozenset({JobStep.SCANNING_REVIEW_PAGE, JobStep.EXTRACTING_QUESTIONS})


class InvalidCrawlRequest(ValueError):
    """Raised when a crawl start payload fails validation."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class InvalidTransitionError(RuntimeError):
    """Raised when a job is asked to do something its status does not allow."""


@dataclass
class CrawlRequest:
    login_url: str
    test_url: str = ""
    username: str = ""
    password: str = ""
    mode: str = "AUTO"
    include_explanation: bool = True
    max_questions: int = config.DEFAULT_MAX_QUESTIONS
    headless: Optional[bool] = None


def _is_http_url(value: str) -> bool:
    parsed = urllib.parse.urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def parse_crawl_request(payload: Mapping[str, Any]) -> CrawlRequest:
    """Build a :class:`CrawlRequest` from a JSON body, collecting every error."""

    errors: List[str] = []

    login_url = payload.get("loginUrl")
    if not isinstance(login_url, str) or not _is_http_url(login_url.strip()):
        errors.append("loginUrl must be an http(s) URL")
        login_url = ""

    test_url = payload.get("testUrl") or ""
    if not isinstance(test_url, str):
        errors.append("testUrl must be a string")
        test_url = ""

    credentials: Dict[str, str] = {}
    for key in ("username", "password"):
        value = payload.get(key) or ""
        if not isinstance(value, str):
            errors.append(f"{key} must be a string")
            value = ""
        credentials[key] = value

    mode = payload.get("mode") or "AUTO"
    if mode not in CRAWL_MODES:
        errors.append(f"mode must be one of {', '.join(CRAWL_MODES)}")

    options = payload.get("options") or {}
    if not isinstance(options, Mapping):
        errors.append("options must be an object")
        options = {}

    include_explanation = options.get("includeExplanation", True)
    if not isinstance(include_explanation, bool):
        errors.append("options.includeExplanation must be a boolean")

    max_questions = options.get("maxQuestions", config.DEFAULT_MAX_QUESTIONS)
    if isinstance(max_questions, bool) or not isinstance(max_questions, int) or max_questions < 1:
        errors.append("options.maxQuestions must be a positive integer")

    headless = options.get("headless")
    if headless is not None and not isinstance(headless, bool):
        errors.append("options.headless must be a boolean")

    if errors:
        raise InvalidCrawlRequest(errors)

    return CrawlRequest(
        login_url=login_url.strip(),
        test_url=test_url.strip(),
        username=credentials["username"],
        password=credentials["password"],
        mode=mode,
        include_explanation=include_explanation,
        max_questions=max_questions,
        headless=headless,
    )


def _spawn_thread(fn: Callable[[], None], name: str) -> None:
    threading.Thread(target=fn, name=name, daemon=True).start()


class CrawlerService:
    def __init__(
        self,
        registry: Optional[JobRegistry] = None,
        sessions: Optional[SessionManager] = None,
        *,
        spawn: Optional[Spawn] = None,
    ) -> None:
        self.registry = registry or InMemoryJobRegistry()
        self.sessions = sessions or SessionManager()
        self._spawn: Spawn = spawn or _spawn_thread

    # ------------------------------------------------------------------ start

    def start_crawl(self, request: CrawlRequest) -> Dict[str, Any]:
        """Record the job and its first test session; the browser starts in the background."""

        test_id = db.create_test_session(
            source_login_url=request.login_url,
            source_test_url=request.test_url,
            status=JobStatus.PENDING.value,
            include_explanation=request.include_explanation,
        )
        job = CrawlJob.new(test_id=test_id, max_questions=request.max_questions)
        self.registry.create(job)
        _crawler_event(
            "state",
            job_id=job.job_id,
            kind="created",
            test_id=test_id,
            mode=request.mode,
        )

        job_id = job.job_id
        self._spawn(
            lambda: self._initialise_session(job_id, request),
            f"crawl-init-{job_id[:8]}",
        )
        return {"jobId": job_id, "testId": test_id}

    def _initialise_session(self, job_id: str, request: CrawlRequest) -> None:
        job = self.registry.get(job_id)
        if job is None:
            return

        try:
            session = self.sessions.open(job_id, headless=request.headless)
        except Exception as exc:  # noqa: BLE001
            log_line(f"[CRAWL] Error in init session {job_id}: {exc}", logging.ERROR)
            self._fail(job, str(exc), code=ErrorCode.INIT_FAILED)
            self._mark_test_session(job.test_id, JobStatus.FAILED)
            self.sessions.close(job_id)
            return

        if job.status is JobStatus.FAILED or not self._is_tracked(job_id):
            # Cancelled or cleaned up while the browser was launching.
            self.sessions.close(job_id)
            return

        job.step = JobStep.WAITING_FOR_USER
        job.transition(JobStatus.WAITING_FOR_INPUT, reason="session_ready")
        if not self.registry.save(job):
            self.sessions.close(job_id)
            return

        try:
            session.page.navigate(request.login_url, timeout_ms=config.LOGIN_PAGE_TIMEOUT_MS)
            if request.username and request.password:
                attempt_login(session.page, request.username, request.password)
        except Exception as exc:  # noqa: BLE001
            log_line(
                f"[CRAWL] Initial navigation failed, but user can manually navigate: {exc}",
                logging.WARNING,
            )

    # ------------------------------------------------------------------ query

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        job = self.registry.get(job_id)
        return job.to_dict() if job is not None else None

    # ----------------------------------------------------------------- cancel

    def cancel_job(self, job_id: str) -> None:
        """Fail the job with the cancellation message and release its browser.

        Unknown or already failed jobs keep their record as is; any browser
        still open for them is released. Never raises.
        """

        job = self.registry.get(job_id)
        if job is None:
            return

        if job.status is not JobStatus.FAILED:
            in_batch = job.status is JobStatus.RUNNING and job.step in _BATCH_STEPS
            if job.transition(JobStatus.FAILED, reason=ErrorCode.CANCELLED):
                job.error_message = CANCELLED_MESSAGE
                self.registry.save(job)
                if in_batch:
                    self._mark_test_session(job.test_id, JobStatus.FAILED)

        self.sessions.close(job_id)

    # ------------------------------------------------------------------- scan

    def scan_review(
        self,
        job_id: str,
        topic: Optional[str] = None,
        test_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Start a batch over the review page currently shown in the job's browser."""

        job = self.registry.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        session = self.sessions.get(job_id)
        if session is None:
            raise SessionLostError("Browser session not found")

        if not job.can_transition(JobStatus.RUNNING):
            raise InvalidTransitionError(
                f"Job {job_id} is {job.status.value}; a scan is not allowed now"
            )

        try:
            current_url = session.page.current_url()
        except SessionClosedError as exc:
            raise SessionLostError("Browser session not found") from exc

        previous = db.get_test_session(job.test_id) if job.test_id is not None else None
        new_test_id = db.create_test_session(
            source_login_url=previous["source_login_url"] if previous else "",
            source_test_url=current_url,
            status=JobStatus.RUNNING.value,
            include_explanation=bool(previous["include_explanation"]) if previous else True,
            topic=topic,
            test_name=test_name,
        )

        job.step = JobStep.SCANNING_REVIEW_PAGE
        job.transition(JobStatus.RUNNING, reason="scan_review")
        job.test_id = new_test_id
        job.error_message = None
        job.set_progress(0)
        self.registry.save(job)
        _crawler_event(
            "state",
            job_id=job_id,
            kind="scan_requested",
            test_id=new_test_id,
            previous_test_id=previous["id"] if previous else None,
            url=current_url,
        )

        self._spawn(
            lambda: self._run_batch(job_id, new_test_id),
            f"crawl-batch-{job_id[:8]}",
        )
        return job.to_dict()

    def _run_batch(self, job_id: str, test_session_id: int) -> None:
        job = self.registry.get(job_id)
        if job is None:
            return

        try:
            session = self.sessions.get(job_id)
            if session is None:
                raise SessionLostError("Session lost")
            result = run_review_batch(
                job,
                session,
                registry=self.registry,
                test_session_id=test_session_id,
                max_questions=job.max_questions,
            )
        except Exception as exc:  # noqa: BLE001
            log_line(f"[CRAWL] Error in scan review {job_id}: {exc}", logging.ERROR)
            code = (
                ErrorCode.SESSION_LOST
                if isinstance(exc, (SessionLostError, SessionClosedError))
                else ErrorCode.BATCH_FAILED
            )
            self._mark_test_session(test_session_id, JobStatus.FAILED)
            # The browser stays open so the user can retry the scan.
            self._fail(job, str(exc), code=code)
            return

        if not self._is_tracked(job_id):
            log_line(
                f"[CRAWL] Batch for job {job_id} finished after cleanup; "
                f"questions kept in test session {test_session_id}."
            )
            self._mark_test_session(test_session_id, JobStatus.DONE)
            return

        if not job.can_transition(JobStatus.WAITING_FOR_INPUT):
            log_line(
                f"[CRAWL] Batch for job {job_id} finished after the job became "
                f"{job.status.value}; leaving it as is."
            )
            return

        job.set_progress(100)
        job.step = JobStep.WAITING_FOR_USER
        job.transition(JobStatus.WAITING_FOR_INPUT, reason="batch_complete")
        self.registry.save(job)
        self._mark_test_session(test_session_id, JobStatus.DONE)
        _crawler_event(
            "batch",
            job_id=job_id,
            kind="complete",
            test_session_id=test_session_id,
            total=result.total,
            saved=result.saved,
            skipped=result.skipped,
        )

    # ---------------------------------------------------------------- cleanup

    def cleanup_job(self, job_id: str) -> bool:
        """Close the job's browser and forget the job. Returns whether it existed."""

        existed = self.registry.get(job_id) is not None
        self.sessions.close(job_id)
        self.registry.delete(job_id)
        _crawler_event("state", job_id=job_id, kind="cleaned_up", existed=existed)
        return existed

    def shutdown(self, *, wait: bool = False) -> None:
        """Close every open browser session."""

        self.sessions.close_all(wait=wait)

    # ---------------------------------------------------------------- helpers

    def _is_tracked(self, job_id: str) -> bool:
        return self.registry.get(job_id) is not None

    def _fail(self, job: CrawlJob, message: str, *, code: str) -> None:
        if job.status is JobStatus.FAILED:
            # Keep the first failure message, e.g. a cancellation.
            return
        if not self._is_tracked(job.job_id):
            log_line(f"[CRAWL] Job {job.job_id} was cleaned up; dropping failure: {message}")
            return
        if job.transition(JobStatus.FAILED, reason=code):
            job.error_message = message
            if not self.registry.save(job):
                return
            _crawler_event("error", job_id=job.job_id, error=code, message=message)

    def _mark_test_session(self, test_session_id: Optional[int], status: JobStatus) -> None:
        if test_session_id is None:
            return
        try:
            db.update_test_session_status(test_session_id, status.value)
        except Exception as exc:  # noqa: BLE001
            log_line(
                f"[CRAWL] Failed to mark test session {test_session_id} {status.value}: {exc}",
                logging.WARNING,
            )


__all__ = [
    "CRAWL_MODES",
    "CrawlRequest",
    "CrawlerService",
    "InvalidCrawlRequest",
    "InvalidTransitionError",
    "parse_crawl_request",
]
