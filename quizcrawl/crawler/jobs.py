from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional

from .logging_utils import _crawler_event


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    WAITING_FOR_INPUT = "WAITING_FOR_INPUT"
    DONE = "DONE"
    FAILED = "FAILED"


class JobStep:
    INIT = "INIT"
    WAITING_FOR_USER = "WAITING_FOR_USER"
    SCANNING_REVIEW_PAGE = "SCANNING_REVIEW_PAGE"
    EXTRACTING_QUESTIONS = "EXTRACTING_QUESTIONS"


# FAILED -> RUNNING is only taken by a review scan retried on a live session.
ALLOWED_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset(
        {JobStatus.WAITING_FOR_INPUT, JobStatus.FAILED, JobStatus.DONE}
    ),
    JobStatus.WAITING_FOR_INPUT: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.FAILED: frozenset({JobStatus.RUNNING}),
    JobStatus.DONE: frozenset(),
}

CANCELLED_MESSAGE = "Cancelled by user"


class JobNotFoundError(LookupError):
    """Raised when an operation targets an unknown job id."""


@dataclass
class CrawlJob:
    job_id: str
    status: JobStatus
    test_id: Optional[int] = None
    step: str = JobStep.INIT
    progress: int = 0
    total_questions: int = 0
    error_message: Optional[str] = None
    max_questions: Optional[int] = None

    @classmethod
    def new(cls, *, test_id: int, max_questions: Optional[int] = None) -> "CrawlJob":
        return cls(
            job_id=str(uuid.uuid4()),
            status=JobStatus.RUNNING,
            test_id=test_id,
            max_questions=max_questions,
        )

    def can_transition(self, target: JobStatus) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self.status, frozenset())

    def transition(self, target: JobStatus, *, reason: Optional[str] = None) -> bool:
        """Move to *target* when legal; refused transitions are logged and ignored."""

        if not self.can_transition(target):
            _crawler_event(
                "error",
                job_id=self.job_id,
                current_status=self.status.value,
                attempted_status=target.value,
                error="invalid_transition",
                reason=reason,
            )
            return False

        prev = self.status
        self.status = target
        _crawler_event(
            "state",
            job_id=self.job_id,
            from_status=prev.value,
            to_status=target.value,
            step=self.step,
            reason=reason,
        )
        return True

    def set_progress(self, value: int) -> None:
        self.progress = max(0, min(100, int(value)))

    def to_dict(self) -> Dict[str, Any]:
        """Return the client-facing job snapshot."""

        return {
            "jobId": self.job_id,
            "testId": self.test_id,
            "status": self.status.value,
            "progress": self.progress,
            "step": self.step,
            "totalQuestions": self.total_questions,
            "errorMessage": self.error_message,
        }


class JobRegistry(ABC):
    """Storage for crawl jobs.

    Implementations may live outside the process; callers always ``save`` a
    job after mutating it. ``save`` only updates a registered job: once
    ``delete`` has run, saves from background tasks still holding the job are
    dropped and reported by returning ``False``.
    """

    @abstractmethod
    def create(self, job: CrawlJob) -> CrawlJob: ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[CrawlJob]: ...

    @abstractmethod
    def save(self, job: CrawlJob) -> bool: ...

    @abstractmethod
    def delete(self, job_id: str) -> None: ...

    @abstractmethod
    def list_ids(self) -> List[str]: ...


class InMemoryJobRegistry(JobRegistry):
    """Process-local registry; jobs live until deleted or the process exits."""

    def __init__(self) -> None:
        self._jobs: Dict[str, CrawlJob] = {}
        self._lock = Lock()

    def create(self, job: CrawlJob) -> CrawlJob:
        with self._lock:
            self._jobs[job.job_id] = job
        return job

    def get(self, job_id: str) -> Optional[CrawlJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def save(self, job: CrawlJob) -> bool:
        with self._lock:
            if job.job_id not in self._jobs:
                return False
            self._jobs[job.job_id] = job
            return True

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._jobs)


__all__ = [
    "JobStatus",
    "JobStep",
    "CrawlJob",
    "JobRegistry",
    "InMemoryJobRegistry",
    "JobNotFoundError",
    "ALLOWED_TRANSITIONS",
    "CANCELLED_MESSAGE",
]
