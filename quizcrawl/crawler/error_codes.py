"""Error code taxonomy for crawl failures.

Item codes are recorded in batch telemetry and structured logs to explain why
a question page was skipped; job codes accompany the job-level failure events.
"""

from __future__ import annotations


class ErrorCode:
    # Per-item outcomes; the batch continues.
    NAVIGATION_FAILED = "navigation_failed"
    EXTRACTION_FAILED = "extraction_failed"
    INCOMPLETE_EXTRACTION = "incomplete_extraction"
    PERSISTENCE_FAILED = "persistence_failed"
    # Job-level outcomes.
    INIT_FAILED = "init_failed"
    BATCH_FAILED = "batch_failed"
    SESSION_LOST = "session_lost"
    CANCELLED = "cancelled"


__all__ = ["ErrorCode"]
