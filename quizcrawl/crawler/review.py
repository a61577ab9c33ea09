"""Review-page batch driver.

Workflow:

- The human opens the review page of a finished attempt in the session's
  browser and asks for a scan.
- Click the "show all" tab (``#pills-all-tab``) so every question link is
  listed, then collect ``#pills-tabContent a.col-fill`` hrefs.
- Visit each question page in order, extract it and save it under the job's
  current test session.

One bad page never stops the batch: navigation, extraction and persistence
failures are logged and the item is skipped.
"""

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .browser import BrowserPage
from .error_codes import ErrorCode
from .extraction import extract_question
from .jobs import CrawlJob, JobRegistry, JobStep
from .logging_utils import _crawler_event
from .page_selectors import REVIEW_PAGE_SELECTORS
from .persistence import save_question
from .sessions import CrawlSession, SessionClosedError, SessionLostError
from .telemetry import BatchTelemetry
from .utils import log_line

ITEM_SAVED = "saved"
ITEM_SKIPPED = "skipped"

_COLLECT_LINKS_SCRIPT = """
() => {
    const container = document.getElementById(%(container)r);
    if (!container) return [];
    const links = Array.from(container.querySelectorAll(%(link)r));
    return links.map(el => el.getAttribute('href')).filter(Boolean);
}
""" % {
    "container": REVIEW_PAGE_SELECTORS.links_container_id,
    "link": REVIEW_PAGE_SELECTORS.question_link,
}


@dataclass
class BatchResult:
    total: int
    saved: int
    skipped: int
    telemetry_path: Optional[str] = None


def resolve_question_url(link: str, origin: Optional[str] = None) -> str:
    """Return an absolute URL for a review-page link."""

    if link.startswith("http"):
        return link
    base = (origin or config.SITE_ORIGIN).rstrip("/") + "/"
    return urllib.parse.urljoin(base, link)


def show_all_questions(page: BrowserPage) -> bool:
    """Open the tab listing every question; the list may already be visible."""

    try:
        page.click(
            REVIEW_PAGE_SELECTORS.show_all_tab,
            timeout_ms=config.SHOW_ALL_CLICK_TIMEOUT_MS,
        )
        page.wait(config.SHOW_ALL_SETTLE_MS)
        return True
    except SessionClosedError:
        raise
    except Exception as exc:  # noqa: BLE001
        log_line(
            f"[REVIEW] Could not click {REVIEW_PAGE_SELECTORS.show_all_tab}. "
            f"Proceeding assuming list is visible: {exc}",
            logging.WARNING,
        )
        return False


def collect_question_links(page: BrowserPage) -> List[str]:
    """Return question hrefs from the current review page in DOM order."""

    show_all_questions(page)
    raw = page.evaluate(_COLLECT_LINKS_SCRIPT) or []
    links = [str(link).strip() for link in raw if link and str(link).strip()]
    log_line(f"[REVIEW] Found {len(links)} questions to crawl.")
    return links


def _skip(reason: str, meta: Dict[str, Any], exc: Optional[BaseException] = None) -> Tuple[str, str, Dict[str, Any]]:
    if exc is not None:
        meta = {**meta, "error": str(exc)}
    _crawler_event("error", phase="item", reason=reason, **meta)
    return ITEM_SKIPPED, reason, meta


def process_question(
    page: BrowserPage, url: str, *, test_session_id: int, index_number: int
) -> Tuple[str, Optional[str], Dict[str, Any]]:
    """Visit, extract and save one question page.

    Returns ``(status, reason, meta)``. Only a closed session propagates.
    """

    meta: Dict[str, Any] = {"index": index_number, "url": url}

    log_line(f"[REVIEW] Navigating to Q{index_number}: {url}")
    try:
        page.navigate(
            url,
            timeout_ms=config.QUESTION_NAV_TIMEOUT_MS,
            wait_until="domcontentloaded",
        )
    except SessionClosedError:
        raise
    except Exception as exc:  # noqa: BLE001
        log_line(f"[REVIEW][ERROR][NAV] goto({url!r}) failed: {exc}", logging.WARNING)
        return _skip(ErrorCode.NAVIGATION_FAILED, meta, exc)

    try:
        extracted = extract_question(page.content())
    except SessionClosedError:
        raise
    except Exception as exc:  # noqa: BLE001
        log_line(f"[REVIEW][ERROR] Extraction failed for Q{index_number}: {exc}", logging.WARNING)
        return _skip(ErrorCode.EXTRACTION_FAILED, meta, exc)

    meta["strategies"] = extracted.strategies
    if not extracted.is_complete:
        log_line(
            f"[REVIEW] Skipping Q{index_number} - Incomplete data "
            f"(Text: {bool(extracted.question_text)}, Choices: {len(extracted.choices)})",
            logging.WARNING,
        )
        return _skip(ErrorCode.INCOMPLETE_EXTRACTION, meta)

    try:
        meta["question_id"] = save_question(test_session_id, index_number, extracted)
    except Exception as exc:  # noqa: BLE001
        log_line(f"[REVIEW][ERROR] Failed to save Q{index_number}: {exc}", logging.ERROR)
        return _skip(ErrorCode.PERSISTENCE_FAILED, meta, exc)

    log_line(f"[REVIEW] Saved Q{index_number} successfully.")
    return ITEM_SAVED, None, meta


def batch_progress(completed: int, total: int) -> int:
    """Progress shown while the batch body runs; spans 5..95."""

    if total <= 0:
        return 5
    return completed * 90 // total + 5


def run_review_batch(
    job: CrawlJob,
    session: CrawlSession,
    *,
    registry: JobRegistry,
    test_session_id: int,
    max_questions: Optional[int] = None,
) -> BatchResult:
    """Extract every question listed on the session's current review page.

    Raises :class:`SessionLostError` when the session is closed between items
    (cancel or cleanup). Job status is left to the caller.
    """

    page = session.page
    links = collect_question_links(page)
    if max_questions is not None and len(links) > max_questions:
        log_line(f"[REVIEW] Limiting batch to the first {max_questions} of {len(links)} questions.")
        links = links[:max_questions]

    total = len(links)
    job.total_questions = total
    job.step = JobStep.EXTRACTING_QUESTIONS
    registry.save(job)
    _crawler_event("batch", job_id=job.job_id, test_session_id=test_session_id, total=total)

    telemetry = BatchTelemetry(job.job_id, test_session_id)
    saved = 0
    for index_number, link in enumerate(links, start=1):
        if session.closed:
            raise SessionLostError("Browser session closed during batch")

        url = resolve_question_url(link)
        status, reason, meta = process_question(
            page, url, test_session_id=test_session_id, index_number=index_number
        )
        telemetry.add(status, reason, meta)
        if status == ITEM_SAVED:
            saved += 1

        job.set_progress(batch_progress(index_number, total))
        registry.save(job)
        if config.ITEM_DELAY_MS > 0:
            page.wait(config.ITEM_DELAY_MS)

    telemetry_path = None
    try:
        telemetry_path = telemetry.finalize({"total": total})
    except OSError as exc:
        log_line(f"[REVIEW] Failed to write batch telemetry: {exc}", logging.WARNING)

    result = BatchResult(
        total=total,
        saved=saved,
        skipped=total - saved,
        telemetry_path=telemetry_path,
    )
    log_line(
        f"[REVIEW] Batch finished: saved={result.saved} skipped={result.skipped} "
        f"total={result.total}. Session kept open for more crawling."
    )
    return result


__all__ = [
    "BatchResult",
    "ITEM_SAVED",
    "ITEM_SKIPPED",
    "batch_progress",
    "collect_question_links",
    "process_question",
    "resolve_question_url",
    "run_review_batch",
    "show_all_questions",
]
