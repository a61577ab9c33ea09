from __future__ import annotations

import logging
import time
from typing import Optional

from . import config
from .browser import BrowserPage
from .logging_utils import _crawler_event
from .page_selectors import LOGIN_SELECTORS
from .utils import log_line

OUTCOME_NAVIGATED = "navigated"
OUTCOME_CONFLICT = "conflict"
OUTCOME_ERROR = "error"
OUTCOME_TIMEOUT = "timeout"


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def _wait_for_navigation(page: BrowserPage, baseline: int, timeout_ms: int) -> bool:
    started = time.monotonic()
    while _elapsed_ms(started) < timeout_ms:
        if page.navigation_count() > baseline:
            return True
        page.wait(config.LOGIN_POLL_INTERVAL_MS)
    return page.navigation_count() > baseline


def await_login_outcome(page: BrowserPage, baseline: int) -> str:
    """Race navigation, the device-conflict notice and a visible login error.

    Each outcome has its own deadline. The race settles on the first outcome
    observed, or as soon as any deadline lapses, which yields ``"timeout"``.
    """

    deadlines = {
        OUTCOME_NAVIGATED: config.LOGIN_NAVIGATION_WAIT_MS,
        OUTCOME_CONFLICT: config.LOGIN_CONFLICT_WAIT_MS,
        OUTCOME_ERROR: config.LOGIN_ERROR_WAIT_MS,
    }
    started = time.monotonic()
    while _elapsed_ms(started) < min(deadlines.values()):
        if page.navigation_count() > baseline:
            return OUTCOME_NAVIGATED
        if page.is_visible(LOGIN_SELECTORS.conflict_indicator):
            return OUTCOME_CONFLICT
        if page.is_visible(LOGIN_SELECTORS.error_indicator):
            return OUTCOME_ERROR
        page.wait(config.LOGIN_POLL_INTERVAL_MS)
    return OUTCOME_TIMEOUT


def attempt_login(page: BrowserPage, username: str, password: str) -> Optional[str]:
    """Fill and submit the login form on the current page.

    Never raises: the human finishes or corrects the login in the open
    browser, so any failure here is only logged. Returns the race outcome, or
    ``None`` when the form could not be submitted.
    """

    selectors = LOGIN_SELECTORS
    log_line(f"[LOGIN] Attempting login for user: {username}")
    try:
        page.fill(selectors.username_field, username, timeout_ms=config.SELECTOR_TIMEOUT_MS)
        page.fill(selectors.password_field, password, timeout_ms=config.SELECTOR_TIMEOUT_MS)
        baseline = page.navigation_count()
        page.click(selectors.submit_control, timeout_ms=config.SELECTOR_TIMEOUT_MS)
    except Exception as exc:  # noqa: BLE001
        log_line(f"[LOGIN] Login heuristic failed, continuing anyway: {exc}", logging.WARNING)
        _crawler_event("login", outcome="form_failed", error=str(exc))
        return None

    try:
        outcome = await_login_outcome(page, baseline)
        if outcome == OUTCOME_CONFLICT:
            log_line("[LOGIN] Session conflict detected. Forcing login...", logging.WARNING)
            page.wait(config.LOGIN_RESUBMIT_PAUSE_MS)
            baseline = page.navigation_count()
            page.click(selectors.submit_control, timeout_ms=config.SELECTOR_TIMEOUT_MS)
            if not _wait_for_navigation(page, baseline, config.LOGIN_RESUBMIT_NAVIGATION_WAIT_MS):
                log_line("[LOGIN] No navigation after resubmitting login", logging.WARNING)
        elif outcome == OUTCOME_ERROR:
            log_line("[LOGIN] Login page shows an error; leaving it to the user", logging.WARNING)
    except Exception as exc:  # noqa: BLE001
        log_line(f"[LOGIN] Waiting for login outcome failed: {exc}", logging.WARNING)
        _crawler_event("login", outcome="wait_failed", error=str(exc))
        return None

    _crawler_event("login", outcome=outcome)
    return outcome


__all__ = [
    "OUTCOME_CONFLICT",
    "OUTCOME_ERROR",
    "OUTCOME_NAVIGATED",
    "OUTCOME_TIMEOUT",
    "attempt_login",
    "await_login_outcome",
]
