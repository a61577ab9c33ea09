"""Configuration constants for the quiz crawler application."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("QUIZCRAWL_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
BATCHES_DIR: Path = DATA_DIR / "batches"
EXPORTS_DIR: Path = DATA_DIR / "exports"
DB_PATH: Path = DATA_DIR / "quizcrawl.db"

# Origin used to resolve relative question links found on the review page.
SITE_ORIGIN: str = (
    os.getenv("QUIZCRAWL_SITE_ORIGIN", "https://elearning.vnpmi.org").strip().rstrip("/")
)

# Persisted question text and explanation are cut to this many characters.
MAX_TEXT_LENGTH: int = int(os.getenv("QUIZCRAWL_MAX_TEXT_LENGTH", "5000"))
DEFAULT_MAX_QUESTIONS: int = int(os.getenv("QUIZCRAWL_MAX_QUESTIONS", "500"))

# A human drives the same window, so the browser is headed unless overridden.
BROWSER_HEADLESS: bool = os.getenv("QUIZCRAWL_HEADLESS", "0").strip().lower() not in {
    "0",
    "false",
}


def _parse_timeout_ms(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in milliseconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


# Playwright timeouts (milliseconds, matching the Playwright API).
# Initial navigation to the login page.
LOGIN_PAGE_TIMEOUT_MS: int = _parse_timeout_ms("QUIZCRAWL_LOGIN_PAGE_TIMEOUT_MS", 60000)
# Per-question navigation inside a batch.
QUESTION_NAV_TIMEOUT_MS: int = _parse_timeout_ms("QUIZCRAWL_QUESTION_NAV_TIMEOUT_MS", 30000)
# Fill/click waits used by the login heuristic.
SELECTOR_TIMEOUT_MS: int = _parse_timeout_ms("QUIZCRAWL_SELECTOR_TIMEOUT_MS", 30000)
# "Show all" tab on the review page.
SHOW_ALL_CLICK_TIMEOUT_MS: int = _parse_timeout_ms("QUIZCRAWL_SHOW_ALL_CLICK_TIMEOUT_MS", 5000)
SHOW_ALL_SETTLE_MS: int = _parse_timeout_ms("QUIZCRAWL_SHOW_ALL_SETTLE_MS", 1000, minimum=0)

# Login outcome race; each outcome has its own deadline.
LOGIN_NAVIGATION_WAIT_MS: int = _parse_timeout_ms("QUIZCRAWL_LOGIN_NAVIGATION_WAIT_MS", 10000)
LOGIN_CONFLICT_WAIT_MS: int = _parse_timeout_ms("QUIZCRAWL_LOGIN_CONFLICT_WAIT_MS", 5000)
LOGIN_ERROR_WAIT_MS: int = _parse_timeout_ms("QUIZCRAWL_LOGIN_ERROR_WAIT_MS", 5000)
LOGIN_RESUBMIT_PAUSE_MS: int = _parse_timeout_ms("QUIZCRAWL_LOGIN_RESUBMIT_PAUSE_MS", 1000, minimum=0)
LOGIN_RESUBMIT_NAVIGATION_WAIT_MS: int = _parse_timeout_ms(
    "QUIZCRAWL_LOGIN_RESUBMIT_NAVIGATION_WAIT_MS", 15000
)
LOGIN_POLL_INTERVAL_MS: int = _parse_timeout_ms("QUIZCRAWL_LOGIN_POLL_INTERVAL_MS", 250)

# Throttle between question pages within a batch.
ITEM_DELAY_MS: int = int(os.getenv("QUIZCRAWL_ITEM_DELAY_MS", "500"))

# How long an idle session worker lets Playwright dispatch events (dialogs)
# before checking its command queue again.
SESSION_IDLE_PUMP_MS: int = _parse_timeout_ms("QUIZCRAWL_SESSION_IDLE_PUMP_MS", 200)

EXPORTS_KEEP_MAX: int = int(os.getenv("QUIZCRAWL_EXPORTS_KEEP_MAX", "20"))
RECORD_BATCH_TELEMETRY: bool = os.getenv(
    "QUIZCRAWL_RECORD_BATCH_TELEMETRY", "1"
).strip().lower() not in {"0", "false"}

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "100"))
