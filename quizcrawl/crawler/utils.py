from __future__ import annotations

import logging
import re
import shutil
import sys
import time
from pathlib import Path

from . import config


LOGGER = logging.getLogger("quizcrawl")
_LOGGER_INITIALISED = False


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def ensure_dirs() -> None:
    """Ensure that the application's expected directory structure exists."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    config.BATCHES_DIR.mkdir(parents=True, exist_ok=True)
    config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str, level: int = logging.INFO) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.log(level, message)


def utc_now() -> str:
    """Return a UTC timestamp formatted as ISO8601 without fractional seconds."""

    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def sanitize_filename_component(component: str | None) -> str:
    """Reduce *component* to ASCII letters and digits, other characters become ``_``."""

    if not component:
        return ""

    return re.sub(r"[^A-Za-z0-9]", "_", component.strip())


def truncate_text(value: str | None, limit: int) -> str:
    """Return *value* cut to at most *limit* characters (``None`` becomes ``""``)."""

    if not value:
        return ""
    return value[:limit]


def disk_has_room(min_free_mb: int, path: Path) -> bool:
    """Return ``True`` when the filesystem holding *path* has *min_free_mb* free."""

    target = Path(path)
    while not target.exists() and target != target.parent:
        target = target.parent
    try:
        usage = shutil.disk_usage(target)
    except OSError:
        return False
    return usage.free >= min_free_mb * 1024 * 1024


__all__ = [
    "LOGGER",
    "ensure_dirs",
    "log_line",
    "utc_now",
    "sanitize_filename_component",
    "truncate_text",
    "disk_has_room",
]
