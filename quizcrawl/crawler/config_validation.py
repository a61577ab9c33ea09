from __future__ import annotations

import urllib.parse
from typing import Literal

from . import config
from .logging_utils import _crawler_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "replay", "tests"]


def _raise_config_error(
    message: str, *, entrypoint: Entrypoint, error: str, mode: str | None
) -> None:
    _crawler_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
        mode=mode,
    )
    mode_fragment = f", mode={mode}" if mode else ""
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint}{mode_fragment})")
    raise ValueError(message)


def _clamp(field_name: str, value: int, adjusted: int, *, entrypoint: Entrypoint, mode: str | None) -> None:
    _crawler_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field_name,
        value=value,
        adjusted=adjusted,
        entrypoint=entrypoint,
        mode=mode,
    )
    log_line(f"[CONFIG] {field_name}={value} is out of range; clamping to {adjusted}.")
    setattr(config, field_name, adjusted)


def validate_runtime_config(entrypoint: Entrypoint, *, mode: str | None = None) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Out-of-range throttles and limits are clamped and logged instead.
    """

    origin = urllib.parse.urlparse(config.SITE_ORIGIN or "")
    if origin.scheme not in {"http", "https"} or not origin.netloc:
        _raise_config_error(
            "SITE_ORIGIN must be an absolute http(s) origin.",
            entrypoint=entrypoint,
            error="site_origin_invalid",
            mode=mode,
        )

    if config.MAX_TEXT_LENGTH < 1:
        _raise_config_error(
            "MAX_TEXT_LENGTH must be greater than zero.",
            entrypoint=entrypoint,
            error="max_text_length_invalid",
            mode=mode,
        )

    if config.DEFAULT_MAX_QUESTIONS < 1:
        _clamp("DEFAULT_MAX_QUESTIONS", config.DEFAULT_MAX_QUESTIONS, 1, entrypoint=entrypoint, mode=mode)

    if config.ITEM_DELAY_MS < 0:
        _clamp("ITEM_DELAY_MS", config.ITEM_DELAY_MS, 0, entrypoint=entrypoint, mode=mode)

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
            mode=mode,
        )

    timeout_fields = [
        ("LOGIN_PAGE_TIMEOUT_MS", config.LOGIN_PAGE_TIMEOUT_MS),
        ("QUESTION_NAV_TIMEOUT_MS", config.QUESTION_NAV_TIMEOUT_MS),
        ("SELECTOR_TIMEOUT_MS", config.SELECTOR_TIMEOUT_MS),
        ("SHOW_ALL_CLICK_TIMEOUT_MS", config.SHOW_ALL_CLICK_TIMEOUT_MS),
        ("LOGIN_NAVIGATION_WAIT_MS", config.LOGIN_NAVIGATION_WAIT_MS),
        ("LOGIN_CONFLICT_WAIT_MS", config.LOGIN_CONFLICT_WAIT_MS),
        ("LOGIN_ERROR_WAIT_MS", config.LOGIN_ERROR_WAIT_MS),
        ("LOGIN_RESUBMIT_NAVIGATION_WAIT_MS", config.LOGIN_RESUBMIT_NAVIGATION_WAIT_MS),
        ("LOGIN_POLL_INTERVAL_MS", config.LOGIN_POLL_INTERVAL_MS),
        ("SESSION_IDLE_PUMP_MS", config.SESSION_IDLE_PUMP_MS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
                mode=mode,
            )


__all__ = ["validate_runtime_config", "Entrypoint"]
