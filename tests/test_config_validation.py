import pytest

from quizcrawl.crawler import config
from quizcrawl.crawler.config_validation import validate_runtime_config


def test_defaults_are_valid():
    validate_runtime_config("tests")


def test_site_origin_must_be_absolute(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "SITE_ORIGIN", "quiz.example.com")
    with pytest.raises(ValueError):
        validate_runtime_config("ui")


def test_min_free_mb_negative(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", -5)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "QUESTION_NAV_TIMEOUT_MS", 0)
    with pytest.raises(ValueError, match="QUESTION_NAV_TIMEOUT_MS"):
        validate_runtime_config("cli")


def test_limits_are_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "DEFAULT_MAX_QUESTIONS", 0)
    monkeypatch.setattr(config, "ITEM_DELAY_MS", -100)

    validate_runtime_config("tests")

    assert config.DEFAULT_MAX_QUESTIONS == 1
    assert config.ITEM_DELAY_MS == 0
