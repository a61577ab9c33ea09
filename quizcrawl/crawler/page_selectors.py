"""Selectors and marker phrases for the targeted e-learning markup family."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class LoginSelectors:
    """Candidate controls probed by the best-effort login heuristic.

    Each selector string is a comma-separated list; Playwright acts on the
    first element matching any of the alternatives.
    """

    username_field: str = 'input[type="email"], input[name*="user"], input[placeholder*="mail"]'
    password_field: str = 'input[type="password"]'
    submit_control: str = 'button[type="submit"], input[type="submit"], button:has-text("Log")'
    conflict_indicator: str = 'text="logged in on another device"'
    error_indicator: str = ".alert-danger, .error-message"


@dataclass(frozen=True)
class ReviewPageSelectors:
    """The review page lists every question of an attempt behind a tab."""

    show_all_tab: str = "#pills-all-tab"
    links_container_id: str = "pills-tabContent"
    question_link: str = "a.col-fill"


@dataclass(frozen=True)
class QuestionPageSelectors:
    """Selector hints for a single question detail page.

    The markup is undocumented and varies per page; the extraction cascade
    tries these in order.
    """

    headings: str = "h3, h4, .card-title, strong, b"
    question_marker: str = "Step by Step"
    card_container: str = ".card, .panel, .box"
    card_body: str = ".card-body, .panel-body, .box-body"
    sibling_tags: Tuple[str, ...] = ("p", "div")
    question_content: str = ".question-content, .card-body h4, .q-text"
    option_rows: str = ".answer-option, .radio, .checkbox, label"
    choice_input: str = 'input[type="radio"], input[type="checkbox"]'
    input_container: str = "div, li, tr"
    success_class: str = "text-success"
    correct_colors: Tuple[str, ...] = ("green", "rgb(0, 128, 0)", "#008000")
    explanation_marker: str = "Note:"
    explanation_container: str = "div, p"


LOGIN_SELECTORS = LoginSelectors()
REVIEW_PAGE_SELECTORS = ReviewPageSelectors()
QUESTION_PAGE_SELECTORS = QuestionPageSelectors()

__all__ = [
    "LoginSelectors",
    "ReviewPageSelectors",
    "QuestionPageSelectors",
    "LOGIN_SELECTORS",
    "REVIEW_PAGE_SELECTORS",
    "QUESTION_PAGE_SELECTORS",
]
