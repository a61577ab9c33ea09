"""Heuristic extraction of quiz content from a rendered question page.

Every field is extracted by an ordered cascade of named strategies. Each
strategy is a pure function over a parsed snapshot of the page and returns a
value or ``None`` for "no match"; the first strategy with a non-empty value
wins. Adding or removing a tier only means editing one of the strategy lists
at the bottom of this module.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .page_selectors import QUESTION_PAGE_SELECTORS as S

_SKIP_TAGS = {"script", "style", "noscript", "template", "head", "title", "input", "select"}
_BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "dd", "details", "div", "dl",
    "dt", "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2",
    "h3", "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p",
    "pre", "section", "table", "tbody", "thead", "tfoot", "tr", "ul",
}
_CELL_TAGS = {"td", "th"}
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ExtractedChoice:
    text: str
    is_correct: bool
    label: str = ""


@dataclass
class ExtractedQuestion:
    question_text: str
    choices: list[ExtractedChoice]
    explanation: str = ""
    strategies: dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        """A page is worth saving only with question text and at least one choice."""

        return bool(self.question_text) and len(self.choices) > 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Strategy:
    name: str
    extract: Callable[[BeautifulSoup], Any]


def parse_snapshot(html: str) -> BeautifulSoup:
    """Parse serialised page HTML the way a browser would."""

    return BeautifulSoup(html or "", "html5lib")


def _is_hidden(tag: Tag) -> bool:
    if tag.has_attr("hidden"):
        return True
    style = (tag.get("style") or "").replace(" ", "").lower()
    return "display:none" in style


def visible_text(node: Optional[Tag]) -> str:
    """Approximate ``innerText`` for *node*.

    Script/style content and hidden elements are ignored, block elements start
    a new line, and runs of whitespace collapse to one space.
    """

    if node is None:
        return ""

    parts: list[str] = []

    def walk(element: Tag) -> None:
        for child in element.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                parts.append(_WHITESPACE.sub(" ", str(child)))
                continue
            if not isinstance(child, Tag):
                continue
            if child.name in _SKIP_TAGS or _is_hidden(child):
                continue
            if child.name == "br":
                parts.append("\n")
                continue
            is_block = child.name in _BLOCK_TAGS
            if is_block:
                parts.append("\n")
            walk(child)
            if is_block:
                parts.append("\n")
            elif child.name in _CELL_TAGS:
                parts.append(" ")

    walk(node)
    lines = (_WHITESPACE.sub(" ", line).strip() for line in "".join(parts).split("\n"))
    return "\n".join(line for line in lines if line)


def _find_heading(soup: BeautifulSoup, marker: str) -> Optional[Tag]:
    """Return the first heading-like element whose text contains *marker*."""

    for heading in soup.select(S.headings):
        if marker in visible_text(heading):
            return heading
    return None


def _card_body_for(heading: Tag) -> Optional[Tag]:
    card = heading.css.closest(S.card_container)
    if card is None:
        return None
    return card.select_one(S.card_body)


# --- question text -------------------------------------------------------


def question_from_step_card(soup: BeautifulSoup) -> Optional[str]:
    heading = _find_heading(soup, S.question_marker)
    if heading is None:
        return None
    body = _card_body_for(heading)
    if body is None:
        return None
    return visible_text(body).replace(S.question_marker, "", 1).strip() or None


def question_from_step_siblings(soup: BeautifulSoup) -> Optional[str]:
    heading = _find_heading(soup, S.question_marker)
    # The sibling walk only applies when the heading has no card body.
    if heading is None or _card_body_for(heading) is not None:
        return None
    text = ""
    for sibling in heading.find_next_siblings():
        if sibling.name in S.sibling_tags:
            text += visible_text(sibling) + "\n"
    return text.strip() or None


def question_from_content_block(soup: BeautifulSoup) -> Optional[str]:
    element = soup.select_one(S.question_content)
    if element is None:
        return None
    return visible_text(element) or None


def question_from_page_text(soup: BeautifulSoup) -> Optional[str]:
    return visible_text(soup.body or soup) or None


# --- choices -------------------------------------------------------------


def _normalise_color(value: str) -> str:
    return value.replace(" ", "").lower()


_CORRECT_COLORS = {_normalise_color(color) for color in S.correct_colors}


def _inline_color(tag: Tag) -> str:
    """Return the normalised inline ``color`` declaration of *tag*, if any."""

    for declaration in (tag.get("style") or "").split(";"):
        name, _, value = declaration.partition(":")
        if name.strip().lower() == "color":
            return _normalise_color(value.replace("!important", ""))
    return ""


def is_marked_correct(row: Tag, choice_input: Tag) -> bool:
    """Apply the correctness signals used by this markup family to a choice row."""

    classes = row.get("class") or []
    if S.success_class in classes or row.select_one(f".{S.success_class}") is not None:
        return True
    if _inline_color(row) in _CORRECT_COLORS:
        return True
    # The review page renders the keyed answer as a pre-checked input, usually
    # inside a "radio-danger" styled row.
    return choice_input.has_attr("checked")


def choices_from_option_rows(soup: BeautifulSoup) -> Optional[list[ExtractedChoice]]:
    choices: list[ExtractedChoice] = []
    for row in soup.select(S.option_rows):
        choice_input = row.select_one(S.choice_input)
        if choice_input is None:
            continue
        choices.append(
            ExtractedChoice(
                text=visible_text(row),
                is_correct=is_marked_correct(row, choice_input),
            )
        )
    return choices or None


def choices_from_bare_inputs(soup: BeautifulSoup) -> Optional[list[ExtractedChoice]]:
    choices: list[ExtractedChoice] = []
    for choice_input in soup.select(S.choice_input):
        container = choice_input.css.closest(S.input_container) or choice_input.parent
        if container is None:
            continue
        choices.append(
            ExtractedChoice(
                text=visible_text(container),
                is_correct=is_marked_correct(container, choice_input),
            )
        )
    return choices or None


# --- explanation ---------------------------------------------------------


def explanation_from_note_block(soup: BeautifulSoup) -> Optional[str]:
    heading = _find_heading(soup, S.explanation_marker)
    if heading is None:
        return None
    container = heading.css.closest(S.explanation_container)
    if container is None:
        return None
    return visible_text(container).replace(S.explanation_marker, "", 1).strip() or None


QUESTION_TEXT_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("step_by_step_card", question_from_step_card),
    Strategy("step_by_step_siblings", question_from_step_siblings),
    Strategy("question_content", question_from_content_block),
    Strategy("page_text", question_from_page_text),
)

CHOICE_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("option_rows", choices_from_option_rows),
    Strategy("bare_inputs", choices_from_bare_inputs),
)

EXPLANATION_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("note_block", explanation_from_note_block),
)


def run_cascade(
    strategies: Sequence[Strategy], soup: BeautifulSoup
) -> Tuple[Any, Optional[str]]:
    """Run *strategies* in order and return ``(value, strategy_name)``.

    Stops at the first strategy returning a non-empty value; later strategies
    are never invoked. Returns ``(None, None)`` when nothing matched.
    """

    for strategy in strategies:
        value = strategy.extract(soup)
        if value:
            return value, strategy.name
    return None, None


def extract_question(html: str) -> ExtractedQuestion:
    """Extract question text, choices and explanation from page HTML."""

    soup = parse_snapshot(html)
    question_text, question_strategy = run_cascade(QUESTION_TEXT_STRATEGIES, soup)
    choices, choice_strategy = run_cascade(CHOICE_STRATEGIES, soup)
    explanation, explanation_strategy = run_cascade(EXPLANATION_STRATEGIES, soup)

    return ExtractedQuestion(
        question_text=(question_text or "").strip(),
        choices=list(choices or []),
        explanation=(explanation or "").strip(),
        strategies={
            "question_text": question_strategy,
            "choices": choice_strategy,
            "explanation": explanation_strategy,
        },
    )


__all__ = [
    "ExtractedChoice",
    "ExtractedQuestion",
    "Strategy",
    "QUESTION_TEXT_STRATEGIES",
    "CHOICE_STRATEGIES",
    "EXPLANATION_STRATEGIES",
    "parse_snapshot",
    "visible_text",
    "is_marked_correct",
    "run_cascade",
    "extract_question",
]
