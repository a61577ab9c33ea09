from __future__ import annotations

import hashlib

from . import config, db
from .extraction import ExtractedQuestion
from .logging_utils import _crawler_event
from .utils import truncate_text


def compute_question_hash(question_text: str) -> str:
    """Return the advisory fingerprint of a question (md5 of its full text)."""

    return hashlib.md5((question_text or "").encode("utf-8")).hexdigest()


def save_question(
    test_session_id: int, index_number: int, extracted: ExtractedQuestion
) -> int:
    """Persist one extracted question with its choices and return its id.

    The hash is stored for later deduplication passes but is not checked here,
    so saving the same page twice yields two rows with identical hashes.
    """

    hash_value = compute_question_hash(extracted.question_text)
    question_id = db.insert_question_with_choices(
        test_session_id=test_session_id,
        index_number=index_number,
        question_text=truncate_text(extracted.question_text, config.MAX_TEXT_LENGTH),
        explanation=truncate_text(extracted.explanation, config.MAX_TEXT_LENGTH),
        hash_value=hash_value,
        choices=[
            {"text": choice.text, "is_correct": choice.is_correct, "label": choice.label}
            for choice in extracted.choices
        ],
    )
    _crawler_event(
        "persist",
        test_session_id=test_session_id,
        index_number=index_number,
        question_id=question_id,
        choices=len(extracted.choices),
        hash=hash_value,
    )
    return question_id


__all__ = ["compute_question_hash", "save_question"]
