"""Excel export helpers for extracted test sessions."""

from __future__ import annotations

import os
from datetime import date
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from . import config, reporting
from .utils import log_line, sanitize_filename_component

QUESTION_COLUMNS = ["indexNumber", "questionText", "correctAnswers", "choiceCount"]
CHOICE_COLUMNS = ["indexNumber", "position", "text", "isCorrect", "label"]


def export_filename(test_session: Mapping[str, Any], *, day: Optional[date] = None) -> str:
    """Return ``<testName>[_<topic>]_<YYYY-MM-DD>.xlsx`` with unsafe characters replaced."""

    safe_test_name = sanitize_filename_component(test_session.get("testName") or "Test")
    safe_topic = sanitize_filename_component(test_session.get("topic") or "")
    date_str = (day or date.today()).isoformat()
    topic_part = f"_{safe_topic}" if safe_topic else ""
    return f"{safe_test_name}{topic_part}_{date_str}.xlsx"


def prune_old_exports() -> None:
    exports_dir = str(config.EXPORTS_DIR)
    if not os.path.isdir(exports_dir):
        return
    files = sorted(
        (os.path.join(exports_dir, p) for p in os.listdir(exports_dir) if p.endswith(".xlsx")),
        key=os.path.getmtime,
    )
    while len(files) > config.EXPORTS_KEEP_MAX:
        old = files.pop(0)
        try:
            os.remove(old)
        except OSError:
            continue


def export_test_session_to_excel(
    test_session_id: int,
    *,
    include_explanation: bool = True,
    only_correct: bool = False,
    dest_path: Optional[str] = None,
) -> str:
    """Write a workbook with Questions and Choices sheets and return its path.

    ``only_correct`` keeps only choices marked correct; ``include_explanation``
    adds the explanation column to the Questions sheet.
    """

    detail = reporting.get_test_session_detail(test_session_id)

    question_rows = []
    choice_rows = []
    for question in detail["questions"]:
        choices = question["choices"]
        if only_correct:
            choices = [choice for choice in choices if choice["isCorrect"]]
        row: Dict[str, Any] = {
            "indexNumber": question["indexNumber"],
            "questionText": question["questionText"],
            "correctAnswers": "\n".join(c["text"] for c in question["choices"] if c["isCorrect"]),
            "choiceCount": len(choices),
        }
        if include_explanation:
            row["explanation"] = question["explanation"]
        question_rows.append(row)
        for position, choice in enumerate(choices, start=1):
            choice_rows.append(
                {
                    "indexNumber": question["indexNumber"],
                    "position": position,
                    "text": choice["text"],
                    "isCorrect": choice["isCorrect"],
                    "label": choice["label"],
                }
            )

    question_columns = QUESTION_COLUMNS + (["explanation"] if include_explanation else [])
    questions_df = pd.DataFrame(question_rows, columns=question_columns)
    choices_df = pd.DataFrame(choice_rows, columns=CHOICE_COLUMNS)
    summary_df = pd.DataFrame(
        [
            {"field": "testSessionId", "value": detail["id"]},
            {"field": "testName", "value": detail["testName"] or ""},
            {"field": "topic", "value": detail["topic"] or ""},
            {"field": "sourceTestUrl", "value": detail["sourceTestUrl"]},
            {"field": "status", "value": detail["status"]},
            {"field": "createdAt", "value": detail["createdAt"]},
            {"field": "totalQuestions", "value": len(question_rows)},
        ]
    )

    os.makedirs(config.EXPORTS_DIR, exist_ok=True)
    if not dest_path:
        dest_path = os.path.join(config.EXPORTS_DIR, export_filename(detail))

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        questions_df.to_excel(writer, index=False, sheet_name="Questions")
        choices_df.to_excel(writer, index=False, sheet_name="Choices")
        summary_df.to_excel(writer, index=False, sheet_name="Summary")

    log_line(f"[EXPORT] Wrote test session {test_session_id} -> {dest_path}")
    prune_old_exports()
    return dest_path


__all__ = ["export_filename", "export_test_session_to_excel", "prune_old_exports"]
