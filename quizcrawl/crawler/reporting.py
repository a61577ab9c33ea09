from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import db


class TestSessionNotFoundError(LookupError):
    """Raised when a requested test session does not exist."""

    __test__ = False


@dataclass
class TestSessionSummary:
    """Content health of one test session."""

    __test__ = False

    test_session_id: int
    status: str
    question_count: int
    choice_count: int
    questions_without_correct: List[int] = field(default_factory=list)
    duplicate_hashes: Dict[str, List[int]] = field(default_factory=dict)


def _test_session_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "sourceLoginUrl": row["source_login_url"],
        "sourceTestUrl": row["source_test_url"],
        "status": row["status"],
        "topic": row["topic"],
        "testName": row["test_name"],
        "includeExplanation": bool(row["include_explanation"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def _choice_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "questionId": row["question_id"],
        "text": row["text"],
        "isCorrect": bool(row["is_correct"]),
        "label": row["label"] or "",
    }


def _require_test_session(test_session_id: int) -> sqlite3.Row:
    row = db.get_test_session(test_session_id)
    if row is None:
        raise TestSessionNotFoundError(f"Test session {test_session_id} does not exist")
    return row


def list_test_sessions() -> List[Dict[str, Any]]:
    """Return every test session, newest first, with its question count."""

    conn = db.get_connection()
    try:
        rows = conn.execute(
            """
            SELECT ts.*, COUNT(q.id) AS question_count
            FROM test_sessions ts
            LEFT JOIN questions q ON q.test_session_id = ts.id
            GROUP BY ts.id
            ORDER BY ts.created_at DESC, ts.id DESC
            """
        ).fetchall()
    finally:
        conn.close()

    sessions = []
    for row in rows:
        payload = _test_session_to_dict(row)
        payload["questionCount"] = int(row["question_count"])
        sessions.append(payload)
    return sessions


def get_questions(test_session_id: int) -> List[Dict[str, Any]]:
    """Return the session's questions in index order, each with its choices."""

    _require_test_session(test_session_id)

    question_rows = db.list_questions(test_session_id)
    choices_by_question: Dict[int, List[Dict[str, Any]]] = {}
    for choice in db.list_choices_for_questions([row["id"] for row in question_rows]):
        choices_by_question.setdefault(choice["question_id"], []).append(_choice_to_dict(choice))

    return [
        {
            "id": row["id"],
            "testSessionId": row["test_session_id"],
            "indexNumber": row["index_number"],
            "questionText": row["question_text"],
            "explanation": row["explanation"] or "",
            "hash": row["hash"],
            "choices": choices_by_question.get(row["id"], []),
        }
        for row in question_rows
    ]


def get_test_session_detail(test_session_id: int) -> Dict[str, Any]:
    """Return the test session record with its questions and choices."""

    payload = _test_session_to_dict(_require_test_session(test_session_id))
    payload["questions"] = get_questions(test_session_id)
    return payload


def latest_test_session_id() -> Optional[int]:
    """Return the ID of the most recently created test session, or None."""

    conn = db.get_connection()
    try:
        row = conn.execute(
            "SELECT id FROM test_sessions ORDER BY created_at DESC, id DESC LIMIT 1"
        ).fetchone()
    finally:
        conn.close()
    return int(row["id"]) if row else None


def summarise_test_session(test_session_id: int) -> TestSessionSummary:
    """Count content and flag questions that need an editorial look.

    Duplicate groups surface repeated extraction of the same page, which the
    crawler does not prevent.
    """

    row = _require_test_session(test_session_id)
    questions = get_questions(test_session_id)

    duplicates: Dict[str, List[int]] = {}
    for question in questions:
        duplicates.setdefault(question["hash"], []).append(question["indexNumber"])

    return TestSessionSummary(
        test_session_id=test_session_id,
        status=row["status"],
        question_count=len(questions),
        choice_count=sum(len(q["choices"]) for q in questions),
        questions_without_correct=[
            q["indexNumber"]
            for q in questions
            if not any(choice["isCorrect"] for choice in q["choices"])
        ],
        duplicate_hashes={h: idx for h, idx in duplicates.items() if len(idx) > 1},
    )


__all__ = [
    "TestSessionNotFoundError",
    "TestSessionSummary",
    "get_questions",
    "get_test_session_detail",
    "latest_test_session_id",
    "list_test_sessions",
    "summarise_test_session",
]
