"""SQLite helpers for the quiz crawler.

This module defines the project database path, connection helper, schema
initialisation, and the write/read helpers for test sessions, questions and
their choices.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from . import config
from .utils import utc_now

DB_PATH: Path = config.DB_PATH


def get_connection() -> sqlite3.Connection:
    """Return a SQLite connection to the project database.

    The parent directory is created if missing and ``check_same_thread`` is
    disabled to allow reuse from different threads. Callers must manage
    concurrency at a higher layer.
    """

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def initialize_schema() -> None:
    """Create the baseline tables if they do not yet exist.

    Safe to call multiple times; each statement uses ``IF NOT EXISTS`` to avoid
    duplicate objects.
    """

    statements: Iterable[str] = (
        """
        CREATE TABLE IF NOT EXISTS test_sessions (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            source_login_url    TEXT NOT NULL,
            source_test_url     TEXT NOT NULL DEFAULT '',
            status              TEXT NOT NULL,
            topic               TEXT,
            test_name           TEXT,
            include_explanation INTEGER NOT NULL DEFAULT 1,
            created_at          TEXT NOT NULL,
            updated_at          TEXT NOT NULL
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_test_sessions_created_at
            ON test_sessions(created_at DESC);
        """,
        """
        CREATE TABLE IF NOT EXISTS questions (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            test_session_id INTEGER NOT NULL,
            index_number    INTEGER NOT NULL,
            question_text   TEXT NOT NULL,
            explanation     TEXT NOT NULL DEFAULT '',
            hash            TEXT NOT NULL,
            created_at      TEXT NOT NULL,
            FOREIGN KEY(test_session_id) REFERENCES test_sessions(id)
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_questions_session_index
            ON questions(test_session_id, index_number);
        """,
        # Advisory only; duplicates are allowed.
        """
        CREATE INDEX IF NOT EXISTS idx_questions_hash
            ON questions(hash);
        """,
        """
        CREATE TABLE IF NOT EXISTS choices (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            question_id INTEGER NOT NULL,
            position    INTEGER NOT NULL,
            text        TEXT NOT NULL,
            is_correct  INTEGER NOT NULL DEFAULT 0,
            label       TEXT NOT NULL DEFAULT '',
            FOREIGN KEY(question_id) REFERENCES questions(id)
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_choices_question
            ON choices(question_id, position);
        """,
    )

    conn = get_connection()
    with conn:
        for statement in statements:
            conn.execute(statement)


def create_test_session(
    *,
    source_login_url: str,
    source_test_url: str,
    status: str,
    include_explanation: bool = True,
    topic: Optional[str] = None,
    test_name: Optional[str] = None,
) -> int:
    """Insert a test_sessions row and return its identifier."""

    now = utc_now()
    conn = get_connection()
    with conn:
        cursor = conn.execute(
            """
            INSERT INTO test_sessions (
                source_login_url, source_test_url, status, topic, test_name,
                include_explanation, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source_login_url,
                source_test_url or "",
                status,
                topic,
                test_name,
                1 if include_explanation else 0,
                now,
                now,
            ),
        )
    return int(cursor.lastrowid)


def get_test_session(test_session_id: int) -> Optional[sqlite3.Row]:
    """Return the test_sessions row for ``test_session_id``, if any."""

    conn = get_connection()
    cursor = conn.execute(
        "SELECT * FROM test_sessions WHERE id = ?",
        (test_session_id,),
    )
    return cursor.fetchone()


def update_test_session_status(test_session_id: int, status: str) -> None:
    """Set the status of a test session."""

    conn = get_connection()
    with conn:
        conn.execute(
            """
            UPDATE test_sessions
            SET status = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, utc_now(), test_session_id),
        )


def insert_question_with_choices(
    *,
    test_session_id: int,
    index_number: int,
    question_text: str,
    explanation: str,
    hash_value: str,
    choices: Sequence[Mapping[str, object]],
) -> int:
    """Insert one question and its choices in a single transaction.

    ``choices`` are stored with a ``position`` equal to their order in the
    sequence. Returns the new question id.
    """

    conn = get_connection()
    with conn:
        cursor = conn.execute(
            """
            INSERT INTO questions (
                test_session_id, index_number, question_text, explanation,
                hash, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                test_session_id,
                index_number,
                question_text,
                explanation,
                hash_value,
                utc_now(),
            ),
        )
        question_id = int(cursor.lastrowid)
        conn.executemany(
            """
            INSERT INTO choices (question_id, position, text, is_correct, label)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (
                    question_id,
                    position,
                    str(choice.get("text") or ""),
                    1 if choice.get("is_correct") else 0,
                    str(choice.get("label") or ""),
                )
                for position, choice in enumerate(choices)
            ],
        )
    return question_id


def list_questions(test_session_id: int) -> list[sqlite3.Row]:
    """Return questions for a test session ordered by ``index_number``."""

    conn = get_connection()
    cursor = conn.execute(
        """
        SELECT * FROM questions
        WHERE test_session_id = ?
        ORDER BY index_number ASC, id ASC
        """,
        (test_session_id,),
    )
    return cursor.fetchall()


def list_choices_for_questions(question_ids: Sequence[int]) -> list[sqlite3.Row]:
    """Return choices belonging to ``question_ids`` in extraction order."""

    if not question_ids:
        return []

    placeholders = ", ".join("?" for _ in question_ids)
    conn = get_connection()
    cursor = conn.execute(
        f"""
        SELECT * FROM choices
        WHERE question_id IN ({placeholders})
        ORDER BY question_id ASC, position ASC
        """,
        tuple(question_ids),
    )
    return cursor.fetchall()


__all__ = [
    "DB_PATH",
    "get_connection",
    "initialize_schema",
    "create_test_session",
    "get_test_session",
    "update_test_session_status",
    "insert_question_with_choices",
    "list_questions",
    "list_choices_for_questions",
]
