"""CLI helper for printing the content summary of a test session."""

from __future__ import annotations

import argparse
from typing import Sequence

from . import db, reporting


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the session summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the extracted content summary for a test session.",
    )
    parser.add_argument(
        "--test-id",
        type=int,
        help="Test session ID to summarise.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Summarise the most recent test session.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the session summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    db.initialize_schema()

    test_id = args.test_id
    if args.latest and test_id is None:
        test_id = reporting.latest_test_session_id()
    if test_id is None:
        parser.error("You must provide --test-id or --latest")

    try:
        summary = reporting.summarise_test_session(test_id)
    except reporting.TestSessionNotFoundError as exc:
        parser.error(str(exc))

    print(f"Test session {summary.test_session_id} ({summary.status})")
    print(f"  questions: {summary.question_count}")
    print(f"  choices: {summary.choice_count}")

    if summary.questions_without_correct:
        print("\nQuestions without a correct choice:")
        print("  " + ", ".join(str(i) for i in summary.questions_without_correct))

    if summary.duplicate_hashes:
        print("\nDuplicate questions (same hash):")
        for hash_value, indexes in sorted(summary.duplicate_hashes.items()):
            print(f"  {hash_value}: {', '.join(str(i) for i in indexes)}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
