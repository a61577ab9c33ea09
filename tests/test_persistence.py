import hashlib

from quizcrawl.crawler import config, db, persistence
from quizcrawl.crawler.extraction import ExtractedChoice, ExtractedQuestion


def _new_test_session() -> int:
    return db.create_test_session(
        source_login_url="https://quiz.example.com/login",
        source_test_url="https://quiz.example.com/review/1",
        status="RUNNING",
    )


def test_save_question_truncates_and_hashes_full_text():
    test_session_id = _new_test_session()
    long_text = "q" * (config.MAX_TEXT_LENGTH + 1000)
    extracted = ExtractedQuestion(
        question_text=long_text,
        choices=[
            ExtractedChoice(text="first", is_correct=False),
            ExtractedChoice(text="second", is_correct=True),
        ],
        explanation="e" * (config.MAX_TEXT_LENGTH + 1),
    )

    question_id = persistence.save_question(test_session_id, 7, extracted)

    [row] = db.list_questions(test_session_id)
    assert row["id"] == question_id
    assert row["index_number"] == 7
    assert len(row["question_text"]) == config.MAX_TEXT_LENGTH
    assert len(row["explanation"]) == config.MAX_TEXT_LENGTH
    assert row["hash"] == hashlib.md5(long_text.encode("utf-8")).hexdigest()

    choices = db.list_choices_for_questions([question_id])
    assert [(c["text"], bool(c["is_correct"]), c["label"]) for c in choices] == [
        ("first", False, ""),
        ("second", True, ""),
    ]


def test_saving_same_question_twice_keeps_both_rows():
    test_session_id = _new_test_session()
    extracted = ExtractedQuestion(
        question_text="Same question",
        choices=[ExtractedChoice(text="only", is_correct=True)],
    )

    first = persistence.save_question(test_session_id, 1, extracted)
    second = persistence.save_question(test_session_id, 1, extracted)

    rows = db.list_questions(test_session_id)
    assert first != second
    assert len(rows) == 2
    assert rows[0]["hash"] == rows[1]["hash"] == persistence.compute_question_hash("Same question")
