import importlib
import io
import sys
from datetime import date

import pandas as pd

from quizcrawl.crawler import db, export_excel


def _reload_main_module():
    if "quizcrawl.main" in sys.modules:
        del sys.modules["quizcrawl.main"]
    return importlib.import_module("quizcrawl.main")


def _seed_test_session(**overrides) -> int:
    params = {
        "source_login_url": "https://quiz.example.com/login",
        "source_test_url": "https://quiz.example.com/review/5",
        "status": "DONE",
        "topic": "Cardio logy",
        "test_name": "Final/Exam",
    }
    params.update(overrides)
    test_id = db.create_test_session(**params)
    db.insert_question_with_choices(
        test_session_id=test_id,
        index_number=2,
        question_text="Second?",
        explanation="",
        hash_value="h2",
        choices=[{"text": "x", "is_correct": True}, {"text": "y", "is_correct": False}],
    )
    db.insert_question_with_choices(
        test_session_id=test_id,
        index_number=1,
        question_text="First?",
        explanation="Because.",
        hash_value="h1",
        choices=[
            {"text": "p", "is_correct": False},
            {"text": "q", "is_correct": False},
            {"text": "r", "is_correct": True},
        ],
    )
    return test_id


def test_list_tests_newest_first_with_counts():
    older = _seed_test_session()
    newer = db.create_test_session(
        source_login_url="https://quiz.example.com/login",
        source_test_url="",
        status="PENDING",
    )
    client = _reload_main_module().app.test_client()

    payload = client.get("/tests").get_json()

    assert payload["count"] == 2
    assert [t["id"] for t in payload["tests"]] == [newer, older]
    assert [t["questionCount"] for t in payload["tests"]] == [0, 2]


def test_detail_orders_questions_and_choices():
    test_id = _seed_test_session()
    client = _reload_main_module().app.test_client()

    detail = client.get(f"/tests/{test_id}").get_json()

    assert detail["testName"] == "Final/Exam"
    assert detail["includeExplanation"] is True
    assert [q["indexNumber"] for q in detail["questions"]] == [1, 2]
    assert [c["text"] for c in detail["questions"][0]["choices"]] == ["p", "q", "r"]
    assert detail["questions"][0]["choices"][2]["isCorrect"] is True

    assert client.get(f"/tests/{test_id}/export.json").get_json() == detail
    questions = client.get(f"/tests/{test_id}/questions").get_json()
    assert [q["questionText"] for q in questions] == ["First?", "Second?"]


def test_unknown_test_returns_404():
    client = _reload_main_module().app.test_client()

    for path in ("/tests/999", "/tests/999/questions", "/tests/999/export.json", "/tests/999/export.xlsx"):
        resp = client.get(path)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "test_not_found"


def test_export_xlsx_only_correct():
    test_id = _seed_test_session()
    client = _reload_main_module().app.test_client()

    resp = client.get(f"/tests/{test_id}/export.xlsx?onlyCorrect=true&includeExplanation=false")

    assert resp.status_code == 200
    disposition = resp.headers["Content-Disposition"]
    assert f"Final_Exam_Cardio_logy_{date.today().isoformat()}.xlsx" in disposition

    sheets = pd.read_excel(io.BytesIO(resp.data), sheet_name=None)
    assert set(sheets) == {"Questions", "Choices", "Summary"}
    assert "explanation" not in sheets["Questions"].columns
    assert list(sheets["Choices"]["text"]) == ["r", "x"]
    resp.close()


def test_export_filename_defaults():
    assert export_excel.export_filename({"testName": None, "topic": None}, day=date(2024, 5, 1)) == (
        "Test_2024-05-01.xlsx"
    )
