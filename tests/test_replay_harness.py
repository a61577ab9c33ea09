from pathlib import Path

import pytest

from quizcrawl.crawler import db, replay_harness
from quizcrawl.crawler.replay_harness import ReplayConfig, list_snapshot_files

COMPLETE_PAGE = """
<html><body>
<div class="q-text">Capital of France?</div>
<label style="color: green"><input type="radio" name="q"> Paris</label>
<label><input type="radio" name="q"> Lyon</label>
</body></html>
"""

EMPTY_PAGE = "<html><body><p>Session expired</p></body></html>"


def _write_snapshots(root: Path) -> Path:
    snapshots = root / "snapshots"
    snapshots.mkdir()
    (snapshots / "b_empty.html").write_text(EMPTY_PAGE, encoding="utf-8")
    (snapshots / "a_question.htm").write_text(COMPLETE_PAGE, encoding="utf-8")
    (snapshots / "notes.txt").write_text("ignored", encoding="utf-8")
    return snapshots


def test_list_snapshot_files(tmp_path: Path):
    snapshots = _write_snapshots(tmp_path)

    assert [p.name for p in list_snapshot_files(snapshots)] == ["a_question.htm", "b_empty.html"]
    assert list_snapshot_files(snapshots / "a_question.htm") == [snapshots / "a_question.htm"]
    with pytest.raises(FileNotFoundError):
        list_snapshot_files(tmp_path / "missing")


def test_run_replay_without_save(tmp_path: Path):
    summary = replay_harness.run_replay(ReplayConfig(html_path=_write_snapshots(tmp_path)))

    assert summary["files"] == 2
    assert summary["complete"] == 1
    assert summary["saved"] == 0
    assert summary["test_session_id"] is None
    first = summary["results"][0]
    assert first["question_text"] == "Capital of France?"
    assert [c["is_correct"] for c in first["choices"]] == [True, False]
    assert summary["results"][1]["complete"] is False


def test_run_replay_saves_complete_pages(tmp_path: Path):
    summary = replay_harness.run_replay(
        ReplayConfig(html_path=_write_snapshots(tmp_path), save=True, topic="Geo", test_name="Capitals")
    )

    test_id = summary["test_session_id"]
    assert summary["saved"] == 1
    row = db.get_test_session(test_id)
    assert row["status"] == "DONE"
    assert row["test_name"] == "Capitals"
    assert row["source_test_url"].startswith("file://")
    questions = db.list_questions(test_id)
    assert [q["index_number"] for q in questions] == [1]
