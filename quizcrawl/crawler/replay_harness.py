"""Offline replay harness for saved question pages.

Runs the extraction cascade against HTML snapshots on disk without a browser,
which is how new markup variants are diagnosed. With ``--save`` the complete
results are persisted into a fresh test session, numbered by file order.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import db
from .config_validation import validate_runtime_config
from .extraction import extract_question
from .jobs import JobStatus
from .logging_utils import _crawler_event
from .persistence import save_question
from .utils import log_line


@dataclass
class ReplayConfig:
    html_path: Path
    save: bool = False
    topic: Optional[str] = None
    test_name: Optional[str] = None


def list_snapshot_files(html_path: Path) -> List[Path]:
    """Return ``html_path`` itself, or the ``*.html``/``*.htm`` files under it sorted by name."""

    if html_path.is_file():
        return [html_path]
    if not html_path.is_dir():
        raise FileNotFoundError(f"No HTML snapshots at {html_path}")
    return sorted(
        path for path in html_path.iterdir() if path.suffix.lower() in {".html", ".htm"}
    )


def run_replay(config_obj: ReplayConfig) -> Dict[str, Any]:
    validate_runtime_config("replay")
    files = list_snapshot_files(config_obj.html_path)
    summary: Dict[str, Any] = {
        "files": len(files),
        "complete": 0,
        "saved": 0,
        "test_session_id": None,
        "results": [],
    }

    _crawler_event(
        "replay",
        phase="start",
        path=str(config_obj.html_path),
        save=config_obj.save,
    )

    test_session_id: Optional[int] = None
    if config_obj.save:
        db.initialize_schema()
        test_session_id = db.create_test_session(
            source_login_url="",
            source_test_url=config_obj.html_path.resolve().as_uri(),
            status=JobStatus.RUNNING.value,
            topic=config_obj.topic,
            test_name=config_obj.test_name,
        )
        summary["test_session_id"] = test_session_id

    for index_number, path in enumerate(files, start=1):
        extracted = extract_question(path.read_text(encoding="utf-8", errors="replace"))
        result: Dict[str, Any] = {
            "file": str(path),
            "complete": extracted.is_complete,
            **extracted.to_dict(),
        }
        log_line(
            f"[REPLAY] {path.name}: text={bool(extracted.question_text)} "
            f"choices={len(extracted.choices)} strategies={extracted.strategies}"
        )
        if extracted.is_complete:
            summary["complete"] += 1
            if test_session_id is not None:
                result["question_id"] = save_question(test_session_id, index_number, extracted)
                summary["saved"] += 1
        summary["results"].append(result)

    if test_session_id is not None:
        db.update_test_session_status(test_session_id, JobStatus.DONE.value)

    _crawler_event(
        "replay",
        phase="end",
        path=str(config_obj.html_path),
        files=summary["files"],
        complete=summary["complete"],
        saved=summary["saved"],
    )
    return summary


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Replay extraction over saved question pages.")
    parser.add_argument("path", help="HTML file or directory of HTML files")
    parser.add_argument("--save", action="store_true", default=False)
    parser.add_argument("--topic", default=None)
    parser.add_argument("--test-name", default=None)
    args = parser.parse_args()

    cfg = ReplayConfig(
        html_path=Path(args.path),
        save=args.save,
        topic=args.topic,
        test_name=args.test_name,
    )
    outcome = run_replay(cfg)
    log_line(
        f"[REPLAY] files={outcome['files']} complete={outcome['complete']} "
        f"saved={outcome['saved']} test_session_id={outcome['test_session_id']}"
    )
