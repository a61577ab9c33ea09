"""Batch telemetry helpers."""

from __future__ import annotations

import json
import os
import time
from collections import defaultdict
from typing import Any, Dict, List, Optional

from . import config


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


class BatchTelemetry:
    """Collect per-item outcomes of one review batch."""

    def __init__(self, job_id: str, test_session_id: int) -> None:
        self.batch_id = f"{_ts()}_{job_id[:8]}_{test_session_id}"
        self.job_id = job_id
        self.test_session_id = test_session_id
        self.started_at = time.time()
        self.entries: List[Dict[str, Any]] = []
        self.summary: Dict[str, Any] = defaultdict(int)

    def add(self, status: str, reason: Optional[str], meta: Dict[str, Any]) -> None:
        self.entries.append(
            {
                "status": status,
                "reason": reason,
                **meta,
            }
        )
        self.summary[f"count_{status}"] += 1

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Write the batch record; returns its path, or ``None`` when disabled."""

        if not config.RECORD_BATCH_TELEMETRY:
            return None
        payload = {
            "batch_id": self.batch_id,
            "job_id": self.job_id,
            "test_session_id": self.test_session_id,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "summary": dict(self.summary),
            "entries": self.entries,
            **(extra or {}),
        }
        os.makedirs(config.BATCHES_DIR, exist_ok=True)
        path = os.path.join(config.BATCHES_DIR, f"batch_{self.batch_id}.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        return path


__all__ = ["BatchTelemetry"]
