# worldtick/jobs/registry.py
from __future__ import annotations

import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Literal

RunStatus = Literal["PENDING", "RUNNING", "SUCCESS", "FAILED", "SKIPPED"]


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TickRun:
    run_id: str
    trigger_source: str
    status: RunStatus = "PENDING"
    created_at: str = ""
    started_at: str | None = None
    finished_at: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    def __post_init__(self):
        if not self.created_at:
            self.created_at = _utcnow()

    def to_dict(self) -> dict:
        return asdict(self)


class RunRegistry:
    """
    每一次触发尝试（定时 / 手动）的内存记录，只用于运维查看。
    SKIPPED = 租约被占用。
    """

    def __init__(self, max_runs: int = 500):
        self._runs: dict[str, TickRun] = {}
        self._lock = threading.Lock()
        self.max_runs = max_runs

    def start(self, trigger_source: str) -> TickRun:
        run = TickRun(run_id=uuid.uuid4().hex[:10], trigger_source=trigger_source)
        run.status = "RUNNING"
        run.started_at = _utcnow()
        with self._lock:
            self._runs[run.run_id] = run
            while len(self._runs) > self.max_runs:
                self._runs.pop(next(iter(self._runs)))
        return run

    def finish(self, run: TickRun, status: RunStatus, result: dict | None = None, error: str | None = None) -> None:
        run.status = status
        run.result = result
        run.error = error
        run.finished_at = _utcnow()

    def get(self, run_id: str) -> TickRun:
        return self._runs[run_id]

    def list(self) -> list[TickRun]:
        """
        Return all runs, newest first (read-only view).
        """
        with self._lock:
            return list(reversed(self._runs.values()))

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()
