"""Append-only JSONL history of batch passes and forecasts.

One line per run: task, start time, duration, phase timings, status and the
run's result summary (the :class:`~political_dna.pipeline.BatchSummary` for
``dna_run``, the forecast for ``dna_forecast``).

Usage:
    from political_dna.run_log import RunLogger, read_runs

    with RunLogger("dna_run") as log:
        with log.phase_ctx("Profiles"):
            ...
        log.summary["profiles"] = 200

    for record in read_runs(5, task="dna_run"):
        print(record.run_id, record.status, record.summary.get("profiles"))

``python scripts/dna_run.py --history`` renders the same records as a table.
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path(".dna_run_log.jsonl")


def get_log_path() -> Path:
    return Path(os.environ.get("DNA_RUN_LOG", str(DEFAULT_LOG_PATH)))


@dataclass
class PhaseTiming:
    name: str
    duration_s: float
    detail: str | None = None


@dataclass
class RunRecord:
    run_id: str
    task: str
    started_at: str
    duration_s: float = 0.0
    status: str = "ok"  # ok | error
    error: str | None = None
    phases: list[PhaseTiming] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> RunRecord:
        return cls(
            run_id=str(d["run_id"]),
            task=str(d["task"]),
            started_at=str(d["started_at"]),
            duration_s=float(d.get("duration_s") or 0.0),
            status=d.get("status", "ok"),
            error=d.get("error"),
            phases=[PhaseTiming(**p) for p in d.get("phases", [])],
            summary=dict(d.get("summary") or {}),
        )

    def slowest_phase(self) -> PhaseTiming | None:
        if not self.phases:
            return None
        return max(self.phases, key=lambda p: p.duration_s)


class RunLogger:
    """Times one run and appends its :class:`RunRecord` on exit.

    The record is written whether the block succeeds or raises; a raised
    exception marks it ``error`` and is not swallowed.
    """

    def __init__(
        self,
        task: str,
        *,
        log_path: Path | None = None,
        summary: dict[str, Any] | None = None,
    ) -> None:
        self.task = task
        self.log_path = log_path if log_path is not None else get_log_path()
        self.summary: dict[str, Any] = dict(summary or {})
        self.record: RunRecord | None = None
        self._t0 = 0.0

    @property
    def phases(self) -> list[PhaseTiming]:
        return list(self.record.phases) if self.record is not None else []

    @contextmanager
    def phase_ctx(self, name: str, detail: str | None = None):
        """Time the enclosed block as one phase (recorded even if it raises)."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            if self.record is not None:
                self.record.phases.append(
                    PhaseTiming(name, round(time.perf_counter() - t0, 2), detail)
                )

    def __enter__(self) -> RunLogger:
        self.record = RunRecord(
            run_id=uuid.uuid4().hex[:8],
            task=self.task,
            started_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        record = self.record
        record.duration_s = round(time.perf_counter() - self._t0, 2)
        record.summary = dict(self.summary)
        if exc_type is not None:
            record.status = "error"
            record.error = f"{exc_type.__name__}: {exc_val}" if str(exc_val) else exc_type.__name__
        append_run(record, self.log_path)
        return None


def append_run(record: RunRecord, log_path: Path | None = None) -> None:
    path = log_path or get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(record.to_json_line() + "\n")
    except OSError as e:
        LOGGER.warning("Run log append failed: %s", e)


def read_runs(
    limit: int = 20,
    *,
    task: str | None = None,
    log_path: Path | None = None,
) -> list[RunRecord]:
    """Last *limit* runs, newest first.  Unreadable lines are skipped."""
    path = log_path or get_log_path()
    if not path.exists():
        return []
    records: list[RunRecord] = []
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                record = RunRecord.from_dict(json.loads(line))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                LOGGER.debug("Skipping run log line %d: %s", lineno, e)
                continue
            if task is None or record.task == task:
                records.append(record)
    return records[::-1][:limit]
