"""Per-run structured log stream.

A logging.Handler that appends one JSON object per record to
`run-<run_id>.jsonl`:

    {"timestamp", "level", "oracle"?, "phase", "message", "data"?, "duration"?}

`oracle`, `data`, `duration` and `phase` are read from the record's `extra=`;
records without a phase get the handler's current phase.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional


def level_name(levelno: int) -> str:
    """Map a stdlib level onto debug, info, warn or error."""
    if levelno >= logging.ERROR:
        return "error"
    if levelno > logging.INFO:
        return "warn"
    if levelno == logging.INFO:
        return "info"
    return "debug"


class RunLogHandler(logging.Handler):
    """JSONL sink for one pipeline run."""

    def __init__(self, path: str | Path, phase: str = "initialization", level: int = logging.DEBUG):
        super().__init__(level)
        self.path = Path(path)
        self.phase = phase
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._stream = self.path.open("a", encoding="utf-8")

    def set_phase(self, phase: str) -> None:
        self.phase = phase

    def to_record(self, record: logging.LogRecord) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": level_name(record.levelno),
        }
        oracle = getattr(record, "oracle", None)
        if oracle:
            entry["oracle"] = oracle
        entry["phase"] = getattr(record, "phase", None) or self.phase
        entry["message"] = record.getMessage()
        data = getattr(record, "data", None)
        if data is not None:
            entry["data"] = data
        duration = getattr(record, "duration", None)
        if duration is not None:
            entry["duration"] = round(float(duration), 3)
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.to_record(record), ensure_ascii=True, default=str)
            self.acquire()
            try:
                self._stream.write(line + "\n")
                self._stream.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        self.acquire()
        try:
            if not self._stream.closed:
                self._stream.close()
        finally:
            self.release()
        super().close()


def attach_run_log(log_dir: str | Path, run_id: str, logger_name: str = "trendforge") -> RunLogHandler:
    """Attach a RunLogHandler to the `trendforge` logger tree for one run."""
    handler = RunLogHandler(Path(log_dir) / f"run-{run_id}.jsonl")
    target = logging.getLogger(logger_name)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > logging.DEBUG:
        target.setLevel(logging.DEBUG)
    return handler


def detach_run_log(handler: Optional[RunLogHandler], logger_name: str = "trendforge") -> None:
    if handler is None:
        return
    logging.getLogger(logger_name).removeHandler(handler)
    handler.close()
