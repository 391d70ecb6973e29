"""JSON snapshot persistence for pipeline runs.

One file per run, `state-<run_id>.json`, overwritten at every checkpoint.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from src.core.exceptions import StateError
from src.core.models import PipelineState

logger = logging.getLogger("trendforge.orchestrator.state")


class StateManager:
    def __init__(self, state_dir: str | Path = "logs"):
        self.state_dir = Path(state_dir)

    def path_for(self, run_id: str) -> Path:
        return self.state_dir / f"state-{run_id}.json"

    def save(self, state: PipelineState) -> Path:
        """Write the snapshot atomically (temp file + rename).

        Raises:
            StateError: If the snapshot cannot be written.
        """
        path = self.path_for(state.run_id)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StateError(f"Failed to save state for run {state.run_id}: {e}") from e
        logger.debug("State saved: %s (phase=%s)", path, state.current_phase.value)
        return path

    def load(self, run_id: str) -> Optional[PipelineState]:
        """Read a snapshot back; None if the run has no saved state."""
        path = self.path_for(run_id)
        if not path.exists():
            return None
        try:
            return PipelineState.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StateError(f"Corrupt or unreadable state file {path}: {e}") from e

    def list_runs(self) -> list[str]:
        """Run ids with a saved snapshot, newest first."""
        if not self.state_dir.exists():
            return []
        files = sorted(
            self.state_dir.glob("state-*.json"), key=lambda p: p.stat().st_mtime, reverse=True,
        )
        return [f.stem[len("state-"):] for f in files]
