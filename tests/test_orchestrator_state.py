"""Tests for StateManager, the JSONL run log, and PipelineState bookkeeping."""

import json
import logging

import pytest

from src.core.exceptions import StateError
from src.core.models import Phase, PipelineState
from src.orchestrator.run_log import RunLogHandler, attach_run_log, detach_run_log, level_name
from src.orchestrator.state_manager import StateManager

from tests.conftest import make_idea, make_repo


class TestStateManager:
    def test_save_writes_named_file(self, tmp_path):
        manager = StateManager(tmp_path / "state")
        state = PipelineState()
        path = manager.save(state)

        assert path == tmp_path / "state" / f"state-{state.run_id}.json"
        data = json.loads(path.read_text())
        assert data["run_id"] == state.run_id
        assert data["current_phase"] == "initialization"
        # ISO-8601 timestamps
        assert "T" in data["start_time"]

    def test_save_overwrites(self, tmp_path):
        manager = StateManager(tmp_path)
        state = PipelineState()
        manager.save(state)
        state.current_phase = Phase.RESEARCH
        state.set_result("trends", [make_repo()])
        manager.save(state)

        files = list(tmp_path.glob("state-*.json"))
        assert len(files) == 1
        assert json.loads(files[0].read_text())["current_phase"] == "research"

    def test_load_round_trip(self, tmp_path):
        manager = StateManager(tmp_path)
        state = PipelineState()
        state.set_result("ideas", [make_idea()])
        state.record_error("something broke", fatal=False)
        manager.save(state)

        loaded = manager.load(state.run_id)
        assert loaded.run_id == state.run_id
        assert loaded.ideas[0].name == "widget-lens"
        assert loaded.ideas[0].core_features[0].priority == "must"
        assert loaded.errors[0].fatal is False
        assert loaded.start_time == state.start_time

    def test_load_missing_returns_none(self, tmp_path):
        assert StateManager(tmp_path).load("nope") is None

    def test_load_corrupt_raises(self, tmp_path):
        (tmp_path / "state-bad.json").write_text("{not json")
        with pytest.raises(StateError, match="Corrupt"):
            StateManager(tmp_path).load("bad")

    def test_list_runs(self, tmp_path):
        manager = StateManager(tmp_path)
        assert manager.list_runs() == []
        state = PipelineState()
        manager.save(state)
        assert manager.list_runs() == [state.run_id]

    def test_unwritable_dir_raises_state_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StateError):
            StateManager(blocker / "state").save(PipelineState())


class TestPipelineState:
    def test_unknown_field_rejected(self):
        with pytest.raises(StateError, match="Unknown result field"):
            PipelineState().set_result("errors", [])

    def test_cannot_clear(self):
        state = PipelineState()
        with pytest.raises(StateError, match="Refusing to clear"):
            state.set_result("trends", None)

    def test_record_error_uses_current_phase(self):
        state = PipelineState()
        state.current_phase = Phase.DEPLOY
        record = state.record_error("push failed")
        assert record.phase == "deploy"
        assert record.fatal is True
        assert state.errors == [record]

    def test_run_ids_unique(self):
        assert PipelineState().run_id != PipelineState().run_id


class TestRunLog:
    def test_level_names(self):
        assert level_name(logging.DEBUG) == "debug"
        assert level_name(logging.INFO) == "info"
        assert level_name(logging.WARNING) == "warn"
        assert level_name(logging.ERROR) == "error"
        assert level_name(logging.CRITICAL) == "error"

    @pytest.mark.parametrize("levelno, expected", [(5, "debug"), (15, "debug"), (25, "warn"), (35, "warn"), (45, "error")])
    def test_custom_levels(self, levelno, expected):
        assert level_name(levelno) == expected

    def test_records_carry_extra_fields(self, tmp_path):
        handler = attach_run_log(tmp_path, "run-1")
        log = logging.getLogger("trendforge.test.runlog")
        try:
            handler.set_phase("research")
            log.info("plain message %d", 1)
            log.warning("with extras", extra={"oracle": "Researcher", "data": {"n": 2}, "duration": 1.23456})
            log.error("explicit phase", extra={"phase": "deploy"})
        finally:
            detach_run_log(handler)

        lines = (tmp_path / "run-run-1.jsonl").read_text().splitlines()
        records = [json.loads(line) for line in lines]
        assert len(records) == 3

        first, second, third = records
        assert first["message"] == "plain message 1"
        assert first["level"] == "info"
        assert first["phase"] == "research"
        assert "oracle" not in first and "data" not in first and "duration" not in first

        assert second["level"] == "warn"
        assert second["oracle"] == "Researcher"
        assert second["data"] == {"n": 2}
        assert second["duration"] == 1.235

        assert third["phase"] == "deploy"
        assert third["level"] == "error"

    def test_ignores_other_loggers(self, tmp_path):
        handler = attach_run_log(tmp_path, "run-2")
        try:
            logging.getLogger("somebody.else").warning("not ours")
        finally:
            detach_run_log(handler)
        assert (tmp_path / "run-run-2.jsonl").read_text() == ""

    def test_detach_closes_stream(self, tmp_path):
        handler = RunLogHandler(tmp_path / "x.jsonl")
        logging.getLogger("trendforge").addHandler(handler)
        detach_run_log(handler)
        assert handler not in logging.getLogger("trendforge").handlers
        detach_run_log(None)
