"""Tests for RunState bookkeeping and the checkpoint save point."""

import pytest

from swarmpipe.application.run_state import RunState
from swarmpipe.domain.exceptions import ShutdownRequested
from swarmpipe.domain.models import (
    DecomposedTask,
    IterationSnapshot,
    PipelineCheckpoint,
    SessionRecord,
)


class TestSnapshot:
    """Tests for snapshot and restore."""

    def test_snapshot_reflects_context(self, run_state):
        run_state.context.spec = "spec"
        run_state.context.set_tasks([DecomposedTask(1, "A"), DecomposedTask(2, "B", (1,))])
        run_state.complete_phase("spec-0")
        run_state.record_session("spec-0/draft", SessionRecord("s-1", "pm", "pm"))

        snapshot = run_state.snapshot()

        assert snapshot.run_id == "run-1"
        assert snapshot.issue_body == "Build a todo app"
        assert snapshot.tasks == ("A", "B")
        assert snapshot.task_deps == ((), (1,))
        assert snapshot.completed_phases == ("spec-0",)
        assert dict(snapshot.session_log)["spec-0/draft"].session_id == "s-1"
        assert snapshot.created_at

    def test_restore_keeps_progress_of_active_phase(self, store):
        checkpoint = PipelineCheckpoint(
            run_id="run-1",
            completed_phases=("spec-0",),
            active_phase="implement-2",
            phase_draft="draft",
            iteration_progress=(("stream-0-code", IterationSnapshot("code", 0)),),
        )
        state = RunState("run-1", store)

        state.restore(checkpoint)

        assert state.active_phase == "implement-2"
        assert state.phase_draft == "draft"
        assert state.iteration("stream-0-code") == IterationSnapshot("code", 0)

    def test_restore_drops_orphan_progress(self, store):
        """Iteration progress without an active phase is ignored."""
        checkpoint = PipelineCheckpoint(
            run_id="run-1",
            iteration_progress=(("review-0", IterationSnapshot("x", 1)),),
        )
        state = RunState("run-1", store)

        state.restore(checkpoint)

        assert state.iteration("review-0") is None

    def test_restore_keeps_issue_body_when_checkpoint_has_none(self, store):
        state = RunState("run-1", store, issue_body="from the cli")
        state.restore(PipelineCheckpoint(run_id="run-1"))
        assert state.issue_body == "from the cli"

    async def test_persist_saves_full_snapshot(self, run_state, store):
        run_state.context.spec = "spec"
        await run_state.persist()
        assert store.load("run-1").spec == "spec"
        assert store.latest_run_id() == "run-1"


class TestPhaseBookkeeping:
    def test_begin_other_phase_discards_stale_progress(self, run_state):
        run_state.begin_phase("spec-0")
        run_state.set_iteration("review-0", "x", 1)
        run_state.phase_draft = "draft"

        run_state.begin_phase("design-2")

        assert run_state.iteration_progress == {}
        assert run_state.phase_draft is None
        assert run_state.active_phase == "design-2"

    def test_begin_same_phase_keeps_progress(self, run_state):
        run_state.begin_phase("spec-0")
        run_state.set_iteration("review-0", "x", 1)

        run_state.begin_phase("spec-0")

        assert run_state.iteration("review-0") is not None

    def test_complete_phase_is_idempotent(self, run_state):
        run_state.begin_phase("spec-0")
        run_state.complete_phase("spec-0")
        run_state.complete_phase("spec-0")

        assert run_state.completed_phases == ["spec-0"]
        assert run_state.active_phase is None
        assert run_state.is_completed("spec-0")


class TestShutdown:
    def test_raise_if_shutdown(self, run_state):
        run_state.raise_if_shutdown()
        run_state.request_shutdown()

        assert run_state.shutdown_requested
        with pytest.raises(ShutdownRequested):
            run_state.raise_if_shutdown()
