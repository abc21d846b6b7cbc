"""Tests for domain models."""

from dataclasses import FrozenInstanceError

import pytest

from swarmpipe.domain.models import (
    CommandResult,
    DecomposedTask,
    IterationSnapshot,
    PipelineCheckpoint,
    PipelineContext,
)


class TestPipelineContext:
    """Tests for the mutable pipeline context."""

    def test_set_tasks_rekeys_dependencies_to_positions(self) -> None:
        ctx = PipelineContext(stream_results=["stale"])
        ctx.set_tasks(
            [
                DecomposedTask(10, "A"),
                DecomposedTask(20, "B", (10,)),
                DecomposedTask(30, "C", (10, 20, 99)),
            ]
        )
        assert ctx.tasks == ["A", "B", "C"]
        assert ctx.task_deps == [[], [1], [1, 2]]
        assert ctx.stream_results == []

    def test_decomposed_tasks_round_trip(self) -> None:
        ctx = PipelineContext(tasks=["A", "B"], task_deps=[[], [1]])
        assert ctx.decomposed_tasks() == [DecomposedTask(1, "A"), DecomposedTask(2, "B", (1,))]

    def test_has_dependencies(self) -> None:
        assert not PipelineContext(tasks=["A"], task_deps=[[]]).has_dependencies()
        assert PipelineContext(tasks=["A", "B"], task_deps=[[], [1]]).has_dependencies()


class TestPipelineCheckpoint:
    def test_is_frozen(self) -> None:
        checkpoint = PipelineCheckpoint(run_id="r")
        with pytest.raises(FrozenInstanceError):
            checkpoint.spec = "x"  # type: ignore[misc]

    def test_to_context_copies_lists(self) -> None:
        checkpoint = PipelineCheckpoint(
            run_id="r",
            spec="spec",
            tasks=("A", "B"),
            task_deps=((), (1,)),
            stream_results=("done", ""),
            iteration_progress=(("review-0", IterationSnapshot("draft", 1)),),
        )
        ctx = checkpoint.to_context()
        ctx.stream_results[1] = "changed"
        assert checkpoint.stream_results == ("done", "")
        assert ctx.task_deps == [[], [1]]
        assert ctx.spec == "spec"


class TestCommandResult:
    def test_passed_requires_zero_exit_and_no_timeout(self) -> None:
        assert CommandResult("make", 0, "").passed
        assert not CommandResult("make", 2, "boom").passed
        assert not CommandResult("make", 0, "", timed_out=True).passed
