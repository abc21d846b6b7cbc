"""Tests for the cross-model review phase."""

from dataclasses import replace

import pytest

from swarmpipe.domain.config import CrossModelReviewPhaseConfig
from swarmpipe.domain.exceptions import PartialStreamFailure


@pytest.fixture
def cross_config(basic_config):
    return replace(
        basic_config,
        phases=(
            CrossModelReviewPhaseConfig(
                agent="cross-reviewer",
                fix_agent="engineer",
                max_iterations=2,
                approval_keyword="APPROVED",
            ),
        ),
    )


@pytest.fixture
def seeded(seed_checkpoint, cross_config):
    return seed_checkpoint(
        cross_config,
        spec="spec",
        tasks=("A", "B"),
        task_deps=((), ()),
        stream_results=("impl A", "impl B"),
    )


def review_a_until_fixed(prompt: str) -> str:
    if "impl B" in prompt or "fixed" in prompt:
        return "APPROVED"
    return "Missing error handling"


class TestCrossModelReview:
    """Tests for CrossModelReviewPhase."""

    async def test_reviews_use_review_model(
        self, make_engine, backend, seeded, cross_config, resume_settings
    ):
        context = await make_engine(cross_config, resume_settings).execute()

        calls = backend.calls_for("cross-reviewer")
        assert len(calls) == 2
        assert {c.model for c in calls} == {"model-b"}
        assert "different model" in calls[0].prompt
        assert context.stream_results == ["impl A", "impl B"]

    async def test_rejected_stream_fixed(
        self, make_engine, backend, artifacts, seeded, cross_config, resume_settings
    ):
        """Feedback goes to the fix agent and the fixed result replaces the stream."""
        backend.script("cross-reviewer", *[review_a_until_fixed] * 3)
        backend.script("engineer", "impl A fixed")

        context = await make_engine(cross_config, resume_settings).execute()

        assert context.stream_results == ["impl A fixed", "impl B"]
        fix_prompt = backend.calls_for("engineer")[0].prompt
        assert fix_prompt.startswith("Cross-model review feedback:\nMissing error handling")
        assert "Original implementation:\nimpl A" in fix_prompt
        assert "## Stream 1\n\nimpl A fixed" in artifacts.roles["cross-model-review"]

    async def test_failed_review_raises_after_wave(
        self, make_engine, backend, store, seeded, cross_config, resume_settings
    ):
        def fail_on_a(prompt: str) -> str:
            if "impl A" in prompt:
                raise RuntimeError("reviewer crashed")
            return "APPROVED"

        backend.script("cross-reviewer", *[fail_on_a] * 4)

        with pytest.raises(PartialStreamFailure):
            await make_engine(cross_config, resume_settings).execute()

        progress = dict(store.load("run-1").iteration_progress)
        assert "cross-1" in progress
        assert "cross-0" not in progress
