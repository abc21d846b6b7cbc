"""Cross-model review of every stream result by the review model."""

from swarmpipe.application.phases.base import PhaseExecutor, fan_out, raise_for_failures
from swarmpipe.domain.config import CrossModelReviewPhaseConfig, ReviewStepConfig
from swarmpipe.domain.exceptions import ShutdownRequested
from swarmpipe.domain.models import StreamStatus
from swarmpipe.domain.scheduling import compute_waves


def cross_review_prompt(spec: str, content: str) -> str:
    return (
        f"Spec:\n{spec}\n\nReview this implementation from scratch. "
        "You are using a different model than the one that wrote this code, "
        "so look for blind spots.\n\n"
        f"Implementation:\n{content}"
    )


def cross_fix_prompt(content: str, feedback: str) -> str:
    return (
        f"Cross-model review feedback:\n{feedback}\n\n"
        f"Original implementation:\n{content}\n\nFix all reported issues."
    )


def format_streams(results: list[str]) -> str:
    return "\n\n---\n\n".join(f"## Stream {i + 1}\n\n{r}" for i, r in enumerate(results))


class CrossModelReviewPhase(PhaseExecutor[CrossModelReviewPhaseConfig]):
    """Reviews each stream with the review model and fixes what it reports.

    Streams are revisited in dependency waves so a dependency is fixed
    before the streams built on it. Progress is keyed ``cross-<i>``.
    """

    async def execute(self, phase: CrossModelReviewPhaseConfig, phase_key: str) -> None:
        ctx = self.state.context
        review_model = self.services.config.review_model
        review = ReviewStepConfig(
            agent=phase.agent,
            max_iterations=phase.max_iterations,
            approval_keyword=phase.approval_keyword,
        )
        self.emitter.info(f"Cross-model review with {review_model}")

        async def fix(content: str, feedback: str, _: str | None) -> str:
            return await self.caller.call_isolated(
                phase.fix_agent, cross_fix_prompt(content, feedback)
            )

        async def worker(i: int) -> None:
            self.emitter.stream_status(i, StreamStatus.REVIEWING)
            try:
                ctx.stream_results[i] = await self.services.review_loop.run(
                    phase.fix_agent,
                    review,
                    ctx.stream_results[i],
                    lambda content: cross_review_prompt(ctx.spec, content),
                    iteration_key=f"cross-{i}",
                    revise=fix,
                    reviewer_model=review_model,
                )
            except ShutdownRequested:
                raise
            except Exception as e:
                self.emitter.stream_status(i, StreamStatus.FAILED)
                self.emitter.error(f"S{i + 1} cross-model review failed: {type(e).__name__}: {e}")
                raise
            self.emitter.stream_status(i, StreamStatus.DONE)

        total = len(ctx.stream_results)
        if ctx.has_dependencies():
            waves = compute_waves(ctx.decomposed_tasks())
        else:
            waves = [list(range(total))]
        for wave in waves:
            indices = [i for i in wave if i < total]
            failed = await fan_out(indices, worker, parallel=True)
            await self.state.persist()
            raise_for_failures(failed, len(indices))

        await self.write_role_summary("cross-model-review", format_streams(ctx.stream_results))
