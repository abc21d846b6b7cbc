"""Specification drafting with review loops."""

from swarmpipe.application.phases.base import PhaseExecutor
from swarmpipe.application.review_loop import RevisionGuard
from swarmpipe.domain.config import SpecPhaseConfig

SPEC_REVISION_GUARD = RevisionGuard(min_length_ratio=0.3, keep_sections=True)


def spec_review_prompt(content: str) -> str:
    return f"Review this specification:\n{content}"


class SpecPhase(PhaseExecutor[SpecPhaseConfig]):
    """Drafts the specification from the issue body and iterates with reviewers.

    The draft is checkpointed as the phase draft before the first review,
    so a resumed run never redrafts.
    """

    async def execute(self, phase: SpecPhaseConfig, phase_key: str) -> None:
        state = self.state
        if state.phase_draft is not None:
            spec = state.phase_draft
            self.emitter.info("Resuming specification from saved draft")
        else:
            self.emitter.info(f"{phase.agent} is drafting the specification")
            spec = await self.caller.call_isolated(
                phase.agent,
                self.with_repo_context(state.issue_body),
                session_key=f"{phase_key}/draft",
            )
            state.phase_draft = spec
            await state.persist()

        for r, review in enumerate(phase.reviews):
            self.emitter.info(f"Review by {review.agent}")
            spec = await self.services.review_loop.run(
                phase.agent,
                review,
                spec,
                spec_review_prompt,
                iteration_key=f"review-{r}",
                guard=SPEC_REVISION_GUARD,
            )

        state.context.spec = spec
        await self.write_role_summary(phase.agent, f"## Final Specification\n\n{spec}")
