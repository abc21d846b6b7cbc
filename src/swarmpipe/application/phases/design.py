"""UI/UX design phase with an authoring session kept across revisions."""

from swarmpipe.application.phases.base import PhaseExecutor
from swarmpipe.application.review_loop import RevisionGuard
from swarmpipe.domain.config import DesignPhaseConfig
from swarmpipe.domain.parsing import response_contains

DESIGNER_CLARIFICATION_KEYWORD = "CLARIFICATION_NEEDED"


def design_prompt(spec: str) -> str:
    return (
        f"Create a detailed UI/UX design specification based on this spec:\n{spec}\n\n"
        "Include: component hierarchy, layout, interactions, states, and "
        "accessibility considerations."
    )


def design_review_prompt(content: str) -> str:
    return f"Review this design specification:\n{content}"


class DesignPhase(PhaseExecutor[DesignPhaseConfig]):
    async def execute(self, phase: DesignPhaseConfig, phase_key: str) -> None:
        state = self.state
        session = await self.caller.create_session(phase.agent, session_key=phase_key)
        try:
            if state.phase_draft is not None:
                design = state.phase_draft
                self.emitter.info("Resuming design from saved draft")
            else:
                self.emitter.info(f"{phase.agent} is designing")
                design = await self.caller.send(session, design_prompt(state.context.spec))
                if phase.clarification_agent and response_contains(
                    design, DESIGNER_CLARIFICATION_KEYWORD
                ):
                    self.emitter.info(f"{phase.agent} needs clarification")
                    clarification = await self.caller.call_isolated(
                        phase.clarification_agent,
                        f"The designer needs clarification:\n{design}",
                    )
                    design = await self.caller.send(
                        session, f"Clarification:\n{clarification}\n\nRevise the design."
                    )
                state.phase_draft = design
                await state.persist()

            async def revise(content: str, feedback: str, clarification: str | None) -> str:
                prompt = f"Current design:\n{content}\n\nReview feedback:\n{feedback}"
                if clarification:
                    prompt += f"\n\nClarification:\n{clarification}"
                return await self.caller.send(session, f"{prompt}\n\nRevise the design.")

            for r, review in enumerate(phase.reviews):
                self.emitter.info(f"Review by {review.agent}")
                design = await self.services.review_loop.run(
                    phase.agent,
                    review,
                    design,
                    design_review_prompt,
                    iteration_key=f"review-{r}",
                    revise=revise,
                    clarification_agent=phase.clarification_agent,
                    guard=RevisionGuard(min_length_ratio=0.3),
                )
        finally:
            await self.caller.destroy(session)

        state.context.design_spec = design
        await self.write_role_summary(phase.agent, design)
