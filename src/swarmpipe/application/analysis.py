"""
Analyze mode: a reviewed repository context document.

An architect drafts the analysis and a senior engineer reviews it until
approval. When the review model differs from the primary model, a second
pass repeats the cycle with the review model, starting from the first
pass's document. The result is the ``repo-analysis.md`` every later
pipeline run prepends to its prompts.
"""

from __future__ import annotations

import asyncio
import logging

from swarmpipe.application.mode_engine import ModeEngine
from swarmpipe.application.review_loop import RevisionGuard
from swarmpipe.domain.config import ReviewStepConfig
from swarmpipe.domain.models import RunMode

logger = logging.getLogger(__name__)

ARCHITECT_AGENT = "architect"
REVIEWER_AGENT = "analysis-reviewer"
APPROVAL_KEYWORD = "ANALYSIS_APPROVED"
MAX_REVIEW_ITERATIONS = 3

PRIMARY_PASS = "analyze-0"
CROSS_MODEL_PASS = "analyze-cross-1"


def analysis_review_prompt(content: str) -> str:
    return f"Review this repository analysis document:\n\n{content}"


class RepoAnalysisEngine(ModeEngine):
    """Produces ``<swarm_dir>/analysis/repo-analysis.md``."""

    mode = RunMode.ANALYZE
    phase_keys = (PRIMARY_PASS, CROSS_MODEL_PASS)

    def skip_reason(self, phase_key: str) -> str | None:
        if (
            phase_key == CROSS_MODEL_PASS
            and self._config.review_model == self._config.primary_model
        ):
            return "review model equals primary model"
        return None

    def _model_for(self, phase_key: str) -> str:
        if phase_key == CROSS_MODEL_PASS:
            return self._config.review_model
        return self._config.primary_model

    def _draft_prompt(self, previous: str) -> str:
        if previous:
            prompt = (
                "Here is a repository analysis produced by a different model. "
                "Independently verify, correct and improve it against the repository. "
                f"Produce the final revised document.\n\nExisting analysis:\n\n{previous}"
            )
        else:
            prompt = (
                "Produce a complete repository analysis document following your "
                "instructions."
            )
        return self.with_overview(prompt)

    async def run_phase(self, phase_key: str) -> None:
        state = self.state
        model = self._model_for(phase_key)
        session = await self.caller.create_session(
            ARCHITECT_AGENT, model=model, session_key=f"{phase_key}/architect"
        )
        try:
            draft = state.phase_draft
            if draft is None:
                self.emitter.info(f"{ARCHITECT_AGENT} is analyzing the repository ({model})")
                draft = await self.caller.send(session, self._draft_prompt(state.analysis))
                state.phase_draft = draft
                await state.persist()

            async def revise(content: str, feedback: str, clarification: str | None) -> str:
                return await self.caller.send(
                    session,
                    f"Current analysis:\n{content}\n\n"
                    f"Senior engineer review feedback:\n\n{feedback}\n\n"
                    "Revise the analysis to address all issues.",
                )

            state.analysis = await self.review_loop.run(
                ARCHITECT_AGENT,
                ReviewStepConfig(REVIEWER_AGENT, MAX_REVIEW_ITERATIONS, APPROVAL_KEYWORD),
                draft,
                analysis_review_prompt,
                iteration_key=f"{phase_key}/review",
                revise=revise,
                guard=RevisionGuard(),
                reviewer_model=model,
            )
        finally:
            await self.caller.destroy(session)

    async def write_result(self) -> str:
        return await asyncio.to_thread(self._artifacts.write_analysis, self.state.analysis)
