"""
Generic author -> reviewer -> revise iteration.

A loop ends when the reviewer's response contains the approval keyword or
when its iteration budget is spent; running out of budget is not an error,
the last content is used as best effort. Each revision is checkpointed
under an iteration key so a resumed run continues with the next
iteration instead of re-asking the reviewer.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from swarmpipe.domain.config import QaStepConfig, ReviewStepConfig
from swarmpipe.domain.parsing import extract_sections, missing_sections, response_contains

if TYPE_CHECKING:
    from swarmpipe.application.agent_caller import AgentCaller
    from swarmpipe.application.event_emitter import PipelineEventEmitter
    from swarmpipe.application.run_state import RunState

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[str], str]
# (current content, reviewer feedback, clarification answer or None) -> revision
Reviser = Callable[[str, str, "str | None"], Awaitable[str]]


@dataclass(frozen=True)
class RevisionGuard:
    """Acceptance check for revisions of structured content.

    A revision shorter than ``min_length_ratio`` of the previous content,
    or missing a required ``##`` section, is rejected. With
    ``keep_sections`` the sections of the previous content are required.
    """

    min_length_ratio: float = 0.5
    required_sections: tuple[str, ...] = ()
    keep_sections: bool = False

    def rejection_reason(self, previous: str, revised: str) -> str | None:
        if previous and len(revised) < len(previous) * self.min_length_ratio:
            return (
                f"revision is {len(revised)} chars vs {len(previous)} before "
                f"(below {self.min_length_ratio:.0%})"
            )
        required = self.required_sections
        if self.keep_sections:
            required = required + tuple(extract_sections(previous))
        missing = missing_sections(revised, required)
        if missing:
            return f"revision dropped sections: {', '.join(missing)}"
        return None


def revision_prompt(content: str, feedback: str) -> str:
    return f"Previous content:\n{content}\n\nReview feedback:\n{feedback}\n\nRevise accordingly."


class ReviewLoop:
    """Runs review steps against a piece of content."""

    def __init__(
        self,
        caller: AgentCaller,
        state: RunState,
        emitter: PipelineEventEmitter,
    ) -> None:
        self._caller = caller
        self._state = state
        self._emitter = emitter

    async def run(
        self,
        author_agent: str,
        review: ReviewStepConfig | QaStepConfig,
        content: str,
        build_prompt: PromptBuilder,
        iteration_key: str,
        revise: Reviser | None = None,
        clarification_agent: str | None = None,
        guard: RevisionGuard | None = None,
        reviewer_model: str | None = None,
    ) -> str:
        """
        Iterate until approval or until ``review.max_iterations`` is reached.

        Args:
            author_agent: Agent revising the content (isolated calls)
            review: Reviewer step configuration
            content: Content to review
            build_prompt: Builds the reviewer prompt from current content
            iteration_key: Checkpoint key for this loop's progress
            revise: Custom reviser (e.g. a long-lived author session);
                defaults to an isolated call to ``author_agent``
            clarification_agent: Fallback agent answering reviewer questions
            guard: Optional acceptance check for revisions
            reviewer_model: Model override for reviewer calls

        Returns:
            The final content, approved or best effort
        """
        max_iter = review.max_iterations
        start = 1
        snapshot = self._state.iteration(iteration_key)
        if snapshot is not None:
            content = snapshot.content
            start = snapshot.completed_iterations + 1
            if start <= max_iter:
                self._emitter.info(
                    f"Resuming {iteration_key} at iteration {start}/{max_iter}"
                )

        for i in range(start, max_iter + 1):
            self._state.raise_if_shutdown()
            self._emitter.info(f"{review.agent}: review iteration {i}/{max_iter}")
            feedback = await self._caller.call_isolated(
                review.agent, build_prompt(content), model=reviewer_model
            )
            if response_contains(feedback, review.approval_keyword):
                self._emitter.info(f"{review.agent} approved")
                # Finished loops are stored as exhausted so a resume skips them
                self._state.set_iteration(iteration_key, content, max_iter)
                await self._state.persist()
                return content

            clarification = await self._clarify(review, feedback, clarification_agent)
            self._emitter.info(f"Feedback received: {feedback[:80]}")
            if revise is not None:
                revised = await revise(content, feedback, clarification)
            else:
                prompt = revision_prompt(content, feedback)
                if clarification:
                    prompt = f"{prompt}\n\nClarification:\n{clarification}"
                revised = await self._caller.call_isolated(author_agent, prompt)

            reason = guard.rejection_reason(content, revised) if guard else None
            if reason:
                self._emitter.warn(f"Discarding revision of {iteration_key}: {reason}")
            else:
                content = revised

            self._state.set_iteration(iteration_key, content, i)
            await self._state.persist()

        return content

    async def _clarify(
        self,
        review: ReviewStepConfig | QaStepConfig,
        feedback: str,
        fallback_agent: str | None,
    ) -> str | None:
        keyword = getattr(review, "clarification_keyword", None)
        if not keyword or not response_contains(feedback, keyword):
            return None
        agent = getattr(review, "clarification_agent", None) or fallback_agent
        if not agent:
            logger.debug("%s asked for clarification but no agent is configured", review.agent)
            return None
        self._emitter.info(f"{review.agent} needs clarification, asking {agent}")
        return await self._caller.call_isolated(
            agent, f"The reviewer needs clarification:\n{feedback}"
        )
