"""
Plan mode: clarify requirements with the user before any engineering work.

A planner agent questions the user until it declares the requirements
clear, then an analyst assesses the codebase against them. The resulting
plan carries a ``## Refined Requirements`` section, so it can be fed back
to ``swarmpipe run --plan``.

Every answered round is checkpointed. A resumed clarification replays the
answered rounds to a fresh planner session instead of asking the user
again.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING

from swarmpipe.application.mode_engine import ModeEngine
from swarmpipe.domain.models import QAPair, RunMode
from swarmpipe.domain.parsing import demote_headings, response_contains, text_after_keyword

if TYPE_CHECKING:
    from swarmpipe.domain.config import PipelineConfig, RunSettings
    from swarmpipe.domain.interfaces import (
        AgentBackendInterface,
        ArtifactWriterInterface,
        CheckpointStoreInterface,
        ClarificationProviderInterface,
        EventSinkInterface,
        InstructionsProviderInterface,
        RepositorySnapshotInterface,
    )

logger = logging.getLogger(__name__)

PLANNER_AGENT = "planner"
ANALYST_AGENT = "analyst"
REQUIREMENTS_CLEAR = "REQUIREMENTS_CLEAR"
MAX_CLARIFICATION_ROUNDS = 10

CLARIFY_PHASE = "plan-clarify-0"
ANALYZE_PHASE = "plan-analyze-1"

SKIPPED_ROUND_PROMPT = (
    "The user skipped this round. Use your best judgment for any open questions and "
    f"produce the final requirements. Respond with {REQUIREMENTS_CLEAR} followed by "
    "the structured summary."
)


def build_plan(request: str, requirements: str, analysis: str, timestamp: str) -> str:
    """Render a plan whose requirements section ``read_plan`` can extract."""
    return (
        f"# Plan\n\n**Timestamp:** {timestamp}\n\n"
        f"## Original Request\n\n{demote_headings(request)}\n\n"
        f"## Refined Requirements\n\n{demote_headings(requirements)}\n\n"
        f"## Technical Analysis\n\n{demote_headings(analysis)}\n"
    )


class PlanningEngine(ModeEngine):
    """Produces ``<swarm_dir>/plans/plan-<timestamp>.md`` and ``plan-latest.md``."""

    mode = RunMode.PLAN
    phase_keys = (CLARIFY_PHASE, ANALYZE_PHASE)

    def __init__(
        self,
        settings: RunSettings,
        config: PipelineConfig,
        backend: AgentBackendInterface,
        store: CheckpointStoreInterface,
        sink: EventSinkInterface,
        artifacts: ArtifactWriterInterface,
        instructions: InstructionsProviderInterface,
        repository: RepositorySnapshotInterface,
        clarifier: ClarificationProviderInterface,
    ) -> None:
        """
        Args:
            clarifier: Asks the user the planner's questions; blocking, so
                it is called from a worker thread
        """
        super().__init__(
            settings, config, backend, store, sink, artifacts, instructions, repository
        )
        self._clarifier = clarifier

    async def run_phase(self, phase_key: str) -> None:
        if phase_key == CLARIFY_PHASE:
            await self._clarify(phase_key)
        else:
            await self._analyze(phase_key)

    def _request_prompt(self) -> str:
        state = self.state
        prompt = f"Here is the user's request:\n\n{state.issue_body}\n\n"
        if state.answered_questions:
            rounds = "\n\n".join(
                f"Questions:\n{qa.question}\n\nAnswer:\n{qa.answer or '(skipped)'}"
                for qa in state.answered_questions
            )
            prompt += f"Clarification rounds already completed:\n\n{rounds}\n\n"
        prompt += (
            f"Analyze this request. If it's clear enough, respond with {REQUIREMENTS_CLEAR} "
            "followed by the structured summary. If you need more information, ask your "
            "clarifying questions."
        )
        return self.with_overview(prompt)

    async def _clarify(self, phase_key: str) -> None:
        state = self.state
        session = await self.caller.create_session(PLANNER_AGENT, session_key=phase_key)
        try:
            self.emitter.info(f"{PLANNER_AGENT} is analyzing the request")
            response = await self.caller.send(session, self._request_prompt())

            while not response_contains(response, REQUIREMENTS_CLEAR):
                if len(state.answered_questions) >= MAX_CLARIFICATION_ROUNDS:
                    self.emitter.warn(
                        f"No {REQUIREMENTS_CLEAR} after {MAX_CLARIFICATION_ROUNDS} rounds, "
                        "using the last response"
                    )
                    break
                state.raise_if_shutdown()
                answer = await asyncio.to_thread(self._clarifier.ask, response)
                state.answered_questions.append(QAPair(response, answer))
                await state.persist()

                if answer.strip():
                    prompt = f"User's answers:\n\n{answer}"
                else:
                    prompt = SKIPPED_ROUND_PROMPT
                response = await self.caller.send(session, prompt)
        finally:
            await self.caller.destroy(session)

        state.context.spec = text_after_keyword(response, REQUIREMENTS_CLEAR)

    async def _analyze(self, phase_key: str) -> None:
        state = self.state
        self.emitter.info(f"{ANALYST_AGENT} is assessing the codebase")
        state.analysis = await self.caller.call_isolated(
            ANALYST_AGENT,
            self.with_overview(
                "Analyze the codebase against these requirements and produce a technical "
                f"assessment:\n\n{state.context.spec}"
            ),
            session_key=phase_key,
        )

    async def write_result(self) -> str:
        state = self.state
        timestamp = datetime.now().isoformat()
        stamp = re.sub(r"[:.]", "-", timestamp)
        plan = build_plan(state.issue_body, state.context.spec, state.analysis, timestamp)
        location = await asyncio.to_thread(self._artifacts.write_plan, plan, stamp)
        self.emitter.info(f"Run the pipeline with: swarmpipe run --plan {location}")
        return location
