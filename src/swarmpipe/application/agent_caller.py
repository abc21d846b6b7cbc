"""
Agent call wrapper.

Owns the retry policy for isolated agent calls and the lifecycle of
long-lived authoring sessions. Every session it opens is announced to the
event sink and, when given a key, recorded in the run's session log.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from swarmpipe.domain.exceptions import AgentCallError
from swarmpipe.domain.models import SessionRecord

if TYPE_CHECKING:
    from swarmpipe.application.event_emitter import PipelineEventEmitter
    from swarmpipe.application.run_state import RunState
    from swarmpipe.domain.interfaces import (
        AgentBackendInterface,
        AgentSessionInterface,
        InstructionsProviderInterface,
    )

logger = logging.getLogger(__name__)


class AgentCaller:
    """Calls agents through a backend with timeouts and bounded retries."""

    def __init__(
        self,
        backend: AgentBackendInterface,
        instructions: InstructionsProviderInterface,
        state: RunState,
        emitter: PipelineEventEmitter,
        default_model: str,
        max_retries: int = 2,
        session_timeout_s: float = 1800.0,
    ) -> None:
        """
        Args:
            backend: Agent backend
            instructions: Resolves agent names to system instructions
            state: Run state receiving the session log
            emitter: Event emitter for active-agent events
            default_model: Model used when a call does not name one
            max_retries: Total attempts per isolated call
            session_timeout_s: Per-send timeout
        """
        self._backend = backend
        self._instructions = instructions
        self._state = state
        self._emitter = emitter
        self._default_model = default_model
        self._max_attempts = max(1, max_retries)
        self._timeout = session_timeout_s

    async def _load_instructions(self, agent: str) -> str:
        return await asyncio.to_thread(self._instructions.load, agent)

    async def create_session(
        self,
        agent: str,
        model: str | None = None,
        session_key: str | None = None,
    ) -> AgentSessionInterface:
        """Open a session primed with the agent's instructions.

        Raises:
            AgentInstructionsNotFound: If the agent has no instructions
        """
        instructions = await self._load_instructions(agent)
        resolved_model = model or self._default_model
        session = await self._backend.create_session(instructions, resolved_model, agent)
        logger.debug("Session %s opened for %s (%s)", session.session_id, agent, resolved_model)
        self._emitter.agent_active(session.session_id, agent, resolved_model)
        if session_key:
            self._state.record_session(
                session_key, SessionRecord(session.session_id, agent, agent)
            )
        return session

    async def send(self, session: AgentSessionInterface, prompt: str) -> str:
        """Send on a session, enforcing the session timeout.

        Raises:
            AgentCallError: If the agent did not answer in time
        """
        try:
            return await asyncio.wait_for(
                session.send(prompt, timeout=self._timeout), timeout=self._timeout
            )
        except TimeoutError as e:
            raise AgentCallError(
                f"Session {session.session_id} timed out after {self._timeout}s"
            ) from e

    async def destroy(self, session: AgentSessionInterface) -> None:
        self._emitter.agent_cleared(session.session_id)
        await session.destroy()

    async def call_isolated(
        self,
        agent: str,
        prompt: str,
        model: str | None = None,
        session_key: str | None = None,
    ) -> str:
        """
        One-shot call in a fresh session per attempt.

        An empty response is retried unless it comes from the final
        attempt, which returns it as is. An exception on the final attempt
        propagates. The session is destroyed after every attempt.

        Args:
            agent: Agent name
            prompt: User prompt
            model: Model override (defaults to the primary model)
            session_key: Session-log key for observability replay

        Returns:
            The response text, possibly empty
        """
        for attempt in range(1, self._max_attempts + 1):
            session = await self.create_session(agent, model, session_key)
            try:
                content = await self.send(session, prompt)
                if not content and attempt < self._max_attempts:
                    self._emitter.warn(
                        f"{agent} returned an empty response "
                        f"(attempt {attempt}/{self._max_attempts}), retrying"
                    )
                    continue
                return content
            except Exception as e:
                self._emitter.error(
                    f"{agent} call failed (attempt {attempt}/{self._max_attempts}): "
                    f"{type(e).__name__}: {e}"
                )
                if attempt >= self._max_attempts:
                    raise
            finally:
                await self.destroy(session)
        return ""
