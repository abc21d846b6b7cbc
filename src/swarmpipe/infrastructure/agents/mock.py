"""
Mock agent backend for testing and dry runs without an LLM.

Returns predefined responses per agent, in sequence.
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from swarmpipe.domain.interfaces import AgentBackendInterface, AgentSessionInterface

Reply = str | BaseException | Callable[[str], str]
Handler = Callable[[str, str], str]


def dry_run_reply(agent: str, prompt: str) -> str:
    """Deterministic reply that lets the default pipeline run end to end."""
    if "JSON array" in prompt:
        return '[{"id": 1, "task": "Dry-run task", "dependsOn": []}]'
    return f"APPROVED ALL_PASSED\n\n(dry-run output from {agent})"


@dataclass(frozen=True)
class MockCall:
    """One prompt received by the mock backend."""

    agent: str
    model: str
    prompt: str
    session_id: str


class MockAgentSession(AgentSessionInterface):
    def __init__(self, backend: "MockAgentBackend", agent: str, model: str, session_id: str):
        self._backend = backend
        self._agent = agent
        self._model = model
        self._session_id = session_id
        self.destroyed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    async def send(self, prompt: str, timeout: float | None = None) -> str:
        return await asyncio.wait_for(
            self._backend._reply(self._agent, self._model, prompt, self._session_id),
            timeout=timeout,
        )

    async def destroy(self) -> None:
        self.destroyed = True
        self._backend.sessions_destroyed += 1


class MockAgentBackend(AgentBackendInterface):
    """Returns predefined responses for testing.

    Scripted replies for an agent are consumed first. A reply may be a
    string, an exception instance (raised from ``send``) or a callable
    receiving the prompt. Once an agent's script is exhausted, ``handler``
    answers; with ``strict=True`` an exhausted script raises instead.
    """

    def __init__(
        self,
        responses: dict[str, list[Reply]] | None = None,
        handler: Handler = dry_run_reply,
        strict: bool = False,
        delay: float = 0.0,
        **_: Any,
    ):
        """
        Args:
            responses: Agent name -> replies returned in sequence
            handler: Fallback ``(agent, prompt) -> reply``
            strict: Raise once an agent's scripted replies run out
            delay: Seconds to sleep before each reply, to exercise concurrency
        """
        self._scripts: dict[str, list[Reply]] = defaultdict(list)
        for agent, replies in (responses or {}).items():
            self._scripts[agent] = list(replies)
        self._handler = handler
        self._strict = strict
        self._delay = delay
        self.calls: list[MockCall] = []
        self.sessions_created = 0
        self.sessions_destroyed = 0
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def create_session(
        self, instructions: str, model: str, agent: str = "agent"
    ) -> AgentSessionInterface:
        self.sessions_created += 1
        return MockAgentSession(self, agent, model, f"mock-{agent}-{self.sessions_created}")

    def script(self, agent: str, *replies: Reply) -> None:
        """Append scripted replies for an agent."""
        self._scripts[agent].extend(replies)

    def calls_for(self, agent: str) -> list[MockCall]:
        return [c for c in self.calls if c.agent == agent]

    @property
    def call_count(self) -> int:
        """Number of prompts received across all sessions."""
        return len(self.calls)

    async def _reply(self, agent: str, model: str, prompt: str, session_id: str) -> str:
        self.calls.append(MockCall(agent, model, prompt, session_id))
        if self._delay:
            await asyncio.sleep(self._delay)

        script = self._scripts[agent]
        if not script:
            if self._strict:
                raise RuntimeError(f"MockAgentBackend exhausted responses for '{agent}'")
            return self._handler(agent, prompt)

        reply = script.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply
