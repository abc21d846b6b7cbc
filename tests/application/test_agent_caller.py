"""Tests for AgentCaller retry and session lifecycle."""

import pytest

from swarmpipe.application.agent_caller import AgentCaller
from swarmpipe.domain.events import PipelineEventType
from swarmpipe.domain.exceptions import AgentCallError, AgentInstructionsNotFound
from swarmpipe.domain.interfaces import InstructionsProviderInterface
from swarmpipe.domain.models import SessionRecord
from swarmpipe.infrastructure.agents.mock import MockAgentBackend
from swarmpipe.infrastructure.instructions import StaticInstructionsProvider


class MissingInstructions(InstructionsProviderInterface):
    def load(self, agent: str) -> str:
        raise AgentInstructionsNotFound(agent, f"/nowhere/{agent}.md")


class TestCallIsolated:
    """Tests for one-shot calls with bounded retries."""

    async def test_returns_first_response(self, caller, backend):
        """A successful first attempt is returned without retrying."""
        backend.script("pm", "the spec")

        assert await caller.call_isolated("pm", "draft") == "the spec"
        assert backend.sessions_created == 1
        assert backend.sessions_destroyed == 1

    async def test_retries_after_exception(self, caller, backend, sink):
        """A failed attempt is retried in a fresh session."""
        backend.script("pm", AgentCallError("connection reset"), "the spec")

        assert await caller.call_isolated("pm", "draft") == "the spec"
        assert backend.sessions_created == 2
        assert backend.sessions_destroyed == 2
        errors = [e for e in sink.of_type(PipelineEventType.LOG) if e.level == "error"]
        assert "attempt 1/2" in errors[0].message

    async def test_final_exception_propagates(self, caller, backend):
        """The exception of the last attempt escapes; sessions are still destroyed."""
        backend.script("pm", AgentCallError("first"), AgentCallError("second"))

        with pytest.raises(AgentCallError, match="second"):
            await caller.call_isolated("pm", "draft")
        assert backend.sessions_destroyed == 2

    async def test_empty_response_retried(self, caller, backend, sink):
        """An empty response is retried while attempts remain."""
        backend.script("pm", "", "the spec")

        assert await caller.call_isolated("pm", "draft") == "the spec"
        warnings = [e for e in sink.of_type(PipelineEventType.LOG) if e.level == "warn"]
        assert "empty response" in warnings[0].message

    async def test_final_empty_response_returned(self, caller, backend):
        """An empty response from the last attempt is returned as is."""
        backend.script("pm", "", "")

        assert await caller.call_isolated("pm", "draft") == ""

    async def test_single_attempt_when_retries_disabled(
        self, backend, run_state, emitter
    ):
        """max_retries below one still allows one attempt."""
        caller = AgentCaller(
            backend, MissingInstructions(), run_state, emitter, "model-a", max_retries=0
        )
        with pytest.raises(AgentInstructionsNotFound):
            await caller.call_isolated("ghost", "hello")
        assert backend.sessions_created == 0


class TestSessions:
    """Tests for session creation, models and the session log."""

    async def test_default_model_used(self, caller, backend):
        await caller.call_isolated("pm", "draft")
        assert backend.calls[0].model == "model-a"

    async def test_model_override(self, caller, backend):
        await caller.call_isolated("reviewer", "check", model="model-b")
        assert backend.calls[0].model == "model-b"

    async def test_session_key_recorded(self, caller, run_state):
        """Sessions opened with a key are kept in the run's session log."""
        await caller.call_isolated("pm", "draft", session_key="spec-0/draft")

        assert run_state.session_log["spec-0/draft"] == SessionRecord("mock-pm-1", "pm", "pm")

    async def test_active_and_cleared_events(self, caller, sink):
        """Every session is announced when opened and cleared when destroyed."""
        await caller.call_isolated("pm", "draft")

        active = sink.of_type(PipelineEventType.AGENT_ACTIVE)
        cleared = sink.of_type(PipelineEventType.AGENT_CLEARED)
        assert [(e.agent, e.model) for e in active] == [("pm", "model-a")]
        assert cleared[0].session_id == active[0].session_id

    async def test_send_timeout(self, run_state, emitter):
        """A send exceeding the session timeout surfaces as a retryable AgentCallError."""
        slow = MockAgentBackend(delay=1.0)
        caller = AgentCaller(
            slow,
            StaticInstructionsProvider(),
            run_state,
            emitter,
            "model-a",
            max_retries=1,
            session_timeout_s=0.01,
        )
        session = await caller.create_session("pm")
        with pytest.raises(AgentCallError, match="timed out after 0.01s") as exc_info:
            await caller.send(session, "draft")
        assert isinstance(exc_info.value.__cause__, TimeoutError)
