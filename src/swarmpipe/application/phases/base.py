"""
Shared plumbing for phase executors.

Every executor receives the same ``PhaseServices`` bundle and mutates the
run's ``PipelineContext`` in place; the engine persists after the phase.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from swarmpipe.domain.exceptions import PartialStreamFailure, ShutdownRequested

if TYPE_CHECKING:
    from swarmpipe.application.agent_caller import AgentCaller
    from swarmpipe.application.event_emitter import PipelineEventEmitter
    from swarmpipe.application.review_loop import ReviewLoop
    from swarmpipe.application.run_state import RunState
    from swarmpipe.domain.config import PipelineConfig, RunSettings
    from swarmpipe.domain.interfaces import (
        ArtifactWriterInterface,
        ShellRunnerInterface,
        VerifyDetectorInterface,
    )

P = TypeVar("P")

REPO_CONTEXT_HEADER = "Repository context:"


@dataclass
class PhaseServices:
    """Collaborators shared by all phase executors."""

    settings: RunSettings
    config: PipelineConfig
    state: RunState
    caller: AgentCaller
    review_loop: ReviewLoop
    emitter: PipelineEventEmitter
    artifacts: ArtifactWriterInterface
    shell: ShellRunnerInterface
    verify_detector: VerifyDetectorInterface
    review_feedback: str = ""  # Reviewer feedback appended to implement prompts


class PhaseExecutor(ABC, Generic[P]):
    """Executes one kind of phase."""

    def __init__(self, services: PhaseServices) -> None:
        self.services = services
        self.state = services.state
        self.caller = services.caller
        self.emitter = services.emitter

    @abstractmethod
    async def execute(self, phase: P, phase_key: str) -> None:
        """Run the phase, updating ``state.context``."""

    async def write_role_summary(self, role: str, content: str) -> None:
        await asyncio.to_thread(self.services.artifacts.write_role_summary, role, content)

    def with_repo_context(self, prompt: str) -> str:
        """Prefix a prompt with the repository analysis, when one was loaded."""
        repo_context = self.state.context.repo_context
        if not repo_context:
            return prompt
        return f"{REPO_CONTEXT_HEADER}\n{repo_context}\n\n{prompt}"


async def fan_out(
    indices: list[int],
    worker: Callable[[int], Awaitable[None]],
    parallel: bool,
) -> list[int]:
    """
    Run ``worker`` for every index and wait for all of them.

    Concurrent mode never cancels siblings on a failure; sequential mode
    keeps going after a failed index. Shutdown requests are re-raised once
    everything has settled.

    Returns:
        Indices whose worker raised
    """
    if parallel:
        outcomes: list[BaseException | None] = list(
            await asyncio.gather(*(worker(i) for i in indices), return_exceptions=True)
        )
    else:
        outcomes = []
        for i in indices:
            try:
                await worker(i)
                outcomes.append(None)
            except Exception as e:
                outcomes.append(e)

    failed: list[int] = []
    shutdown: ShutdownRequested | None = None
    for i, outcome in zip(indices, outcomes):
        if outcome is None:
            continue
        if isinstance(outcome, ShutdownRequested):
            shutdown = outcome
        elif isinstance(outcome, Exception):
            failed.append(i)
        else:
            raise outcome
    if shutdown is not None:
        raise shutdown
    return failed


def raise_for_failures(failed: list[int], total: int) -> None:
    if failed:
        raise PartialStreamFailure(len(failed), total, tuple(failed))
