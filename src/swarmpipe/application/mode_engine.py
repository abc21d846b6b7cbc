"""
Standalone run modes built on the pipeline's resume machinery.

Plan and analyze runs are not driven by the pipeline config: each mode
runs a fixed list of phases. They checkpoint through ``RunState`` like a
pipeline run, tagged with their ``RunMode`` so that no kind of run can
pick up another kind's checkpoint.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from swarmpipe.application.agent_caller import AgentCaller
from swarmpipe.application.event_emitter import PipelineEventEmitter
from swarmpipe.application.review_loop import ReviewLoop
from swarmpipe.application.run_state import RunState
from swarmpipe.domain.exceptions import RunModeMismatch, ShutdownRequested

if TYPE_CHECKING:
    from swarmpipe.domain.config import PipelineConfig, RunSettings
    from swarmpipe.domain.interfaces import (
        AgentBackendInterface,
        ArtifactWriterInterface,
        CheckpointStoreInterface,
        EventSinkInterface,
        InstructionsProviderInterface,
        RepositorySnapshotInterface,
    )
    from swarmpipe.domain.models import RunMode

logger = logging.getLogger(__name__)

REPO_OVERVIEW_HEADER = "Repository overview:"


class ModeEngine(ABC):
    """Runs a mode's phases once each, resumable from its checkpoint."""

    mode: ClassVar[RunMode]
    phase_keys: ClassVar[tuple[str, ...]]

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
    ) -> None:
        """
        Args:
            settings: Per-run settings; ``resume`` selects resume intent
            config: Pipeline configuration, used for its models
            backend: Agent backend
            store: Checkpoint store
            sink: Event sink for progress events
            artifacts: Writer for the mode's output document
            instructions: Agent instructions provider
            repository: Produces the repository overview given to agents
        """
        self._settings = settings
        self._config = config
        self._backend = backend
        self._store = store
        self._artifacts = artifacts
        self._repository = repository
        self.repo_overview = ""

        self.emitter = PipelineEventEmitter(sink, settings.run_id)
        self.state = RunState(settings.run_id, store, settings.issue_body, mode=self.mode)
        self.caller = AgentCaller(
            backend,
            instructions,
            self.state,
            self.emitter,
            default_model=config.primary_model,
            max_retries=settings.max_retries,
            session_timeout_s=settings.session_timeout_s,
        )
        self.review_loop = ReviewLoop(self.caller, self.state, self.emitter)

    async def start(self) -> None:
        await self._backend.start()

    async def stop(self) -> None:
        await self._backend.stop()

    def request_shutdown(self) -> None:
        if not self.state.shutdown_requested:
            self.emitter.warn("Shutdown requested, finishing in-flight work")
        self.state.request_shutdown()

    # -------------------------------------------------------------------------
    # Mode hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def run_phase(self, phase_key: str) -> None:
        """Run one phase, updating ``state``."""

    @abstractmethod
    async def write_result(self) -> str:
        """Write the mode's document; returns where it went."""

    def skip_reason(self, phase_key: str) -> str | None:
        return None

    def with_overview(self, prompt: str) -> str:
        if not self.repo_overview:
            return prompt
        return f"{prompt}\n\n{REPO_OVERVIEW_HEADER}\n{self.repo_overview}"

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self) -> str:
        """
        Run every phase of the mode that is not already completed.

        Returns:
            Location of the written document

        Raises:
            RunModeMismatch: If the checkpoint belongs to another kind of run
            ShutdownRequested: If a shutdown stopped the run
        """
        state = self.state
        await self._initialize()

        current: str | None = None
        try:
            for key in self.phase_keys:
                if state.is_completed(key):
                    self.emitter.phase_skipped(key, "already completed")
                    continue
                state.raise_if_shutdown()

                reason = self.skip_reason(key)
                if reason is not None:
                    state.complete_phase(key)
                    await state.persist()
                    self.emitter.phase_skipped(key, reason)
                    continue

                current = key
                state.begin_phase(key)
                self.emitter.phase_activated(key)
                await state.persist()

                await self.run_phase(key)

                state.complete_phase(key)
                await state.persist()
                self.emitter.phase_completed(key)
                current = None

            location = await self.write_result()
        except ShutdownRequested:
            await state.persist()
            self.emitter.warn(f"Run {state.run_id} stopped; resume with --resume")
            raise
        except Exception as e:
            self.emitter.error(f"Phase {current or '(none)'} failed: {type(e).__name__}: {e}")
            await state.persist()
            raise

        await asyncio.to_thread(self._store.clear, state.run_id)
        self.emitter.info(f"{self.mode.value.capitalize()} complete, written to {location}")
        return location

    async def _initialize(self) -> None:
        state = self.state
        if self._settings.resume:
            checkpoint = await asyncio.to_thread(self._store.load, self._settings.run_id)
            if checkpoint is None:
                self.emitter.warn(
                    f"No checkpoint found for run {self._settings.run_id}, starting fresh"
                )
            else:
                if checkpoint.mode is not self.mode:
                    raise RunModeMismatch(
                        checkpoint.run_id, self.mode.value, checkpoint.mode.value
                    )
                state.restore(checkpoint)
                self.emitter.info(
                    f"Resuming {self.mode.value} run {state.run_id}: "
                    f"{len(state.completed_phases)} phase(s) already completed"
                )

        self.repo_overview = await asyncio.to_thread(
            self._repository.describe, self._settings.repo_root
        )
        logger.debug("Repository overview: %d chars", len(self.repo_overview))
