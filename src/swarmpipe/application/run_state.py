"""
Explicit run state threaded through every phase.

``RunState`` owns the mutable pipeline context plus the bookkeeping a
checkpoint needs (completed phases, active phase, iteration progress,
session log). ``persist()`` is the single save point: every phase
completion and every review iteration goes through it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from swarmpipe.domain.exceptions import ShutdownRequested
from swarmpipe.domain.interfaces import CheckpointStoreInterface
from swarmpipe.domain.models import (
    IterationSnapshot,
    PipelineCheckpoint,
    PipelineContext,
    QAPair,
    RunMode,
    SessionRecord,
)

logger = logging.getLogger(__name__)


class RunState:
    """Mutable run progress with a single checkpoint save point."""

    def __init__(
        self,
        run_id: str,
        store: CheckpointStoreInterface,
        issue_body: str = "",
        pipeline_ref: str | None = None,
        mode: RunMode = RunMode.RUN,
    ) -> None:
        self.run_id = run_id
        self.mode = mode
        self.issue_body = issue_body
        self.pipeline_ref = pipeline_ref
        self.context = PipelineContext()
        self.completed_phases: list[str] = []
        self.active_phase: str | None = None
        self.phase_draft: str | None = None
        self.iteration_progress: dict[str, IterationSnapshot] = {}
        self.session_log: dict[str, SessionRecord] = {}
        self.analysis = ""
        self.answered_questions: list[QAPair] = []
        self._store = store
        self._lock = asyncio.Lock()
        self._shutdown = False

    # -------------------------------------------------------------------------
    # Checkpoint round-trip
    # -------------------------------------------------------------------------

    def restore(self, checkpoint: PipelineCheckpoint) -> None:
        """Adopt a loaded checkpoint.

        Iteration progress and the phase draft are kept only together with
        the active phase they belong to; ``begin_phase`` drops them if a
        different phase runs first.
        """
        self.context = checkpoint.to_context()
        self.completed_phases = list(checkpoint.completed_phases)
        self.issue_body = checkpoint.issue_body or self.issue_body
        self.active_phase = checkpoint.active_phase
        if checkpoint.active_phase is not None:
            self.phase_draft = checkpoint.phase_draft
            self.iteration_progress = dict(checkpoint.iteration_progress)
        self.session_log = dict(checkpoint.session_log)
        self.analysis = checkpoint.analysis
        self.answered_questions = list(checkpoint.answered_questions)

    def snapshot(self) -> PipelineCheckpoint:
        ctx = self.context
        return PipelineCheckpoint(
            run_id=self.run_id,
            completed_phases=tuple(self.completed_phases),
            issue_body=self.issue_body,
            repo_context=ctx.repo_context,
            spec=ctx.spec,
            tasks=tuple(ctx.tasks),
            task_deps=tuple(tuple(d) for d in ctx.task_deps),
            design_spec=ctx.design_spec,
            stream_results=tuple(ctx.stream_results),
            active_phase=self.active_phase,
            phase_draft=self.phase_draft,
            iteration_progress=tuple(self.iteration_progress.items()),
            session_log=tuple(self.session_log.items()),
            pipeline_ref=self.pipeline_ref,
            created_at=datetime.now(timezone.utc).isoformat(),
            mode=self.mode,
            analysis=self.analysis,
            answered_questions=tuple(self.answered_questions),
        )

    async def persist(self) -> None:
        """Save a full snapshot of the current state.

        The snapshot is taken under the lock so concurrent streams saving
        back to back reach the store in the order they were taken.
        """
        async with self._lock:
            checkpoint = self.snapshot()
            await asyncio.to_thread(self._store.save, checkpoint)

    # -------------------------------------------------------------------------
    # Phase bookkeeping
    # -------------------------------------------------------------------------

    def is_completed(self, phase_key: str) -> bool:
        return phase_key in self.completed_phases

    def begin_phase(self, phase_key: str) -> None:
        if self.active_phase != phase_key:
            if self.iteration_progress or self.phase_draft is not None:
                logger.debug(
                    "Discarding stale iteration progress of %s", self.active_phase
                )
            self.iteration_progress = {}
            self.phase_draft = None
        self.active_phase = phase_key

    def complete_phase(self, phase_key: str) -> None:
        if phase_key not in self.completed_phases:
            self.completed_phases.append(phase_key)
        self.active_phase = None
        self.phase_draft = None
        self.iteration_progress = {}

    # -------------------------------------------------------------------------
    # Iterations and sessions
    # -------------------------------------------------------------------------

    def iteration(self, key: str) -> IterationSnapshot | None:
        return self.iteration_progress.get(key)

    def set_iteration(self, key: str, content: str, completed_iterations: int) -> None:
        self.iteration_progress[key] = IterationSnapshot(content, completed_iterations)

    def record_session(self, key: str, record: SessionRecord) -> None:
        self.session_log[key] = record

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def request_shutdown(self) -> None:
        self._shutdown = True

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown

    def raise_if_shutdown(self) -> None:
        """Called before starting any new unit of work."""
        if self._shutdown:
            raise ShutdownRequested("Shutdown requested; progress saved to checkpoint")
