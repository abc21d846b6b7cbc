"""
PipelineEngine: runs the configured phases in order, exactly once per run.

Owns the ``RunState`` of a single process invocation. A run interrupted by
an error, a shutdown request or a crash leaves its checkpoint behind; an
engine constructed with ``resume=True`` for the same run id picks up from
it without repeating completed phases or approved review rounds.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from swarmpipe.application.agent_caller import AgentCaller
from swarmpipe.application.event_emitter import PipelineEventEmitter
from swarmpipe.application.phases import PHASE_EXECUTORS, PhaseServices
from swarmpipe.application.review_loop import ReviewLoop
from swarmpipe.application.run_state import RunState
from swarmpipe.domain.config import (
    PhaseCondition,
    PhaseConfig,
    PhaseKind,
    compute_pipeline_ref,
    phase_key,
)
from swarmpipe.domain.exceptions import (
    CheckpointNotFound,
    RunModeMismatch,
    ShutdownRequested,
    WorkflowIntegrityError,
)
from swarmpipe.domain.models import RunMode
from swarmpipe.domain.parsing import has_frontend_work

if TYPE_CHECKING:
    from swarmpipe.domain.config import PipelineConfig, RunSettings
    from swarmpipe.domain.interfaces import (
        AgentBackendInterface,
        ArtifactWriterInterface,
        CheckpointStoreInterface,
        EventSinkInterface,
        InstructionsProviderInterface,
        ShellRunnerInterface,
        VerifyDetectorInterface,
    )
    from swarmpipe.domain.models import PipelineCheckpoint, PipelineContext, SessionRecord

logger = logging.getLogger(__name__)


def build_run_summary(
    context: PipelineContext,
    session_log: dict[str, SessionRecord],
    timestamp: str | None = None,
) -> str:
    """Render the final Markdown summary of a run."""
    timestamp = timestamp or datetime.now().isoformat()
    streams = "\n\n---\n\n".join(
        f"## Stream {i + 1}\n\n{result}" for i, result in enumerate(context.stream_results)
    )
    summary = (
        f"# Swarm Run Summary\n\n**Timestamp:** {timestamp}\n"
        f"**Tasks:** {len(context.tasks)}\n\n{streams}\n"
    )
    if session_log:
        lines = [
            f"- `{key}`: {record.agent} ({record.session_id})"
            for key, record in session_log.items()
        ]
        summary += "\n## Sessions\n\n" + "\n".join(lines) + "\n"
    return summary


class PipelineEngine:
    """Executes a pipeline config against one run."""

    def __init__(
        self,
        settings: RunSettings,
        config: PipelineConfig,
        backend: AgentBackendInterface,
        store: CheckpointStoreInterface,
        sink: EventSinkInterface,
        artifacts: ArtifactWriterInterface,
        instructions: InstructionsProviderInterface,
        shell: ShellRunnerInterface,
        verify_detector: VerifyDetectorInterface,
        review_feedback: str = "",
    ) -> None:
        """
        Args:
            settings: Per-run settings; ``resume`` selects resume intent
            config: Pipeline configuration, fixed for the engine's lifetime
            backend: Agent backend
            store: Checkpoint store
            sink: Event sink for progress events
            artifacts: Writer for role and run summaries
            instructions: Agent instructions provider
            shell: Runner for verification commands
            verify_detector: Detects verification commands from the repo
            review_feedback: Reviewer feedback appended to implement prompts
        """
        self._settings = settings
        self._config = config
        self._backend = backend
        self._store = store
        self._artifacts = artifacts
        self._pipeline_ref = compute_pipeline_ref(config)
        self._seed: PipelineCheckpoint | None = None

        self.emitter = PipelineEventEmitter(sink, settings.run_id)
        self.state = RunState(
            settings.run_id, store, settings.issue_body, pipeline_ref=self._pipeline_ref
        )
        self._caller = AgentCaller(
            backend,
            instructions,
            self.state,
            self.emitter,
            default_model=config.primary_model,
            max_retries=settings.max_retries,
            session_timeout_s=settings.session_timeout_s,
        )
        self._services = PhaseServices(
            settings=settings,
            config=config,
            state=self.state,
            caller=self._caller,
            review_loop=ReviewLoop(self._caller, self.state, self.emitter),
            emitter=self.emitter,
            artifacts=artifacts,
            shell=shell,
            verify_detector=verify_detector,
            review_feedback=review_feedback,
        )

    @classmethod
    def for_review(
        cls,
        settings: RunSettings,
        config: PipelineConfig,
        backend: AgentBackendInterface,
        store: CheckpointStoreInterface,
        sink: EventSinkInterface,
        artifacts: ArtifactWriterInterface,
        instructions: InstructionsProviderInterface,
        shell: ShellRunnerInterface,
        verify_detector: VerifyDetectorInterface,
        feedback: str,
    ) -> PipelineEngine:
        """
        Build an engine that re-implements a prior run with reviewer feedback.

        The context (spec, tasks, design) is seeded from the prior run and
        every phase before the first implement phase counts as completed.

        Raises:
            CheckpointNotFound: If the prior run left no snapshot
            RunModeMismatch: If the prior run was a plan or analyze run
        """
        target = settings.review_run_id or store.latest_run_id()
        prior = None
        if target is not None:
            prior = store.load(target) or store.load_final(target)
        if prior is None:
            raise CheckpointNotFound(target)
        if prior.mode is not RunMode.RUN:
            raise RunModeMismatch(prior.run_id, RunMode.RUN.value, prior.mode.value)

        engine = cls(
            settings,
            config,
            backend,
            store,
            sink,
            artifacts,
            instructions,
            shell,
            verify_detector,
            review_feedback=feedback,
        )
        engine._seed = prior
        return engine

    @property
    def pipeline_ref(self) -> str:
        return self._pipeline_ref

    async def start(self) -> None:
        await self._backend.start()

    async def stop(self) -> None:
        await self._backend.stop()

    def request_shutdown(self) -> None:
        """Stop starting new work; the current save point is still written."""
        if not self.state.shutdown_requested:
            self.emitter.warn("Shutdown requested, finishing in-flight work")
        self.state.request_shutdown()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self) -> PipelineContext:
        """
        Run every configured phase that is not already completed.

        Returns:
            The final pipeline context

        Raises:
            WorkflowIntegrityError: If resuming under a changed config
            RunModeMismatch: If the checkpoint belongs to a plan or analyze run
            ShutdownRequested: If a shutdown stopped the run
            PartialStreamFailure: If implementation streams failed
        """
        state = self.state
        self.emitter.info(
            f"Config: primary={self._config.primary_model}, "
            f"review={self._config.review_model}, verbose={self._settings.verbose}"
        )
        await self._initialize()

        current: str | None = None
        try:
            for index, phase in enumerate(self._config.phases):
                key = phase_key(phase, index)
                if state.is_completed(key):
                    self.emitter.phase_skipped(key, "already completed")
                    continue
                state.raise_if_shutdown()

                reason = self._skip_reason(phase)
                if reason is not None:
                    if phase.kind is PhaseKind.SPEC:
                        state.context.spec = state.issue_body
                    state.complete_phase(key)
                    await state.persist()
                    self.emitter.phase_skipped(key, reason)
                    continue

                current = key
                state.begin_phase(key)
                self.emitter.phase_activated(key)
                await state.persist()

                executor = PHASE_EXECUTORS[phase.kind](self._services)
                await executor.execute(phase, key)

                state.complete_phase(key)
                await state.persist()
                self.emitter.phase_completed(key)
                current = None
        except ShutdownRequested:
            await state.persist()
            self.emitter.warn(f"Run {state.run_id} stopped; resume with --resume")
            raise
        except Exception as e:
            self.emitter.error(f"Phase {current or '(none)'} failed: {type(e).__name__}: {e}")
            await state.persist()
            raise

        await self._finish()
        return state.context

    async def _initialize(self) -> None:
        state = self.state
        resumed = False
        if self._settings.resume:
            checkpoint = await asyncio.to_thread(self._store.load, self._settings.run_id)
            if checkpoint is None:
                self.emitter.warn(
                    f"No checkpoint found for run {self._settings.run_id}, starting fresh"
                )
            else:
                self._check_integrity(checkpoint)
                state.restore(checkpoint)
                resumed = True
                self.emitter.info(
                    f"Resuming run {state.run_id}: "
                    f"{len(state.completed_phases)} phase(s) already completed"
                )

        if not resumed and self._seed is not None:
            self._apply_seed(self._seed)

        if not state.context.repo_context:
            state.context.repo_context = await asyncio.to_thread(self._read_repo_analysis)

    def _check_integrity(self, checkpoint: PipelineCheckpoint) -> None:
        if checkpoint.mode is not RunMode.RUN:
            raise RunModeMismatch(checkpoint.run_id, RunMode.RUN.value, checkpoint.mode.value)
        if checkpoint.pipeline_ref is None:
            self.emitter.warn(
                "Checkpoint has no pipeline reference; assuming the config is unchanged"
            )
        elif checkpoint.pipeline_ref != self._pipeline_ref:
            raise WorkflowIntegrityError(checkpoint.pipeline_ref, self._pipeline_ref)

    def _apply_seed(self, prior: PipelineCheckpoint) -> None:
        state = self.state
        state.context = prior.to_context()
        state.context.stream_results = []
        state.issue_body = prior.issue_body or state.issue_body
        for index, phase in enumerate(self._config.phases):
            if phase.kind is PhaseKind.IMPLEMENT:
                break
            state.complete_phase(phase_key(phase, index))
        self.emitter.info(
            f"Reviewing run {prior.run_id}: {len(state.context.tasks)} task(s) to revisit"
        )

    def _read_repo_analysis(self) -> str:
        path = self._settings.analysis_path
        if not path.exists():
            return ""
        logger.debug("Loading repository analysis from %s", path)
        return path.read_text(encoding="utf-8")

    def _skip_reason(self, phase: PhaseConfig) -> str | None:
        condition = getattr(phase, "condition", None)
        if condition is PhaseCondition.NO_PLAN_PROVIDED and self._settings.plan_provided:
            return "plan provided"
        if condition is PhaseCondition.HAS_FRONTEND_TASKS and not has_frontend_work(
            self.state.context.tasks
        ):
            return "no frontend tasks"
        if (
            condition is PhaseCondition.DIFFERENT_REVIEW_MODEL
            and self._config.review_model == self._config.primary_model
        ):
            return "review model equals primary model"
        return None

    async def _finish(self) -> None:
        state = self.state
        summary = build_run_summary(state.context, state.session_log)
        await asyncio.to_thread(self._artifacts.write_run_summary, summary)
        # Cleared last: a crash before this point resumes into an all-done run
        await asyncio.to_thread(self._store.clear, state.run_id)
        self.emitter.info("Swarm complete")
