"""Composition root: wires filesystem adapters into the engines."""

from typing import Any

from swarmpipe.application.analysis import RepoAnalysisEngine
from swarmpipe.application.engine import PipelineEngine
from swarmpipe.application.planning import PlanningEngine
from swarmpipe.application.supervisor import EngineFactory
from swarmpipe.domain.config import PipelineConfig, RunSettings
from swarmpipe.domain.interfaces import (
    AgentBackendInterface,
    ClarificationProviderInterface,
    EventSinkInterface,
)
from swarmpipe.infrastructure.instructions import FilesystemInstructionsProvider
from swarmpipe.infrastructure.persistence import (
    FilesystemArtifactWriter,
    FilesystemCheckpointStore,
)
from swarmpipe.infrastructure.repo_snapshot import FilesystemRepositorySnapshot
from swarmpipe.infrastructure.shell import ShellRunner
from swarmpipe.infrastructure.verify_detect import ProjectVerifyDetector


def _common_adapters(
    settings: RunSettings, config: PipelineConfig, sink: EventSinkInterface
) -> dict[str, Any]:
    return dict(
        store=FilesystemCheckpointStore(settings.swarm_root),
        sink=sink,
        artifacts=FilesystemArtifactWriter(
            settings.roles_dir,
            settings.repo_root / settings.doc_dir / settings.summary_file_name,
            analysis_path=settings.analysis_path,
            plans_dir=settings.plans_dir,
        ),
        instructions=FilesystemInstructionsProvider(
            settings.repo_root, settings.agents_dir, config.agents
        ),
    )


def build_engine(
    settings: RunSettings,
    config: PipelineConfig,
    backend: AgentBackendInterface,
    sink: EventSinkInterface,
    review_feedback: str | None = None,
) -> PipelineEngine:
    """
    Build an engine backed by the repository's ``.swarm`` directory.

    Args:
        settings: Run settings
        config: Pipeline configuration
        backend: Agent backend
        sink: Event sink for progress events
        review_feedback: When set, build a review-mode engine

    Raises:
        CheckpointNotFound: In review mode, if the reviewed run is unknown
    """
    adapters = _common_adapters(settings, config, sink)
    adapters.update(shell=ShellRunner(), verify_detector=ProjectVerifyDetector())
    if review_feedback is not None:
        return PipelineEngine.for_review(
            settings, config, backend, feedback=review_feedback, **adapters
        )
    return PipelineEngine(settings, config, backend, **adapters)


def engine_factory(
    config: PipelineConfig,
    backend: AgentBackendInterface,
    sink: EventSinkInterface,
    review_feedback: str | None = None,
) -> EngineFactory:
    """Engine factory for ``AutoResumeRunner``; every attempt shares the backend."""

    def factory(settings: RunSettings) -> PipelineEngine:
        return build_engine(settings, config, backend, sink, review_feedback)

    return factory


def analysis_engine_factory(
    config: PipelineConfig,
    backend: AgentBackendInterface,
    sink: EventSinkInterface,
) -> EngineFactory:
    """Factory of analyze-mode engines for ``AutoResumeRunner``."""

    def factory(settings: RunSettings) -> RepoAnalysisEngine:
        return RepoAnalysisEngine(
            settings,
            config,
            backend,
            repository=FilesystemRepositorySnapshot(),
            **_common_adapters(settings, config, sink),
        )

    return factory


def planning_engine_factory(
    config: PipelineConfig,
    backend: AgentBackendInterface,
    sink: EventSinkInterface,
    clarifier: ClarificationProviderInterface,
) -> EngineFactory:
    """Factory of plan-mode engines for ``AutoResumeRunner``."""

    def factory(settings: RunSettings) -> PlanningEngine:
        return PlanningEngine(
            settings,
            config,
            backend,
            repository=FilesystemRepositorySnapshot(),
            clarifier=clarifier,
            **_common_adapters(settings, config, sink),
        )

    return factory
