"""Shared pytest fixtures for swarmpipe tests."""

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from swarmpipe.application.agent_caller import AgentCaller
from swarmpipe.application.engine import PipelineEngine
from swarmpipe.application.event_emitter import PipelineEventEmitter
from swarmpipe.application.review_loop import ReviewLoop
from swarmpipe.application.run_state import RunState
from swarmpipe.domain.config import (
    DecomposePhaseConfig,
    ImplementPhaseConfig,
    PipelineConfig,
    QaStepConfig,
    ReviewStepConfig,
    RunSettings,
    SpecPhaseConfig,
    VerifyConfig,
    compute_pipeline_ref,
)
from swarmpipe.domain.interfaces import (
    RepositorySnapshotInterface,
    ShellRunnerInterface,
    VerifyDetectorInterface,
)
from swarmpipe.domain.models import CommandResult, PipelineCheckpoint
from swarmpipe.infrastructure.agents.mock import MockAgentBackend
from swarmpipe.infrastructure.instructions import StaticInstructionsProvider
from swarmpipe.infrastructure.persistence import (
    InMemoryArtifactWriter,
    InMemoryCheckpointStore,
    InMemoryEventSink,
)


class FakeShellRunner(ShellRunnerInterface):
    """Returns queued results per command; unknown commands pass."""

    def __init__(self, results: dict[str, list[CommandResult]] | None = None) -> None:
        self._results = {k: list(v) for k, v in (results or {}).items()}
        self.commands: list[str] = []

    def queue(self, command: str, *results: CommandResult) -> None:
        self._results.setdefault(command, []).extend(results)

    async def run(self, command: str, cwd: str, timeout: float) -> CommandResult:
        self.commands.append(command)
        queued = self._results.get(command)
        if queued:
            return queued.pop(0)
        return CommandResult(command=command, returncode=0, output="ok")


class FakeVerifyDetector(VerifyDetectorInterface):
    def __init__(self, detected: VerifyConfig | None = None) -> None:
        self.detected = detected

    def detect(self, repo_root: Path) -> VerifyConfig | None:
        return self.detected


class FakeRepositorySnapshot(RepositorySnapshotInterface):
    def __init__(self, overview: str = "Files:\nREADME.md\napp.py") -> None:
        self.overview = overview

    def describe(self, repo_root: Path) -> str:
        return self.overview


@pytest.fixture
def backend() -> MockAgentBackend:
    """Mock backend answering with approvals unless scripted."""
    return MockAgentBackend()


@pytest.fixture
def store() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture
def sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def artifacts() -> InMemoryArtifactWriter:
    return InMemoryArtifactWriter()


@pytest.fixture
def two_wave_tasks() -> str:
    """Decomposition reply in which task 2 depends on task 1."""
    return (
        'Here are the tasks:\n[{"id": 1, "task": "Create the data model", "dependsOn": []}, '
        '{"id": 2, "task": "Write the API handlers", "dependsOn": [1]}]'
    )


@pytest.fixture
def shell() -> FakeShellRunner:
    return FakeShellRunner()


@pytest.fixture
def detector() -> FakeVerifyDetector:
    return FakeVerifyDetector()


@pytest.fixture
def repository() -> FakeRepositorySnapshot:
    return FakeRepositorySnapshot()


@pytest.fixture
def settings(tmp_path: Path) -> RunSettings:
    return RunSettings(repo_root=tmp_path, run_id="run-1", issue_body="Build a todo app")


@pytest.fixture
def basic_config() -> PipelineConfig:
    """spec -> decompose -> implement, with one review and QA."""
    return PipelineConfig(
        phases=(
            SpecPhaseConfig(
                agent="pm",
                reviews=(ReviewStepConfig("spec-reviewer", 2, "APPROVED"),),
            ),
            DecomposePhaseConfig(agent="pm"),
            ImplementPhaseConfig(
                agent="engineer",
                parallel=True,
                reviews=(ReviewStepConfig("code-reviewer", 2, "APPROVED"),),
                qa=QaStepConfig("tester", 2, "ALL_PASSED"),
            ),
        ),
        agents={},
        primary_model="model-a",
        review_model="model-b",
    )


@pytest.fixture
def make_engine(
    backend: MockAgentBackend,
    store: InMemoryCheckpointStore,
    sink: InMemoryEventSink,
    artifacts: InMemoryArtifactWriter,
    shell: FakeShellRunner,
    detector: FakeVerifyDetector,
    settings: RunSettings,
    basic_config: PipelineConfig,
) -> Callable[..., PipelineEngine]:
    """Build engines sharing the in-memory adapters, so a second engine resumes the first."""

    def _make(
        config: PipelineConfig | None = None,
        run_settings: RunSettings | None = None,
        review_feedback: str = "",
    ) -> PipelineEngine:
        return PipelineEngine(
            run_settings or settings,
            config or basic_config,
            backend,
            store=store,
            sink=sink,
            artifacts=artifacts,
            instructions=StaticInstructionsProvider(default="You are a helpful agent."),
            shell=shell,
            verify_detector=detector,
            review_feedback=review_feedback,
        )

    return _make


@pytest.fixture
def resume_settings(settings: RunSettings) -> RunSettings:
    return replace(settings, resume=True)


@pytest.fixture
def seed_checkpoint(store: InMemoryCheckpointStore) -> Callable[..., PipelineCheckpoint]:
    """Save a checkpoint for ``run-1`` that matches the given config."""

    def _seed(config: PipelineConfig, **fields: Any) -> PipelineCheckpoint:
        checkpoint = PipelineCheckpoint(
            run_id="run-1", pipeline_ref=compute_pipeline_ref(config), **fields
        )
        store.save(checkpoint)
        return checkpoint

    return _seed


@pytest.fixture
def run_state(store: InMemoryCheckpointStore) -> RunState:
    return RunState("run-1", store, issue_body="Build a todo app")


@pytest.fixture
def emitter(sink: InMemoryEventSink) -> PipelineEventEmitter:
    return PipelineEventEmitter(sink, "run-1")


@pytest.fixture
def caller(
    backend: MockAgentBackend, run_state: RunState, emitter: PipelineEventEmitter
) -> AgentCaller:
    return AgentCaller(
        backend,
        StaticInstructionsProvider(),
        run_state,
        emitter,
        default_model="model-a",
        max_retries=2,
    )


@pytest.fixture
def review_loop(
    caller: AgentCaller, run_state: RunState, emitter: PipelineEventEmitter
) -> ReviewLoop:
    return ReviewLoop(caller, run_state, emitter)
