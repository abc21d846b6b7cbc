"""
Domain models for the pipeline engine.

Snapshots (checkpoints, iteration progress, task definitions) are frozen
dataclasses. ``PipelineContext`` is the one mutable aggregate: it is
threaded through every phase and progressively populated.
"""

from dataclasses import dataclass, field
from enum import Enum

# =============================================================================
# TASKS
# =============================================================================


@dataclass(frozen=True)
class DecomposedTask:
    """A unit of work produced by the decompose phase."""

    id: int  # Unique within a run, assigned sequentially if absent
    task: str  # Human-readable description
    depends_on: tuple[int, ...] = ()  # Ids of prerequisite tasks


# =============================================================================
# STATUS
# =============================================================================


class PhaseStatus(str, Enum):
    """Lifecycle of a configured phase."""

    PENDING = "pending"
    ACTIVE = "active"
    DONE = "done"
    SKIPPED = "skipped"


class StreamStatus(str, Enum):
    """Lifecycle of a single task stream."""

    QUEUED = "queued"
    ENGINEERING = "engineering"
    REVIEWING = "reviewing"
    TESTING = "testing"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


class LogLevel(str, Enum):
    """Severity of a free-text pipeline log line."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class RunMode(str, Enum):
    """What a run produces: an implementation, a plan or a repository analysis."""

    RUN = "run"
    PLAN = "plan"
    ANALYZE = "analyze"


# =============================================================================
# CONTEXT
# =============================================================================


@dataclass
class PipelineContext:
    """Shared context that flows between phases.

    Invariant: ``stream_results[i]`` and ``task_deps[i]`` align with
    ``tasks[i]``.
    """

    repo_context: str = ""
    spec: str = ""
    tasks: list[str] = field(default_factory=list)
    task_deps: list[list[int]] = field(default_factory=list)
    design_spec: str = ""
    stream_results: list[str] = field(default_factory=list)

    def decomposed_tasks(self) -> list[DecomposedTask]:
        """Rebuild task definitions from the aligned task/dependency lists.

        Task ids are the 1-based positions, matching how the decompose
        phase normalizes them.
        """
        return [
            DecomposedTask(
                id=i + 1,
                task=task,
                depends_on=tuple(self.task_deps[i]) if i < len(self.task_deps) else (),
            )
            for i, task in enumerate(self.tasks)
        ]

    def set_tasks(self, tasks: list[DecomposedTask]) -> None:
        """Replace the task list, re-keying dependencies to 1-based positions.

        Ids from the agent may be arbitrary integers; positions are what the
        rest of the pipeline (and the checkpoint) relies on.
        """
        position = {t.id: i + 1 for i, t in enumerate(tasks)}
        self.tasks = [t.task for t in tasks]
        self.task_deps = [
            [position[d] for d in t.depends_on if d in position] for t in tasks
        ]
        self.stream_results = []

    def has_dependencies(self) -> bool:
        return any(deps for deps in self.task_deps)


# =============================================================================
# CHECKPOINT
# =============================================================================


@dataclass(frozen=True)
class IterationSnapshot:
    """Progress of a single review/QA loop."""

    content: str
    completed_iterations: int


@dataclass(frozen=True)
class SessionRecord:
    """An agent session created during the run, for observability replay."""

    session_id: str
    agent: str
    role: str


@dataclass(frozen=True)
class QAPair:
    """One answered round of interactive clarification."""

    question: str
    answer: str  # Empty when the user skipped the round


@dataclass(frozen=True)
class PipelineCheckpoint:
    """Durable snapshot of run progress enabling resume."""

    run_id: str
    completed_phases: tuple[str, ...] = ()
    issue_body: str = ""
    repo_context: str = ""
    spec: str = ""
    tasks: tuple[str, ...] = ()
    task_deps: tuple[tuple[int, ...], ...] = ()
    design_spec: str = ""
    stream_results: tuple[str, ...] = ()
    active_phase: str | None = None  # Phase executing when the snapshot was taken
    phase_draft: str | None = None  # Pre-review draft of the active phase
    iteration_progress: tuple[tuple[str, IterationSnapshot], ...] = ()
    session_log: tuple[tuple[str, SessionRecord], ...] = ()
    pipeline_ref: str | None = None  # Fingerprint of the pipeline config
    created_at: str = ""  # ISO timestamp
    mode: RunMode = RunMode.RUN
    analysis: str = ""  # Analysis document of plan and analyze runs
    answered_questions: tuple[QAPair, ...] = ()

    def to_context(self) -> PipelineContext:
        """Rebuild the mutable pipeline context from this snapshot."""
        return PipelineContext(
            repo_context=self.repo_context,
            spec=self.spec,
            tasks=list(self.tasks),
            task_deps=[list(d) for d in self.task_deps],
            design_spec=self.design_spec,
            stream_results=list(self.stream_results),
        )


# =============================================================================
# VERIFICATION
# =============================================================================


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a verification shell command."""

    command: str
    returncode: int
    output: str  # Combined stdout/stderr
    timed_out: bool = False

    @property
    def passed(self) -> bool:
        return self.returncode == 0 and not self.timed_out
