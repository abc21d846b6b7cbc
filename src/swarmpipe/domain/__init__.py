"""
Domain layer for the pipeline engine.

Contains core models, ports and rules with no external dependencies.
"""

from swarmpipe.domain.config import (
    CrossModelReviewPhaseConfig,
    DecomposePhaseConfig,
    DesignPhaseConfig,
    ImplementPhaseConfig,
    PhaseCondition,
    PhaseConfig,
    PhaseKind,
    PipelineConfig,
    QaStepConfig,
    ReviewStepConfig,
    RunSettings,
    SpecPhaseConfig,
    VerifyConfig,
    VerifyPhaseConfig,
    compute_pipeline_ref,
    merge_verify_configs,
    phase_key,
)
from swarmpipe.domain.events import PipelineEvent, PipelineEventType
from swarmpipe.domain.exceptions import (
    AgentCallError,
    AgentInstructionsNotFound,
    CheckpointNotFound,
    PartialStreamFailure,
    PipelineConfigError,
    RunModeMismatch,
    ShutdownRequested,
    SwarmError,
    TaskParseError,
    WorkflowIntegrityError,
)
from swarmpipe.domain.interfaces import (
    AgentBackendInterface,
    AgentSessionInterface,
    ArtifactWriterInterface,
    CheckpointStoreInterface,
    ClarificationProviderInterface,
    EventSinkInterface,
    InstructionsProviderInterface,
    RepositorySnapshotInterface,
    ShellRunnerInterface,
    VerifyDetectorInterface,
)
from swarmpipe.domain.models import (
    CommandResult,
    DecomposedTask,
    IterationSnapshot,
    LogLevel,
    PhaseStatus,
    PipelineCheckpoint,
    PipelineContext,
    QAPair,
    RunMode,
    SessionRecord,
    StreamStatus,
)
from swarmpipe.domain.scheduling import compute_waves

__all__ = [
    # Config
    "PipelineConfig",
    "PhaseConfig",
    "PhaseKind",
    "PhaseCondition",
    "SpecPhaseConfig",
    "DecomposePhaseConfig",
    "DesignPhaseConfig",
    "ImplementPhaseConfig",
    "CrossModelReviewPhaseConfig",
    "VerifyPhaseConfig",
    "ReviewStepConfig",
    "QaStepConfig",
    "VerifyConfig",
    "RunSettings",
    "compute_pipeline_ref",
    "phase_key",
    "merge_verify_configs",
    # Models
    "DecomposedTask",
    "PipelineContext",
    "PipelineCheckpoint",
    "IterationSnapshot",
    "SessionRecord",
    "CommandResult",
    "PhaseStatus",
    "StreamStatus",
    "LogLevel",
    "RunMode",
    "QAPair",
    # Events
    "PipelineEvent",
    "PipelineEventType",
    # Interfaces
    "AgentBackendInterface",
    "AgentSessionInterface",
    "InstructionsProviderInterface",
    "CheckpointStoreInterface",
    "EventSinkInterface",
    "ArtifactWriterInterface",
    "ShellRunnerInterface",
    "VerifyDetectorInterface",
    "ClarificationProviderInterface",
    "RepositorySnapshotInterface",
    # Scheduling
    "compute_waves",
    # Exceptions
    "SwarmError",
    "PipelineConfigError",
    "AgentInstructionsNotFound",
    "AgentCallError",
    "TaskParseError",
    "PartialStreamFailure",
    "WorkflowIntegrityError",
    "CheckpointNotFound",
    "RunModeMismatch",
    "ShutdownRequested",
]
