"""
swarmpipe: resumable multi-phase, multi-agent pipeline engine.

Runs a configurable sequence of phases (spec, decompose, design,
implement, cross-model review, verify), each delegating to text-generating
agents and refining their output through review loops. Every phase and
every review iteration is checkpointed, so an interrupted run resumes
exactly where it stopped.

Example:
    from swarmpipe import PipelineEngine, load_pipeline_config, settings_from_env
    from swarmpipe.factory import build_engine

    settings = settings_from_env(repo_root, "Add a login page")
    config = load_pipeline_config(repo_root)
    engine = build_engine(settings, config, backend_name="mock")
    await engine.start()
    context = await engine.execute()
"""

# Application layer (orchestration)
from swarmpipe.application import AutoResumeRunner, PipelineEngine, ReviewLoop

# Domain configuration and models
from swarmpipe.domain.config import PipelineConfig, RunSettings, VerifyConfig
from swarmpipe.domain.exceptions import (
    AgentInstructionsNotFound,
    PartialStreamFailure,
    PipelineConfigError,
    ShutdownRequested,
    SwarmError,
    TaskParseError,
    WorkflowIntegrityError,
)
from swarmpipe.domain.models import DecomposedTask, PipelineCheckpoint, PipelineContext
from swarmpipe.domain.scheduling import compute_waves

# Infrastructure (explicit import encouraged for dependency injection)
from swarmpipe.infrastructure import (
    AgentBackendRegistry,
    FilesystemCheckpointStore,
    MockAgentBackend,
    OpenAIChatBackend,
    load_pipeline_config,
    settings_from_env,
)

__version__ = "0.3.0"

__all__ = [
    # Version
    "__version__",
    # Domain
    "PipelineConfig",
    "RunSettings",
    "VerifyConfig",
    "PipelineContext",
    "PipelineCheckpoint",
    "DecomposedTask",
    "compute_waves",
    # Exceptions
    "SwarmError",
    "PipelineConfigError",
    "AgentInstructionsNotFound",
    "TaskParseError",
    "PartialStreamFailure",
    "WorkflowIntegrityError",
    "ShutdownRequested",
    # Application
    "PipelineEngine",
    "AutoResumeRunner",
    "ReviewLoop",
    # Infrastructure
    "AgentBackendRegistry",
    "FilesystemCheckpointStore",
    "MockAgentBackend",
    "OpenAIChatBackend",
    "load_pipeline_config",
    "settings_from_env",
]
