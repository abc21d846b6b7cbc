"""
Infrastructure layer for the pipeline engine.

Contains adapters for external concerns (agent backends, persistence,
configuration files, shell commands, registry).
"""

from swarmpipe.infrastructure.agents import MockAgentBackend, OpenAIChatBackend
from swarmpipe.infrastructure.config_loader import (
    load_pipeline_config,
    parse_pipeline_config,
)
from swarmpipe.infrastructure.instructions import (
    FilesystemInstructionsProvider,
    StaticInstructionsProvider,
)
from swarmpipe.infrastructure.persistence import (
    FanOutEventSink,
    FilesystemArtifactWriter,
    FilesystemCheckpointStore,
    InMemoryArtifactWriter,
    InMemoryCheckpointStore,
    InMemoryEventSink,
    JsonlEventSink,
    QueueEventSink,
)
from swarmpipe.infrastructure.registry import AgentBackendRegistry
from swarmpipe.infrastructure.repo_snapshot import FilesystemRepositorySnapshot
from swarmpipe.infrastructure.settings import read_plan, settings_from_env
from swarmpipe.infrastructure.shell import ShellRunner
from swarmpipe.infrastructure.verify_detect import (
    ProjectVerifyDetector,
    detect_verify_commands,
    resolve_verify_commands,
)

__all__ = [
    # Agents
    "OpenAIChatBackend",
    "MockAgentBackend",
    "AgentBackendRegistry",
    "FilesystemInstructionsProvider",
    "StaticInstructionsProvider",
    "FilesystemRepositorySnapshot",
    # Persistence
    "FilesystemCheckpointStore",
    "InMemoryCheckpointStore",
    "FilesystemArtifactWriter",
    "InMemoryArtifactWriter",
    "InMemoryEventSink",
    "JsonlEventSink",
    "QueueEventSink",
    "FanOutEventSink",
    # Config
    "load_pipeline_config",
    "parse_pipeline_config",
    "settings_from_env",
    "read_plan",
    # Verification
    "ShellRunner",
    "ProjectVerifyDetector",
    "detect_verify_commands",
    "resolve_verify_commands",
]
