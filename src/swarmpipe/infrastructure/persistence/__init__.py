"""
Persistence adapters for checkpoints, events and run artifacts.
"""

from swarmpipe.infrastructure.persistence.artifacts import (
    FilesystemArtifactWriter,
    InMemoryArtifactWriter,
)
from swarmpipe.infrastructure.persistence.checkpoint import (
    FilesystemCheckpointStore,
    InMemoryCheckpointStore,
)
from swarmpipe.infrastructure.persistence.events import (
    FanOutEventSink,
    InMemoryEventSink,
    JsonlEventSink,
    QueueEventSink,
)

__all__ = [
    "FilesystemCheckpointStore",
    "InMemoryCheckpointStore",
    "FilesystemArtifactWriter",
    "InMemoryArtifactWriter",
    "InMemoryEventSink",
    "JsonlEventSink",
    "QueueEventSink",
    "FanOutEventSink",
]
