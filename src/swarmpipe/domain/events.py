"""Pipeline progress events consumed by renderers and loggers."""

from dataclasses import dataclass
from enum import Enum


class PipelineEventType(str, Enum):
    """Types of pipeline progress events."""

    PHASE_ACTIVATED = "PHASE_ACTIVATED"
    PHASE_COMPLETED = "PHASE_COMPLETED"
    PHASE_SKIPPED = "PHASE_SKIPPED"
    AGENT_ACTIVE = "AGENT_ACTIVE"
    AGENT_CLEARED = "AGENT_CLEARED"
    STREAMS_INITIALIZED = "STREAMS_INITIALIZED"
    STREAM_STATUS = "STREAM_STATUS"
    LOG = "LOG"


@dataclass(frozen=True)
class PipelineEvent:
    """Single progress event.

    Only the fields relevant to ``event_type`` are populated: phase events
    carry ``phase_key``, stream events carry ``stream_index`` and
    ``status`` (or ``tasks`` when initialized), agent events carry
    ``agent``, ``model`` and ``session_id``, log events carry ``level`` and
    ``message``.
    """

    event_id: str
    event_type: PipelineEventType
    run_id: str
    phase_key: str | None = None
    stream_index: int | None = None
    status: str | None = None
    agent: str | None = None
    model: str | None = None
    session_id: str | None = None
    level: str | None = None
    tasks: tuple[str, ...] = ()  # STREAMS_INITIALIZED only
    message: str = ""
    created_at: str = ""  # ISO 8601
