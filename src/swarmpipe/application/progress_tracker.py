"""
Progress state derived from pipeline events.

Holds what a renderer needs (phases, streams, active agents, recent log
lines, elapsed time) without knowing how it is displayed.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime

from swarmpipe.domain.config import PhaseConfig
from swarmpipe.domain.events import PipelineEvent, PipelineEventType
from swarmpipe.domain.models import LogLevel, PhaseStatus, StreamStatus

PHASE_NAMES: dict[str, str] = {
    "spec": "PM Drafting",
    "decompose": "Decomposition",
    "design": "Design",
    "implement": "Implementation",
    "cross-model-review": "Cross-Model Review",
    "verify": "Verification",
    "analyze": "Repository Analysis",
    "analyze-cross": "Cross-Model Analysis",
    "plan-clarify": "Requirements Clarification",
    "plan-analyze": "Technical Analysis",
}

MAX_LOG_ENTRIES = 100


@dataclass
class PhaseInfo:
    key: str
    name: str
    status: PhaseStatus = PhaseStatus.PENDING


@dataclass
class StreamInfo:
    index: int
    label: str
    task: str
    status: StreamStatus = StreamStatus.QUEUED


@dataclass(frozen=True)
class ActiveAgentInfo:
    agent: str
    model: str
    started_at: float


@dataclass(frozen=True)
class LogEntry:
    message: str
    level: LogLevel = LogLevel.INFO
    time: datetime = field(default_factory=datetime.now)


class ProgressTracker:
    """Accumulates pipeline events into displayable progress."""

    def __init__(self, run_id: str = "") -> None:
        self.run_id = run_id
        self.phases: list[PhaseInfo] = []
        self.streams: list[StreamInfo] = []
        self.logs: list[LogEntry] = []
        self.start_time = time.monotonic()
        self._active_agents: dict[str, ActiveAgentInfo] = {}

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def init_phases(self, phases: tuple[PhaseConfig, ...] | list[PhaseConfig]) -> None:
        self.phases = [
            PhaseInfo(f"{p.kind.value}-{i}", PHASE_NAMES.get(p.kind.value, p.kind.value))
            for i, p in enumerate(phases)
        ]

    def init_phase_keys(self, keys: tuple[str, ...] | list[str]) -> None:
        """Phases of a fixed-phase mode, named by the key without its index."""
        self.phases = []
        for key in keys:
            base = key.rsplit("-", 1)[0]
            self.phases.append(PhaseInfo(key, PHASE_NAMES.get(base, base)))

    def set_phase_status(self, key: str, status: PhaseStatus) -> None:
        for phase in self.phases:
            if phase.key == key:
                phase.status = status

    @property
    def completed_phase_count(self) -> int:
        return sum(
            1 for p in self.phases if p.status in (PhaseStatus.DONE, PhaseStatus.SKIPPED)
        )

    @property
    def total_phase_count(self) -> int:
        return len(self.phases)

    @property
    def active_phase(self) -> PhaseInfo | None:
        """Phase that was activated but has not completed yet."""
        return next((p for p in self.phases if p.status is PhaseStatus.ACTIVE), None)

    # -------------------------------------------------------------------------
    # Streams
    # -------------------------------------------------------------------------

    def init_streams(self, tasks: list[str] | tuple[str, ...]) -> None:
        self.streams = [StreamInfo(i, f"S{i + 1}", task) for i, task in enumerate(tasks)]

    def update_stream(self, index: int, status: StreamStatus) -> None:
        if 0 <= index < len(self.streams):
            self.streams[index].status = status

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    def add_active_agent(self, session_id: str, agent: str, model: str) -> None:
        self._active_agents[session_id] = ActiveAgentInfo(agent, model, time.monotonic())

    def remove_active_agent(self, session_id: str) -> None:
        self._active_agents.pop(session_id, None)

    @property
    def active_agents(self) -> list[ActiveAgentInfo]:
        return list(self._active_agents.values())

    @property
    def active_models(self) -> list[str]:
        return sorted({info.model for info in self._active_agents.values()})

    # -------------------------------------------------------------------------
    # Log and time
    # -------------------------------------------------------------------------

    def add_log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        self.logs.append(LogEntry(message, level))
        if len(self.logs) > MAX_LOG_ENTRIES:
            self.logs = self.logs[-MAX_LOG_ENTRIES:]

    @property
    def elapsed_s(self) -> float:
        return time.monotonic() - self.start_time

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def apply(self, event: PipelineEvent) -> None:
        """Update progress from one event."""
        kind = event.event_type
        if kind is PipelineEventType.PHASE_ACTIVATED:
            self.set_phase_status(event.phase_key or "", PhaseStatus.ACTIVE)
        elif kind is PipelineEventType.PHASE_COMPLETED:
            self.set_phase_status(event.phase_key or "", PhaseStatus.DONE)
        elif kind is PipelineEventType.PHASE_SKIPPED:
            self.set_phase_status(event.phase_key or "", PhaseStatus.SKIPPED)
        elif kind is PipelineEventType.AGENT_ACTIVE:
            self.add_active_agent(event.session_id or "", event.agent or "", event.model or "")
        elif kind is PipelineEventType.AGENT_CLEARED:
            self.remove_active_agent(event.session_id or "")
        elif kind is PipelineEventType.STREAMS_INITIALIZED:
            self.init_streams(event.tasks)
        elif kind is PipelineEventType.STREAM_STATUS and event.stream_index is not None:
            self.update_stream(event.stream_index, StreamStatus(event.status))
        elif kind is PipelineEventType.LOG:
            self.add_log(event.message, LogLevel(event.level or LogLevel.INFO.value))
