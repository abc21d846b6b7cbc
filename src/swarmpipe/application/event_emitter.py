"""Pipeline event emission service."""

import logging
import uuid
from datetime import datetime, timezone

from swarmpipe.domain.events import PipelineEvent, PipelineEventType
from swarmpipe.domain.interfaces import EventSinkInterface
from swarmpipe.domain.models import LogLevel, StreamStatus

logger = logging.getLogger("swarmpipe.pipeline")

_LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class PipelineEventEmitter:
    """Emits pipeline events to a sink.

    Provides convenience methods for emitting common pipeline events
    during execution, handling ID generation and timestamps. Sinks never
    block, so emitting is safe from any coroutine.
    """

    def __init__(self, sink: EventSinkInterface, run_id: str) -> None:
        self._sink = sink
        self._run_id = run_id

    @property
    def run_id(self) -> str:
        return self._run_id

    def _emit(self, event_type: PipelineEventType, **fields: object) -> str:
        event = PipelineEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            run_id=self._run_id,
            created_at=datetime.now(timezone.utc).isoformat(),
            **fields,  # type: ignore[arg-type]
        )
        return self._sink.store_event(event)

    def phase_activated(self, phase_key: str) -> None:
        self._emit(PipelineEventType.PHASE_ACTIVATED, phase_key=phase_key)

    def phase_completed(self, phase_key: str) -> None:
        self._emit(PipelineEventType.PHASE_COMPLETED, phase_key=phase_key)

    def phase_skipped(self, phase_key: str, reason: str = "") -> None:
        self._emit(PipelineEventType.PHASE_SKIPPED, phase_key=phase_key, message=reason)

    def agent_active(self, session_id: str, agent: str, model: str) -> None:
        self._emit(
            PipelineEventType.AGENT_ACTIVE,
            session_id=session_id,
            agent=agent,
            model=model,
        )

    def agent_cleared(self, session_id: str) -> None:
        self._emit(PipelineEventType.AGENT_CLEARED, session_id=session_id)

    def streams_initialized(self, tasks: list[str]) -> None:
        self._emit(PipelineEventType.STREAMS_INITIALIZED, tasks=tuple(tasks))

    def stream_status(self, index: int, status: StreamStatus) -> None:
        self._emit(PipelineEventType.STREAM_STATUS, stream_index=index, status=status.value)

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        """Emit a LOG event and mirror it to the standard logger."""
        logger.log(_LOG_LEVELS[level], message)
        self._emit(PipelineEventType.LOG, level=level.value, message=message)

    def info(self, message: str) -> None:
        self.log(message, LogLevel.INFO)

    def warn(self, message: str) -> None:
        self.log(message, LogLevel.WARN)

    def error(self, message: str) -> None:
        self.log(message, LogLevel.ERROR)
