"""Pipeline event sink implementations."""

import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Any

from swarmpipe.domain.events import PipelineEvent, PipelineEventType
from swarmpipe.domain.interfaces import EventSinkInterface

logger = logging.getLogger(__name__)


def event_to_dict(event: PipelineEvent) -> dict[str, Any]:
    """Serialize event to dict, dropping unset optional fields."""
    data: dict[str, Any] = {
        "event_id": event.event_id,
        "event_type": event.event_type.value,
        "run_id": event.run_id,
        "created_at": event.created_at,
    }
    optional = {
        "phase_key": event.phase_key,
        "stream_index": event.stream_index,
        "status": event.status,
        "agent": event.agent,
        "model": event.model,
        "session_id": event.session_id,
        "level": event.level,
    }
    data.update({k: v for k, v in optional.items() if v is not None})
    if event.tasks:
        data["tasks"] = list(event.tasks)
    if event.message:
        data["message"] = event.message
    return data


def event_from_dict(data: dict[str, Any]) -> PipelineEvent:
    """Deserialize dict to event."""
    return PipelineEvent(
        event_id=data["event_id"],
        event_type=PipelineEventType(data["event_type"]),
        run_id=data["run_id"],
        phase_key=data.get("phase_key"),
        stream_index=data.get("stream_index"),
        status=data.get("status"),
        agent=data.get("agent"),
        model=data.get("model"),
        session_id=data.get("session_id"),
        level=data.get("level"),
        tasks=tuple(data.get("tasks", ())),
        message=data.get("message", ""),
        created_at=data.get("created_at", ""),
    )


class InMemoryEventSink(EventSinkInterface):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self.events: list[PipelineEvent] = []

    def store_event(self, event: PipelineEvent) -> str:
        self.events.append(event)
        return event.event_id

    def of_type(self, event_type: PipelineEventType) -> list[PipelineEvent]:
        return [e for e in self.events if e.event_type == event_type]


class JsonlEventSink(EventSinkInterface):
    """
    Filesystem implementation appending events to ``<run_dir>/events.jsonl``.

    Events are buffered in memory; ``flush()`` writes them out and is safe
    to call from a worker thread. A full buffer is flushed inline.
    """

    def __init__(self, run_dir: Path, buffer_size: int = 256) -> None:
        self.path = run_dir / "events.jsonl"
        self._buffer_size = buffer_size
        self._pending: list[str] = []
        self._lock = threading.Lock()

    def store_event(self, event: PipelineEvent) -> str:
        line = json.dumps(event_to_dict(event))
        with self._lock:
            self._pending.append(line)
            full = len(self._pending) >= self._buffer_size
        if full:
            self.flush()
        return event.event_id

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def flush(self) -> None:
        with self._lock:
            if not self._pending:
                return
            lines, self._pending = self._pending, []
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")

    def read_events(self) -> list[PipelineEvent]:
        self.flush()
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [event_from_dict(json.loads(line)) for line in f if line.strip()]


class QueueEventSink(EventSinkInterface):
    """
    Hands events to an asyncio consumer without ever waiting on it.

    Events beyond ``maxsize`` are dropped with a debug log, so a slow
    renderer cannot stall the pipeline.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[PipelineEvent] = asyncio.Queue(maxsize=maxsize)

    def store_event(self, event: PipelineEvent) -> str:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.debug("Event queue full, dropping %s", event.event_type.value)
        return event.event_id


class FanOutEventSink(EventSinkInterface):
    """Forwards each event to several sinks in order."""

    def __init__(self, *sinks: EventSinkInterface) -> None:
        self.sinks = sinks

    def store_event(self, event: PipelineEvent) -> str:
        for sink in self.sinks:
            sink.store_event(event)
        return event.event_id
