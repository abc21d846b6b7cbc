"""
Checkpoint store implementations.

Provides persistent storage for pipeline checkpoints so that an
interrupted run can resume where it left off.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from swarmpipe.domain.interfaces import CheckpointStoreInterface
from swarmpipe.domain.models import (
    IterationSnapshot,
    PipelineCheckpoint,
    QAPair,
    RunMode,
    SessionRecord,
)

logger = logging.getLogger(__name__)

CHECKPOINT_FILE_NAME = "checkpoint.json"
FINAL_FILE_NAME = "final.json"
LATEST_POINTER_NAME = "latest"


def checkpoint_to_dict(checkpoint: PipelineCheckpoint) -> dict[str, Any]:
    """Serialize checkpoint to JSON-compatible dict."""
    return {
        "run_id": checkpoint.run_id,
        "completed_phases": list(checkpoint.completed_phases),
        "issue_body": checkpoint.issue_body,
        "repo_context": checkpoint.repo_context,
        "spec": checkpoint.spec,
        "tasks": list(checkpoint.tasks),
        "task_deps": [list(d) for d in checkpoint.task_deps],
        "design_spec": checkpoint.design_spec,
        "stream_results": list(checkpoint.stream_results),
        "active_phase": checkpoint.active_phase,
        "phase_draft": checkpoint.phase_draft,
        "iteration_progress": {
            key: {
                "content": snap.content,
                "completed_iterations": snap.completed_iterations,
            }
            for key, snap in checkpoint.iteration_progress
        },
        "session_log": {
            key: {
                "session_id": rec.session_id,
                "agent": rec.agent,
                "role": rec.role,
            }
            for key, rec in checkpoint.session_log
        },
        "pipeline_ref": checkpoint.pipeline_ref,
        "created_at": checkpoint.created_at,
        "mode": checkpoint.mode.value,
        "analysis": checkpoint.analysis,
        "answered_questions": [
            {"question": qa.question, "answer": qa.answer}
            for qa in checkpoint.answered_questions
        ],
    }


def checkpoint_from_dict(data: dict[str, Any]) -> PipelineCheckpoint:
    """Deserialize checkpoint from JSON dict.

    Optional fields default so checkpoints from older runs still load.
    """
    progress = data.get("iteration_progress") or {}
    sessions = data.get("session_log") or {}
    return PipelineCheckpoint(
        run_id=data["run_id"],
        completed_phases=tuple(data.get("completed_phases", [])),
        issue_body=data.get("issue_body", ""),
        repo_context=data.get("repo_context", ""),
        spec=data.get("spec", ""),
        tasks=tuple(data.get("tasks", [])),
        task_deps=tuple(tuple(d) for d in data.get("task_deps", [])),
        design_spec=data.get("design_spec", ""),
        stream_results=tuple(data.get("stream_results", [])),
        active_phase=data.get("active_phase"),
        phase_draft=data.get("phase_draft"),
        iteration_progress=tuple(
            (
                key,
                IterationSnapshot(
                    content=snap["content"],
                    completed_iterations=snap["completed_iterations"],
                ),
            )
            for key, snap in progress.items()
        ),
        session_log=tuple(
            (
                key,
                SessionRecord(
                    session_id=rec["session_id"],
                    agent=rec["agent"],
                    role=rec["role"],
                ),
            )
            for key, rec in sessions.items()
        ),
        pipeline_ref=data.get("pipeline_ref"),
        created_at=data.get("created_at", ""),
        mode=RunMode(data.get("mode", RunMode.RUN.value)),
        analysis=data.get("analysis", ""),
        answered_questions=tuple(
            QAPair(question=qa["question"], answer=qa["answer"])
            for qa in data.get("answered_questions", [])
        ),
    )


class InMemoryCheckpointStore(CheckpointStoreInterface):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self._checkpoints: dict[str, PipelineCheckpoint] = {}
        self._final: dict[str, PipelineCheckpoint] = {}
        self._latest: str | None = None
        self.save_count = 0

    def save(self, checkpoint: PipelineCheckpoint) -> None:
        self._checkpoints[checkpoint.run_id] = checkpoint
        self._latest = checkpoint.run_id
        self.save_count += 1

    def load(self, run_id: str | None = None) -> PipelineCheckpoint | None:
        resolved = run_id or self._latest
        if resolved is None:
            return None
        return self._checkpoints.get(resolved)

    def clear(self, run_id: str) -> None:
        checkpoint = self._checkpoints.pop(run_id, None)
        if checkpoint is not None:
            self._final[run_id] = checkpoint

    def load_final(self, run_id: str) -> PipelineCheckpoint | None:
        return self._final.get(run_id)

    def latest_run_id(self) -> str | None:
        return self._latest


class FilesystemCheckpointStore(CheckpointStoreInterface):
    """
    Persistent storage for pipeline checkpoints.

    Directory structure:
    {swarm_root}/
        runs/
            {run_id}/checkpoint.json  # Resumable progress
            {run_id}/final.json       # Last snapshot of a finished run
        latest  # Plain-text pointer holding the most recent run_id
    """

    def __init__(self, swarm_root: Path):
        self._root = Path(swarm_root)

    def _checkpoint_path(self, run_id: str) -> Path:
        return self._root / "runs" / run_id / CHECKPOINT_FILE_NAME

    @property
    def latest_pointer_path(self) -> Path:
        return self._root / LATEST_POINTER_NAME

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        """Write via a unique temp file in the same directory + rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def save(self, checkpoint: PipelineCheckpoint) -> None:
        """
        Store a checkpoint as a full-object replace and advance the latest pointer.

        Args:
            checkpoint: The checkpoint to store
        """
        path = self._checkpoint_path(checkpoint.run_id)
        self._write_atomic(path, json.dumps(checkpoint_to_dict(checkpoint), indent=2))
        self._write_atomic(self.latest_pointer_path, checkpoint.run_id)
        logger.debug(
            "Saved checkpoint for run %s (%d phases complete)",
            checkpoint.run_id,
            len(checkpoint.completed_phases),
        )

    def latest_run_id(self) -> str | None:
        try:
            run_id = self.latest_pointer_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return run_id or None

    def load(self, run_id: str | None = None) -> PipelineCheckpoint | None:
        """Load a checkpoint; a missing or corrupt file yields None."""
        resolved = run_id or self.latest_run_id()
        if resolved is None:
            return None
        return self._read(self._checkpoint_path(resolved))

    def load_final(self, run_id: str) -> PipelineCheckpoint | None:
        return self._read(self._root / "runs" / run_id / FINAL_FILE_NAME)

    @staticmethod
    def _read(path: Path) -> PipelineCheckpoint | None:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return checkpoint_from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable checkpoint %s: %s", path, e)
            return None

    def clear(self, run_id: str) -> None:
        """Move the checkpoint aside as ``final.json`` so resume no longer finds it."""
        path = self._checkpoint_path(run_id)
        if path.exists():
            os.replace(path, path.with_name(FINAL_FILE_NAME))
