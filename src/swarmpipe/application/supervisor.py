"""
Auto-resume supervision of a pipeline run.

The only place where resume intent is switched on: after an uncaught
failure the engine is stopped and a fresh one is built with
``resume=True`` for the same run id.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from swarmpipe.domain.exceptions import (
    RunModeMismatch,
    ShutdownRequested,
    TaskParseError,
    WorkflowIntegrityError,
)

if TYPE_CHECKING:
    from swarmpipe.application.event_emitter import PipelineEventEmitter
    from swarmpipe.domain.config import RunSettings

logger = logging.getLogger(__name__)


class SupervisedEngine(Protocol):
    """What the runner needs from an engine: the pipeline engine or a mode engine."""

    emitter: PipelineEventEmitter

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def execute(self) -> Any: ...

    def request_shutdown(self) -> None: ...


EngineFactory = Callable[["RunSettings"], SupervisedEngine]

# Failures that another attempt cannot fix
NOT_RESUMABLE: tuple[type[BaseException], ...] = (
    ShutdownRequested,
    WorkflowIntegrityError,
    TaskParseError,
    RunModeMismatch,
)


class AutoResumeRunner:
    """Runs an engine and resumes it from its checkpoint after failures."""

    def __init__(self, engine_factory: EngineFactory, settings: RunSettings) -> None:
        """
        Args:
            engine_factory: Builds an engine for the given settings
            settings: Settings of the first attempt
        """
        self._factory = engine_factory
        self._settings = settings
        self._engine: SupervisedEngine | None = None
        self._shutdown = False
        self.attempts = 0

    @property
    def engine(self) -> SupervisedEngine | None:
        """Engine of the current attempt."""
        return self._engine

    def request_shutdown(self) -> None:
        self._shutdown = True
        if self._engine is not None:
            self._engine.request_shutdown()

    async def execute(self) -> Any:
        """
        Run to completion, resuming up to ``max_auto_resume`` times.

        Returns:
            Whatever the engine's execute returns

        Raises:
            Exception: The last error once resumes are exhausted, or any
                error that resuming cannot fix
        """
        settings = self._settings
        max_resumes = settings.max_auto_resume
        while True:
            self.attempts += 1
            engine = self._factory(settings)
            self._engine = engine
            if self._shutdown:
                engine.request_shutdown()
            try:
                await engine.start()
                return await engine.execute()
            except NOT_RESUMABLE:
                raise
            except Exception as e:
                resumes_done = self.attempts - 1
                if resumes_done >= max_resumes:
                    logger.error(
                        "Run %s failed after %d auto-resume(s): %s",
                        settings.run_id,
                        resumes_done,
                        e,
                    )
                    raise
                logger.warning(
                    "Run %s failed (%s: %s); auto-resuming (%d/%d)",
                    settings.run_id,
                    type(e).__name__,
                    e,
                    resumes_done + 1,
                    max_resumes,
                )
                engine.emitter.warn(
                    f"Auto-resuming after failure ({resumes_done + 1}/{max_resumes})"
                )
            finally:
                await engine.stop()
            settings = dataclasses.replace(settings, resume=True)
