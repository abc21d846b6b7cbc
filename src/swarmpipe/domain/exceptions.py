"""
Domain exceptions for the pipeline engine.

These represent failures at each tier of the error taxonomy: agent calls,
task streams, structured output, configuration and run integrity.
"""


class SwarmError(Exception):
    """Base class for all pipeline errors."""


class PipelineConfigError(SwarmError):
    """Raised when the pipeline configuration is malformed."""

    def __init__(self, message: str):
        super().__init__(f"Pipeline config error: {message}")


class AgentInstructionsNotFound(SwarmError):
    """Raised when an agent's instruction file cannot be resolved."""

    def __init__(self, agent: str, path: str):
        super().__init__(
            f'Failed to load agent instructions for "{agent}": not found at {path}'
        )
        self.agent = agent
        self.path = path


class AgentCallError(SwarmError):
    """
    Raised by agent backends when a session call fails.

    Transient by definition: the agent caller retries it before letting
    it escape.
    """


class TaskParseError(SwarmError):
    """
    Raised when an agent ignored the required structured output format.

    Structural failures are fatal for the phase and are not retried
    locally; the same prompt is unlikely to self-correct.
    """

    def __init__(self, reason: str, raw: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


class PartialStreamFailure(SwarmError):
    """
    Raised once a wave has settled and at least one stream failed terminally.

    Results of the streams that succeeded have already been persisted, so a
    resumed run only re-attempts the failed ones.
    """

    def __init__(self, failed: int, total: int, failed_indices: tuple[int, ...] = ()):
        """
        Args:
            failed: Number of streams that failed
            total: Number of streams in the wave
            failed_indices: Task indices of the failed streams
        """
        super().__init__(
            f"{failed}/{total} streams failed. Completed streams saved to checkpoint."
        )
        self.failed = failed
        self.total = total
        self.failed_indices = failed_indices


class WorkflowIntegrityError(SwarmError):
    """Raised when the pipeline config changed since the checkpoint was written."""

    def __init__(self, expected_ref: str, actual_ref: str):
        super().__init__(
            "Pipeline config changed since the checkpoint was saved "
            f"(checkpoint {expected_ref[:12]}, current {actual_ref[:12]}). "
            "Restore the original config or start a new run."
        )
        self.expected_ref = expected_ref
        self.actual_ref = actual_ref


class RunModeMismatch(SwarmError):
    """Raised when a checkpoint belongs to a different kind of run than the one resuming it."""

    def __init__(self, run_id: str, expected: str, actual: str):
        super().__init__(
            f"Run {run_id} is a {actual} run and cannot be continued as a {expected} run. "
            f"Use 'swarmpipe {actual}' for it, or pick another run id."
        )
        self.run_id = run_id
        self.expected = expected
        self.actual = actual


class CheckpointNotFound(SwarmError):
    """Raised when a run that must exist (e.g. for review mode) has no checkpoint."""

    def __init__(self, run_id: str | None):
        super().__init__(f"No checkpoint found for run: {run_id or '(latest)'}")
        self.run_id = run_id


class ShutdownRequested(SwarmError):
    """Raised when a graceful shutdown stopped the run between save points."""
