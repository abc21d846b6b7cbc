"""
Domain interfaces (Ports) for the pipeline engine.

These abstract base classes define the contracts that adapters must satisfy.
They have no external dependencies and represent the core domain boundaries.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from swarmpipe.domain.config import VerifyConfig
    from swarmpipe.domain.events import PipelineEvent
    from swarmpipe.domain.models import CommandResult, PipelineCheckpoint


class AgentSessionInterface(ABC):
    """
    Port for a single conversation with a text-generating agent.

    A session keeps its own history: consecutive ``send`` calls build on
    each other, which is how authors revise their own drafts.
    """

    @property
    @abstractmethod
    def session_id(self) -> str:
        """Backend-assigned identifier, recorded for observability replay."""

    @abstractmethod
    async def send(self, prompt: str, timeout: float | None = None) -> str:
        """
        Send a prompt and wait for the complete response.

        Args:
            prompt: The user prompt
            timeout: Maximum seconds to wait; expiry raises TimeoutError

        Returns:
            The response text (may be empty)
        """

    @abstractmethod
    async def destroy(self) -> None:
        """Release backend resources held by this session."""


class AgentBackendInterface(ABC):
    """
    Port for the agent collaborator.

    Implementations connect to LLM providers. Any provider satisfying this
    contract is acceptable; no wire protocol is mandated.
    """

    async def start(self) -> None:
        """Open connections. Optional for backends without a lifecycle."""

    async def stop(self) -> None:
        """Close connections. Optional for backends without a lifecycle."""

    @abstractmethod
    async def create_session(
        self, instructions: str, model: str, agent: str = "agent"
    ) -> AgentSessionInterface:
        """
        Create a new session primed with system instructions.

        Args:
            instructions: System instructions for the agent
            model: Model identifier
            agent: Agent name, for adapters that route or label by agent

        Returns:
            A fresh session
        """


class InstructionsProviderInterface(ABC):
    """Port resolving an agent name to its system instructions."""

    @abstractmethod
    def load(self, agent: str) -> str:
        """
        Args:
            agent: Agent name as referenced by the pipeline config

        Returns:
            Instruction text

        Raises:
            AgentInstructionsNotFound: If no instructions exist for the agent
        """


class CheckpointStoreInterface(ABC):
    """
    Port for checkpoint persistence.

    ``save`` is a full-object replace: last write wins, never a partial merge.
    """

    @abstractmethod
    def save(self, checkpoint: "PipelineCheckpoint") -> None:
        """Persist the checkpoint and mark its run as the latest."""

    @abstractmethod
    def load(self, run_id: str | None = None) -> "PipelineCheckpoint | None":
        """
        Load a checkpoint.

        Args:
            run_id: Explicit run to load; None resolves the latest pointer

        Returns:
            The checkpoint, or None when missing or unreadable
        """

    @abstractmethod
    def clear(self, run_id: str) -> None:
        """
        Retire the checkpoint of a finished run (no-op when absent).

        The run can no longer be resumed; its last snapshot stays readable
        through ``load_final`` so a later review can build on it.
        """

    @abstractmethod
    def load_final(self, run_id: str) -> "PipelineCheckpoint | None":
        """Last snapshot of a finished run, or None."""

    @abstractmethod
    def latest_run_id(self) -> str | None:
        """Run id recorded by the latest pointer, if any."""


class EventSinkInterface(ABC):
    """
    Port for the outbound progress channel.

    ``store_event`` must never block waiting for a consumer.
    """

    @abstractmethod
    def store_event(self, event: "PipelineEvent") -> str:
        """
        Args:
            event: The event to publish

        Returns:
            The event_id
        """


class ArtifactWriterInterface(ABC):
    """Port for writing human-readable run artifacts."""

    @abstractmethod
    def write_role_summary(self, role: str, content: str) -> None:
        """Write a named summary blob for a role or phase."""

    @abstractmethod
    def write_run_summary(self, content: str) -> None:
        """Write the final run summary."""

    @abstractmethod
    def read_role_summary(self, role: str) -> str | None:
        """Read a previously written role summary, if present."""

    @abstractmethod
    def write_analysis(self, content: str) -> str:
        """Write the repository analysis document; returns where it went."""

    @abstractmethod
    def write_plan(self, content: str, stamp: str) -> str:
        """
        Write a plan and refresh the latest-plan copy.

        Args:
            content: Plan Markdown
            stamp: Filename-safe timestamp distinguishing this plan

        Returns:
            Location of the timestamped plan
        """


class ShellRunnerInterface(ABC):
    """Port for running verification shell commands."""

    @abstractmethod
    async def run(self, command: str, cwd: str, timeout: float) -> "CommandResult":
        """
        Run a shell command capturing combined stdout/stderr.

        Args:
            command: Shell command line
            cwd: Working directory
            timeout: Process-level timeout in seconds

        Returns:
            CommandResult with return code and output
        """


class ClarificationProviderInterface(ABC):
    """Port for a human answering an agent's clarifying questions."""

    @abstractmethod
    def ask(self, questions: str) -> str:
        """
        Show questions and block until they are answered.

        Returns:
            The answer text; empty means the round was skipped
        """


class RepositorySnapshotInterface(ABC):
    """Port producing a textual overview of a repository for agents without file access."""

    @abstractmethod
    def describe(self, repo_root: "Path") -> str:
        """Directory listing plus excerpts of key files."""


class VerifyDetectorInterface(ABC):
    """Port for inferring verification commands from a repository."""

    @abstractmethod
    def detect(self, repo_root: "Path") -> "VerifyConfig | None":
        """Return detected commands, or None for an unrecognized project."""
