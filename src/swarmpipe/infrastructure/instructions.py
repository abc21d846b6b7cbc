"""
Agent instruction resolution.

The ``agents`` map of the pipeline config names where each agent's system
instructions live:

- ``builtin:<name>`` reads ``<agents_dir>/<name>.md``
- any other value is a path relative to the repository root
- an agent missing from the map reads ``<agents_dir>/<agent>.md``

When the agents directory has no file for a built-in or unmapped agent,
the instructions bundled in ``swarmpipe.defaults/agents`` are used. Only
the agents of the plan and analyze modes ship there.
"""

import logging
from collections.abc import Mapping
from importlib.resources import files
from pathlib import Path

from swarmpipe.domain.config import BUILTIN_AGENT_PREFIX
from swarmpipe.domain.exceptions import AgentInstructionsNotFound
from swarmpipe.domain.interfaces import InstructionsProviderInterface

logger = logging.getLogger(__name__)


class FilesystemInstructionsProvider(InstructionsProviderInterface):
    """Loads agent instructions from the repository, caching per agent."""

    def __init__(self, repo_root: Path, agents_dir: str, sources: Mapping[str, str]):
        self._repo_root = Path(repo_root)
        self._agents_dir = self._repo_root / agents_dir
        self._sources = dict(sources)
        self._cache: dict[str, str] = {}

    def _bundled(self, agent: str) -> str | None:
        source = self._sources.get(agent)
        name = agent
        if source is not None:
            if not source.startswith(BUILTIN_AGENT_PREFIX):
                return None
            name = source[len(BUILTIN_AGENT_PREFIX) :]
        resource = files("swarmpipe.defaults").joinpath("agents").joinpath(f"{name}.md")
        if not resource.is_file():
            return None
        return resource.read_text(encoding="utf-8")

    def resolve_path(self, agent: str) -> Path:
        source = self._sources.get(agent)
        if source is None:
            return self._agents_dir / f"{agent}.md"
        if source.startswith(BUILTIN_AGENT_PREFIX):
            return self._agents_dir / f"{source[len(BUILTIN_AGENT_PREFIX):]}.md"
        return self._repo_root / source

    def load(self, agent: str) -> str:
        cached = self._cache.get(agent)
        if cached is not None:
            return cached

        path = self.resolve_path(agent)
        try:
            content = path.read_text(encoding="utf-8")
            logger.debug("Loaded instructions for %s from %s", agent, path)
        except FileNotFoundError as e:
            bundled = self._bundled(agent)
            if bundled is None:
                raise AgentInstructionsNotFound(agent, str(path)) from e
            logger.debug("Using bundled instructions for %s", agent)
            content = bundled

        self._cache[agent] = content
        return content


class StaticInstructionsProvider(InstructionsProviderInterface):
    """Fixed instructions, for tests and dry runs."""

    def __init__(self, instructions: Mapping[str, str] | None = None, default: str = ""):
        self._instructions = dict(instructions or {})
        self._default = default

    def load(self, agent: str) -> str:
        return self._instructions.get(agent, self._default or f"You are the {agent} agent.")
