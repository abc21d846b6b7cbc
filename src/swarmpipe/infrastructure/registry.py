"""
Agent Backend Registry with Entry Points Discovery.

Provides dynamic backend loading via Python entry points (swarmpipe.backends group).
External packages can register backends in their pyproject.toml:

    [project.entry-points."swarmpipe.backends"]
    my-backend = "mypackage.backends:MyBackend"
"""

import logging
from importlib.metadata import entry_points
from typing import Any

from swarmpipe.domain.interfaces import AgentBackendInterface
from swarmpipe.infrastructure.agents import MockAgentBackend, OpenAIChatBackend

logger = logging.getLogger(__name__)

BUILTIN_BACKENDS: dict[str, type[AgentBackendInterface]] = {
    "openai": OpenAIChatBackend,
    "mock": MockAgentBackend,
}


class AgentBackendRegistry:
    """
    Registry for AgentBackendInterface implementations.

    Built-in backends are always available; others are discovered via the
    'swarmpipe.backends' entry point group. Entry points are only loaded on
    first access.

    Example usage:
        backend = AgentBackendRegistry.create("openai", base_url="http://localhost:11434/v1")
    """

    _backends: dict[str, type[AgentBackendInterface]] = dict(BUILTIN_BACKENDS)
    _loaded: bool = False

    @classmethod
    def _load_entry_points(cls) -> None:
        """Load backends from entry points (lazy, called once)."""
        if cls._loaded:
            return

        for ep in entry_points(group="swarmpipe.backends"):
            if ep.name in cls._backends:
                continue
            try:
                cls._backends[ep.name] = ep.load()
            except Exception as e:
                logger.warning("Failed to load backend '%s' from entry point: %s", ep.name, e)

        cls._loaded = True

    @classmethod
    def register(cls, name: str, backend_class: type[AgentBackendInterface]) -> None:
        """
        Manually register a backend class.

        Args:
            name: Backend identifier (e.g., "openai")
            backend_class: Class implementing AgentBackendInterface
        """
        cls._backends[name] = backend_class

    @classmethod
    def get(cls, name: str) -> type[AgentBackendInterface]:
        """
        Get a backend class by name.

        Raises:
            KeyError: If backend not found
        """
        cls._load_entry_points()
        if name not in cls._backends:
            available = ", ".join(sorted(cls._backends)) or "(none)"
            raise KeyError(f"Backend '{name}' not found. Available backends: {available}")
        return cls._backends[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> AgentBackendInterface:
        """
        Create a backend instance by name.

        Args:
            name: Backend identifier
            **config: Configuration passed to the backend constructor

        Returns:
            Instantiated backend
        """
        return cls.get(name)(**config)

    @classmethod
    def available(cls) -> list[str]:
        """List available backend names."""
        cls._load_entry_points()
        return sorted(cls._backends)

    @classmethod
    def clear(cls) -> None:
        """Reset to the built-in backends (useful for testing)."""
        cls._backends = dict(BUILTIN_BACKENDS)
        cls._loaded = False
