"""
Agent backend adapters.
"""

from swarmpipe.infrastructure.agents.mock import MockAgentBackend, MockCall
from swarmpipe.infrastructure.agents.openai_backend import (
    OpenAIBackendConfig,
    OpenAIChatBackend,
)

__all__ = [
    "MockAgentBackend",
    "MockCall",
    "OpenAIBackendConfig",
    "OpenAIChatBackend",
]
