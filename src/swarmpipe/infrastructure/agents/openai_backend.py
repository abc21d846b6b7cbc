"""
OpenAI-compatible chat backend.

Connects to any endpoint speaking the OpenAI chat-completions API (OpenAI,
Azure-compatible gateways, Ollama, vLLM). Each session keeps its own
message history so consecutive sends build on one another.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, cast

import openai
from openai import AsyncOpenAI

from swarmpipe.domain.exceptions import AgentCallError
from swarmpipe.domain.interfaces import AgentBackendInterface, AgentSessionInterface

logger = logging.getLogger(__name__)


@dataclass
class OpenAIBackendConfig:
    """Configuration for OpenAIChatBackend.

    ``base_url`` and ``api_key`` fall back to the ``OPENAI_BASE_URL`` and
    ``OPENAI_API_KEY`` environment variables read by the openai client.
    """

    base_url: str | None = None
    api_key: str | None = None
    timeout: float = 1800.0
    temperature: float | None = None


class OpenAIChatSession(AgentSessionInterface):
    """One conversation: system instructions plus accumulated turns."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        instructions: str,
        agent: str,
        temperature: float | None = None,
    ):
        self._client = client
        self._model = model
        self._agent = agent
        self._temperature = temperature
        self._session_id = f"{agent}-{uuid.uuid4().hex[:12]}"
        self._messages: list[dict[str, str]] = [
            {"role": "system", "content": instructions}
        ]

    @property
    def session_id(self) -> str:
        return self._session_id

    async def send(self, prompt: str, timeout: float | None = None) -> str:
        self._messages.append({"role": "user", "content": prompt})
        kwargs: dict[str, Any] = {}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=cast(Any, self._messages),
                    **kwargs,
                ),
                timeout=timeout,
            )
        except (openai.OpenAIError, TimeoutError) as e:
            # Drop the unanswered turn so a retry in this session stays coherent
            self._messages.pop()
            detail = str(e) if isinstance(e, openai.OpenAIError) else f"timed out after {timeout}s"
            raise AgentCallError(f"{self._agent} ({self._model}): {detail}") from e
        except asyncio.CancelledError:
            self._messages.pop()
            raise

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        self._messages.append({"role": "assistant", "content": content})
        return content

    async def destroy(self) -> None:
        self._messages.clear()


class OpenAIChatBackend(AgentBackendInterface):
    """Agent backend over an OpenAI-compatible chat-completions API."""

    config_class = OpenAIBackendConfig

    def __init__(self, config: OpenAIBackendConfig | None = None, **kwargs: Any):
        """
        Args:
            config: Typed configuration object (preferred)
            **kwargs: Fields of OpenAIBackendConfig
        """
        if config is None:
            config = OpenAIBackendConfig(**kwargs)
        self._config = config
        self._client: AsyncOpenAI | None = None

    async def start(self) -> None:
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self._config.base_url,
                api_key=self._config.api_key,
                timeout=self._config.timeout,
            )

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def create_session(
        self, instructions: str, model: str, agent: str = "agent"
    ) -> AgentSessionInterface:
        await self.start()
        if self._client is None:
            raise AgentCallError(f"OpenAI client for {agent} failed to start")
        logger.debug("Creating session for %s on %s", agent, model)
        return OpenAIChatSession(
            self._client,
            model,
            instructions,
            agent,
            temperature=self._config.temperature,
        )
