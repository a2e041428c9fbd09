"""
Groq Adapter

Groq provides fast inference for open-weight models (Llama, Mixtral,
Gemma) behind a chat-completions API, served through the official
AsyncGroq SDK client.
"""

import logging
from collections.abc import AsyncIterator

import groq
from groq import AsyncGroq

from model_gateway.errors import ProviderErrorKind
from model_gateway.providers.base import (
    DEFAULT_TIMEOUT_SECONDS,
    AdapterRequest,
    ProviderAdapter,
    ProviderFailure,
    StreamChunk,
    TokenUsage,
    classify_status,
    register_adapter,
)
from model_gateway.providers.openai_compatible import parse_chat_completion, parse_stream_chunk
from model_gateway.registry.models import ModelConfig, ModelProvider

logger = logging.getLogger(__name__)


@register_adapter(ModelProvider.GROQ)
class GroqAdapter(ProviderAdapter):
    """Adapter for Groq-hosted models."""

    def __init__(self, config: ModelConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(config, timeout)
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Get the Groq client (lazy initialization)."""
        if self._client is None:
            kwargs = {}
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._client = AsyncGroq(
                api_key=self._api_key(),
                timeout=self.timeout,
                max_retries=0,
                **kwargs,
            )
            logger.debug(f"Initialized Groq client for {self.model_id}")
        return self._client

    async def _call(self, request: AdapterRequest) -> tuple[str, TokenUsage]:
        response = await self.client.chat.completions.create(
            model=self.config.model_name,
            messages=request.messages,
            max_tokens=request.max_tokens or self.config.max_tokens,
            temperature=(
                request.temperature
                if request.temperature is not None
                else self.config.temperature
            ),
        )
        return parse_chat_completion(response)

    async def _stream(self, request: AdapterRequest) -> AsyncIterator[StreamChunk]:
        stream = await self.client.chat.completions.create(
            model=self.config.model_name,
            messages=request.messages,
            max_tokens=request.max_tokens or self.config.max_tokens,
            temperature=(
                request.temperature
                if request.temperature is not None
                else self.config.temperature
            ),
            stream=True,
        )
        async for chunk in stream:
            parsed = parse_stream_chunk(chunk)
            # Groq reports stream usage under x_groq on the last chunk
            usage = getattr(getattr(chunk, "x_groq", None), "usage", None)
            if parsed.tokens is None and usage is not None:
                parsed.tokens = TokenUsage(
                    input_tokens=usage.prompt_tokens or 0,
                    output_tokens=usage.completion_tokens or 0,
                )
            yield parsed

    def _classify(self, exc: Exception) -> ProviderFailure:
        if isinstance(exc, groq.APITimeoutError):
            return ProviderFailure(kind=ProviderErrorKind.TIMEOUT, message=str(exc))
        if isinstance(exc, groq.APIConnectionError):
            return ProviderFailure(kind=ProviderErrorKind.SERVER_ERROR, message=str(exc))
        if isinstance(exc, groq.APIStatusError):
            return ProviderFailure(
                kind=classify_status(exc.status_code),
                message=exc.message,
                status_code=exc.status_code,
            )
        return super()._classify(exc)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
