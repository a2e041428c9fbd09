"""
Anthropic Adapter

Claude models use the Messages API rather than chat-completions:
system prompts travel in a top-level "system" field, and the response is
a list of content blocks whose text parts are concatenated.
"""

import logging
from collections.abc import AsyncIterator

import anthropic
from anthropic import AsyncAnthropic

from model_gateway.errors import ProviderErrorKind
from model_gateway.providers.base import (
    DEFAULT_TIMEOUT_SECONDS,
    AdapterRequest,
    MalformedResponseError,
    ProviderAdapter,
    ProviderFailure,
    StreamChunk,
    TokenUsage,
    classify_status,
    register_adapter,
)
from model_gateway.registry.models import ModelConfig, ModelProvider

logger = logging.getLogger(__name__)


def split_system_messages(
    messages: list[dict[str, str]],
) -> tuple[str | None, list[dict[str, str]]]:
    """
    Separate system messages from the conversation.

    Multiple system messages are joined with blank lines, in order.

    Returns:
        (system prompt or None, remaining user/assistant messages)
    """
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    conversation = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m["role"] != "system"
    ]
    system = "\n\n".join(system_parts) if system_parts else None
    return system, conversation


def parse_message_response(response) -> tuple[str, TokenUsage]:
    """
    Normalize an Anthropic Messages API response.

    Raises:
        MalformedResponseError: If no text block or usage is present
    """
    blocks = getattr(response, "content", None) or []
    texts = [
        block.text
        for block in blocks
        if getattr(block, "type", None) == "text" and isinstance(getattr(block, "text", None), str)
    ]
    if not texts:
        raise MalformedResponseError("Response contained no text content blocks")

    usage = getattr(response, "usage", None)
    if usage is None:
        raise MalformedResponseError("Response contained no token usage")

    return "".join(texts), TokenUsage(
        input_tokens=usage.input_tokens or 0,
        output_tokens=usage.output_tokens or 0,
    )


@register_adapter(ModelProvider.ANTHROPIC)
class AnthropicAdapter(ProviderAdapter):
    """Adapter for Anthropic Claude models."""

    def __init__(self, config: ModelConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(config, timeout)
        self._client: AsyncAnthropic | None = None

    @property
    def client(self) -> AsyncAnthropic:
        """Get the Anthropic client (lazy initialization)."""
        if self._client is None:
            kwargs = {}
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._client = AsyncAnthropic(
                api_key=self._api_key(),
                timeout=self.timeout,
                max_retries=0,
                **kwargs,
            )
            logger.debug(f"Initialized Anthropic client for {self.model_id}")
        return self._client

    def _params(self, request: AdapterRequest) -> dict:
        system, conversation = split_system_messages(request.messages)
        temperature = (
            request.temperature
            if request.temperature is not None
            else self.config.temperature
        )

        params = {
            "model": self.config.model_name,
            "messages": conversation,
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "temperature": min(temperature, 1.0),  # Messages API accepts 0.0-1.0
        }
        if system:
            params["system"] = system
        return params

    async def _call(self, request: AdapterRequest) -> tuple[str, TokenUsage]:
        response = await self.client.messages.create(**self._params(request))
        return parse_message_response(response)

    async def _stream(self, request: AdapterRequest) -> AsyncIterator[StreamChunk]:
        async with self.client.messages.stream(**self._params(request)) as stream:
            async for text in stream.text_stream:
                yield StreamChunk(content=text)
            final = await stream.get_final_message()

        usage = getattr(final, "usage", None)
        if usage is None:
            raise MalformedResponseError("Stream ended without token usage")
        yield StreamChunk(
            tokens=TokenUsage(
                input_tokens=usage.input_tokens or 0,
                output_tokens=usage.output_tokens or 0,
            )
        )

    def _classify(self, exc: Exception) -> ProviderFailure:
        if isinstance(exc, anthropic.APITimeoutError):
            return ProviderFailure(kind=ProviderErrorKind.TIMEOUT, message=str(exc))
        if isinstance(exc, anthropic.APIConnectionError):
            return ProviderFailure(kind=ProviderErrorKind.SERVER_ERROR, message=str(exc))
        if isinstance(exc, anthropic.APIStatusError):
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
