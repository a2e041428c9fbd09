"""
OpenAI-Compatible Adapter

Serves every provider that exposes the OpenAI chat-completions API:
OpenAI itself, DeepSeek, Zhipu (GLM), Qwen (DashScope compatible mode) and
Moonshot. Only the default base URL differs between them; a model's
base_url setting overrides it.
"""

import logging
from collections.abc import AsyncIterator

import openai
from openai import AsyncOpenAI

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


PROVIDER_ENDPOINTS: dict[ModelProvider, str] = {
    ModelProvider.OPENAI: "https://api.openai.com/v1",
    ModelProvider.DEEPSEEK: "https://api.deepseek.com/v1",
    ModelProvider.ZHIPU: "https://open.bigmodel.cn/api/paas/v4",
    ModelProvider.QWEN: "https://dashscope.aliyuncs.com/compatible-mode/v1",
    ModelProvider.MOONSHOT: "https://api.moonshot.cn/v1",
}


def parse_chat_completion(response) -> tuple[str, TokenUsage]:
    """
    Normalize an OpenAI-style chat completion.

    Shared by every SDK that returns the chat-completions shape.

    Raises:
        MalformedResponseError: If choices, message content or usage are missing
    """
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedResponseError("Response contained no choices")

    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str):
        raise MalformedResponseError("First choice has no text content")

    usage = getattr(response, "usage", None)
    if usage is None:
        raise MalformedResponseError("Response contained no token usage")

    return content, TokenUsage(
        input_tokens=usage.prompt_tokens or 0,
        output_tokens=usage.completion_tokens or 0,
    )


def parse_stream_chunk(chunk) -> StreamChunk:
    """
    Normalize one chat-completions stream chunk.

    Content arrives in choices[0].delta; usage arrives on its own final
    chunk (with empty choices) when requested through stream_options.
    """
    content = ""
    choices = getattr(chunk, "choices", None)
    if choices:
        delta = getattr(choices[0], "delta", None)
        text = getattr(delta, "content", None)
        if isinstance(text, str):
            content = text

    tokens = None
    usage = getattr(chunk, "usage", None)
    if usage is not None:
        tokens = TokenUsage(
            input_tokens=usage.prompt_tokens or 0,
            output_tokens=usage.completion_tokens or 0,
        )
    return StreamChunk(content=content, tokens=tokens)


@register_adapter(
    ModelProvider.OPENAI,
    ModelProvider.DEEPSEEK,
    ModelProvider.ZHIPU,
    ModelProvider.QWEN,
    ModelProvider.MOONSHOT,
)
class OpenAICompatibleAdapter(ProviderAdapter):
    """
    Adapter for OpenAI chat-completions compatible endpoints.

    The AsyncOpenAI client is created on first use so that models whose
    provider has no key configured never build an HTTP client.
    """

    def __init__(self, config: ModelConfig, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(config, timeout)
        self._client: AsyncOpenAI | None = None

    @property
    def base_url(self) -> str:
        return self.config.base_url or PROVIDER_ENDPOINTS[self.config.provider]

    @property
    def client(self) -> AsyncOpenAI:
        """
        Get the SDK client (lazy initialization).

        SDK retries are disabled: failover across models is the gateway's
        only retry mechanism.
        """
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key(),
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
            logger.debug(f"Initialized OpenAI-compatible client for {self.model_id} at {self.base_url}")
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
            stream_options={"include_usage": True},
        )
        async for chunk in stream:
            yield parse_stream_chunk(chunk)

    def _classify(self, exc: Exception) -> ProviderFailure:
        # APITimeoutError subclasses APIConnectionError, so it is checked first
        if isinstance(exc, openai.APITimeoutError):
            return ProviderFailure(kind=ProviderErrorKind.TIMEOUT, message=str(exc))
        if isinstance(exc, openai.APIConnectionError):
            return ProviderFailure(kind=ProviderErrorKind.SERVER_ERROR, message=str(exc))
        if isinstance(exc, openai.APIStatusError):
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
