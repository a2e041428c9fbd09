"""
Pydantic Schemas for the Gateway API

This module defines the request and response models for the model gateway:
- CompletionRequest: Messages, routing strategy, optional explicit model
- CompletionResponse: Content, model used, routing reason, latency, cost
- Model management, test, statistics, error, and health schemas

CompletionRequest is also the request type GatewayCore accepts directly,
so in-process callers and HTTP callers share one validated shape.
"""

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, computed_field, field_validator

from model_gateway.registry.models import ModelCapability, ModelConfig, ModelProvider

if TYPE_CHECKING:
    from model_gateway.gateway.core import CompletionResult
    from model_gateway.providers.base import StreamChunk, TestResult
    from model_gateway.router.policies import RoutingDecision


StrategyName = Literal["smart", "cost", "speed", "priority"]


# =============================================================================
# REQUEST MODELS
# =============================================================================


class ChatMessage(BaseModel):
    """One message of a chat conversation."""

    role: Literal["system", "user", "assistant"] = Field(
        ...,
        description="Message author role",
    )

    content: str = Field(
        ...,
        description="Message text",
    )


class CompletionRequest(BaseModel):
    """
    Request body for the /complete endpoint.

    Example:
        {
            "messages": [{"role": "user", "content": "Summarize this diff"}],
            "strategy": "cost"
        }
    """

    messages: list[ChatMessage] = Field(
        ...,
        min_length=1,
        description="Ordered conversation messages",
    )

    strategy: StrategyName | None = Field(
        default=None,
        description="Routing strategy (configured default when omitted)",
    )

    model: str | None = Field(
        default=None,
        min_length=1,
        description="Explicit model id; bypasses routing and failover",
    )

    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature override",
    )

    max_tokens: int | None = Field(
        default=None,
        gt=0,
        description="Output token limit override",
    )

    system_prompt: str | None = Field(
        default=None,
        description="System prompt prepended to the messages",
    )

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v):
        """Accept strategy names case-insensitively."""
        if isinstance(v, str):
            return v.lower()
        return v

    def to_provider_messages(self) -> list[dict[str, str]]:
        """Messages as plain dicts, with the system prompt first when set."""
        messages = [{"role": m.role, "content": m.content} for m in self.messages]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})
        return messages

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "messages": [{"role": "user", "content": "Hello!"}],
                    "strategy": "smart",
                },
                {
                    "messages": [{"role": "user", "content": "Write a haiku"}],
                    "model": "gpt-4o-mini",
                    "temperature": 0.9,
                },
            ]
        }
    )


class RouteRequest(BaseModel):
    """Request body for the /route endpoint (routing without dispatch)."""

    messages: list[ChatMessage] = Field(
        default_factory=lambda: [ChatMessage(role="user", content="Hi")],
        min_length=1,
        description="Conversation the decision is made for",
    )

    strategy: StrategyName | None = Field(
        default=None,
        description="Single strategy to explain; all four when omitted",
    )

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v


class ModelCreateRequest(BaseModel):
    """
    Request body for POST /models.

    The API key is never part of the body: it is resolved from the
    credential store by provider.
    """

    id: str = Field(..., min_length=1, description="Unique model id")
    provider: ModelProvider = Field(..., description="Provider family")
    model_name: str = Field(..., min_length=1, description="Provider-side model name")
    display_name: str | None = Field(default=None, description="Human-readable name")
    base_url: str | None = Field(default=None, description="Endpoint override")
    priority: int = Field(default=100, description="Lower values are preferred")
    enabled: bool = Field(default=True, description="Take part in routing")
    capabilities: list[ModelCapability] = Field(
        default_factory=lambda: [ModelCapability.CHAT],
        description="Capability tags",
    )
    max_tokens: int = Field(default=1024, gt=0, description="Default max output tokens")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Default temperature")

    model_config = ConfigDict(protected_namespaces=())

    def to_config(self, api_key: SecretStr | None = None) -> ModelConfig:
        """Build the immutable registry entry."""
        return ModelConfig(
            **self.model_dump(exclude={"capabilities"}),
            capabilities=frozenset(self.capabilities),
            api_key=api_key,
        )


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class TokenUsage(BaseModel):
    """Token consumption for a completion."""

    input_tokens: int = Field(default=0, ge=0, description="Input tokens processed")
    output_tokens: int = Field(default=0, ge=0, description="Output tokens generated")

    @computed_field
    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


class RoutingInfo(BaseModel):
    """
    Explanation of the routing decision.

    The reason names the metric that decided the pick, e.g.
    "lowest average latency (412ms) among 3 enabled models".
    """

    strategy: str = Field(..., description="Strategy used, or 'explicit' for overrides")
    reason: str = Field(..., description="Why the model was chosen")
    ranked_ids: list[str] = Field(
        default_factory=list,
        description="Candidate order the gateway dispatched in",
    )


class AttemptError(BaseModel):
    """One failed provider attempt."""

    model_id: str = Field(..., description="Model that was attempted")
    provider: str = Field(..., description="Provider family")
    kind: str = Field(..., description="Failure classification")
    message: str = Field(..., description="Provider error message")
    status_code: int | None = Field(default=None, description="HTTP status, when any")
    latency_ms: float = Field(default=0.0, ge=0.0, description="Time spent on the attempt")


class CompletionResponse(BaseModel):
    """
    Response from the /complete endpoint.

    Example:
        {
            "content": "Hello! How can I help?",
            "model_used": "deepseek-chat",
            "provider": "deepseek",
            "routing": {"strategy": "priority", "reason": "..."},
            "latency_ms": 412.3,
            "cost_usd": 0.0000125,
            "tokens": {"input_tokens": 9, "output_tokens": 4}
        }
    """

    content: str = Field(..., description="Generated text")
    model_used: str = Field(..., description="Model id that served the request")
    provider: str = Field(..., description="Provider family of the model used")
    routing: RoutingInfo = Field(..., description="Routing explanation")
    latency_ms: float = Field(..., ge=0.0, description="Latency of the successful attempt")
    cost_usd: float = Field(..., ge=0.0, description="Cost of the completion in USD")
    tokens: TokenUsage = Field(default_factory=TokenUsage, description="Token usage")
    failed_attempts: list[AttemptError] = Field(
        default_factory=list,
        description="Attempts that failed before the successful one",
    )

    model_config = ConfigDict(protected_namespaces=())


class StreamChunkResponse(BaseModel):
    """
    One server-sent event from the /complete/stream endpoint.

    Text events carry `content`; the last event has done=true and carries
    token usage, latency and cost instead.
    """

    content: str = ""
    model_used: str | None = None
    done: bool = False
    tokens: TokenUsage | None = None
    latency_ms: float | None = None
    cost_usd: float | None = None

    model_config = ConfigDict(protected_namespaces=())


class ModelResponse(BaseModel):
    """Registry entry as exposed by the API. The API key is reduced to a flag."""

    id: str
    provider: str
    model_name: str
    display_name: str | None = None
    base_url: str | None = None
    priority: int
    enabled: bool
    capabilities: list[str]
    max_tokens: int
    temperature: float
    has_api_key: bool = Field(..., description="Whether a key was resolved for the provider")

    model_config = ConfigDict(protected_namespaces=())


class ModelListResponse(BaseModel):
    """Response from GET /models."""

    models: list[ModelResponse] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    enabled: int = Field(default=0, ge=0)


class TestResultResponse(BaseModel):
    """Outcome of one connectivity check."""

    __test__ = False  # not a pytest test class

    model_id: str
    success: bool
    latency_ms: float = Field(..., ge=0.0)
    error: str | None = None

    model_config = ConfigDict(protected_namespaces=())


class TestAllResponse(BaseModel):
    """Response from POST /models/test."""

    __test__ = False

    results: list[TestResultResponse] = Field(default_factory=list)
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)


class RouteDecisionResponse(BaseModel):
    """A routing decision made without dispatching."""

    strategy: str
    selected: str = Field(..., description="Top-ranked model id")
    ranked_ids: list[str]
    reason: str
    scores: dict[str, float | None] = Field(
        default_factory=dict,
        description="Per-model figure the strategy sorted by",
    )


class RouteResponse(BaseModel):
    """Response from POST /route."""

    decisions: list[RouteDecisionResponse] = Field(default_factory=list)


class ModelStats(BaseModel):
    """Rolling statistics for one model."""

    model_id: str
    sample_count: int = Field(default=0, ge=0, description="Latency samples in the window")
    avg_latency_ms: float | None = Field(default=None, description="Window average latency")
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    error_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    cumulative_cost_usd: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(protected_namespaces=())


class StatsResponse(BaseModel):
    """Response from GET /stats."""

    window_size: int = Field(..., ge=1, description="Latency samples kept per model")
    total_requests: int = Field(default=0, ge=0)
    total_cost_usd: float = Field(default=0.0, ge=0.0)
    models: dict[str, ModelStats] = Field(default_factory=dict)


# =============================================================================
# ERROR MODELS
# =============================================================================


class ErrorCodes:
    """
    Standard error codes for API responses.

    These codes enable programmatic error handling by clients
    without parsing human-readable messages.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    NO_MODELS_AVAILABLE = "NO_MODELS_AVAILABLE"
    ALL_PROVIDERS_FAILED = "ALL_PROVIDERS_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    """Machine-readable code plus human-readable message."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Offending field for validation errors")
    attempts: list[AttemptError] | None = Field(
        default=None,
        description="Per-attempt failures when every provider failed",
    )


class ErrorResponse(BaseModel):
    """
    Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "ALL_PROVIDERS_FAILED",
                "message": "All 2 providers failed",
                "attempts": [{"model_id": "deepseek-chat", "kind": "timeout", ...}]
            }
        }
    """

    error: ErrorDetail


# =============================================================================
# HEALTH MODELS
# =============================================================================


class ComponentHealth(BaseModel):
    """Health status of an individual component."""

    name: str = Field(..., description="Component name (e.g., 'registry', 'openai')")
    status: Literal["healthy", "degraded", "unhealthy"]
    message: str | None = Field(default=None, description="Additional status information")


class HealthResponse(BaseModel):
    """Response from the /health endpoint."""

    status: Literal["healthy", "degraded", "unhealthy"]
    service: str = Field(default="model-gateway")
    version: str
    components: list[ComponentHealth] = Field(default_factory=list)
    uptime_seconds: float | None = Field(default=None, ge=0.0)


# =============================================================================
# CONVERSION UTILITIES
# =============================================================================


def model_response_from_config(config: ModelConfig) -> ModelResponse:
    """Expose a registry entry without its secret."""
    return ModelResponse(
        id=config.id,
        provider=config.provider.value,
        model_name=config.model_name,
        display_name=config.display_name,
        base_url=config.base_url,
        priority=config.priority,
        enabled=config.enabled,
        capabilities=sorted(c.value for c in config.capabilities),
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        has_api_key=config.api_key is not None,
    )


def completion_response_from_result(result: "CompletionResult") -> CompletionResponse:
    """Convert a gateway CompletionResult into the API response."""
    return CompletionResponse(
        content=result.content,
        model_used=result.model.id,
        provider=result.model.provider.value,
        routing=RoutingInfo(
            strategy=result.strategy,
            reason=result.reason,
            ranked_ids=list(result.ranked_ids),
        ),
        latency_ms=round(result.latency_ms, 2),
        cost_usd=round(result.cost_usd, 10),
        tokens=TokenUsage(
            input_tokens=result.tokens.input_tokens,
            output_tokens=result.tokens.output_tokens,
        ),
        failed_attempts=[AttemptError(**e.to_dict()) for e in result.failed_attempts],
    )


def test_result_response(result: "TestResult") -> TestResultResponse:
    return TestResultResponse(
        model_id=result.model_id,
        success=result.success,
        latency_ms=round(result.latency_ms, 2),
        error=result.error,
    )


test_result_response.__test__ = False  # not a pytest test function


def stream_chunk_response(chunk: "StreamChunk") -> StreamChunkResponse:
    tokens = None
    if chunk.tokens is not None:
        tokens = TokenUsage(
            input_tokens=chunk.tokens.input_tokens,
            output_tokens=chunk.tokens.output_tokens,
        )
    return StreamChunkResponse(
        content=chunk.content,
        model_used=chunk.model_id,
        done=chunk.done,
        tokens=tokens,
        latency_ms=round(chunk.latency_ms, 2) if chunk.latency_ms is not None else None,
        cost_usd=round(chunk.cost_usd, 10) if chunk.cost_usd is not None else None,
    )


def route_decision_response(decision: "RoutingDecision") -> RouteDecisionResponse:
    data = decision.to_dict()
    return RouteDecisionResponse(
        strategy=data["strategy"],
        selected=decision.top,
        ranked_ids=data["ranked_ids"],
        reason=data["reason"],
        scores=data["scores"],
    )
