"""
Schemas module: Pydantic models for the gateway API.

Public API:
- Requests: CompletionRequest, ChatMessage, RouteRequest, ModelCreateRequest
- Responses: CompletionResponse, RoutingInfo, ModelResponse, StatsResponse, ...
- Errors: ErrorCodes, ErrorDetail, ErrorResponse
- Health: HealthResponse, ComponentHealth
"""

from model_gateway.schemas.gateway import (
    # Requests
    ChatMessage,
    CompletionRequest,
    ModelCreateRequest,
    RouteRequest,
    StrategyName,
    # Responses
    AttemptError,
    CompletionResponse,
    ModelListResponse,
    ModelResponse,
    ModelStats,
    RouteDecisionResponse,
    RouteResponse,
    RoutingInfo,
    StatsResponse,
    StreamChunkResponse,
    TestAllResponse,
    TestResultResponse,
    TokenUsage,
    # Errors
    ErrorCodes,
    ErrorDetail,
    ErrorResponse,
    # Health
    ComponentHealth,
    HealthResponse,
    # Conversion
    completion_response_from_result,
    model_response_from_config,
    route_decision_response,
    stream_chunk_response,
    test_result_response,
)

__all__ = [
    # Requests
    "ChatMessage",
    "CompletionRequest",
    "ModelCreateRequest",
    "RouteRequest",
    "StrategyName",
    # Responses
    "AttemptError",
    "CompletionResponse",
    "ModelListResponse",
    "ModelResponse",
    "ModelStats",
    "RouteDecisionResponse",
    "RouteResponse",
    "RoutingInfo",
    "StatsResponse",
    "StreamChunkResponse",
    "TestAllResponse",
    "TestResultResponse",
    "TokenUsage",
    # Errors
    "ErrorCodes",
    "ErrorDetail",
    "ErrorResponse",
    # Health
    "ComponentHealth",
    "HealthResponse",
    # Conversion
    "completion_response_from_result",
    "model_response_from_config",
    "route_decision_response",
    "stream_chunk_response",
    "test_result_response",
]
