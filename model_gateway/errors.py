"""
Gateway Error Taxonomy

Every error the gateway surfaces to callers derives from GatewayError:

- ValidationError: rejected input (duplicate model id, empty capabilities)
- NotFoundError: unknown or disabled model
- NoModelsAvailableError: routing requested with an empty enabled set
- ProviderError: a single classified provider failure
- AllProvidersFailedError: every attempted candidate failed

ProviderError is normally recovered inside the failover loop and only
reaches callers wrapped in AllProvidersFailedError.
"""

from enum import Enum


class ProviderErrorKind(str, Enum):
    """Classification of a failed provider call."""

    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    MALFORMED_RESPONSE = "malformed_response"

    @property
    def transient(self) -> bool:
        """Whether the same call may succeed if repeated later."""
        return self in (
            ProviderErrorKind.RATE_LIMITED,
            ProviderErrorKind.TIMEOUT,
            ProviderErrorKind.SERVER_ERROR,
        )


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    code = "GATEWAY_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GatewayError):
    """Raised when a model configuration or request is rejected."""

    code = "VALIDATION_ERROR"


class NotFoundError(GatewayError):
    """Raised when a model id is unknown (or disabled, for explicit overrides)."""

    code = "NOT_FOUND"

    def __init__(self, message: str, model_id: str | None = None):
        super().__init__(message)
        self.model_id = model_id


class NoModelsAvailableError(GatewayError):
    """Raised when routing is requested but no model is enabled."""

    code = "NO_MODELS_AVAILABLE"


class ProviderError(GatewayError):
    """
    A classified failure from one provider call.

    Attributes:
        model_id: Registry id of the model that was called
        provider: Provider family name
        kind: Failure classification
        status_code: HTTP status returned by the provider, if any
        latency_ms: Time spent on the failed attempt
    """

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        model_id: str,
        provider: str,
        kind: ProviderErrorKind,
        message: str,
        status_code: int | None = None,
        latency_ms: float = 0.0,
    ):
        super().__init__(f"{model_id} ({provider}) {kind.value}: {message}")
        self.model_id = model_id
        self.provider = provider
        self.kind = kind
        self.detail = message
        self.status_code = status_code
        self.latency_ms = latency_ms

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "model_id": self.model_id,
            "provider": self.provider,
            "kind": self.kind.value,
            "message": self.detail,
            "status_code": self.status_code,
            "latency_ms": round(self.latency_ms, 2),
        }


class AllProvidersFailedError(GatewayError):
    """
    Raised when every candidate in a failover pass failed.

    Carries one ProviderError per attempted candidate, in attempt order.
    """

    code = "ALL_PROVIDERS_FAILED"

    def __init__(self, errors: list[ProviderError]):
        attempted = ", ".join(f"{e.model_id}={e.kind.value}" for e in errors)
        super().__init__(f"All {len(errors)} provider attempts failed: {attempted}")
        self.errors = list(errors)
