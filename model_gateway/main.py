"""
Model Gateway: FastAPI Application Entry Point

This module exposes the gateway over HTTP:
- /health, /config: Service health and non-sensitive configuration
- /models: Registry management (list, add, remove, enable, disable, test)
- /complete: Route a completion request with failover
- /complete/stream: Stream a completion from the top-ranked model (SSE)
- /route: Routing decisions without dispatch
- /stats: Per-model rolling statistics

The application uses a lifespan context manager to:
1. Load configuration and configure logging
2. Load the model set and price table
3. Construct the one GatewayCore the app owns, stored on app.state
4. Close provider clients at shutdown
"""

from contextlib import asynccontextmanager
import json
import logging
import time

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from model_gateway import __version__
from model_gateway.config import Settings, configure_logging, get_settings
from model_gateway.errors import (
    AllProvidersFailedError,
    GatewayError,
    NoModelsAvailableError,
    NotFoundError,
    ValidationError,
)
from model_gateway.gateway import GatewayCore
from model_gateway.metrics.reporter import StatsReporter
from model_gateway.providers import supported_providers
from model_gateway.registry.loader import CredentialStore, SettingsCredentialStore
from model_gateway.registry.models import ModelProvider
from model_gateway.schemas import (
    AttemptError,
    CompletionRequest,
    CompletionResponse,
    ComponentHealth,
    ErrorCodes,
    ErrorResponse,
    HealthResponse,
    ModelCreateRequest,
    ModelListResponse,
    ModelResponse,
    RouteRequest,
    RouteResponse,
    StatsResponse,
    TestAllResponse,
    TestResultResponse,
    completion_response_from_result,
    model_response_from_config,
    route_decision_response,
    stream_chunk_response,
    test_result_response,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "model-gateway"

# Domain error -> HTTP status
ERROR_STATUS: dict[type[GatewayError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    NoModelsAvailableError: 503,
    AllProvidersFailedError: 502,
}


def create_app(
    gateway: GatewayCore | None = None,
    credentials: CredentialStore | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        gateway: Pre-built gateway to serve; built from settings at startup
                 when omitted
        credentials: Key source for models added over the API; defaults to
                     the provider keys in settings

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler for startup/shutdown events.

        On startup:
        - Loads configuration from environment and configures logging
        - Builds the gateway from the configured models file (or defaults)

        On shutdown:
        - Closes provider clients
        """
        settings = get_settings()
        configure_logging(settings)

        logger.info("=" * 60)
        logger.info("Model Gateway starting up...")
        logger.info("=" * 60)
        logger.info(f"Default strategy: {settings.default_strategy}")
        logger.info(f"Request timeout: {settings.request_timeout_seconds}s")
        logger.info(f"Stats window: {settings.stats_window_size} samples")
        logger.info(f"Debug mode: {'enabled' if settings.debug else 'disabled'}")

        app.state.credentials = credentials or SettingsCredentialStore(settings)
        app.state.gateway = gateway or GatewayCore.from_settings(
            settings, app.state.credentials
        )
        app.state.start_time = time.time()

        models = app.state.gateway.list_models()
        logger.info(f"Gateway ready with {len(models)} models:")
        for model in models:
            logger.info(
                f"  - {model.id}: provider={model.provider.value}, "
                f"priority={model.priority}, enabled={model.enabled}, "
                f"api_key={'configured' if model.api_key else 'missing'}"
            )

        logger.info("=" * 60)
        logger.info("Model Gateway ready to accept requests")

        yield  # Application runs here

        logger.info("Model Gateway shutting down...")
        await app.state.gateway.aclose()

    app = FastAPI(
        title="Model Gateway",
        description="Multi-provider model routing with failover and live statistics",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(_routes(), tags=["gateway"])
    _register_exception_handlers(app)
    return app


def get_gateway(request: Request) -> GatewayCore:
    """Dependency returning the gateway owned by the application."""
    return request.app.state.gateway


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def _routes() -> APIRouter:
    router = APIRouter()

    @router.get("/")
    async def root():
        """
        Root endpoint with API information.
        """
        return {
            "name": "Model Gateway",
            "description": "Multi-provider model routing",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "config": "/config",
        }

    @router.get(
        "/health",
        response_model=HealthResponse,
        summary="Health check",
        description="Check registry and provider configuration status.",
    )
    async def health_check(request: Request, gateway: GatewayCore = Depends(get_gateway)):
        """
        Health check endpoint for monitoring and orchestration.

        Checks:
        - Registry has enabled models
        - Each provider in use has an API key

        No provider calls are made; use POST /models/test for live checks.
        """
        components = []
        overall_status = "healthy"

        models = gateway.list_models()
        enabled = [m for m in models if m.enabled]
        if not models:
            registry_status = "unhealthy"
            message = "No models registered"
        elif not enabled:
            registry_status = "unhealthy"
            message = f"{len(models)} models registered, none enabled"
        else:
            registry_status = "healthy"
            message = f"{len(enabled)}/{len(models)} models enabled"
        components.append(
            ComponentHealth(name="registry", status=registry_status, message=message)
        )
        if registry_status == "unhealthy":
            overall_status = "unhealthy"

        providers: dict[str, list] = {}
        for model in enabled:
            providers.setdefault(model.provider.value, []).append(model)
        for provider, provider_models in providers.items():
            keyless = [m.id for m in provider_models if m.api_key is None]
            if keyless:
                components.append(
                    ComponentHealth(
                        name=provider,
                        status="degraded",
                        message=f"No API key for: {', '.join(keyless)}",
                    )
                )
                if overall_status == "healthy":
                    overall_status = "degraded"
            else:
                components.append(
                    ComponentHealth(
                        name=provider,
                        status="healthy",
                        message=f"{len(provider_models)} models",
                    )
                )

        start_time = getattr(request.app.state, "start_time", 0.0)
        uptime = time.time() - start_time if start_time > 0 else 0.0

        return HealthResponse(
            status=overall_status,
            service=SERVICE_NAME,
            version=__version__,
            components=components,
            uptime_seconds=uptime,
        )

    @router.get("/config")
    async def show_config(
        settings: Settings = Depends(get_settings),
        gateway: GatewayCore = Depends(get_gateway),
    ):
        """
        Returns non-sensitive configuration values.

        API keys are SecretStr and are NOT exposed in this endpoint.
        This is safe to call for debugging configuration issues.
        """
        return {
            "routing": {
                "default_strategy": gateway.default_strategy.value,
                "request_timeout_seconds": gateway.timeout,
                "stats_window_size": gateway.stats.window_size,
            },
            "models_file": settings.models_file,
            "prices": gateway.prices.to_dict(),
            "supported_providers": [p.value for p in supported_providers()],
            "server": {
                "host": settings.host,
                "port": settings.port,
                "debug": settings.debug,
            },
            "logging": {"level": settings.log_level},
            "api_keys_configured": {
                p.value: bool(
                    settings.provider_api_key(p.value)
                    and settings.provider_api_key(p.value).get_secret_value()
                )
                for p in ModelProvider
            },
        }

    @router.get("/models", response_model=ModelListResponse)
    async def list_models(
        enabled_only: bool = Query(False, description="Only list enabled models"),
        gateway: GatewayCore = Depends(get_gateway),
    ):
        """
        List registered models in insertion order.

        API keys are reduced to a has_api_key flag.
        """
        models = gateway.list_models(enabled_only=enabled_only)
        return ModelListResponse(
            models=[model_response_from_config(m) for m in models],
            total=len(models),
            enabled=sum(1 for m in models if m.enabled),
        )

    @router.post("/models", response_model=ModelResponse, status_code=201)
    async def add_model(
        body: ModelCreateRequest,
        gateway: GatewayCore = Depends(get_gateway),
        credentials: CredentialStore = Depends(get_credentials),
    ):
        """Register a model; its key is resolved from the credential store."""
        config = body.to_config(api_key=credentials.get(body.provider.value))
        return model_response_from_config(gateway.add_model(config))

    @router.post(
        "/models/test",
        response_model=TestAllResponse,
        summary="Test all models",
        description="Test every registered model concurrently with a minimal request.",
    )
    async def test_all_models(gateway: GatewayCore = Depends(get_gateway)):
        results = [test_result_response(r) for r in await gateway.test_all()]
        passed = sum(1 for r in results if r.success)
        return TestAllResponse(results=results, passed=passed, failed=len(results) - passed)

    @router.get("/models/{model_id}", response_model=ModelResponse)
    async def get_model(model_id: str, gateway: GatewayCore = Depends(get_gateway)):
        config = gateway.get_model(model_id)
        if config is None:
            raise NotFoundError(f"Model not found: {model_id}", model_id=model_id)
        return model_response_from_config(config)

    @router.delete("/models/{model_id}")
    async def remove_model(model_id: str, gateway: GatewayCore = Depends(get_gateway)):
        if not await gateway.remove_model(model_id):
            raise NotFoundError(f"Model not found: {model_id}", model_id=model_id)
        return {"removed": model_id}

    @router.post("/models/{model_id}/enable", response_model=ModelResponse)
    async def enable_model(model_id: str, gateway: GatewayCore = Depends(get_gateway)):
        return model_response_from_config(gateway.enable_model(model_id))

    @router.post("/models/{model_id}/disable", response_model=ModelResponse)
    async def disable_model(model_id: str, gateway: GatewayCore = Depends(get_gateway)):
        return model_response_from_config(gateway.disable_model(model_id))

    @router.post("/models/{model_id}/test", response_model=TestResultResponse)
    async def test_model(model_id: str, gateway: GatewayCore = Depends(get_gateway)):
        return test_result_response(await gateway.test_model(model_id))

    @router.post(
        "/complete",
        response_model=CompletionResponse,
        responses={
            404: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
        summary="Complete a chat request",
        description="Route the request to the best model and fail over on provider errors.",
    )
    async def complete(body: CompletionRequest, gateway: GatewayCore = Depends(get_gateway)):
        """
        Main completion endpoint.

        Flow:
        1. Rank enabled models with the requested strategy (or use the
           explicit model)
        2. Dispatch in rank order, failing over on provider errors
        3. Record latency, errors and cost in the stats store
        4. Return content with the routing reason and cost
        """
        result = await gateway.complete(body)
        return completion_response_from_result(result)

    @router.post(
        "/complete/stream",
        responses={
            200: {"content": {"text/event-stream": {}}},
            404: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
        summary="Stream a chat completion",
        description="Route the request and stream the top-ranked model's reply as server-sent events.",
    )
    async def complete_stream(body: CompletionRequest, gateway: GatewayCore = Depends(get_gateway)):
        """
        Streaming completion endpoint.

        Each text chunk is sent as a `data:` event holding a JSON object;
        the last one has done=true and carries usage, latency and cost.
        There is no failover: a failure before the first chunk is returned
        as a regular error response, a failure after it as an `error` event
        that ends the stream.
        """
        chunks = gateway.stream(body)
        # Errors raised before the first chunk go through the exception handlers
        first = await anext(chunks)

        async def events():
            try:
                yield _sse(stream_chunk_response(first).model_dump_json(exclude_none=True))
                async for chunk in chunks:
                    yield _sse(stream_chunk_response(chunk).model_dump_json(exclude_none=True))
            except GatewayError as e:
                logger.warning(f"Stream ended with {e.code}: {e.message}")
                _, content = _error_content(e)
                yield _sse(json.dumps(content), event="error")
            finally:
                await chunks.aclose()

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Model-Used": first.model_id or ""},
        )

    @router.post("/route", response_model=RouteResponse)
    async def route(body: RouteRequest, gateway: GatewayCore = Depends(get_gateway)):
        """
        Explain routing without dispatching.

        With a strategy, returns that strategy's decision; without one,
        returns the decision of every strategy for comparison.
        """
        if body.strategy:
            request = CompletionRequest(messages=body.messages, strategy=body.strategy)
            decisions = [gateway.explain(request)]
        else:
            decisions = gateway.benchmark_routing(body.messages)
        return RouteResponse(decisions=[route_decision_response(d) for d in decisions])

    @router.get(
        "/stats",
        response_model=StatsResponse,
        summary="Get statistics",
        description="Retrieve rolling per-model latency, error and cost statistics.",
    )
    async def get_stats(gateway: GatewayCore = Depends(get_gateway)):
        reporter = StatsReporter(gateway.stats)
        return reporter.generate_report(model_ids=gateway.registry.ids())

    return router


def _sse(data: str, event: str | None = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {data}\n\n"


def _error_content(exc: GatewayError) -> tuple[int, dict]:
    """
    Translate a domain error into its HTTP status and uniform error body.

    AllProvidersFailedError lists every attempt in order.
    """
    status_code = 500
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = status
            break

    error: dict = {"code": exc.code, "message": exc.message}
    if isinstance(exc, AllProvidersFailedError):
        error["attempts"] = [
            AttemptError(**e.to_dict()).model_dump() for e in exc.errors
        ]
    return status_code, {"error": error}


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(
        request: Request, exc: GatewayError
    ) -> JSONResponse:
        status_code, content = _error_content(exc)
        if status_code >= 500:
            logger.warning(f"{exc.code}: {exc.message}")
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle Pydantic validation errors.

        Returns a consistent error response format with the first validation
        error's details for client-side error handling.
        """
        errors = exc.errors()
        first_error = errors[0] if errors else {}

        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": ErrorCodes.VALIDATION_ERROR,
                    "message": first_error.get("msg", "Validation failed"),
                    "field": ".".join(str(loc) for loc in first_error.get("loc", [])),
                }
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """
        Handle HTTP exceptions with consistent format.

        Registered on the Starlette base class so routing errors (unknown
        path, wrong method) get the same body as HTTPExceptions raised by
        endpoints.
        """
        detail = exc.detail
        if isinstance(detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": detail})
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": "HTTP_ERROR", "message": str(detail)}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """
        Handle unexpected exceptions.

        Logs the full exception for debugging and returns a generic error
        response to avoid leaking implementation details.
        """
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCodes.INTERNAL_ERROR,
                    "message": "An unexpected error occurred",
                }
            },
        )


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "model_gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
