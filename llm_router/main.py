"""
LLM Router: FastAPI Application Entry Point

This module initializes the FastAPI application and defines the core endpoints:
- /health: Health check endpoint
- /config: Non-sensitive configuration values
- /models: Registered candidates and their capability profiles
- /generate: Dispatch a request to the best available candidate
- /classify: Complexity tier of a text without dispatching it
- /metrics: Dispatch, cache, and cost statistics

The application uses a lifespan context manager to:
1. Load configuration and configure logging
2. Build the dispatcher with every provider whose API key is configured
3. Start the dispatcher's background cache sweeper, and stop it on shutdown
"""

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from llm_router import __version__
from llm_router.classifier import ComplexityClassifier
from llm_router.config import Settings, get_settings, configure_logging
from llm_router.dispatcher import get_dispatcher, shutdown_dispatcher
from llm_router.errors import (
    AllCandidatesFailedError,
    ConfigurationError,
    ValidationError,
)
from llm_router.metrics import MetricsReporter
from llm_router.schemas import (
    ClassifyRequest,
    ClassifyResponse,
    ComponentHealth,
    ErrorCodes,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    MetricsResponse,
    build_generate_response,
)

logger = logging.getLogger(__name__)

_start_time: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup/shutdown events.

    On startup:
    - Loads configuration from environment
    - Configures logging
    - Builds and starts the dispatcher

    On shutdown:
    - Stops the dispatcher's background tasks
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info("=" * 60)
    logger.info("LLM Router starting up...")
    logger.info("=" * 60)
    logger.info(
        f"Cache: {'enabled' if settings.cache_enabled else 'disabled'} "
        f"(semantic={'on' if settings.semantic_cache_enabled else 'off'}, "
        f"threshold={settings.similarity_threshold}, ttl={settings.cache_ttl_seconds:.0f}s)"
    )
    logger.info(
        f"Executor: interval={settings.min_request_interval_ms:.0f}ms, "
        f"timeout={settings.request_timeout_ms:.0f}ms, retries={settings.max_retries}"
    )
    logger.info(f"OpenAI API key: {'configured' if settings.openai_api_key else 'not configured'}")
    logger.info(f"Groq API key: {'configured' if settings.groq_api_key else 'not configured'}")

    dispatcher = await get_dispatcher()
    for profile in dispatcher.candidates:
        logger.info(f"  - {profile.key}")

    global _start_time
    _start_time = time.time()

    logger.info("=" * 60)
    logger.info("LLM Router ready to accept requests")

    yield  # Application runs here

    logger.info("LLM Router shutting down...")
    await shutdown_dispatcher()


app = FastAPI(
    title="LLM Router",
    description="Cost- and capability-aware dispatch across LLM providers",
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


@app.get("/")
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "name": "LLM Router",
        "description": "Cost- and capability-aware dispatch across LLM providers",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "config": "/config",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check system health and component status.",
)
async def health_check():
    """
    Health check endpoint for monitoring and orchestration.

    The service is degraded when no candidates are registered: it stays up
    and serves cache hits, but every uncached request fails.
    """
    components = []
    overall_status = "healthy"

    try:
        dispatcher = await get_dispatcher()
        candidate_count = len(dispatcher.candidates)
        if candidate_count:
            components.append(
                ComponentHealth(
                    name="dispatcher",
                    status="healthy",
                    message=f"{candidate_count} candidates registered",
                )
            )
        else:
            components.append(
                ComponentHealth(
                    name="dispatcher",
                    status="degraded",
                    message="No candidates registered (no provider API keys configured)",
                )
            )
            overall_status = "degraded"

        stats = dispatcher.cache.stats()
        components.append(
            ComponentHealth(
                name="cache",
                status="healthy",
                message=(
                    f"{stats.entries} entries, {stats.semantic_entries} semantic, "
                    f"sweeper {'running' if dispatcher.cache.sweeper_running else 'stopped'}"
                ),
            )
        )
    except Exception as e:
        components.append(
            ComponentHealth(
                name="dispatcher",
                status="unhealthy",
                message=str(e),
            )
        )
        overall_status = "unhealthy"

    uptime = time.time() - _start_time if _start_time > 0 else 0.0

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        uptime_seconds=uptime,
    )


@app.get("/config")
async def show_config(settings: Settings = Depends(get_settings)):
    """
    Returns non-sensitive configuration values.

    API keys are SecretStr and are NOT exposed in this endpoint.
    """
    return {
        "cache": {
            "enabled": settings.cache_enabled,
            "semantic_enabled": settings.semantic_cache_enabled,
            "ttl_seconds": settings.cache_ttl_seconds,
            "similarity_threshold": settings.similarity_threshold,
            "cleanup_interval_seconds": settings.cache_cleanup_interval_seconds,
            "embedding_candidate": settings.embedding_candidate,
        },
        "executor": {
            "min_request_interval_ms": settings.min_request_interval_ms,
            "request_timeout_ms": settings.request_timeout_ms,
            "max_retries": settings.max_retries,
            "retry_base_delay_ms": settings.retry_base_delay_ms,
        },
        "cost_tracking": {"enabled": settings.track_costs},
        "server": {
            "host": settings.host,
            "port": settings.port,
            "debug": settings.debug,
        },
        "logging": {"level": settings.log_level},
        "api_keys_configured": {
            "openai": settings.openai_api_key is not None,
            "groq": settings.groq_api_key is not None,
        },
    }


@app.get("/models")
async def list_models():
    """
    List registered candidates with their capability profiles.

    Costs are per unit; estimated_cost_1k is the figure max_cost is
    compared against (1000 input + 1000 output units).
    """
    dispatcher = await get_dispatcher()
    candidates = dispatcher.candidates

    return {
        "models": [
            {
                "key": profile.key,
                "provider": profile.provider,
                "model": profile.model,
                "capabilities": dict(profile.capabilities),
                "cost_per_input_unit": profile.cost_per_input_unit,
                "cost_per_output_unit": profile.cost_per_output_unit,
                "estimated_cost_1k": profile.estimate_cost(),
                "max_context_units": profile.max_context_units,
            }
            for profile in candidates
        ],
        "total_models": len(candidates),
    }


@app.post(
    "/generate",
    response_model=GenerateResponse,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Generate a completion",
    description="Dispatch a request to the best available candidate with fallback and caching.",
)
async def generate(request: GenerateRequest):
    """
    Main dispatch endpoint.

    Flow:
    1. Exact and semantic cache lookups
    2. Complexity classification and candidate ordering
    3. Sequential fallback across candidates
    4. Cache population and metrics recording

    Dispatcher errors are translated to HTTP responses by the exception
    handlers below.
    """
    dispatcher = await get_dispatcher()
    result = await dispatcher.dispatch(request.text, request.options)
    return build_generate_response(result)


_classifier = ComplexityClassifier()


@app.post("/classify", response_model=ClassifyResponse)
async def classify(request: ClassifyRequest):
    """
    Classify text into SIMPLE, MODERATE, or COMPLEX without dispatching it.

    Useful for debugging candidate ordering before sending real traffic.
    """
    matched = _classifier.match_rule(request.text)
    tier = _classifier.classify(request.text)
    return ClassifyResponse(
        tier=tier.value,
        word_count=len(request.text.split()),
        matched_rule=matched is not None,
    )


@app.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Get metrics",
    description="Retrieve aggregated dispatch, cache, and cost metrics.",
)
async def get_metrics():
    """
    Return aggregated metrics for monitoring and cost analysis.

    Includes:
    - Request counts by candidate and complexity tier
    - Exact and semantic cache hits
    - Estimated cost and latency statistics
    """
    dispatcher = await get_dispatcher()
    reporter = MetricsReporter()
    return reporter.generate_report(dispatcher.cache.stats())


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


@app.exception_handler(ValidationError)
async def dispatch_validation_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    return _error(400, ErrorCodes.VALIDATION_ERROR, str(exc))


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(
    request: Request, exc: ConfigurationError
) -> JSONResponse:
    return _error(400, ErrorCodes.CONFIGURATION_ERROR, str(exc))


@app.exception_handler(AllCandidatesFailedError)
async def all_candidates_failed_handler(
    request: Request, exc: AllCandidatesFailedError
) -> JSONResponse:
    """
    Every candidate failed (or none was eligible).

    Reported as a bad gateway: the request was valid but no upstream
    backend produced a response.
    """
    return _error(502, ErrorCodes.ALL_CANDIDATES_FAILED, str(exc))


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


@app.exception_handler(HTTPException)
async def http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTP exceptions with consistent format.
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
    return _error(500, ErrorCodes.INTERNAL_ERROR, "An unexpected error occurred")


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "llm_router.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
