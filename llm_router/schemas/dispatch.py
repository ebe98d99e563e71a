"""
Pydantic Schemas for the Dispatch API

This module defines the per-request options consumed by the dispatcher and
the request and response models for the HTTP service:
- RequestOptions: candidate filters, fallback strategy, cache and timeout knobs
- GenerateRequest / GenerateResponse: the /generate endpoint
- Error responses, metrics, and health check schemas

All schemas follow Pydantic v2 patterns. RequestOptions accepts both
snake_case and camelCase field names (preferred_provider / preferredProvider).
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from llm_router.dispatcher.engine import DispatchResult


# =============================================================================
# ENUMERATIONS
# =============================================================================


class FallbackStrategy(str, Enum):
    """
    Candidate ordering policies.

    COST_ASCENDING: Cheapest combined per-unit cost first
    CAPABILITY_DESCENDING: Highest rating on the tier's key capability first
    SPECIFIC_MODELS: Exactly the caller's fallback_models list

    An unset strategy selects the complexity-adaptive default ranking.
    """

    COST_ASCENDING = "cost-ascending"
    CAPABILITY_DESCENDING = "capability-descending"
    SPECIFIC_MODELS = "specific-models"


class ResponseSource(str, Enum):
    """Where a dispatched response came from."""

    EXACT_CACHE = "exact_cache"
    SEMANTIC_CACHE = "semantic_cache"
    PROVIDER = "provider"


# =============================================================================
# REQUEST MODELS
# =============================================================================


class RequestOptions(BaseModel):
    """
    Per-call dispatch configuration.

    Example:
        RequestOptions(
            max_cost=0.01,
            fallback_strategy="cost-ascending",
            min_capability={"reasoning": 7},
        )
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    preferred_provider: str | None = Field(
        default=None,
        description="Restrict candidates to this provider",
    )

    preferred_model: str | None = Field(
        default=None,
        description="Restrict candidates to this model name",
    )

    min_capability: dict[str, float] | None = Field(
        default=None,
        description="Capability name to minimum rating; candidates below any are excluded",
    )

    max_cost: float | None = Field(
        default=None,
        ge=0,
        description="Upper bound on estimated cost for 1000 input + 1000 output units",
    )

    fallback_strategy: FallbackStrategy | None = Field(
        default=None,
        description="Candidate ordering policy (unset = complexity-adaptive)",
    )

    fallback_models: list[str] | None = Field(
        default=None,
        description="Ordered 'provider:model' keys for the specific-models strategy",
    )

    cache_results: bool = Field(
        default=True,
        description="Consult and populate the result cache",
    )

    timeout_ms: float | None = Field(
        default=None,
        gt=0,
        description="Per-attempt timeout override in milliseconds",
    )

    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature passed to the backend",
    )

    max_tokens: int | None = Field(
        default=None,
        gt=0,
        description="Maximum output tokens passed to the backend",
    )

    top_p: float | None = Field(
        default=None,
        gt=0.0,
        le=1.0,
        description="Nucleus sampling parameter passed to the backend",
    )

    stop: list[str] | None = Field(
        default=None,
        description="Stop sequences passed to the backend",
    )


class GenerateRequest(BaseModel):
    """
    Request body for the /generate endpoint.

    Example:
        {
            "text": "What is the capital of France?",
            "options": {"fallbackStrategy": "cost-ascending"}
        }
    """

    text: str = Field(
        ...,
        min_length=1,
        max_length=100000,
        description="The request text to dispatch",
    )

    options: RequestOptions | None = Field(
        default=None,
        description="Optional dispatch options",
    )

    @field_validator("text")
    @classmethod
    def validate_text_not_whitespace(cls, v: str) -> str:
        """Ensure text is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Text cannot be empty or whitespace only")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"text": "What is the capital of France?"},
                {
                    "text": "Write a short poem about programming.",
                    "options": {"maxCost": 0.001, "fallbackStrategy": "cost-ascending"},
                },
            ]
        }
    )


class ClassifyRequest(BaseModel):
    """Request body for the /classify endpoint."""

    text: str = Field(
        ...,
        max_length=100000,
        description="The text to classify",
    )


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class UsageSchema(BaseModel):
    """
    Token consumption reported by the backend (or estimated).
    """

    input_tokens: int = Field(
        default=0,
        ge=0,
        description="Number of input tokens processed",
    )

    output_tokens: int = Field(
        default=0,
        ge=0,
        description="Number of output tokens generated",
    )

    @computed_field
    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


class GenerateResponse(BaseModel):
    """
    Response from the /generate endpoint.

    Example:
        {
            "text": "Paris.",
            "model": "gpt-4o-mini",
            "provider": "openai",
            "source": "provider",
            "candidate": "openai:gpt-4o-mini",
            "tier": "SIMPLE",
            "attempts": 1,
            "latency_ms": 412.7,
            "usage": {"input_tokens": 14, "output_tokens": 2},
            "estimated_cost_usd": 0.0000033
        }
    """

    text: str = Field(..., description="Completion text")

    model: str = Field(..., description="Model that produced the completion")

    provider: str = Field(..., description="Provider that produced the completion")

    source: ResponseSource = Field(
        ...,
        description="Whether the response came from a cache or a provider call",
    )

    candidate: str | None = Field(
        default=None,
        description="Routing key of the candidate that answered (None for cache hits)",
    )

    tier: str | None = Field(
        default=None,
        description="Complexity tier, when classification was needed",
    )

    attempts: int = Field(
        default=0,
        ge=0,
        description="Candidates tried before success",
    )

    latency_ms: float = Field(
        ...,
        ge=0.0,
        description="End-to-end dispatch time in milliseconds",
    )

    usage: UsageSchema = Field(
        default_factory=UsageSchema,
        description="Token consumption metrics",
    )

    estimated_cost_usd: float | None = Field(
        default=None,
        ge=0.0,
        description="Approximate cost of the provider call in USD",
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific response metadata",
    )


class ClassifyResponse(BaseModel):
    """Response from the /classify endpoint."""

    tier: str = Field(..., description="Complexity tier")

    word_count: int = Field(..., ge=0, description="Whitespace-delimited word count")

    matched_rule: bool = Field(
        ...,
        description="Whether a pattern rule (rather than word count) decided the tier",
    )


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
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    ALL_CANDIDATES_FAILED = "ALL_CANDIDATES_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorDetail(BaseModel):
    """
    Detailed error information for API error responses.
    """

    code: str = Field(
        ...,
        description="Machine-readable error code for programmatic handling",
    )

    message: str = Field(
        ...,
        description="Human-readable error message",
    )

    field: str | None = Field(
        default=None,
        description="Field that caused the error (for validation errors)",
    )


class ErrorResponse(BaseModel):
    """
    Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "ALL_CANDIDATES_FAILED",
                "message": "All candidates failed for request 3f2a9c1d7e0b (3 attempted)"
            }
        }
    """

    error: ErrorDetail = Field(
        ...,
        description="Error details",
    )

    request_id: str | None = Field(
        default=None,
        description="Request ID for tracking and support",
    )


# =============================================================================
# METRICS MODELS
# =============================================================================


class CandidateMetrics(BaseModel):
    """
    Aggregated metrics for one candidate.
    """

    candidate: str = Field(
        ...,
        description="Routing key ('provider:model')",
    )

    request_count: int = Field(
        default=0,
        ge=0,
        description="Requests answered by this candidate",
    )

    total_tokens: int = Field(
        default=0,
        ge=0,
        description="Total tokens consumed (input + output)",
    )

    total_cost_usd: float = Field(
        default=0.0,
        ge=0.0,
        description="Total estimated cost in USD",
    )

    avg_latency_ms: float = Field(
        default=0.0,
        ge=0.0,
        description="Average dispatch latency in milliseconds",
    )


class MetricsResponse(BaseModel):
    """
    Response from the /metrics endpoint.

    Example:
        {
            "total_requests": 120,
            "failed_requests": 2,
            "exact_cache_hits": 30,
            "semantic_cache_hits": 12,
            "cache_hit_rate": 0.35,
            "requests_by_candidate": {...},
            "requests_by_tier": {"SIMPLE": 70, "MODERATE": 8},
            "total_cost_usd": 0.0042,
            "avg_latency_ms": 380.2,
            "avg_attempts": 1.1
        }
    """

    total_requests: int = Field(
        default=0,
        ge=0,
        description="Total dispatch requests processed",
    )

    failed_requests: int = Field(
        default=0,
        ge=0,
        description="Requests that ended in AllCandidatesFailed",
    )

    exact_cache_hits: int = Field(default=0, ge=0, description="Exact cache hits")

    semantic_cache_hits: int = Field(default=0, ge=0, description="Semantic cache hits")

    cache_hit_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Share of requests answered from the cache",
    )

    cache_entries: int = Field(default=0, ge=0, description="Live exact-index entries")

    requests_by_candidate: dict[str, CandidateMetrics] = Field(
        default_factory=dict,
        description="Metrics breakdown by candidate",
    )

    requests_by_tier: dict[str, int] = Field(
        default_factory=dict,
        description="Provider-answered requests per complexity tier",
    )

    total_cost_usd: float = Field(
        default=0.0,
        ge=0.0,
        description="Total estimated provider cost",
    )

    avg_latency_ms: float = Field(
        default=0.0,
        ge=0.0,
        description="Average dispatch latency in milliseconds",
    )

    avg_attempts: float = Field(
        default=0.0,
        ge=0.0,
        description="Average candidates tried per provider-answered request",
    )


# =============================================================================
# HEALTH MODELS
# =============================================================================


class ComponentHealth(BaseModel):
    """
    Health status of an individual system component.
    """

    name: str = Field(
        ...,
        description="Component name (e.g., 'dispatcher', 'cache')",
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Component health status",
    )

    message: str | None = Field(
        default=None,
        description="Additional status information or error details",
    )


class HealthResponse(BaseModel):
    """
    Response from the /health endpoint.
    """

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Overall service health status",
    )

    service: str = Field(
        default="llm-router",
        description="Service identifier",
    )

    version: str = Field(
        ...,
        description="Application version",
    )

    components: list[ComponentHealth] = Field(
        default_factory=list,
        description="Health status of individual components",
    )

    uptime_seconds: float | None = Field(
        default=None,
        ge=0.0,
        description="Time since service start in seconds",
    )


# =============================================================================
# CONVERSION UTILITIES
# =============================================================================


def build_generate_response(result: "DispatchResult") -> GenerateResponse:
    """
    Build a GenerateResponse from a dispatcher result.

    Args:
        result: DispatchResult from Dispatcher.dispatch()

    Returns:
        GenerateResponse ready for API serialization
    """
    response = result.response
    return GenerateResponse(
        text=response.text,
        model=response.model,
        provider=response.provider,
        source=result.source,
        candidate=result.candidate,
        tier=result.tier.value if result.tier is not None else None,
        attempts=result.attempts,
        latency_ms=result.latency_ms,
        usage=UsageSchema(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        ),
        estimated_cost_usd=result.estimated_cost_usd,
        metadata=dict(response.metadata),
    )
