"""
Schemas module: Pydantic request/response models.

This module provides validated data models for the dispatcher and the
LLM Router API:
- RequestOptions consumed by Dispatcher.process_request()
- Request/response models for the /generate and /classify endpoints
- Error, metrics, and health check response models

Example usage:
    from llm_router.schemas import RequestOptions, FallbackStrategy

    options = RequestOptions(fallback_strategy=FallbackStrategy.COST_ASCENDING)
"""

from llm_router.schemas.dispatch import (
    # Enums
    FallbackStrategy,
    ResponseSource,
    # Request models
    RequestOptions,
    GenerateRequest,
    ClassifyRequest,
    # Response models
    UsageSchema,
    GenerateResponse,
    ClassifyResponse,
    # Error models
    ErrorCodes,
    ErrorDetail,
    ErrorResponse,
    # Metrics models
    CandidateMetrics,
    MetricsResponse,
    # Health models
    ComponentHealth,
    HealthResponse,
    # Utilities
    build_generate_response,
)

__all__ = [
    "FallbackStrategy",
    "ResponseSource",
    "RequestOptions",
    "GenerateRequest",
    "ClassifyRequest",
    "UsageSchema",
    "GenerateResponse",
    "ClassifyResponse",
    "ErrorCodes",
    "ErrorDetail",
    "ErrorResponse",
    "CandidateMetrics",
    "MetricsResponse",
    "ComponentHealth",
    "HealthResponse",
    "build_generate_response",
]
