"""
Error taxonomy for the dispatch engine.

Only ValidationError, ConfigurationError and AllCandidatesFailedError ever
reach a caller of Dispatcher.process_request(). ProviderError and
AttemptTimeoutError describe a single candidate's failure and are caught and
logged inside the dispatcher's fallback loop.
"""


class RouterError(Exception):
    """Base class for all errors raised by the router."""


class ValidationError(RouterError):
    """Request text or options were rejected before any backend call."""


class ConfigurationError(RouterError):
    """The router or a request is configured inconsistently."""


class ProviderError(RouterError):
    """
    A backend call failed.

    Attributes:
        candidate: Routing key ("provider:model") of the failing backend
    """

    def __init__(self, message: str, candidate: str | None = None):
        super().__init__(message)
        self.candidate = candidate


class RateLimitError(ProviderError):
    """
    The backend explicitly signalled rate limiting.

    Attributes:
        retry_after_ms: Server-suggested delay before retrying, if provided
    """

    def __init__(
        self,
        message: str,
        candidate: str | None = None,
        retry_after_ms: float | None = None,
    ):
        super().__init__(message, candidate)
        self.retry_after_ms = retry_after_ms


class UnsupportedOperationError(ProviderError):
    """The backend does not offer the requested operation. Never retried."""


class AttemptTimeoutError(RouterError):
    """A single attempt exceeded its deadline. Never retried."""

    def __init__(self, timeout_ms: float, label: str = ""):
        target = f" for {label}" if label else ""
        super().__init__(f"Attempt{target} timed out after {timeout_ms:.0f}ms")
        self.timeout_ms = timeout_ms
        self.label = label


class AllCandidatesFailedError(RouterError):
    """
    Every ordered candidate failed, or none were eligible.

    Attributes:
        fingerprint: Cache fingerprint of the request text
        attempted: Number of candidates that were actually tried
    """

    def __init__(self, fingerprint: str, attempted: int):
        super().__init__(
            f"All candidates failed for request {fingerprint[:12]} "
            f"({attempted} attempted)"
        )
        self.fingerprint = fingerprint
        self.attempted = attempted


class DimensionMismatchError(ValueError):
    """Two vectors compared for similarity have different lengths."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vectors must be of the same length ({left} != {right})")
        self.left = left
        self.right = right
