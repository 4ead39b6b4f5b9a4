"""
Custom exception classes for the ideaslot research backend.

Scheduler and collector errors are converted into structured
``{success: False, error}`` results at the batch boundary.  Only
validation, auth, not-found and store errors are meant to reach the
HTTP layer as error responses.

Hierarchy:
    Exception
    +-- IdeaSlotError (base for domain errors)
    |   +-- ProviderAPIError
    |   +-- RateLimitExceededError
    |   +-- UsageCapExceededError
    |   +-- SourceUnavailableError
    |   +-- NotFoundError
    +-- ValidationError (ValueError)
    +-- DatabaseError
    +-- ConfigurationError
    +-- AuthenticationError
    +-- RetryExhaustedError
"""

from typing import Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class IdeaSlotError(Exception):
    """Base exception for all domain errors."""

    pass


# =============================================================================
# CORE EXCEPTIONS
# =============================================================================


class ValidationError(ValueError):
    """Raised when caller input fails validation."""

    pass


class DatabaseError(Exception):
    """Raised when idea store operations fail."""

    pass


class ConfigurationError(Exception):
    """Raised when system configuration is invalid."""

    pass


class AuthenticationError(Exception):
    """Raised when the maintenance bearer-token check fails."""

    pass


class RetryExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        operation: Name of the operation that was retried.
        attempts: Total number of attempts made.
        last_error: The last exception raised before giving up.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


# =============================================================================
# PROVIDER / SCHEDULER EXCEPTIONS
# =============================================================================


class ProviderAPIError(IdeaSlotError):
    """Raised when Reddit or Twitter answers with a non-2xx response.

    Attributes:
        provider: ``"reddit"`` or ``"twitter"``.
        status_code: HTTP status of the response (``None`` if unknown).
        title: Provider error title (e.g. ``"UsageCapExceeded"``).
        detail: Provider error detail text.
        retry_after: Seconds until the provider's rate-limit window resets,
            when the response carried a reset header.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        title: Optional[str] = None,
        detail: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        self.provider = provider
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.retry_after = retry_after
        super().__init__(message)


class RateLimitExceededError(IdeaSlotError):
    """Raised when a rate-limited request exhausts its retry budget."""

    def __init__(self, label: str, retries: int, last_error: Optional[Exception] = None):
        self.label = label
        self.retries = retries
        self.last_error = last_error
        super().__init__(f"Rate limit exceeded after {retries} retries")


class UsageCapExceededError(IdeaSlotError):
    """Raised when a provider reports the account usage cap is exhausted."""

    pass


class SourceUnavailableError(IdeaSlotError):
    """Raised when a disabled or unconfigured source is asked to do work.

    Attributes:
        source: Name of the unavailable source.
        reason: Why the source is disabled.
    """

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source} is unavailable: {reason}")


class NotFoundError(IdeaSlotError):
    """Raised when requested idea records do not exist."""

    pass


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # Base
    "IdeaSlotError",
    # Core
    "ValidationError",
    "DatabaseError",
    "ConfigurationError",
    "AuthenticationError",
    "RetryExhaustedError",
    # Provider / scheduler
    "ProviderAPIError",
    "RateLimitExceededError",
    "UsageCapExceededError",
    "SourceUnavailableError",
    "NotFoundError",
]
