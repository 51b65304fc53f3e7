"""
Global Exception Handlers

Error taxonomy for the aggregation pipeline and the FastAPI handlers that
render it.
"""

from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class AggregatorException(Exception):
    """Base exception for aggregator errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(AggregatorException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            status_code=404
        )


class UnauthorizedError(AggregatorException):
    """Authentication/authorization failed."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, status_code=401)


class QuotaExceededError(AggregatorException):
    """API quota exceeded."""

    def __init__(self, api_name: str):
        super().__init__(
            message=f"{api_name} API quota exceeded. Try again tomorrow.",
            status_code=429
        )


class ConfigurationError(AggregatorException):
    """A subsystem is missing required configuration."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=500)


class ProviderUnavailable(AggregatorException):
    """A single upstream provider failed, timed out or returned nothing."""

    def __init__(self, provider_key: str, reason: str, empty: bool = False):
        self.provider_key = provider_key
        self.reason = reason
        self.empty = empty
        super().__init__(
            message=f"Provider {provider_key} unavailable: {reason}",
            status_code=502
        )


class AggregateUnavailable(AggregatorException):
    """Every provider selected for a race failed."""

    def __init__(self, errors: Dict[str, BaseException]):
        self.errors = errors
        providers = ", ".join(errors) or "none selected"
        super().__init__(
            message=f"All providers busy or empty ({providers})",
            status_code=503
        )


class RegistryError(AggregatorException):
    """Metadata registry answered with a body that could not be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            message=f"Registry response for {path} unusable: {reason}",
            status_code=502
        )


class IdentityConflict(AggregatorException):
    """External registry id is already held by another canonical entry."""

    def __init__(self, external_id: int, holder_id: Optional[str] = None):
        self.external_id = external_id
        self.holder_id = holder_id
        super().__init__(
            message=f"External id {external_id} already held by {holder_id}",
            status_code=409
        )


class VersionConflict(AggregatorException):
    """Entry changed between read and write."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(
            message=f"Canonical entry {entry_id} was modified concurrently",
            status_code=409
        )


class ReconciliationError(AggregatorException):
    """Write could not be applied after repeated conflicts."""

    def __init__(self, entry_id: str, attempts: int):
        self.entry_id = entry_id
        self.attempts = attempts
        super().__init__(
            message=f"Gave up writing {entry_id} after {attempts} attempts",
            status_code=500
        )


async def aggregator_exception_handler(
    request: Request,
    exc: AggregatorException
) -> JSONResponse:
    """Handle AggregatorException and return JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "message": exc.message,
            "status_code": exc.status_code,
        }
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AggregatorException, aggregator_exception_handler)
