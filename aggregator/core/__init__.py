"""Core infrastructure modules."""

from .exceptions import (
    AggregatorException,
    AggregateUnavailable,
    ConfigurationError,
    IdentityConflict,
    NotFoundError,
    ProviderUnavailable,
    UnauthorizedError,
    VersionConflict,
)
from .logging import setup_logging, get_logger

__all__ = [
    "AggregatorException",
    "AggregateUnavailable",
    "ConfigurationError",
    "IdentityConflict",
    "NotFoundError",
    "ProviderUnavailable",
    "UnauthorizedError",
    "VersionConflict",
    "setup_logging",
    "get_logger",
]
