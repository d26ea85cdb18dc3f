"""Exceptions raised by the GEO tracker."""

from typing import Optional


class GeoTrackerError(Exception):
    """Base class for all tracker errors"""


class ConfigurationError(GeoTrackerError, ValueError):
    """Raised when tracking configuration (queries, brand profile) is unusable"""


class ProviderError(GeoTrackerError):
    """A single call to an LLM provider failed.

    Args:
        provider: Name of the provider that failed
        message: Human readable failure description
        status_code: HTTP status returned by the provider, if any
    """

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class MissingCredentialsError(ProviderError):
    """The provider has no API key at call time"""


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within its timeout"""
