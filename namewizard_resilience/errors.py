"""Exceptions raised by the resilience layer."""

from typing import Any, List, Optional


class ResilienceError(Exception):
    """Base exception for namewizard-resilience."""


class ConfigurationError(ResilienceError, ValueError):
    """Raised when a policy or chain is configured incorrectly.

    Always raised before any attempt is made, so it is never confused with
    a failure of the wrapped operation.
    """


class ChainStateError(ResilienceError, RuntimeError):
    """Raised on an illegal fallback chain transition or chain reuse."""

    def __init__(self, message: str, from_status: Any = None, to_status: Any = None):
        super().__init__(message)
        self.from_status = from_status
        self.to_status = to_status


class FallbackExhaustedError(ResilienceError):
    """Raised when every candidate in a fallback chain failed."""

    def __init__(
        self,
        message: str,
        attempted: Optional[List[str]] = None,
        failures: Optional[List[Any]] = None,
        last_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.attempted = attempted or []
        self.failures = failures or []
        self.last_error = last_error
