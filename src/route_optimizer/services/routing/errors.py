"""Exceptions raised by the route optimization pipeline."""

from __future__ import annotations

from typing import Any


class RouteValidationError(ValueError):
    """The request cannot be optimized as submitted."""


class OptimizationCancelled(RuntimeError):
    """The caller cancelled the request before it completed."""


class ProviderError(RuntimeError):
    """An external geocoding, routing or advisor call failed."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "PROVIDER_ERROR",
        status_code: int | None = None,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        self.details = details or {}


class AdvisorFormatError(ProviderError):
    """The advisor answered with a payload that does not describe a valid sequence."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="ADVISOR_FORMAT_ERROR", details=details)
