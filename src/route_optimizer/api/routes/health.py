"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_routing_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.google_client import check_health as routing_health_check
    return routing_health_check


@router.get("/health/providers", status_code=status.HTTP_200_OK)
def health_providers() -> dict:
    """Report which external providers are configured and whether routing answers."""
    result = {
        "routing": {"configured": settings.routing_configured, "healthy": False},
        "advisor": {"configured": settings.advisor_configured},
    }
    if settings.routing_configured:
        try:
            result["routing"]["healthy"] = _get_routing_health_check()(settings)
        except Exception as exc:
            result["routing"]["error"] = str(exc)
    return result
