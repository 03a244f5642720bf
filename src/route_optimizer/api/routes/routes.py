"""Routing endpoints."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...schemas.routing import RoutingRequest, RoutingResponse
from ...services.outputs.routing_formatter import routing_result_to_csv
from ...services.routing.service import RouteOptimizer, optimize_routes, to_response

router = APIRouter(prefix="/routes", tags=["routes"])


def get_optimizer() -> RouteOptimizer:
    return RouteOptimizer()


@router.post("/optimize", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def optimize(
    payload: RoutingRequest,
    format: Literal["json", "csv"] = Query("json", description="Response format"),
    optimizer: RouteOptimizer = Depends(get_optimizer),
):
    try:
        result = optimize_routes(payload, optimizer)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error optimizing route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize route: {str(exc)}"
        ) from exc

    if format == "csv":
        return Response(
            content=routing_result_to_csv(result),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="route_manifest.csv"'},
        )
    return to_response(result)
