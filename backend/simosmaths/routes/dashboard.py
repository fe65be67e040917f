from __future__ import annotations

from fastapi import APIRouter, HTTPException

from .. import schemas
from ..auth import CurrentUser
from ..services import dashboard_service

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=schemas.DashboardStatsResponse)
async def dashboard_stats(current: CurrentUser) -> schemas.DashboardStatsResponse:
    try:
        stats = await dashboard_service.get_dashboard_stats(current)
    except dashboard_service.DashboardError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.DashboardStatsResponse(
        profile=schemas.Profile(**stats["profile"]),
        children=[schemas.ChildWithStats(**child) for child in stats["children"]],
        totals=schemas.ProgressStats(**stats["totals"]),
        subscription=schemas.SubscriptionSummary(**stats["subscription"]),
    )
