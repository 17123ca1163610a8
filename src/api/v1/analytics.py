"""Analytics and dashboard endpoints for the reviewing staff."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.deps import get_analytics_service
from src.middleware.actor import require_reviewer
from src.models.actor import ActorContext
from src.models.analytics import AnalyticsSnapshot, DashboardOverview
from src.services.analytics import AnalyticsService

router = APIRouter(prefix="/safety", tags=["analytics"])


@router.get("/analytics", response_model=AnalyticsSnapshot)
async def get_analytics(
    actor: ActorContext = Depends(require_reviewer),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsSnapshot:
    """Complaint statistics, high-risk zones and SOS / counseling counters."""
    return await analytics.get_analytics()


@router.get("/dashboard", response_model=DashboardOverview)
async def get_dashboard(
    actor: ActorContext = Depends(require_reviewer),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> DashboardOverview:
    return await analytics.get_dashboard()
