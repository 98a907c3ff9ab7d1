from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from api.analytics import AnalyticsTracker
from api.auth import get_current_user
from api.dependencies import get_analytics
from api.models import AnalyticsSummaryResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/v1/analytics/{tenant_id}", dependencies=[Depends(get_current_user)], tags=["Analytics"])
async def get_analytics_summary(
    tenant_id: str,
    analytics: AnalyticsTracker = Depends(get_analytics),
) -> AnalyticsSummaryResponse:
    """Get one community's analytics summary.

    Returns the hourly activity heatmap, today's sentiment counts, the most
    recent unanswered questions and the top contributors.

    Example:
        ```bash
        curl http://localhost:8000/api/v1/analytics/1234567890
        ```
    """
    return AnalyticsSummaryResponse(**analytics.summary(tenant_id))
