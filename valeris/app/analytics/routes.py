import logging
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from valeris.app.analytics.filters import filter_by_range
from valeris.app.analytics.metrics import compute_trade_analytics
from valeris.app.analytics.service import AnalyticsService
from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.common.errors import ValerisError
from valeris.app.journal.csv_io import export_filename, export_trades_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/calculate")
def calculate_analytics(
    user: AuthUser = Depends(current_user), client=Depends(get_supabase)
) -> Dict[str, Any]:
    try:
        return AnalyticsService(client).calculate(user.id)
    except (ValerisError, ValueError):
        raise
    except Exception as e:
        logger.error(f"Failed to calculate analytics for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to calculate analytics")


@router.get("/summary")
def analytics_summary(
    date_range: str = Query("30d", alias="range"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    """Analytics over a date range without persisting a snapshot."""
    trades = AnalyticsService(client).fetch_trades(user.id)
    filtered = filter_by_range(trades, date_range, start, end)
    return {"range": date_range, "analytics": compute_trade_analytics(filtered)}


@router.get("/export")
def export_csv(
    date_range: str = Query("all", alias="range"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    trades = AnalyticsService(client).fetch_trades(user.id)
    filtered = filter_by_range(trades, date_range, start, end)
    return Response(
        content=export_trades_csv(filtered),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(date_range)}"'
        },
    )


@router.get("/performance")
def performance(
    timeframe: str = Query("month"),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return AnalyticsService(client).performance(user.id, timeframe)


@router.post("/streaks")
def update_streaks(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return AnalyticsService(client).update_streaks(user.id)


@router.get("/funded-readiness")
def funded_readiness(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return AnalyticsService(client).funded_readiness(user.id)


@router.get("/subscription-value")
def subscription_value(
    user: AuthUser = Depends(current_user), client=Depends(get_supabase)
):
    return AnalyticsService(client).subscription_value(user.id)
