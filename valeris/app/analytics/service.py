"""
Analytics service: loads a user's trades from Supabase and persists derived stats.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import Profile, TradeRecord
from valeris.app.analytics.metrics import (
    closed_trades,
    compute_trade_analytics,
    payoff_ratio,
)
from valeris.app.analytics.performance import (
    daily_heatmap,
    heatmap_bucket,
    performance_summary,
    streak_state,
    timeframe_days,
)
from valeris.app.common.config import get_config
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client
from valeris.app.evaluation.funded import funded_criteria

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Per-user analytics backed by the trades table."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def fetch_trades(self, user_id: str) -> List[TradeRecord]:
        resp = (
            self.client.table("trades")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at")
            .execute()
        )
        return [TradeRecord.from_dict(r) for r in resp.data or []]

    def fetch_profile(self, user_id: str) -> Profile:
        row = first_row(
            self.client.table("profiles").select("*").eq("id", user_id).limit(1).execute()
        )
        if row is None:
            raise NotFoundError("Profile not found")
        return Profile.from_dict(row)

    def calculate(self, user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Compute analytics and snapshot them into dashboard_stats for today."""
        trades = self.fetch_trades(user_id)
        analytics = compute_trade_analytics(trades)

        today = today or date.today()
        self.client.table("dashboard_stats").upsert(
            {
                "user_id": user_id,
                "date": today.isoformat(),
                "total_trades": analytics["totalTrades"],
                "winning_trades": analytics["winningTrades"],
                "losing_trades": analytics["losingTrades"],
                "total_pnl": analytics["totalPnL"],
                "win_rate": analytics["winRate"],
                "best_trade": analytics["largestWin"],
                "worst_trade": analytics["largestLoss"],
            },
            on_conflict="user_id,date",
        ).execute()

        logger.info(f"Calculated analytics for {user_id}: {analytics['totalTrades']} trades")
        return {"success": True, "analytics": analytics}

    def performance(
        self, user_id: str, timeframe: str = "month", today: Optional[date] = None
    ) -> Dict[str, Any]:
        days = timeframe_days(timeframe)
        today = today or date.today()
        since = today - timedelta(days=days - 1)

        resp = (
            self.client.table("trades")
            .select("*")
            .eq("user_id", user_id)
            .eq("status", "closed")
            .gte("exit_date", since.isoformat())
            .order("exit_date")
            .execute()
        )
        trades = [TradeRecord.from_dict(r) for r in resp.data or []]
        cells = daily_heatmap(trades, days, today)

        return {
            "timeframe": timeframe,
            "days": [{**c.to_dict(), **heatmap_bucket(c.pnl)} for c in cells],
            "summary": performance_summary(cells),
        }

    def update_streaks(self, user_id: str) -> Dict[str, Any]:
        resp = (
            self.client.table("trades")
            .select("*")
            .eq("user_id", user_id)
            .eq("status", "closed")
            .order("exit_date", desc=True)
            .limit(100)
            .execute()
        )
        trades = [TradeRecord.from_dict(r) for r in resp.data or []]

        previous = first_row(
            self.client.table("streak_tracking")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )

        state = streak_state(trades, previous)
        self.client.table("streak_tracking").upsert(
            {
                "user_id": user_id,
                **state,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="user_id",
        ).execute()
        return state

    def funded_readiness(self, user_id: str) -> Dict[str, Any]:
        profile = self.fetch_profile(user_id)
        trades = closed_trades(self.fetch_trades(user_id))
        return funded_criteria(
            profile,
            account_size=get_config().funded_account_size,
            profit_factor=payoff_ratio(trades),
        )

    def subscription_value(self, user_id: str) -> Dict[str, Any]:
        """Revenue view of the user's plan."""
        sub = first_row(
            self.client.table("user_subscriptions")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        ) or {}

        tier = sub.get("tier", "free")
        plan_value = get_config().plan_prices.get(tier, 0.0)
        monthly = plan_value if sub.get("status") == "active" else 0.0

        return {
            "tier": tier,
            "status": sub.get("status"),
            "plan_value": plan_value,
            "current_revenue": monthly,
            "projected_yearly_revenue": monthly * 12,
            "next_billing_date": sub.get("current_period_end"),
        }
