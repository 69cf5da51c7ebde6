from typing import Any, Dict, List, Optional

from valeris.app.common.supabase_client import first_row, get_client

PERIODS = ("daily", "weekly", "monthly", "all_time")
METRICS = ("total_pnl", "win_rate", "total_trades", "profit_factor")


class LeaderboardService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def entries(
        self, period: str = "weekly", metric: str = "total_pnl", limit: int = 50
    ) -> List[Dict[str, Any]]:
        if period not in PERIODS:
            raise ValueError(f"Unknown period: {period}")
        if metric not in METRICS:
            raise ValueError(f"Unknown metric: {metric}")
        return (
            self.client.table("leaderboard_entries")
            .select("*")
            .eq("period", period)
            .eq("metric", metric)
            .order("rank")
            .limit(limit)
            .execute()
        ).data or []

    def user_rank(
        self, user_id: str, period: str = "weekly", metric: str = "total_pnl"
    ) -> Optional[Dict[str, Any]]:
        return first_row(
            self.client.table("leaderboard_entries")
            .select("*")
            .eq("user_id", user_id)
            .eq("period", period)
            .eq("metric", metric)
            .limit(1)
            .execute()
        )
