import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

import pandas as pd

from valeris.app.common.supabase_client import get_client

logger = logging.getLogger(__name__)

STAT_COLUMNS = [
    "total_users",
    "active_users",
    "new_users",
    "total_events",
    "trades_logged",
    "paper_trades",
    "revenue",
]
TOTAL_COLUMNS = ["new_users", "total_events", "trades_logged", "paper_trades"]


def empty_day(day: date) -> Dict[str, Any]:
    return {"date": day.isoformat(), **{c: 0 for c in STAT_COLUMNS}}


def summarize_daily_stats(rows, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Roll up analytics_daily_stats rows: totals over the window, average
    active users and today's row (zeros when missing).
    """
    today = today or date.today()
    if not rows:
        return {
            "today": empty_day(today),
            "totals": {c: 0 for c in TOTAL_COLUMNS},
            "total_revenue": 0.0,
            "avg_active_users": 0,
            "activation_rate": 0.0,
            "days": [],
        }

    df = pd.DataFrame(rows)
    for col in STAT_COLUMNS:
        if col not in df:
            df[col] = 0
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
    df["date"] = pd.to_datetime(df["date"]).dt.date
    df = df.sort_values("date", ascending=False)

    today_rows = df[df["date"] == today]
    if today_rows.empty:
        today_stats = empty_day(today)
    else:
        rec = today_rows.iloc[0]
        today_stats = {"date": today.isoformat(), **{c: float(rec[c]) for c in STAT_COLUMNS}}

    activation = 0.0
    if today_stats["total_users"] > 0:
        activation = round(today_stats["active_users"] / today_stats["total_users"] * 100, 1)

    return {
        "today": today_stats,
        "totals": {c: int(df[c].sum()) for c in TOTAL_COLUMNS},
        "total_revenue": round(float(df["revenue"].sum()), 2),
        "avg_active_users": int(round(df["active_users"].mean())),
        "activation_rate": activation,
        "days": [
            {"date": r["date"].isoformat(), **{c: float(r[c]) for c in STAT_COLUMNS}}
            for _, r in df.iterrows()
        ],
    }


class InternalAnalytics:
    def __init__(self, client=None):
        self.client = client or get_client()

    def summary(self, days: int = 7, today: Optional[date] = None) -> Dict[str, Any]:
        if days <= 0:
            raise ValueError("days must be positive")
        today = today or date.today()
        start = today - timedelta(days=days)

        rows = (
            self.client.table("analytics_daily_stats")
            .select("*")
            .gte("date", start.isoformat())
            .order("date", desc=True)
            .execute()
        ).data or []
        popular = self.client.rpc("get_popular_events", {"days_back": days}).execute().data or []

        result = summarize_daily_stats(rows, today)
        result["popular_events"] = popular
        result["days_back"] = days
        return result

    def recalculate(self) -> Dict[str, Any]:
        self.client.rpc("calculate_daily_analytics").execute()
        logger.info("Daily analytics recalculated")
        return {"success": True}
