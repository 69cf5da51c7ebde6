"""
Achievement unlocking.
Rules are keyed by achievement name; the achievements table holds ids and points.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from valeris.app.accounts.notifications import NotificationService
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)


@dataclass
class AchievementStats:
    total_trades: int = 0
    profitable_trades: int = 0
    journal_entries: int = 0
    total_profits: float = 0.0


ACHIEVEMENT_RULES: Dict[str, Callable[[AchievementStats], bool]] = {
    "First Trade": lambda s: s.total_trades >= 1,
    "Getting Started": lambda s: s.total_trades >= 10,
    "Active Trader": lambda s: s.total_trades >= 50,
    "Veteran Trader": lambda s: s.total_trades >= 100,
    "Master Trader": lambda s: s.total_trades >= 500,
    "First Winner": lambda s: s.profitable_trades >= 1,
    "Journal Keeper": lambda s: s.journal_entries >= 10,
    "Reflection Master": lambda s: s.journal_entries >= 50,
    "Small Gains": lambda s: s.total_profits >= 5000,
    "Building Wealth": lambda s: s.total_profits >= 10000,
    "Profit Pro": lambda s: s.total_profits >= 25000,
    "High Roller": lambda s: s.total_profits >= 50000,
}


def compute_stats(trades: List[Dict[str, Any]], journal_count: int) -> AchievementStats:
    closed = [t for t in trades if t.get("status") == "closed"]
    winners = [float(t.get("profit_loss") or 0) for t in closed if float(t.get("profit_loss") or 0) > 0]
    return AchievementStats(
        total_trades=len(trades),
        profitable_trades=len(winners),
        journal_entries=journal_count,
        total_profits=sum(winners),
    )


def is_earned(name: str, stats: AchievementStats) -> bool:
    rule = ACHIEVEMENT_RULES.get(name)
    return bool(rule and rule(stats))


class AchievementService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def check(self, user_id: str) -> Dict[str, Any]:
        if not user_id:
            raise ValueError("User ID is required")

        profile = first_row(
            self.client.table("profiles").select("id").eq("id", user_id).limit(1).execute()
        )
        if profile is None:
            raise NotFoundError("Profile not found")

        trades = self.client.table("trades").select("*").eq("user_id", user_id).execute().data or []
        journal = (
            self.client.table("trade_journal_entries").select("id").eq("user_id", user_id).execute()
        ).data or []
        earned_ids = {
            row["achievement_id"]
            for row in (
                self.client.table("user_achievements")
                .select("achievement_id")
                .eq("user_id", user_id)
                .execute()
            ).data
            or []
        }
        catalog = self.client.table("achievements").select("*").execute().data or []

        stats = compute_stats(trades, len(journal))
        notifications = NotificationService(self.client)
        unlocked = []

        for achievement in catalog:
            if achievement["id"] in earned_ids or not is_earned(achievement["name"], stats):
                continue
            try:
                self.client.table("user_achievements").insert(
                    {
                        "user_id": user_id,
                        "achievement_id": achievement["id"],
                        "earned_at": datetime.now(timezone.utc).isoformat(),
                    }
                ).execute()
            except Exception as e:
                logger.error(f"Failed to award {achievement['name']} to {user_id}: {e}")
                continue

            unlocked.append(achievement)
            notifications.create(
                user_id,
                "Achievement Unlocked!",
                f'You\'ve earned the "{achievement["name"]}" achievement! '
                f'(+{achievement.get("points", 0)} points)',
                "success",
            )

        return {"success": True, "newAchievements": unlocked, "totalChecked": len(catalog)}

    def earned(self, user_id: str) -> List[Dict[str, Any]]:
        return (
            self.client.table("user_achievements")
            .select("*")
            .eq("user_id", user_id)
            .order("earned_at", desc=True)
            .execute()
        ).data or []
