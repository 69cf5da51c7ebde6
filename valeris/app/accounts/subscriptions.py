"""
Subscription tiers and feature gating.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import SubscriptionStatus, SubscriptionTier
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

BILLING_PERIOD_DAYS = 30

TIER_FEATURES: Dict[str, List[str]] = {
    "free": ["journal_entries", "paper_trading", "basic_analytics", "community_forum"],
    "pro": [
        "journal_entries", "paper_trading", "basic_analytics", "topstep_tracker",
        "video_courses", "community_forum", "risk_calculator", "economic_calendar",
        "daily_checklist", "single_chart",
    ],
    "elite": [
        "journal_entries", "paper_trading", "advanced_analytics", "topstep_tracker",
        "video_courses", "ai_coach", "community_forum", "live_trading_room",
        "strategy_builder", "market_scanner", "backtesting", "trade_replay",
        "multi_chart", "level2_data", "stock_comparison", "heat_maps",
        "trade_templates", "broker_integration", "custom_alerts",
        "trading_challenges", "export_reports", "risk_calculator",
        "economic_calendar", "daily_checklist",
    ],
    "mentorship": [
        "journal_entries", "one_on_one_coaching", "weekly_review",
        "priority_support", "custom_strategies",
    ],
}


def is_feature_available(subscription: Optional[Dict[str, Any]], feature_key: str) -> bool:
    if not subscription:
        return False
    return feature_key in TIER_FEATURES.get(subscription.get("tier", ""), [])


class SubscriptionService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        return first_row(
            self.client.table("user_subscriptions")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )

    def _require(self, user_id: str) -> Dict[str, Any]:
        sub = self.get(user_id)
        if sub is None:
            raise NotFoundError("Subscription not found")
        return sub

    def upgrade(self, user_id: str, tier: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        new_tier = SubscriptionTier(tier)
        self._require(user_id)
        now = now or datetime.now(timezone.utc)
        updates = {
            "tier": new_tier.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "current_period_start": now.isoformat(),
            "current_period_end": (now + timedelta(days=BILLING_PERIOD_DAYS)).isoformat(),
            "updated_at": now.isoformat(),
        }
        self.client.table("user_subscriptions").update(updates).eq("user_id", user_id).execute()
        self.client.table("profiles").update({"subscription_tier": new_tier.value}).eq(
            "id", user_id
        ).execute()
        logger.info(f"Subscription for {user_id} set to {new_tier.value}")
        return self._require(user_id)

    def cancel(self, user_id: str) -> Dict[str, Any]:
        self._require(user_id)
        now = datetime.now(timezone.utc).isoformat()
        self.client.table("user_subscriptions").update(
            {
                "status": SubscriptionStatus.CANCELLED.value,
                "cancelled_at": now,
                "updated_at": now,
            }
        ).eq("user_id", user_id).execute()
        logger.info(f"Subscription cancelled for {user_id}")
        return self._require(user_id)

    def check_feature_access(self, user_id: str, feature_key: str) -> Dict[str, Any]:
        sub = self.get(user_id)
        if sub is None:
            return {"hasAccess": False}

        feature = first_row(
            self.client.table("subscription_features")
            .select("*")
            .eq("tier", sub["tier"])
            .eq("feature_key", feature_key)
            .limit(1)
            .execute()
        )
        if feature is None:
            return {"hasAccess": False}
        if feature.get("limit_value") is None:
            return {"hasAccess": True}

        usage = first_row(
            self.client.table("user_feature_usage")
            .select("*")
            .eq("user_id", user_id)
            .eq("feature_key", feature_key)
            .gt("reset_at", datetime.now(timezone.utc).isoformat())
            .limit(1)
            .execute()
        )
        current = int((usage or {}).get("usage_count") or 0)
        limit = int(feature["limit_value"])
        return {
            "hasAccess": current < limit,
            "limit": limit,
            "currentUsage": current,
            "remaining": max(0, limit - current),
        }

    def increment_usage(self, user_id: str, feature_key: str) -> bool:
        resp = self.client.rpc(
            "check_and_increment_usage",
            {"p_user_id": user_id, "p_feature_key": feature_key},
        ).execute()
        return bool(resp.data)
