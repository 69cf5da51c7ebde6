import logging
from typing import Any, Dict, Optional

from shared.schemas import Profile, SubscriptionStatus, SubscriptionTier
from valeris.app.common.config import get_config
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)


def _missing(client, table: str, column: str, user_id: str) -> bool:
    return first_row(client.table(table).select("*").eq(column, user_id).limit(1).execute()) is None


def initialize_user(user_id: str, email: Optional[str] = None, client=None) -> Dict[str, Any]:
    """
    Create the rows a new account needs. Rows that already exist are left alone,
    so calling this twice is harmless.
    """
    if not user_id:
        raise ValueError("Missing user_id")

    client = client or get_client()
    config = get_config()
    created = []

    if _missing(client, "profiles", "id", user_id):
        profile = Profile(
            id=user_id,
            email=email or "",
            starting_capital=config.starting_capital,
            current_capital=config.starting_capital,
            subscription_tier=SubscriptionTier.FREE.value,
        )
        client.table("profiles").insert(profile.to_dict()).execute()
        created.append("profile")

    if _missing(client, "user_subscriptions", "user_id", user_id):
        client.table("user_subscriptions").insert(
            {
                "user_id": user_id,
                "tier": SubscriptionTier.FREE.value,
                "status": SubscriptionStatus.TRIAL.value,
            }
        ).execute()
        created.append("subscription")

    if _missing(client, "onboarding_status", "user_id", user_id):
        client.table("onboarding_status").insert({"user_id": user_id}).execute()
        created.append("onboarding_status")

    if _missing(client, "watchlists", "user_id", user_id):
        client.table("watchlists").insert(
            {
                "user_id": user_id,
                "name": "My Watchlist",
                "instruments": list(config.default_watchlist),
            }
        ).execute()
        created.append("watchlist")

    if created:
        logger.info(f"Initialized {', '.join(created)} for {user_id}")
    return {"success": True, "message": "User data initialized", "created": created}
