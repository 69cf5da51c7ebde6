"""
Product analytics: named events (analytics_events) and per-user activity
with XP (user_activity_logs, feature_usage_analytics, user_experience).
"""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from valeris.app.common.supabase_client import first_row, get_client, insert_row

logger = logging.getLogger(__name__)

SESSION_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
XP_PER_LEVEL = 100

InsertFn = Callable[[str, Dict[str, Any]], None]


def new_session_id(now_ms: Optional[int] = None) -> str:
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(secrets.choice(SESSION_SUFFIX_ALPHABET) for _ in range(9))
    return f"{now_ms}-{suffix}"


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


class EventTracker:
    """
    Named-event logger for one session. Events are dropped (and logged) when
    no user is identified.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        insert: Optional[InsertFn] = None,
    ):
        self.user_id = user_id
        self.session_id = session_id or new_session_id()
        self.user_agent = user_agent
        self._insert = insert or insert_row

    def track(self, event_name: str, properties: Optional[Dict[str, Any]] = None) -> bool:
        if not self.user_id:
            logger.info(f"No user identified, skipping event: {event_name}")
            return False

        row = {
            "user_id": self.user_id,
            "event_name": event_name,
            "event_properties": properties or {},
            "session_id": self.session_id,
            "user_agent": self.user_agent,
            "ip_address": None,
        }
        try:
            self._insert("analytics_events", row)
        except Exception as e:
            logger.error(f"Analytics tracking error for {event_name}: {e}")
            return False
        return True

    # -----------------------
    # Helpers
    # -----------------------

    def page_view(self, page: str, url: Optional[str] = None, **properties) -> bool:
        return self.track("page_view", {"page": page, "url": url or page, **properties})

    def sign_up(self, method: str = "email") -> bool:
        return self.track("user_signup", {"method": method})

    def login(self, method: str = "email") -> bool:
        return self.track("user_login", {"method": method})

    def logout(self) -> bool:
        return self.track("user_logout", {})

    def feature_used(self, feature: str, **properties) -> bool:
        return self.track("feature_used", {"feature": feature, **properties})

    def trade_created(self, trade_type: str, **properties) -> bool:
        if trade_type not in ("journal", "paper"):
            raise ValueError(f"Unknown trade type: {trade_type}")
        return self.track("trade_created", {"trade_type": trade_type, **properties})

    def course_started(self, course_id: str, course_name: str) -> bool:
        return self.track("course_started", {"course_id": course_id, "course_name": course_name})

    def course_completed(self, course_id: str, course_name: str) -> bool:
        return self.track("course_completed", {"course_id": course_id, "course_name": course_name})

    def subscription_event(self, event: str, plan: str) -> bool:
        if event not in ("started", "upgraded", "downgraded", "cancelled"):
            raise ValueError(f"Unknown subscription event: {event}")
        return self.track("subscription_event", {"event": event, "plan": plan})

    def error(self, message: str, stack: Optional[str] = None, **properties) -> bool:
        return self.track(
            "error_occurred", {"error_message": message, "error_stack": stack, **properties}
        )

    def button_click(self, button: str, location: str, **properties) -> bool:
        return self.track("button_click", {"button": button, "location": location, **properties})

    def search(self, query: str, result_count: int, location: str) -> bool:
        return self.track(
            "search", {"query": query, "result_count": result_count, "location": location}
        )

    def identify(self, user_id: str) -> bool:
        self.user_id = user_id
        return self.track("user_identified", {"user_id": user_id})

    def clear_user(self) -> None:
        self.user_id = None


class ActivityTracker:
    def __init__(self, client=None):
        self.client = client or get_client()

    def record(
        self,
        user_id: str,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: str = "",
        user_agent: str = "",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        if not action:
            raise ValueError("action is required")

        now = now or datetime.now(timezone.utc)
        today = now.date().isoformat()

        self.client.table("user_activity_logs").insert(
            {
                "user_id": user_id,
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "metadata": metadata or {},
                "ip_address": ip_address,
                "user_agent": user_agent,
            }
        ).execute()

        self.client.table("feature_usage_analytics").upsert(
            {
                "user_id": user_id,
                "feature_name": action,
                "date": today,
                "usage_count": 1,
                "last_used_at": now.isoformat(),
            },
            on_conflict="user_id,feature_name,date",
        ).execute()

        experience = first_row(
            self.client.table("user_experience").select("*").eq("user_id", user_id).limit(1).execute()
        )
        if experience:
            xp = int(experience.get("total_xp") or 0) + 1
            self.client.table("user_experience").update(
                {
                    "total_xp": xp,
                    "level": level_for(xp),
                    "last_activity_date": today,
                    "updated_at": now.isoformat(),
                }
            ).eq("user_id", user_id).execute()
        else:
            xp = 1
            self.client.table("user_experience").insert(
                {
                    "user_id": user_id,
                    "total_xp": xp,
                    "level": 1,
                    "current_streak": 1,
                    "longest_streak": 1,
                    "last_activity_date": today,
                }
            ).execute()

        return {"success": True, "message": "Event tracked successfully", "total_xp": xp, "level": level_for(xp)}
