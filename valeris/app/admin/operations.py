"""
Admin user management through the Supabase auth admin API.
"""

import logging
import secrets
import string
from typing import Any, Dict, Optional

from shared.schemas import SubscriptionTier
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

PASSWORD_CHARSET = string.ascii_letters + string.digits + "!@#$%^&*"
PERMANENT_BAN = "876000h"


def generate_password(length: int = 16) -> str:
    return "".join(secrets.choice(PASSWORD_CHARSET) for _ in range(length))


class AdminService:
    OPERATIONS = (
        "reset_password",
        "ban_user",
        "unban_user",
        "delete_user",
        "verify_email",
        "list_users",
        "update_user_metadata",
    )

    def __init__(self, client=None):
        self.client = client or get_client()

    @property
    def _auth(self):
        return self.client.auth.admin

    def execute(
        self,
        admin_id: str,
        operation: str,
        user_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if operation not in self.OPERATIONS:
            raise ValueError("Invalid operation")
        if operation != "list_users" and not user_id:
            raise ValueError("userId is required")

        data = data or {}
        logger.info(f"Admin {admin_id} running {operation} on {user_id or 'all users'}")

        if operation == "reset_password":
            self._auth.update_user_by_id(
                user_id,
                {"password": data.get("newPassword") or generate_password(), "email_confirm": True},
            )
            return {"success": True, "message": "Password reset successfully"}

        if operation == "ban_user":
            self._auth.update_user_by_id(
                user_id, {"ban_duration": data.get("duration") or PERMANENT_BAN}
            )
            return {"success": True, "message": "User banned successfully"}

        if operation == "unban_user":
            self._auth.update_user_by_id(user_id, {"ban_duration": "none"})
            return {"success": True, "message": "User unbanned successfully"}

        if operation == "delete_user":
            self._auth.delete_user(user_id)
            self.client.table("profiles").delete().eq("id", user_id).execute()
            return {"success": True, "message": "User deleted successfully"}

        if operation == "verify_email":
            self._auth.update_user_by_id(user_id, {"email_confirm": True})
            return {"success": True, "message": "Email verified successfully"}

        if operation == "list_users":
            users = self._auth.list_users(
                page=data.get("page", 1), per_page=data.get("perPage", 1000)
            )
            return {"users": [_user_dict(u) for u in users or []]}

        self._auth.update_user_by_id(user_id, {"user_metadata": data.get("metadata") or {}})
        return {"success": True, "message": "User metadata updated"}

    # -----------------------
    # Role / tier management
    # -----------------------

    def set_admin(self, user_id: str, is_admin: bool, role: str = "admin") -> Dict[str, Any]:
        existing = first_row(
            self.client.table("admin_users").select("*").eq("user_id", user_id).limit(1).execute()
        )
        if is_admin and existing is None:
            self.client.table("admin_users").insert({"user_id": user_id, "role": role}).execute()
        elif not is_admin and existing is not None:
            self.client.table("admin_users").delete().eq("user_id", user_id).execute()
        return {"user_id": user_id, "is_admin": is_admin}

    def set_mentor(self, user_id: str, is_mentor: bool) -> Dict[str, Any]:
        self.client.table("profiles").update({"is_mentor": is_mentor}).eq("id", user_id).execute()
        return {"user_id": user_id, "is_mentor": is_mentor}

    def set_subscription_tier(self, user_id: str, tier: str) -> Dict[str, Any]:
        value = SubscriptionTier(tier).value
        self.client.table("profiles").update({"subscription_tier": value}).eq(
            "id", user_id
        ).execute()
        self.client.table("user_subscriptions").update({"tier": value}).eq(
            "user_id", user_id
        ).execute()
        return {"user_id": user_id, "subscription_tier": value}


def _user_dict(user) -> Dict[str, Any]:
    if isinstance(user, dict):
        return user
    if hasattr(user, "model_dump"):
        return user.model_dump(mode="json")
    return {"id": getattr(user, "id", None), "email": getattr(user, "email", None)}
