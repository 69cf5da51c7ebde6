from typing import Any, Dict, List

from valeris.app.common.supabase_client import first_row, get_client

NOTIFICATION_TYPES = ("info", "success", "warning", "error")


class NotificationService:
    """In-app notifications (the notifications table)."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def list(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Dict[str, Any]]:
        query = self.client.table("notifications").select("*").eq("user_id", user_id)
        if unread_only:
            query = query.eq("read", False)
        return query.order("created_at", desc=True).limit(limit).execute().data or []

    def create(
        self, user_id: str, title: str, message: str, type: str = "info"
    ) -> Dict[str, Any]:
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type}")
        row = {"user_id": user_id, "title": title, "message": message, "type": type, "read": False}
        return first_row(self.client.table("notifications").insert(row).execute()) or row

    def mark_read(self, user_id: str, notification_id: str) -> None:
        self.client.table("notifications").update({"read": True}).eq(
            "id", notification_id
        ).eq("user_id", user_id).execute()

    def mark_all_read(self, user_id: str) -> None:
        self.client.table("notifications").update({"read": True}).eq(
            "user_id", user_id
        ).eq("read", False).execute()

    def delete(self, user_id: str, notification_id: str) -> None:
        self.client.table("notifications").delete().eq("id", notification_id).eq(
            "user_id", user_id
        ).execute()
