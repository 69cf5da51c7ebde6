import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import TicketPriority, TicketStatus
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

CATEGORIES = ("general", "technical", "billing", "account", "feature_request", "bug_report")


class SupportService:
    """Support tickets and their threaded responses."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def submit_ticket(
        self,
        user_id: str,
        subject: str,
        message: str,
        category: str = "general",
        priority: str = "medium",
    ) -> Dict[str, Any]:
        subject, message = (subject or "").strip(), (message or "").strip()
        if not subject or not message:
            raise ValueError("Subject and message are required")
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}")

        row = {
            "user_id": user_id,
            "subject": subject,
            "message": message,
            "category": category,
            "priority": TicketPriority(priority).value,
            "status": TicketStatus.OPEN.value,
        }
        created = first_row(self.client.table("support_tickets").insert(row).execute())
        logger.info(f"Support ticket opened by {user_id}: {subject}")
        return created or row

    def get_ticket(self, ticket_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        query = self.client.table("support_tickets").select("*").eq("id", ticket_id)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        ticket = first_row(query.limit(1).execute())
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    def my_tickets(self, user_id: str) -> List[Dict[str, Any]]:
        return (
            self.client.table("support_tickets")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        ).data or []

    def responses(self, ticket_id: str) -> List[Dict[str, Any]]:
        return (
            self.client.table("support_responses")
            .select("*")
            .eq("ticket_id", ticket_id)
            .order("created_at")
            .execute()
        ).data or []

    def reply(
        self, user_id: str, ticket_id: str, message: str, is_admin: bool = False
    ) -> Dict[str, Any]:
        message = (message or "").strip()
        if not message:
            raise ValueError("Message is required")

        # Users may only reply on their own tickets
        self.get_ticket(ticket_id, None if is_admin else user_id)

        row = {
            "ticket_id": ticket_id,
            "user_id": user_id,
            "message": message,
            "is_admin_response": is_admin,
        }
        created = first_row(self.client.table("support_responses").insert(row).execute())

        if is_admin:
            self.client.table("support_tickets").update(
                {"status": TicketStatus.IN_PROGRESS.value}
            ).eq("id", ticket_id).execute()
        return created or row

    def update_status(self, ticket_id: str, status: str) -> None:
        new_status = TicketStatus(status)
        updates: Dict[str, Any] = {"status": new_status.value}
        if new_status == TicketStatus.RESOLVED:
            updates["resolved_at"] = datetime.now(timezone.utc).isoformat()
        self.get_ticket(ticket_id)
        self.client.table("support_tickets").update(updates).eq("id", ticket_id).execute()

    def update_priority(self, ticket_id: str, priority: str) -> None:
        self.get_ticket(ticket_id)
        self.client.table("support_tickets").update(
            {"priority": TicketPriority(priority).value}
        ).eq("id", ticket_id).execute()

    def all_tickets(
        self, status: Optional[str] = None, search: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = self.client.table("support_tickets").select("*")
        if status and status != "all":
            query = query.eq("status", TicketStatus(status).value)
        tickets = query.order("created_at", desc=True).execute().data or []

        if search:
            needle = search.lower()
            tickets = [
                t
                for t in tickets
                if needle in (t.get("subject") or "").lower()
                or needle in (t.get("message") or "").lower()
            ]
        return tickets
