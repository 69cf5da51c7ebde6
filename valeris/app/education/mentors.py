"""
Mentor marketplace: listing mentors and booking paid sessions.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import SessionStatus
from valeris.app.common.config import get_config
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

SESSION_TYPES = {
    "review": {"duration": 60, "label": "Trade Review (60 min)"},
    "coaching": {"duration": 90, "label": "1-on-1 Coaching (90 min)"},
    "strategy": {"duration": 120, "label": "Strategy Development (120 min)"},
}


def session_pricing(hourly_rate: float, fee_rate: float = 0.15) -> Dict[str, float]:
    service_fee = round(hourly_rate * fee_rate, 2)
    return {
        "price": hourly_rate,
        "service_fee": service_fee,
        "total_cost": round(hourly_rate + service_fee, 2),
    }


class MentorService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def mentors(self, specialty: Optional[str] = None) -> List[Dict[str, Any]]:
        profiles = (
            self.client.table("profiles")
            .select("id, full_name, email")
            .eq("is_mentor", True)
            .execute()
        ).data or []
        if not profiles:
            return []

        details = {
            row["user_id"]: row
            for row in (
                self.client.table("mentor_profiles")
                .select("*")
                .in_("user_id", [p["id"] for p in profiles])
                .execute()
            ).data
            or []
        }

        result = []
        for p in profiles:
            mentor_profile = details.get(p["id"])
            if mentor_profile is None:
                continue
            if specialty and specialty not in (mentor_profile.get("specialties") or []):
                continue
            result.append({**p, "mentor_profile": mentor_profile})
        return result

    def book_session(
        self,
        user_id: str,
        mentor_id: str,
        session_type: str,
        session_date: str,
        session_time: str = "09:00",
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        if session_type not in SESSION_TYPES:
            raise ValueError(f"Unknown session type: {session_type}")
        if mentor_id == user_id:
            raise ValueError("You cannot book a session with yourself")

        mentor_profile = first_row(
            self.client.table("mentor_profiles")
            .select("*")
            .eq("user_id", mentor_id)
            .limit(1)
            .execute()
        )
        if mentor_profile is None:
            raise NotFoundError("Mentor not found")

        starts_at = datetime.fromisoformat(f"{session_date}T{session_time}")
        if starts_at.tzinfo is None:
            starts_at = starts_at.replace(tzinfo=timezone.utc)

        pricing = session_pricing(
            float(mentor_profile.get("hourly_rate") or 0), get_config().mentor_fee_rate
        )
        row = {
            "mentor_id": mentor_id,
            "mentee_id": user_id,
            "session_date": starts_at.isoformat(),
            "duration_minutes": SESSION_TYPES[session_type]["duration"],
            "session_type": session_type,
            "status": SessionStatus.PENDING.value,
            "session_notes": notes,
            **pricing,
        }
        created = first_row(self.client.table("mentor_sessions").insert(row).execute())
        logger.info(f"Booked {session_type} session {mentor_id} <- {user_id}")
        return created or row

    def upcoming_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return (
            self.client.table("mentor_sessions")
            .select("*")
            .eq("mentee_id", user_id)
            .in_("status", [SessionStatus.PENDING.value, SessionStatus.CONFIRMED.value])
            .order("session_date")
            .execute()
        ).data or []

    def update_status(self, user_id: str, session_id: str, status: str) -> None:
        new_status = SessionStatus(status)
        session = first_row(
            self.client.table("mentor_sessions").select("*").eq("id", session_id).limit(1).execute()
        )
        if session is None or user_id not in (session.get("mentor_id"), session.get("mentee_id")):
            raise NotFoundError("Session not found")

        self.client.table("mentor_sessions").update({"status": new_status.value}).eq(
            "id", session_id
        ).execute()
