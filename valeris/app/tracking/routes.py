import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.common.errors import ValerisError
from valeris.app.tracking.events import ActivityTracker, EventTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["tracking"])


class EventRequest(BaseModel):
    event_name: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None


class ActivityRequest(BaseModel):
    action: str
    resourceType: Optional[str] = None
    resourceId: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


@router.post("")
def track_event(
    body: EventRequest,
    request: Request,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    tracker = EventTracker(
        user_id=user.id,
        session_id=body.session_id,
        user_agent=request.headers.get("user-agent"),
        insert=lambda table, row: client.table(table).insert(row).execute(),
    )
    return {"tracked": tracker.track(body.event_name, body.properties), "session_id": tracker.session_id}


@router.post("/activity")
def track_activity(
    body: ActivityRequest,
    request: Request,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    ip = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip") or ""
    try:
        return ActivityTracker(client).record(
            user.id,
            body.action,
            body.resourceType,
            body.resourceId,
            body.metadata,
            ip_address=ip,
            user_agent=request.headers.get("user-agent", ""),
        )
    except (ValerisError, ValueError):
        raise
    except Exception as e:
        logger.error(f"Activity tracking failed for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to track analytics event")
