"""
FastAPI routes for administrators. Every route requires an admin_users row.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from valeris.app.admin.internal_analytics import InternalAnalytics
from valeris.app.admin.operations import AdminService
from valeris.app.api.auth import AuthUser, get_supabase, require_admin
from valeris.app.common.errors import ValerisError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class OperationRequest(BaseModel):
    operation: str
    userId: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class FlagRequest(BaseModel):
    enabled: bool


class TierRequest(BaseModel):
    tier: str


@router.post("/operations")
def run_operation(
    body: OperationRequest,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    try:
        return AdminService(client).execute(admin.id, body.operation, body.userId, body.data)
    except (ValerisError, ValueError):
        raise
    except Exception as e:
        logger.error(f"Admin operation {body.operation} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/users/{user_id}/admin")
def set_admin(
    user_id: str,
    body: FlagRequest,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    return AdminService(client).set_admin(user_id, body.enabled)


@router.post("/users/{user_id}/mentor")
def set_mentor(
    user_id: str,
    body: FlagRequest,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    return AdminService(client).set_mentor(user_id, body.enabled)


@router.post("/users/{user_id}/tier")
def set_tier(
    user_id: str,
    body: TierRequest,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    return AdminService(client).set_subscription_tier(user_id, body.tier)


@router.get("/analytics")
def internal_analytics(
    days: int = Query(7, ge=1, le=365),
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    return InternalAnalytics(client).summary(days)


@router.post("/analytics/recalculate")
def recalculate_analytics(admin: AuthUser = Depends(require_admin), client=Depends(get_supabase)):
    return InternalAnalytics(client).recalculate()
