"""
FastAPI routes for the account: onboarding, subscription, 2FA, achievements,
notifications and the leaderboard.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from valeris.app.accounts.achievements import AchievementService
from valeris.app.accounts.leaderboard import LeaderboardService
from valeris.app.accounts.notifications import NotificationService
from valeris.app.accounts.onboarding import initialize_user
from valeris.app.accounts.subscriptions import SubscriptionService
from valeris.app.accounts.two_factor import TwoFactorService, backup_codes_text
from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.common.errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account", tags=["account"])


class UpgradeRequest(BaseModel):
    tier: str


class EnableTwoFactorRequest(BaseModel):
    secret: str
    code: str


class CodeRequest(BaseModel):
    code: str


# =======================
# Onboarding / subscription
# =======================

@router.post("/initialize")
def initialize(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return initialize_user(user.id, user.email, client)


@router.get("/subscription")
def get_subscription(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    sub = SubscriptionService(client).get(user.id)
    if sub is None:
        raise NotFoundError("Subscription not found")
    return sub


@router.post("/subscription/upgrade")
def upgrade_subscription(
    body: UpgradeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return SubscriptionService(client).upgrade(user.id, body.tier)


@router.post("/subscription/cancel")
def cancel_subscription(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return SubscriptionService(client).cancel(user.id)


@router.get("/features/{feature_key}")
def feature_access(
    feature_key: str,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return SubscriptionService(client).check_feature_access(user.id, feature_key)


@router.post("/features/{feature_key}/usage")
def record_usage(
    feature_key: str,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return {"allowed": SubscriptionService(client).increment_usage(user.id, feature_key)}


# =======================
# Two-factor
# =======================

@router.get("/2fa")
def two_factor_status(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    row = TwoFactorService(client).status(user.id)
    return {"enabled": bool(row and row.get("enabled"))}


@router.post("/2fa/setup")
def two_factor_setup(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return TwoFactorService(client).setup(user.email or user.id)


@router.post("/2fa/enable")
def two_factor_enable(
    body: EnableTwoFactorRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    codes = TwoFactorService(client).enable(user.id, body.secret, body.code)
    return {"enabled": True, "backup_codes": codes}


@router.post("/2fa/disable")
def two_factor_disable(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    TwoFactorService(client).disable(user.id)
    return {"enabled": False}


@router.post("/2fa/verify")
def two_factor_verify(
    body: CodeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return {"valid": TwoFactorService(client).verify(user.id, body.code)}


@router.get("/2fa/backup-codes.txt", response_class=PlainTextResponse)
def two_factor_backup_codes(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    row = TwoFactorService(client).status(user.id)
    if row is None or not row.get("enabled"):
        raise NotFoundError("Two-factor authentication is not enabled")
    return backup_codes_text(row.get("backup_codes") or [])


# =======================
# Achievements / notifications / leaderboard
# =======================

@router.post("/achievements/check")
def check_achievements(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return AchievementService(client).check(user.id)


@router.get("/achievements")
def list_achievements(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return AchievementService(client).earned(user.id)


@router.get("/notifications")
def list_notifications(
    unread: bool = Query(False),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return NotificationService(client).list(user.id, unread_only=unread)


@router.post("/notifications/read-all")
def read_all_notifications(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    NotificationService(client).mark_all_read(user.id)
    return {"success": True}


@router.post("/notifications/{notification_id}/read")
def read_notification(
    notification_id: str,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    NotificationService(client).mark_read(user.id, notification_id)
    return {"success": True}


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: str,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    NotificationService(client).delete(user.id, notification_id)
    return {"success": True}


@router.get("/leaderboard")
def leaderboard(
    period: str = Query("weekly"),
    metric: str = Query("total_pnl"),
    limit: int = Query(50, ge=1, le=200),
    me: Optional[bool] = Query(False),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    service = LeaderboardService(client)
    result = {"entries": service.entries(period, metric, limit)}
    if me:
        result["me"] = service.user_rank(user.id, period, metric)
    return result
