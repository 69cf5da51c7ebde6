import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from valeris.app.api.auth import AuthUser, current_user, enforce_rate_limit, get_supabase
from valeris.app.webhooks.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.post("/dispatch")
def dispatch_event(
    payload: Dict[str, Any] = Body(...),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    try:
        return WebhookDispatcher(client).dispatch(payload)
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing failed")
