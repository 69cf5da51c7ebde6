"""
FastAPI routes for broker integrations.
Endpoints: /brokers/connections, /brokers/proxy, /brokers/schwab-oauth, /brokers/etrade-oauth
Every failure inside a broker action is reported as a 400 with the error message.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.broker.connections import list_connections
from valeris.app.broker.etrade_oauth import ETradeOAuth
from valeris.app.broker.proxy import BrokerProxy
from valeris.app.broker.schwab_oauth import SchwabOAuth
from valeris.app.common.errors import ValerisError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/brokers", tags=["brokers"])


class ProxyRequest(BaseModel):
    connection_id: Optional[str] = None
    action: str
    order_data: Optional[Dict[str, Any]] = None
    order_id: Optional[str] = None


class OAuthRequest(BaseModel):
    action: str
    code: Optional[str] = None
    connection_id: Optional[str] = None
    oauth_token: Optional[str] = None
    oauth_verifier: Optional[str] = None


def _run(label: str, fn):
    try:
        return fn()
    except (ValerisError, ValueError) as e:
        logger.error(f"{label} failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/connections")
def connections(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return list_connections(client, user.id)


@router.post("/proxy")
def broker_proxy(
    body: ProxyRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return _run(
        "broker-api-proxy",
        lambda: BrokerProxy(client).handle(user.id, body.model_dump()),
    )


@router.post("/schwab-oauth")
def schwab_oauth(
    body: OAuthRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return _run(
        "schwab-oauth",
        lambda: SchwabOAuth(client).handle(user.id, body.model_dump()),
    )


@router.post("/etrade-oauth")
def etrade_oauth(
    body: OAuthRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return _run(
        "etrade-oauth",
        lambda: ETradeOAuth(client).handle(user.id, body.model_dump()),
    )
