"""
Schwab OAuth 2.0 connection flow: authorize URL, code exchange, refresh, disconnect.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from valeris.app.broker.connections import disconnect
from valeris.app.common.config import get_config
from valeris.app.common.errors import NotFoundError, UpstreamError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

SCHWAB_BASE_URL = "https://api.schwabapi.com"
SCHWAB_AUTH_URL = f"{SCHWAB_BASE_URL}/v1/oauth"


def _expiry(expires_in: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))).isoformat()


class SchwabOAuth:
    def __init__(self, client=None, session: Optional[requests.Session] = None):
        config = get_config()
        if not config.schwab_app_key or not config.schwab_app_secret:
            raise ValueError("Schwab credentials not configured")
        self.app_key = config.schwab_app_key
        self.app_secret = config.schwab_app_secret
        self.redirect_uri = config.schwab_redirect_uri
        self.client = client or get_client()
        self.session = session or requests.Session()

    def handle(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        action = body.get("action")
        if action == "authorize":
            return self.authorize()
        if action == "token":
            return self.exchange_code(user_id, body.get("code"))
        if action == "refresh":
            return self.refresh(user_id, body.get("connection_id"))
        if action == "disconnect":
            disconnect(self.client, user_id, body.get("connection_id"))
            return {"success": True, "message": "Schwab disconnected"}
        raise ValueError("Invalid action")

    def authorize(self) -> Dict[str, Any]:
        state = str(uuid.uuid4())
        params = {
            "client_id": self.app_key,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "trading",
            "state": state,
        }
        return {
            "success": True,
            "authorizationUrl": f"{SCHWAB_AUTH_URL}/authorize?{urlencode(params)}",
            "state": state,
            "message": "Redirect user to this URL to authorize Schwab access",
        }

    def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        response = self.session.post(
            f"{SCHWAB_AUTH_URL}/token",
            data=data,
            auth=(self.app_key, self.app_secret),
            timeout=15,
        )
        if not response.ok:
            raise UpstreamError(f"Token request failed: {response.text}")
        return response.json()

    def exchange_code(self, user_id: str, code: Optional[str]) -> Dict[str, Any]:
        if not code:
            raise ValueError("Missing authorization code")

        token = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )

        account_id, account_type = "default", "margin"
        accounts = self.session.get(
            f"{SCHWAB_BASE_URL}/trader/v1/accounts",
            headers={"Authorization": f"Bearer {token['access_token']}"},
            timeout=15,
        )
        if accounts.ok:
            data = accounts.json() or []
            if data:
                account_id = data[0].get("accountNumber", account_id)
                account_type = data[0].get("type", account_type)

        expires_at = _expiry(token.get("expires_in", 1800))
        connection = first_row(
            self.client.table("broker_connections")
            .insert(
                {
                    "user_id": user_id,
                    "broker_name": "schwab",
                    "status": "connected",
                    "account_id": account_id,
                    "account_type": account_type,
                    "expires_at": expires_at,
                    "metadata": {"scope": token.get("scope")},
                }
            )
            .execute()
        )
        if connection is None:
            raise RuntimeError("Failed to create connection")

        self.client.table("broker_credentials").insert(
            {
                "connection_id": connection["id"],
                "access_token_encrypted": token["access_token"],
                "refresh_token_encrypted": token.get("refresh_token"),
                "token_type": token.get("token_type"),
                "scope": token.get("scope"),
                "expires_at": expires_at,
            }
        ).execute()

        logger.info(f"Connected Schwab account {account_id} for {user_id}")
        return {
            "success": True,
            "connectionId": connection["id"],
            "accountId": account_id,
            "message": "Schwab account connected successfully",
        }

    def refresh(self, user_id: str, connection_id: Optional[str]) -> Dict[str, Any]:
        if not connection_id:
            raise ValueError("Missing connection_id")

        owned = first_row(
            self.client.table("broker_connections")
            .select("id")
            .eq("id", connection_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        credentials = first_row(
            self.client.table("broker_credentials")
            .select("*")
            .eq("connection_id", connection_id)
            .limit(1)
            .execute()
        )
        if owned is None or credentials is None:
            raise NotFoundError("Credentials not found")

        token = self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": credentials["refresh_token_encrypted"],
            }
        )
        expires_at = _expiry(token.get("expires_in", 1800))

        self.client.table("broker_credentials").update(
            {
                "access_token_encrypted": token["access_token"],
                "refresh_token_encrypted": token.get(
                    "refresh_token", credentials["refresh_token_encrypted"]
                ),
                "expires_at": expires_at,
            }
        ).eq("connection_id", connection_id).execute()

        self.client.table("broker_connections").update(
            {"expires_at": expires_at, "status": "connected"}
        ).eq("id", connection_id).execute()

        return {"success": True, "message": "Token refreshed successfully"}
