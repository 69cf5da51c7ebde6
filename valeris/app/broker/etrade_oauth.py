"""
E*TRADE connection flow.
E*TRADE speaks OAuth 1.0a; request signing is not implemented, so the token
steps return instructions instead of calling out.
"""

from typing import Any, Dict

from valeris.app.broker.connections import disconnect
from valeris.app.common.config import get_config
from valeris.app.common.supabase_client import get_client

ETRADE_SANDBOX_URL = "https://etwssandbox.etrade.com"
ETRADE_LIVE_URL = "https://api.etrade.com"


class ETradeOAuth:
    def __init__(self, client=None):
        config = get_config()
        if not config.etrade_consumer_key or not config.etrade_consumer_secret:
            raise ValueError("E*TRADE credentials not configured")
        self.sandbox = config.etrade_sandbox
        self.base_url = ETRADE_SANDBOX_URL if self.sandbox else ETRADE_LIVE_URL
        self.callback_url = f"{config.supabase_url}/functions/v1/etrade-oauth/callback"
        self.client = client or get_client()

    def handle(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        action = body.get("action")

        if action == "request_token":
            return {
                "success": True,
                "message": "E*TRADE OAuth requires OAuth 1.0a implementation",
                "authUrl": f"{self.base_url}/oauth/request_token",
                "callbackUrl": self.callback_url,
                "instructions": [
                    "1. Implement OAuth 1.0a signature generation",
                    "2. Request token from E*TRADE",
                    "3. Redirect user to authorization URL",
                    "4. Handle callback with oauth_verifier",
                    "5. Exchange for access token",
                ],
                "sandbox": self.sandbox,
            }

        if action == "access_token":
            if not body.get("oauth_token") or not body.get("oauth_verifier"):
                raise ValueError("Missing oauth_token or oauth_verifier")
            return {
                "success": True,
                "message": "Access token exchange requires OAuth 1.0a implementation",
                "nextSteps": [
                    "Implement OAuth signature",
                    "Exchange tokens",
                    "Store encrypted credentials in broker_credentials",
                    "Create broker_connections record",
                ],
            }

        if action == "disconnect":
            disconnect(self.client, user_id, body.get("connection_id"))
            return {"success": True, "message": "E*TRADE disconnected"}

        raise ValueError("Invalid action")
