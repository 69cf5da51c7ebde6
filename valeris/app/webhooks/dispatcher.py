"""
Outbound webhook fan-out. Each enabled endpoint subscribed to the event gets
the JSON payload signed with its own secret (HMAC-SHA256, hex).
"""

import hashlib
import hmac
import json
import logging
from typing import Any, Dict, List, Optional

import requests

from valeris.app.common.supabase_client import get_client

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
DELIVERY_TIMEOUT = 10


def serialize_payload(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


def sign_payload(secret: str, body: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: str, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(secret, body), signature)


def subscribed(endpoint: Dict[str, Any], event: str) -> bool:
    events = endpoint.get("events") or []
    return event in events or "all" in events


class WebhookDispatcher:
    def __init__(self, client=None, session: Optional[requests.Session] = None):
        self.client = client or get_client()
        self.session = session or requests.Session()

    def enabled_endpoints(self) -> List[Dict[str, Any]]:
        return self.client.table("webhook_endpoints").select("*").eq("enabled", True).execute().data or []

    def _deliver(self, endpoint: Dict[str, Any], body: str) -> Dict[str, Any]:
        webhook_id = endpoint.get("id")
        try:
            url, secret = endpoint.get("url"), endpoint.get("secret")
            if not url:
                raise ValueError("Webhook endpoint has no url")
            if not secret:
                raise ValueError("Webhook endpoint has no secret")
            resp = self.session.post(
                url,
                data=body,
                headers={
                    "Content-Type": "application/json",
                    SIGNATURE_HEADER: sign_payload(secret, body),
                },
                timeout=DELIVERY_TIMEOUT,
            )
            return {"webhookId": webhook_id, "success": resp.ok, "status": resp.status_code}
        except Exception as e:
            logger.warning(f"Webhook {webhook_id} delivery failed: {e}")
            return {"webhookId": webhook_id, "success": False, "error": str(e)}

    def dispatch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoints = self.enabled_endpoints()
        if not endpoints:
            return {"success": True, "message": "No webhooks configured", "delivered": 0, "failed": 0, "results": []}

        event = payload.get("event") or "all"
        body = serialize_payload(payload)
        results = [self._deliver(ep, body) for ep in endpoints if subscribed(ep, event)]

        delivered = sum(1 for r in results if r["success"])
        logger.info(f"Webhook event {event}: {delivered} delivered, {len(results) - delivered} failed")
        return {
            "success": True,
            "delivered": delivered,
            "failed": len(results) - delivered,
            "results": results,
        }
