import logging
from typing import Any, Dict, List

from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row

logger = logging.getLogger(__name__)


def list_connections(client, user_id: str) -> List[Dict[str, Any]]:
    resp = (
        client.table("broker_connections")
        .select("id, broker_name, status, account_id, account_type, last_synced_at, expires_at")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return resp.data or []


def disconnect(client, user_id: str, connection_id: str) -> None:
    """Mark a connection disconnected and drop its stored tokens."""
    if not connection_id:
        raise ValueError("Missing connection_id")

    row = first_row(
        client.table("broker_connections")
        .select("id")
        .eq("id", connection_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if row is None:
        raise NotFoundError("Connection not found")

    client.table("broker_connections").update({"status": "disconnected"}).eq(
        "id", connection_id
    ).eq("user_id", user_id).execute()
    client.table("broker_credentials").delete().eq("connection_id", connection_id).execute()
    logger.info(f"Disconnected broker connection {connection_id}")
