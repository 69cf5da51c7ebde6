import logging
from typing import Any, Dict, Optional

import requests
from supabase import Client, create_client

from valeris.app.common.config import get_config

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_client() -> Client:
    """
    Lazily create the shared Supabase client.
    Uses the service role key when present so server-side writes bypass RLS.
    """
    global _client
    if _client is None:
        config = get_config()
        key = config.supabase_service_role_key or config.supabase_anon_key
        if not config.supabase_url or not key:
            raise RuntimeError("Supabase environment variables not set")
        _client = create_client(config.supabase_url, key)
    return _client


def first_row(resp) -> Optional[Dict[str, Any]]:
    """Return the first row of a query response, or None."""
    rows = resp.data or []
    return rows[0] if rows else None


def _headers() -> Dict[str, str]:
    config = get_config()
    key = config.supabase_service_role_key or config.supabase_anon_key
    return {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
        "Prefer": "return=minimal",
    }


def insert_row(table: str, payload: Dict[str, Any]) -> None:
    """
    Insert a single row into a Supabase table via REST API.
    """
    url = f"{get_config().supabase_url}/rest/v1/{table}"
    response = requests.post(url, json=payload, headers=_headers(), timeout=10)

    if not response.ok:
        raise RuntimeError(
            f"Supabase insert failed [{response.status_code}]: {response.text}"
        )
