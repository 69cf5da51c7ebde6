"""
Broker API proxy.
Pulls positions, orders and balances from a connected brokerage and mirrors them into Supabase.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from shared.schemas import SyncType
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

SCHWAB_BASE_URL = "https://api.schwabapi.com"
ETRADE_NOT_IMPLEMENTED = "E*TRADE sync not fully implemented"
ORDER_NOT_IMPLEMENTED = "Order placement requires additional implementation and testing"

ACTIONS = ("sync_positions", "sync_orders", "sync_balances", "place_order", "cancel_order")


def position_row(connection_id: str, pos: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Schwab position to a broker_positions row."""
    long_qty = pos.get("longQuantity") or 0
    market_value = pos.get("marketValue") or 0
    return {
        "connection_id": connection_id,
        "symbol": (pos.get("instrument") or {}).get("symbol", "UNKNOWN"),
        "quantity": long_qty,
        "average_price": pos.get("averagePrice") or 0,
        "current_price": market_value / long_qty if long_qty else 0,
        "market_value": market_value,
        "unrealized_pnl": pos.get("currentDayProfitLoss") or 0,
        "position_type": "long" if long_qty > 0 else "short",
    }


def order_row(connection_id: str, order: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Schwab order to a broker_orders row."""
    legs = order.get("orderLegCollection") or [{}]
    leg = legs[0] if legs else {}
    return {
        "connection_id": connection_id,
        "broker_order_id": str(order.get("orderId")),
        "symbol": (leg.get("instrument") or {}).get("symbol", "UNKNOWN"),
        "order_type": order.get("orderType"),
        "side": leg.get("instruction", "BUY"),
        "quantity": order.get("quantity") or 0,
        "price": order.get("price") or 0,
        "status": order.get("status"),
        "filled_quantity": order.get("filledQuantity") or 0,
        "average_fill_price": order.get("averageFillPrice") or 0,
        "placed_at": order.get("enteredTime"),
        "filled_at": order.get("closeTime"),
    }


class BrokerProxy:
    """Dispatches broker actions for a user's connection."""

    def __init__(self, client=None, session: Optional[requests.Session] = None):
        self.client = client or get_client()
        self.session = session or requests.Session()

    def handle(self, user_id: str, request: Dict[str, Any]) -> Dict[str, Any]:
        connection_id = request.get("connection_id")
        action = request.get("action")
        if not connection_id:
            raise ValueError("Missing connection_id")
        if action not in ACTIONS:
            raise ValueError("Invalid action")

        connection = first_row(
            self.client.table("broker_connections")
            .select("*")
            .eq("id", connection_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if connection is None:
            raise NotFoundError("Connection not found")

        credentials = first_row(
            self.client.table("broker_credentials")
            .select("*")
            .eq("connection_id", connection_id)
            .limit(1)
            .execute()
        )
        if credentials is None:
            raise NotFoundError("Credentials not found")

        token = credentials.get("access_token_encrypted")

        if action == "sync_positions":
            return self._sync(connection, token, SyncType.POSITIONS, self._fetch_positions)
        if action == "sync_orders":
            return self._sync(connection, token, SyncType.ORDERS, self._fetch_orders)
        if action == "sync_balances":
            return self._sync(connection, token, SyncType.BALANCES, self._fetch_balances)
        if action == "place_order":
            if not request.get("order_data"):
                raise ValueError("Missing order_data")
        elif not request.get("order_id"):
            raise ValueError("Missing order_id")

        return {
            "success": False,
            "message": ORDER_NOT_IMPLEMENTED,
            "note": "This feature should be carefully implemented with proper risk controls",
        }

    # =======================
    # Sync
    # =======================

    def _sync(
        self,
        connection: Dict[str, Any],
        token: str,
        sync_type: SyncType,
        fetch: Callable[[Dict[str, Any], str], Tuple[Any, int]],
    ) -> Dict[str, Any]:
        connection_id = connection["id"]
        status, error = "success", None
        payload: Any = {} if sync_type is SyncType.BALANCES else []
        synced = 0

        try:
            if connection.get("broker_name") == "schwab":
                payload, synced = fetch(connection, token)
            elif connection.get("broker_name") == "etrade":
                status, error = "failed", ETRADE_NOT_IMPLEMENTED
        except Exception as e:
            logger.error(f"Broker {sync_type.value} sync failed for {connection_id}: {e}")
            status, error = "failed", str(e)

        self.client.table("broker_sync_log").insert(
            {
                "connection_id": connection_id,
                "sync_type": sync_type.value,
                "status": status,
                "records_synced": 1 if sync_type is SyncType.BALANCES else synced,
                "error_message": error,
            }
        ).execute()

        if sync_type is not SyncType.BALANCES:
            self.client.table("broker_connections").update(
                {"last_synced_at": datetime.now(timezone.utc).isoformat()}
            ).eq("id", connection_id).execute()

        key = "balance" if sync_type is SyncType.BALANCES else sync_type.value
        result = {"success": status == "success", key: payload, "error": error}
        if sync_type is not SyncType.BALANCES:
            result["synced"] = synced
        return result

    def _get(self, path: str, token: str) -> Any:
        response = self.session.get(
            f"{SCHWAB_BASE_URL}{path}",
            headers={"Authorization": f"Bearer {token}"},
            timeout=15,
        )
        if not response.ok:
            raise RuntimeError(f"Schwab API error: {response.reason}")
        return response.json()

    def _fetch_positions(self, connection: Dict[str, Any], token: str) -> Tuple[List, int]:
        data = self._get(f"/trader/v1/accounts/{connection['account_id']}/positions", token)
        positions = data.get("positions") or []
        for pos in positions:
            self.client.table("broker_positions").upsert(
                position_row(connection["id"], pos),
                on_conflict="connection_id,symbol",
            ).execute()
        return positions, len(positions)

    def _fetch_orders(self, connection: Dict[str, Any], token: str) -> Tuple[List, int]:
        orders = self._get(f"/trader/v1/accounts/{connection['account_id']}/orders", token) or []
        for order in orders:
            self.client.table("broker_orders").upsert(
                order_row(connection["id"], order),
                on_conflict="connection_id,broker_order_id",
            ).execute()
        return orders, len(orders)

    def _fetch_balances(self, connection: Dict[str, Any], token: str) -> Tuple[Dict, int]:
        data = self._get(f"/trader/v1/accounts/{connection['account_id']}", token)
        balance = (data.get("securitiesAccount") or {}).get("currentBalances") or {}
        return balance, 1
