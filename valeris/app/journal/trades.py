"""
Paper-trading journal.
Opening and closing trades moves capital and counters on the user's profile.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import Profile, TradeRecord, TradeStatus, TradeType
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("notes", "strategy", "stop_loss", "take_profit")


@dataclass
class TradeForm:
    symbol: str
    type: str
    quantity: float
    entry_price: float
    notes: Optional[str] = None
    strategy: Optional[str] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    def validate(self) -> None:
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Symbol is required")
        if self.quantity <= 0:
            raise ValueError("Quantity must be positive")
        if self.entry_price <= 0:
            raise ValueError("Entry price must be positive")
        if self.type not in ("buy", "sell"):
            raise ValueError("Type must be buy or sell")


def realized_pnl(trade_type: TradeType, entry: float, exit_price: float, qty: float):
    """(P/L amount, P/L percent) for closing a trade."""
    direction = 1 if trade_type == TradeType.BUY else -1
    pnl = (exit_price - entry) * qty * direction
    pct = (exit_price - entry) / entry * 100 * direction if entry else 0.0
    return pnl, pct


class TradeJournal:
    """CRUD over the trades table scoped to one user."""

    def __init__(self, client=None):
        self.client = client or get_client()

    # =======================
    # Reads
    # =======================

    def get_trade(self, user_id: str, trade_id: str) -> TradeRecord:
        row = first_row(
            self.client.table("trades")
            .select("*")
            .eq("id", trade_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if row is None:
            raise NotFoundError("Trade not found")
        return TradeRecord.from_dict(row)

    def list_trades(self, user_id: str, status: Optional[str] = None) -> List[TradeRecord]:
        query = self.client.table("trades").select("*").eq("user_id", user_id)
        if status:
            query = query.eq("status", TradeStatus(status).value)
        resp = query.order("created_at", desc=True).execute()
        return [TradeRecord.from_dict(r) for r in resp.data or []]

    def _profile(self, user_id: str) -> Profile:
        row = first_row(
            self.client.table("profiles").select("*").eq("id", user_id).limit(1).execute()
        )
        if row is None:
            raise NotFoundError("Profile not found")
        return Profile.from_dict(row)

    # =======================
    # Writes
    # =======================

    def open_trade(self, user_id: str, form: TradeForm) -> TradeRecord:
        form.validate()
        profile = self._profile(user_id)

        cost = form.quantity * form.entry_price
        trade_type = TradeType(form.type)
        if trade_type == TradeType.BUY and cost > profile.current_capital:
            raise ValueError("Insufficient capital for this trade")

        trade = TradeRecord(
            user_id=user_id,
            symbol=form.symbol.strip().upper(),
            type=trade_type,
            quantity=form.quantity,
            entry_price=form.entry_price,
            status=TradeStatus.OPEN,
            entry_date=datetime.now(timezone.utc).isoformat(),
            notes=form.notes,
            strategy=form.strategy,
            stop_loss=form.stop_loss,
            take_profit=form.take_profit,
        )
        payload = trade.to_dict()
        payload.pop("id")
        payload.pop("created_at")

        row = first_row(self.client.table("trades").insert(payload).execute())
        if row:
            trade = TradeRecord.from_dict(row)

        capital_delta = -cost if trade_type == TradeType.BUY else cost
        self.client.table("profiles").update(
            {
                "current_capital": profile.current_capital + capital_delta,
                "total_trades": profile.total_trades + 1,
            }
        ).eq("id", user_id).execute()

        logger.info(f"Opened {trade_type.value} {trade.quantity} {trade.symbol} @ {trade.entry_price}")
        return trade

    def close_trade(self, user_id: str, trade_id: str, exit_price: float) -> TradeRecord:
        if exit_price <= 0:
            raise ValueError("Exit price must be positive")

        trade = self.get_trade(user_id, trade_id)
        if trade.is_closed:
            raise ValueError("Trade is already closed")

        pnl, pct = realized_pnl(trade.type, trade.entry_price, exit_price, trade.quantity)
        now = datetime.now(timezone.utc).isoformat()

        self.client.table("trades").update(
            {
                "exit_price": exit_price,
                "exit_date": now,
                "status": TradeStatus.CLOSED.value,
                "profit_loss": pnl,
                "profit_loss_percentage": pct,
            }
        ).eq("id", trade_id).eq("user_id", user_id).execute()

        profile = self._profile(user_id)
        updates: Dict[str, Any] = {
            "current_capital": profile.current_capital + pnl,
            "best_trade": max(profile.best_trade, pnl),
            "worst_trade": min(profile.worst_trade, pnl),
        }
        if pnl > 0:
            updates["winning_trades"] = profile.winning_trades + 1
        else:
            updates["losing_trades"] = profile.losing_trades + 1
        self.client.table("profiles").update(updates).eq("id", user_id).execute()

        trade.exit_price = exit_price
        trade.exit_date = now
        trade.status = TradeStatus.CLOSED
        trade.profit_loss = pnl
        trade.profit_loss_percentage = pct

        logger.info(f"Closed {trade.symbol} for {user_id}: pnl={pnl:.2f}")
        return trade

    def update_trade(self, user_id: str, trade_id: str, fields: Dict[str, Any]) -> TradeRecord:
        updates = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        if not updates:
            raise ValueError("No editable fields supplied")

        self.get_trade(user_id, trade_id)
        self.client.table("trades").update(updates).eq("id", trade_id).eq(
            "user_id", user_id
        ).execute()
        return self.get_trade(user_id, trade_id)

    def delete_trade(self, user_id: str, trade_id: str) -> None:
        self.get_trade(user_id, trade_id)
        self.client.table("trades").delete().eq("id", trade_id).eq("user_id", user_id).execute()
        logger.info(f"Deleted trade {trade_id} for {user_id}")
