"""
FastAPI routes for the trade journal.
Endpoints: list/open/close/edit/delete trades, CSV import/export, position sizing.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.journal.csv_io import TradeImporter, export_filename, export_trades_csv
from valeris.app.journal.risk import position_size
from valeris.app.journal.trades import TradeForm, TradeJournal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trades", tags=["journal"])


# =======================
# Request Models
# =======================

class OpenTradeRequest(BaseModel):
    symbol: str
    type: str = "buy"
    quantity: float
    entry_price: float
    notes: Optional[str] = None
    strategy: Optional[str] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None


class CloseTradeRequest(BaseModel):
    exit_price: float


class UpdateTradeRequest(BaseModel):
    notes: Optional[str] = None
    strategy: Optional[str] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None


class ImportRequest(BaseModel):
    file_name: str = "import.csv"
    content: str


class PositionSizeRequest(BaseModel):
    account_size: float
    risk_percentage: float = Field(1.0, gt=0)
    entry_price: float
    stop_loss: float
    take_profit: float


# =======================
# Routes
# =======================

@router.get("")
def list_trades(
    status: Optional[str] = Query(None),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
) -> List[Dict[str, Any]]:
    return [t.to_dict() for t in TradeJournal(client).list_trades(user.id, status)]


@router.post("", status_code=201)
def open_trade(
    body: OpenTradeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    trade = TradeJournal(client).open_trade(user.id, TradeForm(**body.model_dump()))
    return trade.to_dict()


@router.get("/export")
def export_trades(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    trades = TradeJournal(client).list_trades(user.id)
    return Response(
        content=export_trades_csv(trades),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("all")}"'},
    )


@router.post("/import")
def import_trades(
    body: ImportRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return TradeImporter(client).import_csv(user.id, body.file_name, body.content)


@router.post("/position-size")
def calculate_position_size(body: PositionSizeRequest):
    return position_size(
        body.account_size,
        body.risk_percentage,
        body.entry_price,
        body.stop_loss,
        body.take_profit,
    )


@router.get("/{trade_id}")
def get_trade(trade_id: str, user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return TradeJournal(client).get_trade(user.id, trade_id).to_dict()


@router.post("/{trade_id}/close")
def close_trade(
    trade_id: str,
    body: CloseTradeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return TradeJournal(client).close_trade(user.id, trade_id, body.exit_price).to_dict()


@router.patch("/{trade_id}")
def update_trade(
    trade_id: str,
    body: UpdateTradeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    fields = body.model_dump(exclude_unset=True)
    return TradeJournal(client).update_trade(user.id, trade_id, fields).to_dict()


@router.delete("/{trade_id}", status_code=204)
def delete_trade(trade_id: str, user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    TradeJournal(client).delete_trade(user.id, trade_id)
    return Response(status_code=204)
