"""
CSV export and import for the trade journal.
"""

import csv
import io
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from shared.schemas import TradeRecord
from valeris.app.common.supabase_client import get_client

logger = logging.getLogger(__name__)

EXPORT_HEADERS = ["Date", "Symbol", "Type", "Quantity", "Entry", "Exit", "P/L", "P/L %", "Status"]
IMPORT_COLUMNS = ["instrument", "direction", "entry_price", "exit_price", "quantity", "pnl"]


def export_trades_csv(trades: List[TradeRecord], closed_only: bool = True) -> str:
    """One row per exported trade, closed trades only by default."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)

    for t in trades:
        if closed_only and not t.is_closed:
            continue
        writer.writerow(
            [
                (t.created_at or "")[:10],
                t.symbol,
                t.type.value,
                t.quantity,
                t.entry_price,
                t.exit_price if t.exit_price is not None else "-",
                f"{t.profit_loss:.2f}",
                f"{t.profit_loss_percentage:.2f}",
                t.status.value,
            ]
        )
    return buf.getvalue()


def export_filename(date_range: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"trades_{date_range}_{today.isoformat()}.csv"


def parse_import_csv(text: str) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Parse instrument,direction,entry,exit,quantity,pnl rows.
    Returns (rows, errors); the header line and short rows are skipped.
    """
    rows: List[Dict[str, Any]] = []
    errors: List[str] = []

    reader = csv.reader(io.StringIO(text.strip()))
    for line_no, cols in enumerate(reader, start=1):
        if line_no == 1 or len(cols) < 2:
            continue
        cols = [c.strip() for c in cols] + [""] * (len(IMPORT_COLUMNS) - len(cols))
        instrument, direction, entry, exit_, quantity, pnl = cols[:6]
        try:
            direction = (direction or "buy").lower()
            if direction not in ("buy", "sell", "long", "short"):
                raise ValueError(f"bad direction '{direction}'")
            rows.append(
                {
                    "instrument": instrument.upper(),
                    "direction": "buy" if direction in ("buy", "long") else "sell",
                    "entry_price": float(entry),
                    "exit_price": float(exit_) if exit_ else None,
                    "quantity": float(quantity) if quantity else 1.0,
                    "pnl": float(pnl) if pnl else 0.0,
                }
            )
        except ValueError as e:
            errors.append(f"Row {line_no}: {e}")
    return rows, errors


class TradeImporter:
    """Bulk-inserts parsed CSV rows into the trades table."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def import_csv(self, user_id: str, file_name: str, text: str) -> Dict[str, Any]:
        rows, errors = parse_import_csv(text)
        successful = 0
        failed = len(errors)
        now = datetime.now(timezone.utc).isoformat()

        for row in rows:
            trade = TradeRecord.from_dict({**row, "status": "closed"})
            trade.user_id = user_id
            trade.exit_date = now
            try:
                payload = trade.to_dict()
                payload.pop("id")
                payload.pop("created_at")
                self.client.table("trades").insert(payload).execute()
                successful += 1
            except Exception as e:
                failed += 1
                errors.append(f"{trade.symbol}: {e}")
                logger.error(f"Failed to import trade {trade.symbol} for {user_id}: {e}")

        total = successful + failed

        self.client.table("trade_imports").insert(
            {
                "user_id": user_id,
                "file_name": file_name,
                "total_rows": total,
                "successful_imports": successful,
                "failed_imports": failed,
                "error_log": errors,
                "status": "completed",
            }
        ).execute()

        logger.info(f"Imported {successful}/{total} trades for {user_id}")
        return {"successful": successful, "failed": failed, "total": total, "errors": errors}
