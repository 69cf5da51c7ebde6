"""
Plain-text trading reports (performance, tax, monthly, custom).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import TradeRecord
from valeris.app.common.errors import NotFoundError, UpstreamError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

REPORT_TYPES = ("trading_performance", "tax_report", "monthly_summary", "custom")


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def _inclusive_end(end: str) -> str:
    # a bare YYYY-MM-DD end date covers that whole day
    return f"{end}T23:59:59.999999+00:00" if len(end) == 10 else end


def generate_report_data(
    report_type: str,
    trades: List[TradeRecord],
    start: str,
    end: str,
) -> Dict[str, Any]:
    if report_type not in REPORT_TYPES:
        raise ValueError(f"Unknown report type: {report_type}")

    gains = [t.profit_loss for t in trades if t.profit_loss > 0]
    losses = [t.profit_loss for t in trades if t.profit_loss < 0]
    total = len(trades)
    total_pnl = sum(t.profit_loss for t in trades)

    avg_win = sum(gains) / len(gains) if gains else 0.0
    avg_loss = abs(sum(losses) / len(losses)) if losses else 0.0

    data: Dict[str, Any] = {
        "period": {"start": start, "end": end},
        "summary": {
            "totalTrades": total,
            "winningTrades": len(gains),
            "losingTrades": len(losses),
            "winRate": _fmt(len(gains) / total * 100 if total else 0.0),
            "totalPnL": _fmt(total_pnl),
            "avgWin": _fmt(avg_win),
            "avgLoss": _fmt(avg_loss),
            "profitFactor": _fmt(avg_win / avg_loss) if avg_loss > 0 else "N/A",
        },
        "trades": [
            {
                "date": t.created_at or t.entry_date,
                "symbol": t.symbol,
                "direction": t.type.value,
                "pnl": t.profit_loss,
                "notes": t.notes,
            }
            for t in trades
        ],
    }

    if report_type == "tax_report":
        data["taxInfo"] = {
            "totalGains": _fmt(sum(gains)),
            "totalLosses": _fmt(abs(sum(losses))),
            "netPnL": _fmt(total_pnl),
        }
    return data


def format_report_text(
    data: Dict[str, Any], report_type: str, generated_at: Optional[datetime] = None
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    summary = data["summary"]

    lines = [
        f"Trading Report - {report_type.replace('_', ' ').upper()}",
        f"Generated: {generated_at.isoformat()}",
        "",
        f"Period: {data['period']['start']} to {data['period']['end']}",
        "",
        "=== SUMMARY ===",
        f"Total Trades: {summary['totalTrades']}",
        f"Winning Trades: {summary['winningTrades']}",
        f"Losing Trades: {summary['losingTrades']}",
        f"Win Rate: {summary['winRate']}%",
        f"Total P&L: ${summary['totalPnL']}",
        f"Average Win: ${summary['avgWin']}",
        f"Average Loss: ${summary['avgLoss']}",
        f"Profit Factor: {summary['profitFactor']}",
        "",
    ]

    tax = data.get("taxInfo")
    if tax:
        lines += [
            "=== TAX INFORMATION ===",
            f"Total Gains: ${tax['totalGains']}",
            f"Total Losses: ${tax['totalLosses']}",
            f"Net P&L: ${tax['netPnL']}",
            "",
        ]

    lines.append("=== TRADES ===")
    for idx, trade in enumerate(data["trades"], start=1):
        lines.append(
            f"{idx}. {trade['date']} - {trade['symbol']} {trade['direction']} - P&L: ${trade['pnl']}"
        )
    return "\n".join(lines) + "\n"


class ReportService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def generate(
        self,
        user_id: str,
        report_type: str,
        start: str,
        end: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if report_type not in REPORT_TYPES:
            raise ValueError(f"Unknown report type: {report_type}")

        record = first_row(
            self.client.table("generated_reports")
            .insert(
                {
                    "user_id": user_id,
                    "report_type": report_type,
                    "parameters": {**(parameters or {}), "startDate": start, "endDate": end},
                    "status": "processing",
                }
            )
            .execute()
        )
        if record is None:
            raise UpstreamError("Failed to create report record")

        try:
            rows = (
                self.client.table("trades")
                .select("*")
                .eq("user_id", user_id)
                .gte("created_at", start)
                .lte("created_at", _inclusive_end(end))
                .execute()
            ).data or []
            trades = [TradeRecord.from_dict(r) for r in rows]

            data = generate_report_data(report_type, trades, start, end)
            text = format_report_text(data, report_type)
        except Exception as e:
            logger.error(f"Report {record['id']} failed: {e}")
            self.client.table("generated_reports").update({"status": "failed"}).eq("id", record["id"]).execute()
            raise

        self.client.table("generated_reports").update(
            {
                "status": "completed",
                "file_size": len(text.encode("utf-8")),
                "completed_at": datetime.now(timezone.utc).isoformat(),
            }
        ).eq("id", record["id"]).execute()
        logger.info(f"Generated {report_type} report {record['id']} for {user_id}")

        return {
            "success": True,
            "reportId": record["id"],
            "data": data,
            "downloadUrl": f"/reports/{record['id']}/download",
        }

    def download(self, user_id: str, report_id: str) -> str:
        """Re-render a completed report as text."""
        record = first_row(
            self.client.table("generated_reports")
            .select("*")
            .eq("id", report_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if record is None:
            raise NotFoundError("Report not found")

        params = record.get("parameters") or {}
        start, end = params.get("startDate", ""), params.get("endDate", "")
        query = self.client.table("trades").select("*").eq("user_id", user_id)
        if start:
            query = query.gte("created_at", start)
        if end:
            query = query.lte("created_at", _inclusive_end(end))
        trades = [TradeRecord.from_dict(r) for r in query.execute().data or []]
        return format_report_text(
            generate_report_data(record["report_type"], trades, start, end), record["report_type"]
        )

    def list_reports(self, user_id: str) -> List[Dict[str, Any]]:
        return (
            self.client.table("generated_reports")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        ).data or []
