"""
Daily performance heatmap and streak tracking.
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from shared.schemas import DayPerformance, TradeRecord

TIMEFRAME_DAYS = {"week": 7, "month": 30, "year": 365}

HEATMAP_SCALE = 1000.0


def daily_heatmap(
    trades: List[TradeRecord], days: int, today: Optional[date] = None
) -> List[DayPerformance]:
    """
    One cell per calendar day for the last `days` days, oldest first.
    Days without trades stay at zero; trades outside the window are dropped.
    """
    today = today or date.today()
    window = pd.date_range(end=pd.Timestamp(today), periods=days, freq="D").date

    rows = [
        {"day": t.exit_date[:10], "pnl": t.profit_loss}
        for t in trades
        if t.is_closed and t.exit_date
    ]

    if rows:
        df = pd.DataFrame(rows)
        df["day"] = pd.to_datetime(df["day"]).dt.date
        grouped = df.groupby("day")["pnl"].agg(["sum", "count"])
    else:
        grouped = pd.DataFrame(columns=["sum", "count"])

    cells = []
    for day in window:
        if day in grouped.index:
            cells.append(
                DayPerformance(
                    date=day,
                    pnl=float(grouped.loc[day, "sum"]),
                    trades=int(grouped.loc[day, "count"]),
                )
            )
        else:
            cells.append(DayPerformance(date=day))
    return cells


def performance_summary(cells: List[DayPerformance]) -> Dict[str, Any]:
    total_pnl = sum(c.pnl for c in cells)
    winning_days = sum(1 for c in cells if c.pnl > 0)
    losing_days = sum(1 for c in cells if c.pnl < 0)
    decided = winning_days + losing_days
    total_trades = sum(c.trades for c in cells)

    best = max(cells, key=lambda c: c.pnl) if cells else None
    worst = min(cells, key=lambda c: c.pnl) if cells else None

    # Run of winning days, oldest to newest; a flat or losing day ends it
    current_streak = max_streak = 0
    for c in cells:
        if c.pnl > 0:
            current_streak += 1
            max_streak = max(max_streak, current_streak)
        else:
            current_streak = 0

    return {
        "totalPnL": round(total_pnl, 2),
        "winningDays": winning_days,
        "losingDays": losing_days,
        "winRate": round(winning_days / decided * 100, 2) if decided else 0,
        "bestDay": best.to_dict() if best else None,
        "worstDay": worst.to_dict() if worst else None,
        "totalTrades": total_trades,
        "avgTradesPerDay": round(total_trades / len(cells), 2) if cells else 0,
        "currentStreak": current_streak,
        "maxStreak": max_streak,
    }


def heatmap_bucket(pnl: float) -> Dict[str, str]:
    """Colour class for a heatmap cell: direction plus low/medium/high intensity."""
    if pnl == 0:
        return {"direction": "flat", "intensity": "none"}
    intensity = min(abs(pnl) / HEATMAP_SCALE, 1.0)
    if intensity > 0.7:
        level = "high"
    elif intensity > 0.4:
        level = "medium"
    else:
        level = "low"
    return {"direction": "win" if pnl > 0 else "loss", "intensity": level}


def streak_state(
    trades_desc: List[TradeRecord], previous: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Current and longest streaks from closed trades, newest first.
    Anything not strictly profitable counts as a loss here.
    Stored longest streaks never shrink.
    """
    previous = previous or {}
    longest_win = longest_loss = 0
    run_win = run_loss = 0

    for t in reversed(trades_desc):
        if t.profit_loss > 0:
            run_win += 1
            run_loss = 0
        else:
            run_loss += 1
            run_win = 0
        longest_win = max(longest_win, run_win)
        longest_loss = max(longest_loss, run_loss)

    current_win = current_loss = 0
    if trades_desc:
        newest_is_win = trades_desc[0].profit_loss > 0
        for t in trades_desc:
            if (t.profit_loss > 0) != newest_is_win:
                break
            if newest_is_win:
                current_win += 1
            else:
                current_loss += 1

    return {
        "current_win_streak": current_win,
        "current_loss_streak": current_loss,
        "longest_win_streak": max(longest_win, int(previous.get("longest_win_streak") or 0)),
        "longest_loss_streak": max(
            longest_loss, int(previous.get("longest_loss_streak") or 0)
        ),
        "last_trade_result": (
            ("win" if trades_desc[0].profit_loss > 0 else "loss") if trades_desc else None
        ),
    }


def timeframe_days(timeframe: str) -> int:
    if timeframe not in TIMEFRAME_DAYS:
        raise ValueError(f"Unknown timeframe: {timeframe}")
    return TIMEFRAME_DAYS[timeframe]
