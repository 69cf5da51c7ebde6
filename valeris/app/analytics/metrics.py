"""
Trade analytics: linear reductions over journal trades.
Every ratio treats a missing denominator as zero.
"""

from collections import defaultdict
from typing import Any, Dict, List, Tuple

import numpy as np

from shared.schemas import TradeRecord


def closed_trades(trades: List[TradeRecord]) -> List[TradeRecord]:
    return [t for t in trades if t.is_closed]


def _wins(trades: List[TradeRecord]) -> List[float]:
    return [t.profit_loss for t in closed_trades(trades) if t.profit_loss > 0]


def _losses(trades: List[TradeRecord]) -> List[float]:
    return [t.profit_loss for t in closed_trades(trades) if t.profit_loss < 0]


def win_rate(trades: List[TradeRecord]) -> float:
    """Percentage of closed trades with positive P/L."""
    closed = closed_trades(trades)
    if not closed:
        return 0.0
    return len(_wins(closed)) / len(closed) * 100


def profit_factor(trades: List[TradeRecord]) -> float:
    """Gross profit over gross loss. Zero when nothing was lost."""
    total_losses = abs(sum(_losses(trades)))
    if total_losses == 0:
        return 0.0
    return sum(_wins(trades)) / total_losses


def average_win(trades: List[TradeRecord]) -> float:
    wins = _wins(trades)
    return float(np.mean(wins)) if wins else 0.0


def average_loss(trades: List[TradeRecord]) -> float:
    """Mean losing trade as a positive number."""
    losses = _losses(trades)
    return abs(float(np.mean(losses))) if losses else 0.0


def payoff_ratio(trades: List[TradeRecord]) -> float:
    avg_loss = average_loss(trades)
    if avg_loss == 0:
        return 0.0
    return average_win(trades) / avg_loss


def largest_win(trades: List[TradeRecord]) -> float:
    wins = _wins(trades)
    return max(wins) if wins else 0.0


def largest_loss(trades: List[TradeRecord]) -> float:
    losses = _losses(trades)
    return min(losses) if losses else 0.0


def consecutive_streaks(trades: List[TradeRecord]) -> Tuple[int, int]:
    """
    Longest run of winners and of losers, in the order given.
    Break-even trades leave both counters untouched.
    """
    max_wins = max_losses = 0
    wins = losses = 0
    for trade in closed_trades(trades):
        if trade.profit_loss > 0:
            wins += 1
            losses = 0
            max_wins = max(max_wins, wins)
        elif trade.profit_loss < 0:
            losses += 1
            wins = 0
            max_losses = max(max_losses, losses)
    return max_wins, max_losses


def trades_by_instrument(trades: List[TradeRecord]) -> Dict[str, Dict[str, float]]:
    summary: Dict[str, Dict[str, float]] = {}
    for t in closed_trades(trades):
        entry = summary.setdefault(
            t.symbol, {"count": 0, "wins": 0, "losses": 0, "totalPnL": 0.0}
        )
        entry["count"] += 1
        if t.profit_loss > 0:
            entry["wins"] += 1
        elif t.profit_loss < 0:
            entry["losses"] += 1
        entry["totalPnL"] = round(entry["totalPnL"] + t.profit_loss, 2)
    return summary


def trades_by_day(trades: List[TradeRecord]) -> Dict[str, int]:
    counts: Dict[str, int] = defaultdict(int)
    for t in closed_trades(trades):
        if t.created_at:
            counts[t.created_at[:10]] += 1
    return dict(sorted(counts.items()))


def account_growth(starting: float, current: float) -> float:
    if starting == 0:
        return 0.0
    return (current - starting) / starting * 100


def drawdown_pct(starting: float, current: float) -> float:
    if starting == 0:
        return 0.0
    return (starting - current) / starting * 100


def equity_curve(trades: List[TradeRecord]) -> List[float]:
    pnls = [t.profit_loss for t in closed_trades(trades)]
    return np.cumsum(pnls).tolist() if pnls else []


def max_drawdown(curve: List[float]) -> float:
    """Largest peak-to-trough drop of a cumulative P/L curve, starting from flat."""
    if not curve:
        return 0.0
    equity = np.concatenate(([0.0], np.asarray(curve, dtype=float)))
    peak = np.maximum.accumulate(equity)
    return float((peak - equity).max())


def empty_analytics() -> Dict[str, Any]:
    return {
        "totalTrades": 0,
        "openTrades": 0,
        "winRate": 0,
        "profitFactor": 0,
        "totalPnL": 0,
        "averageWin": 0,
        "averageLoss": 0,
        "largestWin": 0,
        "largestLoss": 0,
        "consecutiveWins": 0,
        "consecutiveLosses": 0,
        "winningTrades": 0,
        "losingTrades": 0,
        "maxDrawdown": 0,
        "tradesByInstrument": {},
        "tradesByDay": {},
    }


def compute_trade_analytics(trades: List[TradeRecord]) -> Dict[str, Any]:
    """Full analytics summary for the dashboard."""
    if not trades:
        return empty_analytics()

    closed = closed_trades(trades)
    max_wins, max_losses = consecutive_streaks(closed)

    return {
        "totalTrades": len(closed),
        "openTrades": len(trades) - len(closed),
        "winRate": round(win_rate(closed), 2),
        "profitFactor": round(profit_factor(closed), 2),
        "totalPnL": round(sum(t.profit_loss for t in closed), 2),
        "averageWin": round(average_win(closed), 2),
        "averageLoss": round(average_loss(closed), 2),
        "largestWin": round(largest_win(closed), 2),
        "largestLoss": round(largest_loss(closed), 2),
        "consecutiveWins": max_wins,
        "consecutiveLosses": max_losses,
        "winningTrades": len(_wins(closed)),
        "losingTrades": len(_losses(closed)),
        "maxDrawdown": round(max_drawdown(equity_curve(closed)), 2),
        "tradesByInstrument": trades_by_instrument(closed),
        "tradesByDay": trades_by_day(closed),
    }
