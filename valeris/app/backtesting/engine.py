"""
Rule-based backtests over daily bars.
Long only: enter when every entry rule holds, exit on stop loss, take profit
or an exit rule, and close whatever is still open on the last bar.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import numpy as np

from shared.schemas import TradeRecord, TradeStatus, TradeType
from valeris.app.analytics.metrics import average_loss, average_win, payoff_ratio, win_rate
from valeris.app.common.supabase_client import get_client
from valeris.app.market.quotes import YahooFinanceClient

logger = logging.getLogger(__name__)

ENTRY_RULES = ("price_above_sma", "rsi_oversold", "volume_spike")
EXIT_RULES = ("price_below_sma", "time_exit")

SMA_WINDOW = 20
VOLUME_WINDOW = 10
VOLUME_SPIKE_MULTIPLE = 1.5
RSI_PERIOD = 14
RSI_OVERSOLD = 30.0
TIME_EXIT_BARS = 10
MIN_HISTORY = 2
TRADING_DAYS = 252


@dataclass
class StrategyConfig:
    """Entry/exit rules plus optional stop and target, both in percent."""
    name: str
    entry_rules: List[str] = field(default_factory=list)
    exit_rules: List[str] = field(default_factory=list)
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    position_size: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyConfig":
        name = data.get("name")
        if not name:
            raise ValueError("Strategy name is required")

        entry_rules = list(data.get("entryRules") or [])
        exit_rules = list(data.get("exitRules") or [])
        unknown = [r for r in entry_rules if r not in ENTRY_RULES]
        unknown += [r for r in exit_rules if r not in EXIT_RULES]
        if unknown:
            raise ValueError(f"Unknown strategy rules: {', '.join(unknown)}")

        size = data.get("positionSize")
        position_size = 1.0 if size is None else float(size)
        if position_size <= 0:
            raise ValueError("Position size must be positive")

        return cls(
            name=name,
            entry_rules=entry_rules,
            exit_rules=exit_rules,
            stop_loss=data.get("stopLoss"),
            take_profit=data.get("takeProfit"),
            position_size=position_size,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "entryRules": self.entry_rules,
            "exitRules": self.exit_rules,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "positionSize": self.position_size,
        }


@dataclass
class BacktestTrade:
    entry_date: str
    exit_date: str
    entry_price: float
    exit_price: float
    pnl: float
    pnl_percent: float
    exit_reason: str
    direction: str = "long"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryDate": self.entry_date,
            "exitDate": self.exit_date,
            "entryPrice": self.entry_price,
            "exitPrice": self.exit_price,
            "pnl": round(self.pnl, 2),
            "pnlPercent": round(self.pnl_percent, 4),
            "direction": self.direction,
            "exitReason": self.exit_reason,
        }


# =======================
# Indicators
# =======================

def sma(closes: List[float]) -> float:
    return float(np.mean(closes)) if closes else 0.0


def rsi(closes: List[float], period: int = RSI_PERIOD) -> Optional[float]:
    """Simple-average RSI over the last `period` changes; None without enough data."""
    if len(closes) <= period:
        return None
    deltas = np.diff(np.asarray(closes[-(period + 1):], dtype=float))
    avg_gain = deltas[deltas > 0].sum() / period
    avg_loss = -deltas[deltas < 0].sum() / period
    if avg_loss == 0:
        return 100.0
    return float(100 - 100 / (1 + avg_gain / avg_loss))


def entry_signal(rules: List[str], candle: Dict[str, Any], history: List[Dict[str, Any]]) -> bool:
    if len(history) < MIN_HISTORY:
        return False

    closes = [b["close"] for b in history]
    for rule in rules:
        if rule == "price_above_sma" and candle["close"] <= sma(closes[-SMA_WINDOW:]):
            return False
        if rule == "rsi_oversold":
            value = rsi(closes + [candle["close"]])
            if value is None or value >= RSI_OVERSOLD:
                return False
        if rule == "volume_spike":
            avg_volume = float(np.mean([b["volume"] for b in history[-VOLUME_WINDOW:]]))
            if candle["volume"] <= avg_volume * VOLUME_SPIKE_MULTIPLE:
                return False
    return True


def exit_reason(
    strategy: StrategyConfig,
    candle: Dict[str, Any],
    entry_price: float,
    history: List[Dict[str, Any]],
    bars_held: int,
) -> Optional[str]:
    move_pct = (candle["close"] - entry_price) / entry_price * 100

    if strategy.stop_loss and move_pct <= -strategy.stop_loss:
        return "stop_loss"
    if strategy.take_profit and move_pct >= strategy.take_profit:
        return "take_profit"
    if "price_below_sma" in strategy.exit_rules and history:
        if candle["close"] < sma([b["close"] for b in history[-SMA_WINDOW:]]):
            return "price_below_sma"
    if "time_exit" in strategy.exit_rules and bars_held >= TIME_EXIT_BARS:
        return "time_exit"
    return None


# =======================
# Simulation
# =======================

def max_drawdown_pct(equity: List[float]) -> float:
    """Largest peak-to-trough fall of the equity curve, as a percent of the peak."""
    if not equity:
        return 0.0
    curve = np.asarray(equity, dtype=float)
    peak = np.maximum.accumulate(curve)
    drawdown = np.divide(peak - curve, peak, out=np.zeros_like(curve), where=peak > 0)
    return float(drawdown.max() * 100)


def sharpe_ratio(returns_pct: List[float]) -> float:
    """Annualized mean/std of per-trade returns; 0 when there is no spread."""
    if not returns_pct:
        return 0.0
    returns = np.asarray(returns_pct, dtype=float)
    std = returns.std()
    if std == 0:
        return 0.0
    return float(returns.mean() / std * np.sqrt(TRADING_DAYS))


def summarize(trades: List[BacktestTrade], initial_capital: float, equity: List[float]) -> Dict[str, Any]:
    records = [
        TradeRecord(
            symbol="",
            type=TradeType.BUY,
            quantity=1,
            entry_price=t.entry_price,
            exit_price=t.exit_price,
            status=TradeStatus.CLOSED,
            profit_loss=t.pnl,
        )
        for t in trades
    ]
    total_pnl = sum(t.pnl for t in trades)

    return {
        "totalTrades": len(trades),
        "winningTrades": sum(1 for t in trades if t.pnl > 0),
        "losingTrades": sum(1 for t in trades if t.pnl < 0),
        "winRate": round(win_rate(records), 2),
        "totalPnL": round(total_pnl, 2),
        "totalPnLPercent": round(total_pnl / initial_capital * 100, 2),
        "averageWin": round(average_win(records), 2),
        "averageLoss": round(average_loss(records), 2),
        "profitFactor": round(payoff_ratio(records), 2),
        "maxDrawdown": round(max_drawdown_pct(equity), 2),
        "sharpeRatio": round(sharpe_ratio([t.pnl_percent for t in trades]), 2),
    }


def run_backtest(
    bars: List[Dict[str, Any]], strategy: StrategyConfig, initial_capital: float
) -> Dict[str, Any]:
    """Walk the bars oldest to newest, holding at most one position."""
    if initial_capital <= 0:
        raise ValueError("Initial capital must be positive")

    trades: List[BacktestTrade] = []
    capital = initial_capital
    equity = [initial_capital]
    entry: Optional[Dict[str, Any]] = None
    entry_index = 0

    for i, candle in enumerate(bars):
        history = bars[max(0, i - SMA_WINDOW * 2):i]

        if entry is None:
            if entry_signal(strategy.entry_rules, candle, history):
                entry, entry_index = candle, i
            continue

        reason = exit_reason(strategy, candle, entry["close"], history, i - entry_index)
        if reason is None and i == len(bars) - 1:
            reason = "end_of_data"
        if reason is None:
            continue

        pnl = (candle["close"] - entry["close"]) * strategy.position_size
        trades.append(
            BacktestTrade(
                entry_date=entry["date"],
                exit_date=candle["date"],
                entry_price=entry["close"],
                exit_price=candle["close"],
                pnl=pnl,
                pnl_percent=pnl / capital * 100,
                exit_reason=reason,
            )
        )
        capital += pnl
        equity.append(capital)
        entry = None

    return {
        "trades": [t.to_dict() for t in trades],
        "summary": summarize(trades, initial_capital, equity),
        "equityCurve": [round(e, 2) for e in equity],
    }


class BacktestService:
    """Loads daily bars, runs the strategy and stores the result."""

    def __init__(self, client=None, yahoo: Optional[YahooFinanceClient] = None):
        self.client = client or get_client()
        self._yahoo = yahoo

    @property
    def yahoo(self) -> YahooFinanceClient:
        if self._yahoo is None:
            self._yahoo = YahooFinanceClient()
        return self._yahoo

    def load_bars(
        self, symbol: str, start: str, end: str, today: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        start_day, end_day = date.fromisoformat(start), date.fromisoformat(end)
        if end_day < start_day:
            raise ValueError("End date must not be before start date")

        today = today or date.today()
        days = max((today - start_day).days + 1, 1)
        bars = self.yahoo.historical(symbol, days)
        return [b for b in bars if start <= b["date"] <= end]

    def run(
        self,
        user_id: str,
        symbol: str,
        start: str,
        end: str,
        strategy: Dict[str, Any],
        initial_capital: float,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        config = StrategyConfig.from_dict(strategy)
        bars = self.load_bars(symbol, start, end, today)
        if not bars:
            raise ValueError(f"No price data for {symbol} between {start} and {end}")

        logger.info(f"Running backtest {config.name} on {symbol} ({len(bars)} bars)")
        result = run_backtest(bars, config, initial_capital)
        summary = result["summary"]

        self.client.table("backtest_results").insert(
            {
                "user_id": user_id,
                "symbol": symbol,
                "start_date": start,
                "end_date": end,
                "strategy_name": config.name,
                "strategy_config": config.to_dict(),
                "initial_capital": initial_capital,
                "result_data": result,
                "total_pnl": summary["totalPnL"],
                "win_rate": summary["winRate"],
                "total_trades": summary["totalTrades"],
            }
        ).execute()
        return result

    def history(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return (
            self.client.table("backtest_results")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        ).data or []
