"""
Shared schemas and data contracts between the journal, analytics and account services.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional


class TradeType(Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def _missing_(cls, value):
        # long/short from broker imports and older rows
        aliases = {"long": cls.BUY, "short": cls.SELL}
        return aliases.get(str(value).lower())


class TradeStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"


class SubscriptionTier(Enum):
    FREE = "free"
    PRO = "pro"
    ELITE = "elite"
    MENTORSHIP = "mentorship"


class SubscriptionStatus(Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    TRIAL = "trial"


class TicketStatus(Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ChallengeStatus(Enum):
    ACTIVE = "active"
    PASSED = "passed"
    FAILED = "failed"


class SessionStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SyncType(Enum):
    POSITIONS = "positions"
    ORDERS = "orders"
    BALANCES = "balances"


def _num(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


@dataclass
class TradeRecord:
    """A row of the trades table."""
    symbol: str
    type: TradeType
    quantity: float
    entry_price: float
    status: TradeStatus = TradeStatus.CLOSED
    exit_price: Optional[float] = None
    profit_loss: float = 0.0
    profit_loss_percentage: float = 0.0
    id: Optional[str] = None
    user_id: Optional[str] = None
    entry_date: Optional[str] = None
    exit_date: Optional[str] = None
    created_at: Optional[str] = None
    notes: Optional[str] = None
    strategy: Optional[str] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "type": self.type.value,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "entry_date": self.entry_date,
            "exit_date": self.exit_date,
            "status": self.status.value,
            "profit_loss": self.profit_loss,
            "profit_loss_percentage": self.profit_loss_percentage,
            "notes": self.notes,
            "strategy": self.strategy,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TradeRecord":
        # Older tables use instrument/direction/pnl/exit_time
        pnl = data.get("profit_loss", data.get("pnl"))
        exit_price = data.get("exit_price")
        stop_loss = data.get("stop_loss")
        take_profit = data.get("take_profit")
        return cls(
            id=data.get("id"),
            user_id=data.get("user_id"),
            symbol=data.get("symbol") or data.get("instrument") or "",
            type=TradeType((data.get("type") or data.get("direction") or "buy").lower()),
            quantity=_num(data.get("quantity")),
            entry_price=_num(data.get("entry_price")),
            exit_price=float(exit_price) if exit_price not in (None, "") else None,
            entry_date=data.get("entry_date") or data.get("entry_time"),
            exit_date=data.get("exit_date") or data.get("exit_time"),
            status=TradeStatus(data.get("status") or "closed"),
            profit_loss=_num(pnl),
            profit_loss_percentage=_num(data.get("profit_loss_percentage")),
            notes=data.get("notes"),
            strategy=data.get("strategy"),
            stop_loss=float(stop_loss) if stop_loss not in (None, "") else None,
            take_profit=float(take_profit) if take_profit not in (None, "") else None,
            created_at=data.get("created_at"),
        )


@dataclass
class Profile:
    """Trading account counters kept on the profiles row."""
    id: str
    email: Optional[str] = None
    starting_capital: float = 100000.0
    current_capital: float = 100000.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    subscription_tier: str = "free"

    @property
    def win_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.winning_trades / self.total_trades * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "starting_capital": self.starting_capital,
            "current_capital": self.current_capital,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "best_trade": self.best_trade,
            "worst_trade": self.worst_trade,
            "subscription_tier": self.subscription_tier,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            id=data["id"],
            email=data.get("email"),
            starting_capital=_num(data.get("starting_capital", 100000)),
            current_capital=_num(data.get("current_capital", 100000)),
            total_trades=int(data.get("total_trades") or 0),
            winning_trades=int(data.get("winning_trades") or 0),
            losing_trades=int(data.get("losing_trades") or 0),
            best_trade=_num(data.get("best_trade")),
            worst_trade=_num(data.get("worst_trade")),
            subscription_tier=data.get("subscription_tier") or "free",
        )


@dataclass
class DayPerformance:
    """One cell of the daily P/L heatmap."""
    date: date
    pnl: float = 0.0
    trades: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "pnl": round(self.pnl, 2), "trades": self.trades}


@dataclass
class ChallengeTemplate:
    """Prop-firm evaluation rules."""
    name: str
    account_size: float
    profit_target: float
    max_loss: float
    daily_loss_limit: float
    min_trading_days: int


@dataclass
class EvaluationChallenge:
    """A row of evaluation_challenges."""
    user_id: str
    template_name: str
    account_size: float
    profit_target: float
    max_loss: float
    daily_loss_limit: float
    min_trading_days: int
    current_balance: float
    start_date: str
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    days_traded: int = 0
    rules_broken: List[str] = field(default_factory=list)
    id: Optional[str] = None
    end_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "user_id": self.user_id,
            "template_name": self.template_name,
            "account_size": self.account_size,
            "profit_target": self.profit_target,
            "max_loss": self.max_loss,
            "daily_loss_limit": self.daily_loss_limit,
            "min_trading_days": self.min_trading_days,
            "current_balance": self.current_balance,
            "start_date": self.start_date,
            "status": self.status.value,
            "days_traded": self.days_traded,
            "rules_broken": self.rules_broken,
            "end_date": self.end_date,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationChallenge":
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            template_name=data["template_name"],
            account_size=_num(data["account_size"]),
            profit_target=_num(data["profit_target"]),
            max_loss=_num(data["max_loss"]),
            daily_loss_limit=_num(data["daily_loss_limit"]),
            min_trading_days=int(data.get("min_trading_days") or 0),
            current_balance=_num(data.get("current_balance", data["account_size"])),
            start_date=data["start_date"],
            status=ChallengeStatus(data.get("status", "active")),
            days_traded=int(data.get("days_traded") or 0),
            rules_broken=list(data.get("rules_broken") or []),
            end_date=data.get("end_date"),
        )
