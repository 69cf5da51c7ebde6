"""
Position sizing and account-level risk limits.
"""

import math
from typing import Dict

DAILY_LOSS_LIMIT_PCT = 5.0
MAX_DRAWDOWN_PCT = 10.0


def position_size(
    account_size: float,
    risk_pct: float,
    entry: float,
    stop: float,
    take_profit: float,
) -> Dict[str, float]:
    """
    Size a position so that hitting the stop loses risk_pct of the account.
    Returns zero shares when entry and stop coincide.
    """
    if account_size <= 0:
        raise ValueError("Account size must be positive")
    if risk_pct <= 0:
        raise ValueError("Risk percentage must be positive")

    risk_amount = account_size * risk_pct / 100
    risk_per_share = abs(entry - stop)
    reward_per_share = abs(take_profit - entry)

    shares = math.floor(risk_amount / risk_per_share) if risk_per_share > 0 else 0
    rr_ratio = reward_per_share / risk_per_share if risk_per_share > 0 else 0.0

    return {
        "risk_amount": round(risk_amount, 2),
        "risk_per_share": round(risk_per_share, 4),
        "position_size": shares,
        "position_value": round(shares * entry, 2),
        "potential_profit": round(shares * reward_per_share, 2),
        "potential_loss": round(shares * risk_per_share, 2),
        "risk_reward_ratio": round(rr_ratio, 2),
        "daily_loss_limit": round(account_size * DAILY_LOSS_LIMIT_PCT / 100, 2),
        "max_drawdown_limit": round(account_size * MAX_DRAWDOWN_PCT / 100, 2),
    }
