"""
Funded-account readiness: does the paper account meet the prop-firm bar?
"""

from typing import Any, Dict

from shared.schemas import Profile
from valeris.app.analytics.metrics import account_growth, drawdown_pct

MIN_WIN_RATE = 50.0
MIN_TRADES = 10
MAX_DRAWDOWN_FRACTION = 0.10


def profit_factor_rating(value: float) -> str:
    if value >= 2:
        return "Excellent"
    if value >= 1.5:
        return "Good"
    if value >= 1:
        return "Fair"
    return "Poor"


def funded_criteria(
    profile: Profile, account_size: float = 100000, profit_factor: float = 0.0
) -> Dict[str, Any]:
    """Evaluate the four funded-account criteria against a profile."""
    win_rate = profile.win_rate
    drawdown = profile.starting_capital - profile.current_capital
    drawdown_limit = account_size * MAX_DRAWDOWN_FRACTION
    growth = account_growth(profile.starting_capital, profile.current_capital)

    criteria = {
        "win_rate": {
            "value": round(win_rate, 2),
            "required": MIN_WIN_RATE,
            "passed": win_rate >= MIN_WIN_RATE,
        },
        "min_trades": {
            "value": profile.total_trades,
            "required": MIN_TRADES,
            "passed": profile.total_trades >= MIN_TRADES,
        },
        "max_drawdown": {
            "value": round(drawdown, 2),
            "pct": round(drawdown_pct(profile.starting_capital, profile.current_capital), 2),
            "limit": drawdown_limit,
            "passed": drawdown <= drawdown_limit,
        },
        "account_growth": {
            "value": round(growth, 2),
            "passed": growth > 0,
        },
    }

    passed = sum(1 for c in criteria.values() if c["passed"])
    max_drawdown_pct = (
        profile.worst_trade / profile.starting_capital * 100
        if profile.starting_capital
        else 0.0
    )

    return {
        "criteria": criteria,
        "passed": passed,
        "total": len(criteria),
        "ready": passed == len(criteria),
        "account_size": account_size,
        "max_drawdown_pct": round(max_drawdown_pct, 2),
        "profit_factor": round(profit_factor, 2),
        "profit_factor_rating": profit_factor_rating(profit_factor),
    }
