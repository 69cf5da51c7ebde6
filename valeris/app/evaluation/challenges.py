"""
Mock prop-firm evaluation challenges.
Progress is derived from closed journal trades since the challenge started.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import (
    ChallengeStatus,
    ChallengeTemplate,
    EvaluationChallenge,
    TradeRecord,
)
from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

CHALLENGE_TEMPLATES: Dict[str, ChallengeTemplate] = {
    "topstep_50k": ChallengeTemplate("topstep_50k", 50000, 3000, 2000, 1000, 5),
    "topstep_100k": ChallengeTemplate("topstep_100k", 100000, 6000, 3000, 2000, 5),
    "topstep_150k": ChallengeTemplate("topstep_150k", 150000, 9000, 4000, 3000, 5),
    "apex_50k": ChallengeTemplate("apex_50k", 50000, 3000, 2500, 1250, 0),
    "apex_100k": ChallengeTemplate("apex_100k", 100000, 6000, 5000, 2500, 0),
}


def challenge_progress(challenge: EvaluationChallenge) -> Dict[str, Any]:
    profit_loss = challenge.current_balance - challenge.account_size
    drawdown = max(challenge.account_size - challenge.current_balance, 0.0)

    if challenge.min_trading_days == 0:
        days_pct = 100.0
    else:
        days_pct = min(challenge.days_traded / challenge.min_trading_days * 100, 100.0)

    return {
        "profit_loss": round(profit_loss, 2),
        "profit_progress_pct": (
            round(max(profit_loss, 0) / challenge.profit_target * 100, 2)
            if challenge.profit_target
            else 0.0
        ),
        "drawdown": round(drawdown, 2),
        "drawdown_pct": (
            round(drawdown / challenge.max_loss * 100, 2) if challenge.max_loss else 0.0
        ),
        "days_progress_pct": round(days_pct, 2),
        "remaining_to_target": round(max(challenge.profit_target - profit_loss, 0), 2),
        "can_pass": (
            profit_loss >= challenge.profit_target
            and challenge.days_traded >= challenge.min_trading_days
            and drawdown <= challenge.max_loss
        ),
        "has_failed": drawdown >= challenge.max_loss,
    }


def apply_trades(
    challenge: EvaluationChallenge, trades: List[TradeRecord]
) -> EvaluationChallenge:
    """Recompute balance, trading days and broken rules from closed trades."""
    start = challenge.start_date[:10]
    relevant = [
        t for t in trades if t.is_closed and t.exit_date and t.exit_date[:10] >= start
    ]

    daily: Dict[str, float] = {}
    for t in relevant:
        day = t.exit_date[:10]
        daily[day] = daily.get(day, 0.0) + t.profit_loss

    challenge.current_balance = challenge.account_size + sum(daily.values())
    challenge.days_traded = len(daily)

    broken = []
    if any(pnl <= -challenge.daily_loss_limit for pnl in daily.values()):
        broken.append("daily_loss_limit")
    if challenge.account_size - challenge.current_balance >= challenge.max_loss:
        broken.append("max_loss")
    challenge.rules_broken = broken
    return challenge


class EvaluationService:
    """Create and track evaluation_challenges rows."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def active_challenge(self, user_id: str) -> Optional[EvaluationChallenge]:
        row = first_row(
            self.client.table("evaluation_challenges")
            .select("*")
            .eq("user_id", user_id)
            .eq("status", ChallengeStatus.ACTIVE.value)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return EvaluationChallenge.from_dict(row) if row else None

    def create_challenge(
        self, user_id: str, template_name: str, today: Optional[date] = None
    ) -> EvaluationChallenge:
        template = CHALLENGE_TEMPLATES.get(template_name)
        if template is None:
            raise ValueError(f"Unknown challenge template: {template_name}")
        if self.active_challenge(user_id):
            raise ValueError("An evaluation challenge is already active")

        today = today or date.today()
        challenge = EvaluationChallenge(
            user_id=user_id,
            template_name=template.name,
            account_size=template.account_size,
            profit_target=template.profit_target,
            max_loss=template.max_loss,
            daily_loss_limit=template.daily_loss_limit,
            min_trading_days=template.min_trading_days,
            current_balance=template.account_size,
            start_date=today.isoformat(),
        )
        resp = self.client.table("evaluation_challenges").insert(challenge.to_dict()).execute()
        row = first_row(resp)
        if row:
            challenge.id = row.get("id")
        logger.info(f"Started {template_name} challenge for {user_id}")
        return challenge

    def refresh_challenge(self, user_id: str) -> Dict[str, Any]:
        challenge = self.active_challenge(user_id)
        if challenge is None:
            raise NotFoundError("No active challenge")

        rows = (
            self.client.table("trades")
            .select("*")
            .eq("user_id", user_id)
            .eq("status", "closed")
            .gte("exit_date", challenge.start_date)
            .execute()
        ).data or []

        apply_trades(challenge, [TradeRecord.from_dict(r) for r in rows])
        progress = challenge_progress(challenge)

        self.client.table("evaluation_challenges").update(
            {
                "current_balance": challenge.current_balance,
                "days_traded": challenge.days_traded,
                "rules_broken": challenge.rules_broken,
            }
        ).eq("id", challenge.id).execute()

        return {"challenge": challenge.to_dict(), "progress": progress}

    def end_challenge(self, user_id: str, status: str) -> EvaluationChallenge:
        final = ChallengeStatus(status)
        if final == ChallengeStatus.ACTIVE:
            raise ValueError("Challenge can only end as passed or failed")

        challenge = self.active_challenge(user_id)
        if challenge is None:
            raise NotFoundError("No active challenge")

        challenge.status = final
        challenge.end_date = datetime.now(timezone.utc).isoformat()
        self.client.table("evaluation_challenges").update(
            {"status": final.value, "end_date": challenge.end_date}
        ).eq("id", challenge.id).execute()
        logger.info(f"Challenge {challenge.id} ended as {final.value}")
        return challenge
