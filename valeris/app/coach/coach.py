"""
Trading coach.
Rule-based replies built from the user's recent trades and the market calendar.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from shared.schemas import TradeRecord
from valeris.app.analytics.filters import parse_timestamp
from valeris.app.common.supabase_client import get_client

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Sorry, I encountered an error. Please try again."

ANALYSIS_TYPES = ("pattern", "risk", "performance", "education", "strategy")


def _pick_branch(message: str, analysis_type: Optional[str]) -> str:
    text = message.lower()
    if analysis_type == "pattern" or "pattern" in text:
        return "pattern"
    if analysis_type == "risk" or "risk" in text:
        return "risk"
    if analysis_type == "performance" or "performance" in text:
        return "performance"
    if analysis_type == "education" or "learn" in text or "teach" in text:
        return "education"
    return "general"


def market_warning(
    market_news: List[Dict[str, Any]],
    economic_events: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    high_impact = any(n.get("impact_level") in ("high", "critical") for n in market_news)
    upcoming = [
        e
        for e in economic_events
        if e.get("event_datetime")
        and parse_timestamp(e["event_datetime"]) - now < timedelta(hours=24)
    ]
    if not high_impact and not upcoming:
        return ""

    parts = []
    if high_impact:
        parts.append("High-impact news is moving markets.")
    if upcoming:
        parts.append(f"{len(upcoming)} economic event(s) due in the next 24 hours.")
    return "\n\nMarket Alert: " + " ".join(parts) + " Consider trimming size and tightening risk."


def generate_coach_response(
    message: str,
    analysis_type: Optional[str],
    trades: List[TradeRecord],
    market_news: Optional[List[Dict[str, Any]]] = None,
    economic_events: Optional[List[Dict[str, Any]]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    branch = _pick_branch(message, analysis_type)
    pnls = [t.profit_loss for t in trades]

    if branch == "pattern":
        winners = sum(1 for p in pnls if p > 0)
        losers = sum(1 for p in pnls if p < 0)
        win_rate = round(winners / len(pnls) * 100, 1) if pnls else 0
        verdict = (
            "Your win rate shows consistency."
            if win_rate > 50
            else "Win rate needs work. Start with entry timing."
        )
        next_step = (
            "Size up on your highest-confidence setups"
            if win_rate > 50
            else "Review losing trades for repeated mistakes"
        )
        return {
            "message": (
                "Pattern analysis of your recent trades:\n"
                f"- Win rate: {win_rate}%\n"
                f"- Winning trades: {winners}\n"
                f"- Losing trades: {losers}\n\n"
                f"{verdict}\n\n"
                f"Recommendations:\n1. {next_step}\n"
                "2. Note your emotional state before each trade\n"
                "3. Tighten your entry criteria"
                f"{market_warning(market_news or [], economic_events or [], now)}"
            ),
            "analysis": {
                "winRate": win_rate,
                "winningTrades": winners,
                "losingTrades": losers,
                "totalTrades": len(pnls),
            },
            "recommendations": [
                "Review trade journal entries for patterns",
                "Focus on risk management",
                "Consider smaller position sizes while building consistency",
            ],
        }

    if branch == "risk":
        avg_risk = sum(abs(p) for p in pnls) / len(pnls) if pnls else 0.0
        verdict = (
            "You are putting a lot on the line per trade. Reduce position size."
            if avg_risk > 100
            else "Your risk per trade looks reasonable."
        )
        return {
            "message": (
                "Risk review:\n"
                f"- Average risk per trade: ${avg_risk:.2f}\n"
                f"- Trades analyzed: {len(pnls)}\n\n"
                f"{verdict}\n\n"
                "Keep risk to 1-2% of the account per trade and use a stop on every position."
            ),
            "analysis": {"avgRisk": round(avg_risk, 2), "totalTrades": len(pnls)},
            "recommendations": [
                "Calculate position size before entering trades",
                "Set stop losses at logical technical levels",
                "Keep a risk journal",
            ],
        }

    if branch == "performance":
        total = sum(pnls)
        best = max([0.0] + pnls)
        worst = min([0.0] + pnls)
        profitable = total > 0
        return {
            "message": (
                "Performance snapshot:\n"
                f"- Total P&L: ${total:.2f}\n"
                f"- Best trade: ${best:.2f}\n"
                f"- Worst trade: ${worst:.2f}\n\n"
                + (
                    "You're profitable. Keep doing what works."
                    if profitable
                    else "Learning phase. Every trade is a lesson."
                )
            ),
            "analysis": {
                "totalPnL": round(total, 2),
                "bestTrade": best,
                "worstTrade": worst,
                "tradeCount": len(pnls),
            },
            "progressUpdate": {
                "skill_area": "overall_trading",
                "score": min(100.0, max(0.0, 50 + total / 100)),
                "milestones": ["First Profitable Period"] if profitable else [],
                "strengths": ["Positive P&L"] if profitable else ["Commitment to learning"],
                "areas_to_improve": (
                    ["Risk Management", "Entry Timing"] if total < 0 else ["Position Sizing"]
                ),
            },
        }

    if branch == "education":
        return {
            "message": (
                "Core topics to study:\n"
                "1. Risk management: define risk before entry, use the 1% rule\n"
                "2. Technical analysis: support and resistance, trend, chart patterns\n"
                "3. Psychology: discipline, no revenge trading, patience\n"
                "4. Strategy: clear entry and exit rules, backtesting, journaling\n\n"
                "Which topic do you want to go deeper on?"
            ),
            "recommendations": [
                "Complete the Risk Management module",
                "Practice with paper trading",
                "Study chart patterns daily",
            ],
        }

    return {
        "message": (
            "I can help with pattern analysis, risk management, performance reviews "
            "and trading education. What would you like to work on?"
        ),
        "recommendations": [
            "Start with a performance analysis",
            "Review your risk management approach",
            "Set clear trading goals",
        ],
    }


class CoachService:
    """Loads coaching context, answers, and records the conversation."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def _context(self, user_id: str, now: datetime):
        trades = (
            self.client.table("trades")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(20)
            .execute()
        ).data or []
        news = (
            self.client.table("market_news")
            .select("*")
            .gte("published_at", (now - timedelta(hours=24)).isoformat())
            .order("published_at", desc=True)
            .limit(5)
            .execute()
        ).data or []
        events = (
            self.client.table("economic_events")
            .select("*")
            .gte("event_datetime", now.isoformat())
            .order("event_datetime")
            .limit(3)
            .execute()
        ).data or []
        return [TradeRecord.from_dict(t) for t in trades], news, events

    def ask(
        self,
        user_id: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        analysis_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not message or not message.strip():
            raise ValueError("Message is required")
        if analysis_type and analysis_type not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis type: {analysis_type}")

        now = datetime.now(timezone.utc)
        trades, news, events = self._context(user_id, now)
        response = generate_coach_response(message, analysis_type, trades, news, events, now)

        self.client.table("ai_coach_conversations").insert(
            [
                {"user_id": user_id, "message": message, "role": "user", "context_data": context or {}},
                {
                    "user_id": user_id,
                    "message": response["message"],
                    "role": "assistant",
                    "context_data": response.get("analysis") or {},
                },
            ]
        ).execute()

        if analysis_type and response.get("analysis"):
            self.client.table("ai_coach_analysis").insert(
                {
                    "user_id": user_id,
                    "analysis_type": analysis_type,
                    "analysis_data": response["analysis"],
                    "recommendations": response.get("recommendations", []),
                }
            ).execute()

        progress = response.get("progressUpdate")
        if progress:
            self.client.table("ai_coach_progress").upsert(
                {
                    "user_id": user_id,
                    "skill_area": progress["skill_area"],
                    "progress_score": progress["score"],
                    "milestones": progress["milestones"],
                    "strengths": progress["strengths"],
                    "areas_to_improve": progress["areas_to_improve"],
                    "updated_at": now.isoformat(),
                },
                on_conflict="user_id,skill_area",
            ).execute()

        return response

    def history(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        resp = (
            self.client.table("ai_coach_conversations")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return resp.data or []
