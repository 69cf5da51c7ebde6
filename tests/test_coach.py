from datetime import datetime, timedelta, timezone

import pytest

from conftest import TEST_USER_ID
from shared.schemas import TradeRecord, TradeType
from valeris.app.coach.coach import CoachService, generate_coach_response, market_warning

NOW = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)


def trades(*pnls):
    return [
        TradeRecord(symbol="ES", type=TradeType.BUY, quantity=1, entry_price=100, profit_loss=p)
        for p in pnls
    ]


class TestCoachResponses:
    def test_pattern_branch(self):
        response = generate_coach_response("find my patterns", None, trades(100, 50, -20))
        assert response["analysis"] == {
            "winRate": 66.7, "winningTrades": 2, "losingTrades": 1, "totalTrades": 3,
        }
        assert "consistency" in response["message"]

    def test_analysis_type_wins_over_keywords(self):
        response = generate_coach_response("how is my performance", "risk", trades(-300, 100))
        assert response["analysis"]["avgRisk"] == 200
        assert "Reduce position size" in response["message"]

    def test_performance_progress(self):
        response = generate_coach_response("performance please", None, trades(-200, -100))
        progress = response["progressUpdate"]
        assert response["analysis"]["totalPnL"] == -300
        assert response["analysis"]["bestTrade"] == 0
        assert progress["score"] == 47
        assert progress["milestones"] == []
        assert progress["areas_to_improve"] == ["Risk Management", "Entry Timing"]

    def test_performance_score_is_clamped(self):
        response = generate_coach_response("performance", None, trades(20000))
        assert response["progressUpdate"]["score"] == 100

    def test_education_and_general(self):
        assert "Risk management" in generate_coach_response("teach me", None, [])["message"]
        general = generate_coach_response("hello", None, [])
        assert "analysis" not in general
        assert len(general["recommendations"]) == 3

    def test_pattern_without_trades(self):
        response = generate_coach_response("pattern", None, [])
        assert response["analysis"]["winRate"] == 0


class TestMarketWarning:
    def test_no_warning_when_quiet(self):
        assert market_warning([{"impact_level": "low"}], [], NOW) == ""

    def test_high_impact_news(self):
        warning = market_warning([{"impact_level": "critical"}], [], NOW)
        assert "High-impact news" in warning

    def test_upcoming_events(self):
        events = [
            {"event_datetime": (NOW + timedelta(hours=2)).isoformat()},
            {"event_datetime": (NOW + timedelta(days=3)).isoformat()},
        ]
        warning = market_warning([], events, NOW)
        assert "1 economic event(s)" in warning

    def test_warning_appended_to_pattern_reply(self):
        response = generate_coach_response(
            "pattern", None, trades(10), [{"impact_level": "high"}], [], NOW
        )
        assert response["message"].endswith("tightening risk.")


class TestCoachService:
    def test_ask_records_conversation(self, db):
        db.seed("trades", {"user_id": TEST_USER_ID, "symbol": "ES", "profit_loss": 100, "created_at": "2024-01-01"})
        response = CoachService(db).ask(TEST_USER_ID, "analyze my patterns", {"page": "journal"}, "pattern")

        assert response["analysis"]["totalTrades"] == 1
        conversation = db.rows("ai_coach_conversations")
        assert [m["role"] for m in conversation] == ["user", "assistant"]
        assert conversation[0]["context_data"] == {"page": "journal"}
        analysis = db.rows("ai_coach_analysis")[0]
        assert analysis["analysis_type"] == "pattern"

    def test_progress_upserted_once_per_skill(self, db):
        service = CoachService(db)
        service.ask(TEST_USER_ID, "performance")
        service.ask(TEST_USER_ID, "performance again")
        assert len(db.rows("ai_coach_progress")) == 1
        assert db.rows("ai_coach_analysis") == []

    def test_rejects_empty_message(self, db):
        with pytest.raises(ValueError):
            CoachService(db).ask(TEST_USER_ID, "  ")

    def test_rejects_unknown_analysis_type(self, db):
        with pytest.raises(ValueError):
            CoachService(db).ask(TEST_USER_ID, "hi", analysis_type="astrology")

    def test_strategy_falls_through_to_general(self, db):
        response = CoachService(db).ask(TEST_USER_ID, "help me build a plan", analysis_type="strategy")
        assert response["message"].startswith("I can help with pattern analysis")
        assert "analysis" not in response
        assert db.rows("ai_coach_analysis") == []

    def test_history(self, db):
        service = CoachService(db)
        service.ask(TEST_USER_ID, "hello")
        assert len(service.history(TEST_USER_ID)) == 2
