import re
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import TEST_USER_ID
from valeris.app.tracking.events import ActivityTracker, EventTracker, level_for, new_session_id

NOW = datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc)


def test_session_id_format():
    assert re.fullmatch(r"1700000000000-[a-z0-9]{9}", new_session_id(1700000000000))
    assert new_session_id() != new_session_id()


@pytest.mark.parametrize("xp,level", [(0, 1), (99, 1), (100, 2), (250, 3)])
def test_level_for(xp, level):
    assert level_for(xp) == level


class TestEventTracker:
    def test_skips_without_user(self):
        insert = MagicMock()
        assert not EventTracker(insert=insert).page_view("/dashboard")
        insert.assert_not_called()

    def test_track_row(self):
        insert = MagicMock()
        tracker = EventTracker(TEST_USER_ID, "s-1", "pytest", insert=insert)
        assert tracker.page_view("/journal")

        table, row = insert.call_args.args
        assert table == "analytics_events"
        assert row == {
            "user_id": TEST_USER_ID,
            "event_name": "page_view",
            "event_properties": {"page": "/journal", "url": "/journal"},
            "session_id": "s-1",
            "user_agent": "pytest",
            "ip_address": None,
        }

    def test_insert_failure_returns_false(self):
        insert = MagicMock(side_effect=RuntimeError("db down"))
        assert not EventTracker(TEST_USER_ID, insert=insert).login()

    def test_helper_event_names(self):
        insert = MagicMock()
        tracker = EventTracker(TEST_USER_ID, insert=insert)
        tracker.sign_up()
        tracker.logout()
        tracker.feature_used("heatmap", range="30d")
        tracker.trade_created("paper", symbol="ES")
        tracker.course_completed("c1", "Risk 101")
        tracker.subscription_event("upgraded", "pro")
        tracker.error("boom")
        tracker.search("es", 3, "header")

        names = [c.args[1]["event_name"] for c in insert.call_args_list]
        assert names == [
            "user_signup", "user_logout", "feature_used", "trade_created",
            "course_completed", "subscription_event", "error_occurred", "search",
        ]
        assert insert.call_args_list[2].args[1]["event_properties"] == {"feature": "heatmap", "range": "30d"}

    def test_rejects_unknown_values(self):
        tracker = EventTracker(TEST_USER_ID, insert=MagicMock())
        with pytest.raises(ValueError):
            tracker.trade_created("crypto")
        with pytest.raises(ValueError):
            tracker.subscription_event("paused", "pro")

    def test_identify_and_clear(self):
        insert = MagicMock()
        tracker = EventTracker(insert=insert)
        assert tracker.identify("u9")
        assert insert.call_args.args[1]["event_name"] == "user_identified"
        tracker.clear_user()
        assert not tracker.button_click("buy", "ticket")


class TestActivityTracker:
    def test_first_activity_creates_experience(self, db):
        result = ActivityTracker(db).record(TEST_USER_ID, "journal_open", "trade", "t1", {"k": 1}, "1.2.3.4", "ua", NOW)

        assert result == {"success": True, "message": "Event tracked successfully", "total_xp": 1, "level": 1}
        log = db.rows("user_activity_logs")[0]
        assert log["ip_address"] == "1.2.3.4"
        assert log["metadata"] == {"k": 1}
        assert db.rows("feature_usage_analytics")[0]["date"] == "2024-03-04"
        assert db.rows("user_experience")[0]["current_streak"] == 1

    def test_xp_accumulates(self, db):
        db.seed("user_experience", {"user_id": TEST_USER_ID, "total_xp": 99, "level": 1})
        tracker = ActivityTracker(db)
        result = tracker.record(TEST_USER_ID, "login", now=NOW)
        tracker.record(TEST_USER_ID, "login", now=NOW)

        assert result["level"] == 2
        assert db.rows("user_experience")[0]["total_xp"] == 101
        assert len(db.rows("feature_usage_analytics")) == 1
        assert len(db.rows("user_activity_logs")) == 2

    def test_requires_action(self, db):
        with pytest.raises(ValueError):
            ActivityTracker(db).record(TEST_USER_ID, "")
