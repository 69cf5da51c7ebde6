from datetime import datetime, timezone

import pyotp
import pytest

from conftest import TEST_EMAIL, TEST_USER_ID
from valeris.app.accounts.achievements import (
    AchievementService,
    AchievementStats,
    compute_stats,
    is_earned,
)
from valeris.app.accounts.leaderboard import LeaderboardService
from valeris.app.accounts.notifications import NotificationService
from valeris.app.accounts.onboarding import initialize_user
from valeris.app.accounts.subscriptions import (
    TIER_FEATURES,
    SubscriptionService,
    is_feature_available,
)
from valeris.app.accounts.two_factor import (
    TwoFactorService,
    backup_codes_text,
    generate_backup_codes,
    generate_secret,
    provisioning_uri,
    verify_totp,
)
from valeris.app.common.errors import NotFoundError


class TestOnboarding:
    def test_creates_all_rows(self, db):
        result = initialize_user(TEST_USER_ID, TEST_EMAIL, client=db)
        assert result["created"] == ["profile", "subscription", "onboarding_status", "watchlist"]
        assert db.rows("profiles")[0]["current_capital"] == 100000
        assert db.rows("user_subscriptions")[0]["status"] == "trial"
        assert db.rows("watchlists")[0]["instruments"] == ["ES", "NQ", "CL", "GC"]

    def test_idempotent(self, db):
        initialize_user(TEST_USER_ID, TEST_EMAIL, client=db)
        again = initialize_user(TEST_USER_ID, TEST_EMAIL, client=db)
        assert again["created"] == []
        assert len(db.rows("profiles")) == 1
        assert len(db.rows("watchlists")) == 1

    def test_keeps_existing_profile(self, db, profile):
        result = initialize_user(TEST_USER_ID, client=db)
        assert "profile" not in result["created"]

    def test_requires_user(self, db):
        with pytest.raises(ValueError):
            initialize_user("", client=db)


class TestSubscriptions:
    NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_feature_tiers(self):
        assert is_feature_available({"tier": "elite"}, "ai_coach")
        assert not is_feature_available({"tier": "pro"}, "ai_coach")
        assert not is_feature_available(None, "journal_entries")
        assert all("journal_entries" in features for features in TIER_FEATURES.values())

    def test_upgrade(self, db, profile):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "free", "status": "trial"})
        sub = SubscriptionService(db).upgrade(TEST_USER_ID, "pro", now=self.NOW)
        assert sub["tier"] == "pro"
        assert sub["status"] == "active"
        assert sub["current_period_end"].startswith("2024-03-31")
        assert db.rows("profiles")[0]["subscription_tier"] == "pro"

    def test_upgrade_unknown_tier(self, db):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "free"})
        with pytest.raises(ValueError):
            SubscriptionService(db).upgrade(TEST_USER_ID, "platinum")

    def test_cancel_without_subscription(self, db):
        with pytest.raises(NotFoundError):
            SubscriptionService(db).cancel(TEST_USER_ID)

    def test_cancel(self, db):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "pro", "status": "active"})
        sub = SubscriptionService(db).cancel(TEST_USER_ID)
        assert sub["status"] == "cancelled"
        assert sub["cancelled_at"]

    def test_feature_access_unlimited(self, db):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "pro"})
        db.seed("subscription_features", {"tier": "pro", "feature_key": "video_courses", "limit_value": None})
        assert SubscriptionService(db).check_feature_access(TEST_USER_ID, "video_courses") == {"hasAccess": True}

    def test_feature_access_with_limit(self, db):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "free"})
        db.seed("subscription_features", {"tier": "free", "feature_key": "journal_entries", "limit_value": 5})
        db.seed(
            "user_feature_usage",
            {"user_id": TEST_USER_ID, "feature_key": "journal_entries", "usage_count": 5,
             "reset_at": "2999-01-01T00:00:00+00:00"},
        )
        access = SubscriptionService(db).check_feature_access(TEST_USER_ID, "journal_entries")
        assert access == {"hasAccess": False, "limit": 5, "currentUsage": 5, "remaining": 0}

    def test_expired_usage_is_ignored(self, db):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "free"})
        db.seed("subscription_features", {"tier": "free", "feature_key": "journal_entries", "limit_value": 5})
        db.seed(
            "user_feature_usage",
            {"user_id": TEST_USER_ID, "feature_key": "journal_entries", "usage_count": 5,
             "reset_at": "2000-01-01T00:00:00+00:00"},
        )
        access = SubscriptionService(db).check_feature_access(TEST_USER_ID, "journal_entries")
        assert access["hasAccess"]
        assert access["remaining"] == 5

    def test_missing_feature(self, db):
        db.seed("user_subscriptions", {"user_id": TEST_USER_ID, "tier": "free"})
        assert SubscriptionService(db).check_feature_access(TEST_USER_ID, "ai_coach") == {"hasAccess": False}

    def test_increment_usage_calls_rpc(self, db):
        db.rpc_results["check_and_increment_usage"] = True
        assert SubscriptionService(db).increment_usage(TEST_USER_ID, "ai_coach")
        assert db.rpc_calls == [
            ("check_and_increment_usage", {"p_user_id": TEST_USER_ID, "p_feature_key": "ai_coach"})
        ]


class TestTwoFactor:
    def test_secret_and_uri(self):
        secret = generate_secret()
        assert len(secret) == 32
        uri = provisioning_uri(TEST_EMAIL, secret)
        assert uri.startswith("otpauth://totp/")
        assert "issuer=Valeris" in uri

    def test_backup_codes(self):
        codes = generate_backup_codes()
        assert len(codes) == 10
        assert all(len(c) == 8 and c.isalnum() and c == c.upper() for c in codes)
        text = backup_codes_text(codes)
        assert codes[0] in text
        assert text.startswith("Valeris two-factor backup codes")

    def test_verify_totp(self):
        secret = generate_secret()
        assert verify_totp(secret, pyotp.TOTP(secret).now())
        assert not verify_totp(secret, "")
        assert not verify_totp("", "123456")

    def test_enable_requires_valid_code(self, db):
        with pytest.raises(ValueError):
            TwoFactorService(db).enable(TEST_USER_ID, generate_secret(), "000000x")

    def test_enable_verify_and_disable(self, db):
        service = TwoFactorService(db)
        secret = generate_secret()
        codes = service.enable(TEST_USER_ID, secret, pyotp.TOTP(secret).now())

        assert service.status(TEST_USER_ID)["enabled"]
        assert service.verify(TEST_USER_ID, pyotp.TOTP(secret).now())

        assert service.verify(TEST_USER_ID, codes[0].lower())
        assert not service.verify(TEST_USER_ID, codes[0])
        assert len(service.status(TEST_USER_ID)["backup_codes"]) == 9

        service.disable(TEST_USER_ID)
        with pytest.raises(NotFoundError):
            service.verify(TEST_USER_ID, codes[1])

    def test_enable_twice_keeps_one_row(self, db):
        service = TwoFactorService(db)
        secret = generate_secret()
        service.enable(TEST_USER_ID, secret, pyotp.TOTP(secret).now())
        service.enable(TEST_USER_ID, secret, pyotp.TOTP(secret).now())
        assert len(db.rows("two_factor_auth")) == 1


class TestAchievements:
    def test_compute_stats(self):
        trades = [
            {"status": "closed", "profit_loss": 3000},
            {"status": "closed", "profit_loss": 2500},
            {"status": "closed", "profit_loss": -100},
            {"status": "open", "profit_loss": 900},
        ]
        stats = compute_stats(trades, 12)
        assert stats == AchievementStats(4, 2, 12, 5500)

    def test_rules(self):
        stats = AchievementStats(total_trades=10, profitable_trades=1, journal_entries=9, total_profits=5000)
        assert is_earned("Getting Started", stats)
        assert is_earned("Small Gains", stats)
        assert not is_earned("Journal Keeper", stats)
        assert not is_earned("Unknown Badge", stats)

    def test_check_awards_once(self, db, profile):
        db.seed(
            "achievements",
            {"id": "a1", "name": "First Trade", "points": 10},
            {"id": "a2", "name": "First Winner", "points": 25},
            {"id": "a3", "name": "Master Trader", "points": 500},
        )
        db.seed("trades", {"user_id": TEST_USER_ID, "status": "closed", "profit_loss": 50})

        service = AchievementService(db)
        result = service.check(TEST_USER_ID)
        assert [a["id"] for a in result["newAchievements"]] == ["a1", "a2"]
        assert result["totalChecked"] == 3

        notes = db.rows("notifications")
        assert len(notes) == 2
        assert notes[1]["message"] == 'You\'ve earned the "First Winner" achievement! (+25 points)'
        assert notes[1]["type"] == "success"

        assert service.check(TEST_USER_ID)["newAchievements"] == []
        assert len(service.earned(TEST_USER_ID)) == 2

    def test_check_requires_profile(self, db):
        with pytest.raises(NotFoundError):
            AchievementService(db).check("ghost")


class TestNotifications:
    def test_lifecycle(self, db):
        service = NotificationService(db)
        first = service.create(TEST_USER_ID, "Hi", "Welcome")
        service.create(TEST_USER_ID, "Heads up", "Margin", "warning")
        service.create("other", "x", "y")

        assert len(service.list(TEST_USER_ID)) == 2
        service.mark_read(TEST_USER_ID, first["id"])
        assert [n["title"] for n in service.list(TEST_USER_ID, unread_only=True)] == ["Heads up"]

        service.mark_all_read(TEST_USER_ID)
        assert service.list(TEST_USER_ID, unread_only=True) == []
        assert len(service.list("other", unread_only=True)) == 1

        service.delete(TEST_USER_ID, first["id"])
        assert len(service.list(TEST_USER_ID)) == 1

    def test_unknown_type(self, db):
        with pytest.raises(ValueError):
            NotificationService(db).create(TEST_USER_ID, "t", "m", "panic")


class TestLeaderboard:
    def test_entries_sorted_by_rank(self, db):
        db.seed(
            "leaderboard_entries",
            {"user_id": "b", "period": "weekly", "metric": "total_pnl", "rank": 2},
            {"user_id": "a", "period": "weekly", "metric": "total_pnl", "rank": 1},
            {"user_id": "c", "period": "monthly", "metric": "total_pnl", "rank": 1},
        )
        service = LeaderboardService(db)
        assert [e["user_id"] for e in service.entries()] == ["a", "b"]
        assert service.user_rank("c", "monthly")["rank"] == 1
        assert service.user_rank("c") is None

    def test_rejects_unknown_period_or_metric(self, db):
        service = LeaderboardService(db)
        with pytest.raises(ValueError):
            service.entries(period="hourly")
        with pytest.raises(ValueError):
            service.entries(metric="sharpe")
