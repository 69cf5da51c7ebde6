from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from valeris.app.common.config import Config, get_config, is_configured, reset_config
from valeris.app.common.rate_limit import (
    RateLimiter,
    RateLimitResult,
    client_identifier,
    rate_limit_headers,
)
from valeris.app.common.supabase_client import first_row, insert_row


class TestConfig:
    def test_defaults(self):
        config = get_config()
        assert config.environment == "test"
        assert config.rate_limit_max_requests == 100
        assert config.rate_limit_window_seconds == 60
        assert config.default_watchlist == ["ES", "NQ", "CL", "GC"]
        assert config.plan_prices["pro"] == 75
        assert config.mentor_fee_rate == pytest.approx(0.15)

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "5")
        monkeypatch.setenv("DEFAULT_WATCHLIST", "ES,ZN")
        reset_config()
        config = get_config()
        assert config.rate_limit_max_requests == 5
        assert config.default_watchlist == ["ES", "ZN"]

    def test_validate_rejects_unknown_environment(self, monkeypatch):
        monkeypatch.setenv("VALERIS_ENV", "moon")
        reset_config()
        with pytest.raises(ValueError):
            get_config()

    def test_validate_rejects_negative_fee(self):
        config = Config()
        config.mentor_fee_rate = -0.1
        with pytest.raises(ValueError):
            config.validate()

    def test_placeholders_are_not_configured(self):
        assert not is_configured("")
        assert not is_configured(None)
        assert not is_configured("your-openai-key")
        assert is_configured("sk-live-123")

    def test_features_follow_credentials(self, monkeypatch):
        monkeypatch.setenv("SCHWAB_APP_KEY", "key")
        monkeypatch.setenv("SCHWAB_APP_SECRET", "secret")
        reset_config()
        config = get_config()
        assert config.is_feature_enabled("supabase")
        assert config.is_feature_enabled("schwab")
        assert not config.is_feature_enabled("etrade")
        assert "ai_coach" in config.missing_features()


class TestSupabaseHelpers:
    def test_first_row(self):
        assert first_row(MagicMock(data=[{"id": 1}, {"id": 2}])) == {"id": 1}
        assert first_row(MagicMock(data=[])) is None
        assert first_row(MagicMock(data=None)) is None

    @patch("valeris.app.common.supabase_client.requests.post")
    def test_insert_row_posts_to_rest_api(self, mock_post):
        mock_post.return_value = MagicMock(ok=True)
        insert_row("analytics_events", {"event_name": "x"})

        url = mock_post.call_args.args[0]
        headers = mock_post.call_args.kwargs["headers"]
        assert url == "https://test.supabase.co/rest/v1/analytics_events"
        assert headers["apikey"] == "service-key"
        assert mock_post.call_args.kwargs["json"] == {"event_name": "x"}

    @patch("valeris.app.common.supabase_client.requests.post")
    def test_insert_row_raises_on_error(self, mock_post):
        mock_post.return_value = MagicMock(ok=False, status_code=409, text="conflict")
        with pytest.raises(RuntimeError, match="409"):
            insert_row("analytics_events", {})


class TestRateLimiter:
    NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_client_identifier(self):
        assert client_identifier({"x-forwarded-for": "1.2.3.4, 10.0.0.1"}) == "1.2.3.4"
        assert client_identifier({"x-real-ip": "5.6.7.8"}) == "5.6.7.8"
        assert client_identifier({}) == "unknown"

    def test_first_request_opens_window(self, db):
        result = RateLimiter(db, max_requests=3, window_seconds=60).check("ip", "/market/quote", self.NOW)
        assert result.allowed
        assert result.remaining == 2
        assert db.rows("rate_limits")[0]["request_count"] == 1

    def test_blocks_after_max_requests(self, db):
        limiter = RateLimiter(db, max_requests=3, window_seconds=60)
        results = [limiter.check("ip", "/q", self.NOW + timedelta(seconds=i)) for i in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[2].remaining == 0
        assert results[3].reset_at == self.NOW + timedelta(seconds=60)

    def test_window_resets(self, db):
        limiter = RateLimiter(db, max_requests=1, window_seconds=60)
        assert limiter.check("ip", "/q", self.NOW).allowed
        assert not limiter.check("ip", "/q", self.NOW + timedelta(seconds=30)).allowed
        assert limiter.check("ip", "/q", self.NOW + timedelta(seconds=61)).allowed

    def test_endpoints_counted_separately(self, db):
        limiter = RateLimiter(db, max_requests=1, window_seconds=60)
        assert limiter.check("ip", "/a", self.NOW).allowed
        assert limiter.check("ip", "/b", self.NOW).allowed

    def test_fails_open_when_store_errors(self, db):
        db.failing_tables.add("rate_limits")
        result = RateLimiter(db, max_requests=2).check("ip", "/q", self.NOW)
        assert result.allowed
        assert result.remaining == 2

    def test_headers(self):
        headers = rate_limit_headers(RateLimitResult(True, 4, self.NOW))
        assert headers["X-RateLimit-Remaining"] == "4"
        assert headers["X-RateLimit-Reset"] == self.NOW.isoformat()
