"""
Configuration management via environment variables.
All configuration with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List

PLACEHOLDER_MARKERS = ("your-", "xxx")


def is_configured(value: str | None) -> bool:
    """An env value counts as set only if it is non-empty and not a placeholder."""
    if not value:
        return False
    return not any(marker in value for marker in PLACEHOLDER_MARKERS)


@dataclass
class Config:
    """Valeris backend configuration from environment variables."""

    # Environment
    environment: str = field(
        default_factory=lambda: os.getenv("VALERIS_ENV", "development")
    )

    # Supabase
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_anon_key: str = field(
        default_factory=lambda: os.getenv("SUPABASE_ANON_KEY", "")
    )
    supabase_service_role_key: str = field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    )

    # Schwab
    schwab_app_key: str = field(default_factory=lambda: os.getenv("SCHWAB_APP_KEY", ""))
    schwab_app_secret: str = field(
        default_factory=lambda: os.getenv("SCHWAB_APP_SECRET", "")
    )
    schwab_redirect_uri: str = field(
        default_factory=lambda: os.getenv(
            "SCHWAB_REDIRECT_URI", "http://localhost:5173/brokers/schwab/callback"
        )
    )

    # E*TRADE
    etrade_consumer_key: str = field(
        default_factory=lambda: os.getenv("ETRADE_CONSUMER_KEY", "")
    )
    etrade_consumer_secret: str = field(
        default_factory=lambda: os.getenv("ETRADE_CONSUMER_SECRET", "")
    )
    etrade_sandbox: bool = field(
        default_factory=lambda: os.getenv("ETRADE_SANDBOX", "true").lower() == "true"
    )

    # Third-party keys used only for feature flags
    stripe_publishable_key: str = field(
        default_factory=lambda: os.getenv("STRIPE_PUBLISHABLE_KEY", "")
    )
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))

    # Rate limiting
    rate_limit_max_requests: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
    )
    rate_limit_window_seconds: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
    )

    # Market data
    quote_cache_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("QUOTE_CACHE_TTL_SECONDS", "60"))
    )
    quote_cache_size: int = field(
        default_factory=lambda: int(os.getenv("QUOTE_CACHE_SIZE", "100"))
    )
    news_feeds: List[str] = field(
        default_factory=lambda: os.getenv(
            "NEWS_FEEDS",
            "https://feeds.content.dowjones.io/public/rss/mw_topstories,"
            "https://www.cnbc.com/id/100003114/device/rss/rss.html",
        ).split(",")
    )

    # Accounts
    funded_account_size: float = field(
        default_factory=lambda: float(os.getenv("FUNDED_ACCOUNT_SIZE", "100000"))
    )
    starting_capital: float = field(
        default_factory=lambda: float(os.getenv("STARTING_CAPITAL", "100000"))
    )
    default_watchlist: List[str] = field(
        default_factory=lambda: os.getenv("DEFAULT_WATCHLIST", "ES,NQ,CL,GC").split(",")
    )

    # Billing
    mentor_fee_rate: float = field(
        default_factory=lambda: float(os.getenv("MENTOR_FEE_RATE", "0.15"))
    )
    plan_prices: Dict[str, float] = field(
        default_factory=lambda: {
            "free": 0.0,
            "pro": float(os.getenv("PLAN_PRICE_PRO", "75")),
            "elite": float(os.getenv("PLAN_PRICE_ELITE", "199")),
            "mentorship": 0.0,
        }
    )

    def validate(self) -> None:
        """Validate configuration."""
        if self.environment not in ("development", "staging", "production", "test"):
            raise ValueError(f"Unknown environment: {self.environment}")
        if self.funded_account_size <= 0:
            raise ValueError("Funded account size must be positive")
        if self.mentor_fee_rate < 0:
            raise ValueError("Mentor fee cannot be negative")
        if any(price < 0 for price in self.plan_prices.values()):
            raise ValueError("Plan prices cannot be negative")

    def features(self) -> Dict[str, bool]:
        """Feature availability derived from configured credentials."""
        return {
            "supabase": is_configured(self.supabase_url)
            and is_configured(self.supabase_anon_key),
            "stripe": is_configured(self.stripe_publishable_key),
            "ai_coach": is_configured(self.openai_api_key),
            "schwab": is_configured(self.schwab_app_key)
            and is_configured(self.schwab_app_secret),
            "etrade": is_configured(self.etrade_consumer_key)
            and is_configured(self.etrade_consumer_secret),
        }

    def is_feature_enabled(self, name: str) -> bool:
        return self.features().get(name, False)

    def missing_features(self) -> List[str]:
        return [name for name, enabled in self.features().items() if not enabled]


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = Config()
        _config.validate()
    return _config


def reset_config() -> None:
    """Reset config for testing."""
    global _config
    _config = None
