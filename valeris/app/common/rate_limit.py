"""
Fixed-window rate limiting backed by the rate_limits table.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Mapping, Optional

from valeris.app.common.config import get_config
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime


def client_identifier(headers: Mapping[str, str]) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, else 'unknown'."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return headers.get("x-real-ip") or "unknown"


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    return {
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_at.isoformat(),
    }


class RateLimiter:
    """Counts requests per (identifier, endpoint) in a fixed window."""

    def __init__(
        self,
        client=None,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ):
        config = get_config()
        self._client = client
        self.max_requests = max_requests or config.rate_limit_max_requests
        self.window = timedelta(
            seconds=window_seconds or config.rate_limit_window_seconds
        )

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    def check(
        self, identifier: str, endpoint: str, now: Optional[datetime] = None
    ) -> RateLimitResult:
        now = now or datetime.now(timezone.utc)
        reset_at = now + self.window

        try:
            row = first_row(
                self.client.table("rate_limits")
                .select("*")
                .eq("identifier", identifier)
                .eq("endpoint", endpoint)
                .limit(1)
                .execute()
            )

            window_start = (
                datetime.fromisoformat(row["window_start"].replace("Z", "+00:00"))
                if row
                else None
            )

            if window_start is None or now >= window_start + self.window:
                self.client.table("rate_limits").upsert(
                    {
                        "identifier": identifier,
                        "endpoint": endpoint,
                        "request_count": 1,
                        "window_start": now.isoformat(),
                    },
                    on_conflict="identifier,endpoint",
                ).execute()
                return RateLimitResult(True, self.max_requests - 1, reset_at)

            reset_at = window_start + self.window
            count = int(row["request_count"])

            if count >= self.max_requests:
                logger.warning(f"Rate limit exceeded for {identifier} on {endpoint}")
                return RateLimitResult(False, 0, reset_at)

            self.client.table("rate_limits").update(
                {"request_count": count + 1}
            ).eq("identifier", identifier).eq("endpoint", endpoint).execute()

            return RateLimitResult(True, self.max_requests - count - 1, reset_at)

        except Exception as e:
            # Store unavailable: let the request through
            logger.error(f"Rate limit check failed for {identifier}: {e}")
            return RateLimitResult(True, self.max_requests, reset_at)
