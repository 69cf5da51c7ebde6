"""
Yahoo Finance market data proxy with a small in-process TTL cache.
"""

import logging
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from valeris.app.common.config import get_config
from valeris.app.common.errors import UpstreamError

logger = logging.getLogger(__name__)

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
SEARCH_URL = "https://query2.finance.yahoo.com/v1/finance/search"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class QuoteCache:
    """TTL cache that evicts the oldest entry once full."""

    def __init__(self, ttl_seconds: float = 60, max_size: int = 100, clock=time.monotonic):
        self.ttl = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


def _last(values: Optional[List[Any]]) -> Optional[float]:
    return values[-1] if values else None


def _at(values: Optional[List[Any]], i: int) -> Optional[float]:
    return values[i] if values and i < len(values) else None


class YahooFinanceClient:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        cache: Optional[QuoteCache] = None,
    ):
        config = get_config()
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self.cache = cache or QuoteCache(config.quote_cache_ttl_seconds, config.quote_cache_size)

    def _chart(self, symbol: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(
                CHART_URL.format(symbol=symbol), params=params, timeout=10
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Yahoo Finance request failed: {e}") from e

        if not response.ok:
            raise UpstreamError(f"Yahoo Finance API error: {response.status_code}")

        results = (response.json().get("chart") or {}).get("result") or []
        if not results:
            raise UpstreamError("No data available for symbol")
        return results[0]

    def quote(self, symbol: str) -> Dict[str, Any]:
        if not symbol:
            raise ValueError("Symbol is required")

        key = f"quote_{symbol}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = self._chart(symbol)
        meta = result.get("meta") or {}
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        bar = quotes[0]

        price = meta.get("regularMarketPrice") or meta.get("previousClose") or 0.0
        previous_close = meta.get("previousClose") or meta.get("chartPreviousClose") or 0.0
        change = price - previous_close

        data = {
            "symbol": meta.get("symbol", symbol),
            "price": price,
            "change": change,
            "changePercent": change / previous_close * 100 if previous_close else 0.0,
            "volume": meta.get("regularMarketVolume") or 0,
            "open": _last(bar.get("open")) or price,
            "high": _last(bar.get("high")) or price,
            "low": _last(bar.get("low")) or price,
            "previousClose": previous_close,
            "timestamp": int(time.time()),
        }
        self.cache.set(key, data)
        return data

    def historical(self, symbol: str, days: int = 30) -> List[Dict[str, Any]]:
        if not symbol:
            raise ValueError("Symbol is required")

        key = f"historical_{symbol}_{days}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        period2 = int(time.time())
        period1 = period2 - days * 86400
        result = self._chart(
            symbol, {"period1": period1, "period2": period2, "interval": "1d"}
        )

        timestamps = result.get("timestamp") or []
        bar = ((result.get("indicators") or {}).get("quote") or [{}])[0]

        bars = []
        for i, ts in enumerate(timestamps):
            close = _at(bar.get("close"), i)
            if close is None:
                continue
            bars.append(
                {
                    "date": datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat(),
                    "timestamp": ts,
                    "open": _at(bar.get("open"), i) or close,
                    "high": _at(bar.get("high"), i) or close,
                    "low": _at(bar.get("low"), i) or close,
                    "close": close,
                    "volume": _at(bar.get("volume"), i) or 0,
                }
            )

        self.cache.set(key, bars)
        return bars

    def search(self, query: str) -> List[Dict[str, str]]:
        if not query:
            raise ValueError("Query is required")

        response = self.session.get(
            SEARCH_URL,
            params={"q": query, "quotesCount": 10, "newsCount": 0},
            timeout=10,
        )
        if not response.ok:
            raise UpstreamError(f"Yahoo Finance API error: {response.status_code}")

        results = []
        for q in (response.json().get("quotes") or [])[:10]:
            name = q.get("longname") or q.get("shortname") or q.get("symbol")
            exchange = f" ({q['exchDisp']})" if q.get("exchDisp") else ""
            results.append({"symbol": q.get("symbol"), "description": f"{name}{exchange}"})
        return results
