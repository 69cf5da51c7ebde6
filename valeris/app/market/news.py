"""
RSS market news fetching.
Items are tagged with keyword sentiment, impact level and related futures symbols.
"""

import logging
import re
import xml.etree.ElementTree as ET
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from valeris.app.common.config import get_config
from valeris.app.common.supabase_client import get_client

logger = logging.getLogger(__name__)

MAX_FEED_BYTES = 2_000_000

BULLISH_WORDS = [
    "rally", "surge", "soar", "gain", "gains", "jump", "record high", "beat",
    "upgrade", "rebound", "bullish", "climb", "rise", "rises",
]
BEARISH_WORDS = [
    "plunge", "slump", "fall", "falls", "drop", "tumble", "miss", "downgrade",
    "selloff", "sell-off", "bearish", "recession", "crash", "slide",
]
HIGH_IMPACT_WORDS = [
    "fed", "fomc", "powell", "cpi", "inflation", "payrolls", "jobs report",
    "gdp", "rate hike", "rate cut", "opec",
]
INSTRUMENT_KEYWORDS = {
    "ES": ["s&p", "stocks", "wall street"],
    "NQ": ["nasdaq", "tech stocks"],
    "CL": ["oil", "crude", "opec"],
    "GC": ["gold"],
    "ZN": ["treasury", "bond yields", "yields"],
}


def _count(words: List[str], text: str) -> int:
    return sum(1 for w in words if re.search(r"\b" + re.escape(w) + r"\b", text))


def headline_sentiment(text: str) -> str:
    """Keyword-count sentiment: bullish, bearish or neutral."""
    if not text:
        return "neutral"
    lowered = text.lower()
    bull, bear = _count(BULLISH_WORDS, lowered), _count(BEARISH_WORDS, lowered)
    if bull > bear:
        return "bullish"
    if bear > bull:
        return "bearish"
    return "neutral"


def impact_level(text: str) -> str:
    return "high" if _count(HIGH_IMPACT_WORDS, text.lower()) else "medium"


def related_instruments(text: str) -> List[str]:
    lowered = text.lower()
    return [
        symbol
        for symbol, words in INSTRUMENT_KEYWORDS.items()
        if any(w in lowered for w in words)
    ]


def _published(value: str) -> str:
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc).isoformat()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def parse_feed(xml_bytes: bytes, source: str) -> List[Dict[str, Any]]:
    """
    Parse RSS 2.0 into market_news rows.
    Raises ValueError if the document declares a DTD or entities.
    """
    upper = xml_bytes.upper()
    if b"<!ENTITY" in upper or b"<!DOCTYPE" in upper:
        raise ValueError("RSS feed contains DTD/entity definitions")

    channel = ET.fromstring(xml_bytes).find("channel")
    if channel is None:
        return []

    items = []
    for item in channel.findall("item"):
        title = (item.findtext("title") or "").strip()
        if not title:
            continue
        summary = (item.findtext("description") or "").strip()[:500]
        text = f"{title} {summary}"
        items.append(
            {
                "title": title[:300],
                "summary": summary,
                "source": source,
                "source_url": (item.findtext("link") or "").strip(),
                "category": (item.findtext("category") or "markets").strip().lower(),
                "sentiment": headline_sentiment(text),
                "impact_level": impact_level(text),
                "published_at": _published((item.findtext("pubDate") or "").strip()),
                "related_instruments": related_instruments(text),
            }
        )
    return items


class NewsFetcher:
    """Pulls configured RSS feeds and stores them as market_news rows."""

    def __init__(
        self,
        feeds: Optional[List[str]] = None,
        session: Optional[requests.Session] = None,
        client=None,
    ):
        self.feeds = feeds if feeds is not None else get_config().news_feeds
        self.session = session or requests.Session()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    def fetch(self) -> Dict[str, Any]:
        data: List[Dict[str, Any]] = []
        errors: List[str] = []

        for url in self.feeds:
            source = urlparse(url).netloc or url
            try:
                response = self.session.get(
                    url,
                    headers={"Accept": "application/rss+xml, application/xml, text/xml"},
                    timeout=15,
                )
                response.raise_for_status()
                if len(response.content) > MAX_FEED_BYTES:
                    raise ValueError(f"feed too large ({len(response.content)} bytes)")
                items = parse_feed(response.content, source)
                data.extend(items)
                logger.info(f"RSS {source}: {len(items)} items")
            except Exception as e:
                logger.error(f"Failed to fetch news feed {source}: {e}")
                errors.append(f"{source}: {e}")

        data.sort(key=lambda n: n["published_at"], reverse=True)
        return {"success": bool(data) or not errors, "data": data, "errors": errors}

    def store(self, items: List[Dict[str, Any]]) -> int:
        if not items:
            return 0
        self.client.table("market_news").insert(items).execute()
        return len(items)

    def recent(self, limit: int = 20, category: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.client.table("market_news").select("*")
        if category:
            query = query.eq("category", category)
        return query.order("published_at", desc=True).limit(limit).execute().data or []
