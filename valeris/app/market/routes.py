"""
FastAPI routes for market data.
Endpoints: /market/quote, /market/historical, /market/search, /market/news
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from valeris.app.api.auth import enforce_rate_limit, get_supabase
from valeris.app.common.errors import UpstreamError
from valeris.app.market.news import NewsFetcher
from valeris.app.market.quotes import YahooFinanceClient

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/market", tags=["market"], dependencies=[Depends(enforce_rate_limit)]
)

# Shared so the quote cache survives between requests
_yahoo: Optional[YahooFinanceClient] = None


def get_yahoo_client() -> YahooFinanceClient:
    global _yahoo
    if _yahoo is None:
        _yahoo = YahooFinanceClient()
    return _yahoo


def _upstream(fn, *args):
    try:
        return fn(*args)
    except UpstreamError as e:
        logger.error(f"Market data request failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/quote")
def quote(symbol: str = Query(...), yahoo: YahooFinanceClient = Depends(get_yahoo_client)):
    return _upstream(yahoo.quote, symbol)


@router.get("/historical")
def historical(
    symbol: str = Query(...),
    days: int = Query(30, ge=1, le=3650),
    yahoo: YahooFinanceClient = Depends(get_yahoo_client),
):
    return _upstream(yahoo.historical, symbol, days)


@router.get("/search")
def search(q: str = Query(...), yahoo: YahooFinanceClient = Depends(get_yahoo_client)):
    return _upstream(yahoo.search, q)


@router.get("/news")
def news(
    limit: int = Query(20, le=100),
    category: Optional[str] = None,
    client=Depends(get_supabase),
):
    return NewsFetcher(client=client).recent(limit, category)


@router.post("/news/fetch")
def fetch_market_news(store: bool = Query(True), client=Depends(get_supabase)):
    fetcher = NewsFetcher(client=client)
    result = fetcher.fetch()
    if store and result["data"]:
        result["stored"] = fetcher.store(result["data"])
    return result
