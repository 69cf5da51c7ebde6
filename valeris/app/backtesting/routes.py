"""
FastAPI routes for strategy backtests.
Endpoints: /backtests
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.backtesting.engine import BacktestService
from valeris.app.common.errors import ValerisError
from valeris.app.market.quotes import YahooFinanceClient
from valeris.app.market.routes import get_yahoo_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backtests", tags=["backtests"])


class StrategyModel(BaseModel):
    name: str
    entryRules: List[str] = Field(default_factory=list)
    exitRules: List[str] = Field(default_factory=list)
    stopLoss: Optional[float] = None
    takeProfit: Optional[float] = None
    positionSize: float = 1.0


class BacktestRequest(BaseModel):
    symbol: str
    startDate: str
    endDate: str
    strategy: StrategyModel
    initialCapital: float = 100000.0


@router.post("")
def run_backtest(
    body: BacktestRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
    yahoo: YahooFinanceClient = Depends(get_yahoo_client),
):
    try:
        return BacktestService(client, yahoo).run(
            user.id,
            body.symbol,
            body.startDate,
            body.endDate,
            body.strategy.model_dump(),
            body.initialCapital,
        )
    except (ValerisError, ValueError):
        raise
    except Exception as e:
        logger.error(f"Backtest failed for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to run backtest")


@router.get("")
def backtest_history(
    limit: int = Query(20, ge=1, le=100),
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return BacktestService(client).history(user.id, limit)
