"""
Main FastAPI application for Valeris.
Mounts every feature router and maps service errors to HTTP responses.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from valeris.app.accounts.routes import router as accounts_router
from valeris.app.admin.routes import router as admin_router
from valeris.app.analytics.routes import router as analytics_router
from valeris.app.backtesting.routes import router as backtesting_router
from valeris.app.api.routes import router
from valeris.app.broker.routes import router as broker_router
from valeris.app.coach.routes import router as coach_router
from valeris.app.common.config import get_config
from valeris.app.common.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValerisError,
)
from valeris.app.education.routes import router as education_router
from valeris.app.evaluation.routes import router as evaluation_router
from valeris.app.journal.routes import router as journal_router
from valeris.app.market.routes import router as market_router
from valeris.app.notifications.routes import router as notifications_router
from valeris.app.reports.routes import router as reports_router
from valeris.app.support.routes import router as support_router
from valeris.app.tracking.routes import router as tracking_router
from valeris.app.webhooks.routes import router as webhooks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    UnauthorizedError: 401,
    ForbiddenError: 403,
    UpstreamError: 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    config.validate()

    missing = config.missing_features()
    if missing:
        logger.warning(f"Running without: {', '.join(missing)}")
    logger.info(f"Valeris API started ({config.environment})")

    yield

    logger.info("Valeris API stopped")


app = FastAPI(
    title="Valeris",
    description="Trading journal, analytics and trader education",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey"],
)


@app.exception_handler(ValerisError)
async def valeris_error_handler(request: Request, exc: ValerisError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content={"error": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


app.include_router(router)
app.include_router(accounts_router)
app.include_router(admin_router)
app.include_router(analytics_router)
app.include_router(backtesting_router)
app.include_router(broker_router)
app.include_router(coach_router)
app.include_router(education_router)
app.include_router(evaluation_router)
app.include_router(journal_router)
app.include_router(market_router)
app.include_router(notifications_router)
app.include_router(reports_router)
app.include_router(support_router)
app.include_router(tracking_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    return {
        "service": "valeris",
        "status": "running",
    }
