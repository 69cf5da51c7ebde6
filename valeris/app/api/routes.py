"""
Service-level routes.
Endpoints: /health, /config/features
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter
from pydantic import BaseModel

from valeris.app.common.config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["service"])


# =======================
# Response Models
# =======================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    missing_features: List[str]


class FeaturesResponse(BaseModel):
    features: Dict[str, bool]


# =======================
# Routes
# =======================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    config = get_config()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=config.environment,
        missing_features=config.missing_features(),
    )


@router.get("/config/features", response_model=FeaturesResponse)
async def feature_flags():
    """Which integrations have credentials configured."""
    return FeaturesResponse(features=get_config().features())
