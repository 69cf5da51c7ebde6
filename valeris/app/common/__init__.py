# valeris.app.common package
from valeris.app.common.config import Config, get_config
from valeris.app.common.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValerisError,
)
from valeris.app.common.supabase_client import get_client, insert_row

__all__ = [
    "Config",
    "get_config",
    "get_client",
    "insert_row",
    "ValerisError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "UpstreamError",
]
