import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.coach.coach import ERROR_MESSAGE, CoachService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coach", tags=["coach"])


class CoachRequest(BaseModel):
    message: str
    context: Optional[Dict[str, Any]] = None
    analysisType: Optional[str] = None


@router.post("")
def ask_coach(
    body: CoachRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    try:
        return CoachService(client).ask(user.id, body.message, body.context, body.analysisType)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"AI coach failed for {user.id}: {e}")
        raise HTTPException(status_code=500, detail=ERROR_MESSAGE)


@router.get("/history")
def history(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return CoachService(client).history(user.id)
