from fastapi import APIRouter, Depends
from pydantic import BaseModel

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.evaluation.challenges import (
    CHALLENGE_TEMPLATES,
    EvaluationService,
    challenge_progress,
)

router = APIRouter(prefix="/evaluations", tags=["evaluation"])


class StartChallengeRequest(BaseModel):
    template: str


class EndChallengeRequest(BaseModel):
    status: str


@router.get("/templates")
def templates():
    return [vars(t) for t in CHALLENGE_TEMPLATES.values()]


@router.get("/active")
def active(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    challenge = EvaluationService(client).active_challenge(user.id)
    if challenge is None:
        return {"challenge": None}
    return {"challenge": challenge.to_dict(), "progress": challenge_progress(challenge)}


@router.post("", status_code=201)
def start(
    body: StartChallengeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    challenge = EvaluationService(client).create_challenge(user.id, body.template)
    return {"challenge": challenge.to_dict(), "progress": challenge_progress(challenge)}


@router.post("/refresh")
def refresh(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return EvaluationService(client).refresh_challenge(user.id)


@router.post("/end")
def end(
    body: EndChallengeRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return EvaluationService(client).end_challenge(user.id, body.status).to_dict()
