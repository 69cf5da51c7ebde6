from fastapi import APIRouter, Depends
from pydantic import BaseModel

from valeris.app.api.auth import AuthUser, current_user
from valeris.app.notifications.email import EmailNotifier

router = APIRouter(prefix="/notifications", tags=["notifications"])


class EmailRequest(BaseModel):
    to: str = ""
    subject: str = ""
    body: str = ""
    type: str = "general"


@router.post("/email")
def send_email(body: EmailRequest, user: AuthUser = Depends(current_user)):
    return EmailNotifier().send(body.to, body.subject, body.body, body.type)
