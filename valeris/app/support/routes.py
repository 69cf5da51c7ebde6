from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from valeris.app.api.auth import AuthUser, current_user, get_supabase, require_admin
from valeris.app.support.tickets import SupportService

router = APIRouter(prefix="/support", tags=["support"])


class TicketRequest(BaseModel):
    subject: str
    message: str
    category: str = "general"
    priority: str = "medium"


class ReplyRequest(BaseModel):
    message: str


class TicketUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[str] = None


@router.post("/tickets", status_code=201)
def submit_ticket(
    body: TicketRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return SupportService(client).submit_ticket(
        user.id, body.subject, body.message, body.category, body.priority
    )


@router.get("/tickets")
def my_tickets(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return SupportService(client).my_tickets(user.id)


@router.get("/tickets/{ticket_id}/responses")
def responses(
    ticket_id: str,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    service = SupportService(client)
    service.get_ticket(ticket_id, user.id)
    return service.responses(ticket_id)


@router.post("/tickets/{ticket_id}/responses", status_code=201)
def reply(
    ticket_id: str,
    body: ReplyRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return SupportService(client).reply(user.id, ticket_id, body.message)


# =======================
# Admin
# =======================

@router.get("/admin/tickets")
def all_tickets(
    status: Optional[str] = None,
    search: Optional[str] = None,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    return SupportService(client).all_tickets(status, search)


@router.post("/admin/tickets/{ticket_id}/responses", status_code=201)
def admin_reply(
    ticket_id: str,
    body: ReplyRequest,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    return SupportService(client).reply(admin.id, ticket_id, body.message, is_admin=True)


@router.patch("/admin/tickets/{ticket_id}")
def update_ticket(
    ticket_id: str,
    body: TicketUpdate,
    admin: AuthUser = Depends(require_admin),
    client=Depends(get_supabase),
):
    service = SupportService(client)
    if body.status:
        service.update_status(ticket_id, body.status)
    if body.priority:
        service.update_priority(ticket_id, body.priority)
    return service.get_ticket(ticket_id)
