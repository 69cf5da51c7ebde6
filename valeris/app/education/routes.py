from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.education.mentors import SESSION_TYPES, MentorService
from valeris.app.education.quizzes import QuizService

router = APIRouter(prefix="/education", tags=["education"])


class QuizSubmission(BaseModel):
    answers: Dict[str, Any]
    time_remaining_seconds: Optional[int] = None


class BookingRequest(BaseModel):
    mentor_id: str
    session_type: str = "review"
    date: str
    time: str = "09:00"
    notes: Optional[str] = None


class SessionStatusRequest(BaseModel):
    status: str


@router.get("/quizzes")
def quizzes(client=Depends(get_supabase)):
    return QuizService(client).published_quizzes()


@router.get("/quizzes/{quiz_id}/questions")
def quiz_questions(quiz_id: str, client=Depends(get_supabase)):
    # Answers stay server-side
    return [
        {k: v for k, v in q.items() if k not in ("correct_answer", "explanation")}
        for q in QuizService(client).questions(quiz_id)
    ]


@router.post("/quizzes/{quiz_id}/attempts")
def submit_quiz(
    quiz_id: str,
    body: QuizSubmission,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return QuizService(client).submit(
        user.id, quiz_id, body.answers, body.time_remaining_seconds
    )


@router.get("/mentors")
def mentors(specialty: Optional[str] = None, client=Depends(get_supabase)):
    return {"mentors": MentorService(client).mentors(specialty), "session_types": SESSION_TYPES}


@router.post("/sessions", status_code=201)
def book_session(
    body: BookingRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    return MentorService(client).book_session(
        user.id, body.mentor_id, body.session_type, body.date, body.time, body.notes
    )


@router.get("/sessions")
def upcoming_sessions(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return MentorService(client).upcoming_sessions(user.id)


@router.patch("/sessions/{session_id}")
def update_session(
    session_id: str,
    body: SessionStatusRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    MentorService(client).update_status(user.id, session_id, body.status)
    return {"success": True}
