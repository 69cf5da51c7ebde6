import logging
from typing import Any, Dict, List, Optional

from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

DEFAULT_PASSING_SCORE = 70


def grade_quiz(
    questions: List[Dict[str, Any]],
    answers: Dict[str, Any],
    passing_score: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Score answers against quiz_questions rows.
    An answer earns the question's points only on an exact match (lists compared in order).
    """
    score = 0
    total_points = 0
    for q in questions:
        points = int(q.get("points") or 0)
        total_points += points
        if q["id"] in answers and answers[q["id"]] == q.get("correct_answer"):
            score += points

    percentage = round(score / total_points * 100) if total_points else 0
    threshold = passing_score if passing_score is not None else DEFAULT_PASSING_SCORE
    return {
        "score": score,
        "total_points": total_points,
        "percentage": percentage,
        "passed": percentage >= threshold,
    }


class QuizService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def published_quizzes(self) -> List[Dict[str, Any]]:
        return (
            self.client.table("quizzes").select("*").eq("is_published", True).execute()
        ).data or []

    def questions(self, quiz_id: str) -> List[Dict[str, Any]]:
        return (
            self.client.table("quiz_questions")
            .select("*")
            .eq("quiz_id", quiz_id)
            .order("order_index")
            .execute()
        ).data or []

    def submit(
        self,
        user_id: str,
        quiz_id: str,
        answers: Dict[str, Any],
        time_remaining_seconds: Optional[int] = None,
    ) -> Dict[str, Any]:
        quiz = first_row(
            self.client.table("quizzes").select("*").eq("id", quiz_id).limit(1).execute()
        )
        if quiz is None:
            raise NotFoundError("Quiz not found")

        result = grade_quiz(self.questions(quiz_id), answers, quiz.get("passing_score"))

        time_taken = None
        if quiz.get("time_limit_minutes"):
            time_taken = quiz["time_limit_minutes"] * 60 - (time_remaining_seconds or 0)

        self.client.table("user_quiz_attempts").insert(
            {
                "user_id": user_id,
                "quiz_id": quiz_id,
                "score": result["score"],
                "total_points": result["total_points"],
                "percentage": result["percentage"],
                "passed": result["passed"],
                "answers": answers,
                "time_taken_seconds": time_taken,
            }
        ).execute()

        logger.info(f"Quiz {quiz_id} attempt by {user_id}: {result['percentage']}%")
        return result

    def attempts(self, user_id: str, quiz_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.client.table("user_quiz_attempts").select("*").eq("user_id", user_id)
        if quiz_id:
            query = query.eq("quiz_id", quiz_id)
        return query.order("created_at", desc=True).execute().data or []
