"""Result review and dashboard statistics built from exam and response rows."""
import logging
from typing import Dict, List

from drivetest.data_source import DataSource
from drivetest.engine import percentage
from engine import RECENT_EXAMS_LIMIT

logger = logging.getLogger(__name__)


def summarize_exams(exams: List[Dict]) -> Dict:
    """Returns {total_exams, average_score, passed_exams} for the student dashboard."""
    if not exams:
        return {"total_exams": 0, "average_score": 0, "passed_exams": 0}
    total = len(exams)
    score_sum = sum(int(e.get("score") or 0) for e in exams)
    return {
        "total_exams": total,
        "average_score": percentage(score_sum, total * 100),
        "passed_exams": sum(1 for e in exams if e.get("passed")),
    }


def review_rows(responses: List[Dict]) -> List[Dict]:
    """Flatten joined response rows into what the results page lists per question."""
    rows = []
    for i, r in enumerate(responses, start=1):
        question = r.get("question") or {}
        chosen = r.get("chosen_answer") or {}
        rows.append({
            "number": i,
            "question_text": question.get("question_text", ""),
            "category": question.get("category", "general"),
            "chosen_answer_text": chosen.get("answer_text") or "Not answered",
            "is_correct": bool(r.get("is_correct")),
        })
    return rows


def correct_count(responses: List[Dict]) -> int:
    return sum(1 for r in responses if r.get("is_correct"))


def load_dashboard(source: DataSource, user_id: str) -> Dict:
    """Recent exams, their summary and the active subscription for one student."""
    exams = source.get_recent_exams(user_id, limit=RECENT_EXAMS_LIMIT)
    return {
        "recent_exams": exams,
        "stats": summarize_exams(exams),
        "subscription": source.get_active_subscription(user_id),
    }


def load_exam_review(source: DataSource, exam_id: str) -> Dict:
    exam = source.get_exam(exam_id)
    responses = source.get_exam_responses(exam_id)
    if exam is None:
        logger.warning(f"Exam {exam_id} not found for review")
    return {
        "exam": exam,
        "rows": review_rows(responses),
        "correct_count": correct_count(responses),
        "total_responses": len(responses),
    }
