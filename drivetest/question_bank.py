"""Admin question bank: write-time validation, create/update with answers, delete."""
import logging
from typing import Dict, List, Optional

from drivetest.data_source import DataSource
from drivetest.errors import QuestionValidationError
from engine import CATEGORIES, MIN_ANSWERS_PER_QUESTION

logger = logging.getLogger(__name__)


def empty_form(n_answers: int = 4) -> Dict:
    return {
        "question_text": "",
        "category": "general",
        "image_url": "",
        "answers": [{"answer_text": "", "is_correct": False} for _ in range(n_answers)],
    }


def form_from_question(question: Dict) -> Dict:
    """Editable form for an existing question row with nested answers."""
    return {
        "question_text": question.get("question_text", ""),
        "category": question.get("category", "general"),
        "image_url": question.get("image_url") or "",
        "answers": [
            {"answer_text": a.get("answer_text", ""), "is_correct": bool(a.get("is_correct"))}
            for a in question.get("answers") or []
        ],
    }


def validate_question_form(form: Dict) -> None:
    """
    Enforce the question bank invariants before anything is written.

    Exactly one answer may be correct: scoring compares a choice against the
    single correct-flagged option.

    Raises:
        QuestionValidationError: with a message fit for the admin
    """
    if not (form.get("question_text") or "").strip():
        raise QuestionValidationError("Question text is required")
    if form.get("category") not in CATEGORIES:
        raise QuestionValidationError(f"Category must be one of: {', '.join(CATEGORIES)}")
    answers = form.get("answers") or []
    if len(answers) < MIN_ANSWERS_PER_QUESTION:
        raise QuestionValidationError(f"At least {MIN_ANSWERS_PER_QUESTION} answer options are required")
    if any(not (a.get("answer_text") or "").strip() for a in answers):
        raise QuestionValidationError("All answer options are required")
    n_correct = sum(1 for a in answers if a.get("is_correct"))
    if n_correct != 1:
        raise QuestionValidationError("Exactly one answer must be marked correct")


def save_question(
    source: DataSource,
    form: Dict,
    question_id: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Dict:
    """Validate, then insert or update the question and replace its answers. Returns the question row."""
    validate_question_form(form)
    row = {
        "question_text": form["question_text"].strip(),
        "category": form["category"],
        "image_url": (form.get("image_url") or "").strip() or None,
    }
    if question_id:
        question = source.update_question(question_id, row)
    else:
        if created_by:
            row["created_by"] = created_by
        question = source.insert_question(row)

    answers: List[Dict] = [
        {
            "answer_text": a["answer_text"].strip(),
            "image_url": (a.get("image_url") or "").strip() or None,
            "is_correct": bool(a.get("is_correct")),
        }
        for a in form["answers"]
    ]
    saved = source.replace_answers(question["id"], answers)
    logger.info(f"{'Updated' if question_id else 'Created'} question {question['id']} with {len(saved)} answers")
    return dict(question, answers=saved)


def delete_question(source: DataSource, question_id: str) -> None:
    source.delete_question(question_id)
    logger.info(f"Deleted question {question_id}")
