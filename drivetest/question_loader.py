"""Question set selection: mode-dependent size, shuffled questions, shuffled answers."""
import logging
import random
from typing import Dict, List, Optional

from drivetest.data_source import DataSource
from drivetest.errors import QuestionLoadError
from engine import QUESTION_COUNTS

logger = logging.getLogger(__name__)


def question_count_for(mode: str) -> int:
    if mode not in QUESTION_COUNTS:
        raise ValueError(f"Unknown exam mode: {mode!r}")
    return QUESTION_COUNTS[mode]


def _validate_pool(pool) -> List[Dict]:
    """Reject anything that is not a list of question rows with an answers list."""
    if not isinstance(pool, list):
        raise QuestionLoadError(f"Expected a list of questions, got {type(pool).__name__}")
    for row in pool:
        if not isinstance(row, dict) or not row.get("id") or "question_text" not in row:
            raise QuestionLoadError(f"Malformed question row: {row!r}")
        answers = row.get("answers")
        if answers is None:
            continue
        if not isinstance(answers, list) or any(not isinstance(a, dict) or not a.get("id") for a in answers):
            raise QuestionLoadError(f"Malformed answers for question {row['id']}")
    return pool


def load_question_set(source: DataSource, mode: str, rng: Optional[random.Random] = None) -> List[Dict]:
    """
    Build the ordered question sequence for a new session.

    Args:
        source: data source to fetch the pool from
        mode: practice, mock_test or learning (decides how many questions)
        rng: random generator, for reproducible sessions in tests

    Returns:
        Up to QUESTION_COUNTS[mode] questions in random order, each with its
        answers in random order. A pool smaller than the count is used whole.

    Raises:
        QuestionLoadError: source unreachable or rows malformed
    """
    rng = rng or random.Random()
    count = question_count_for(mode)
    pool = _validate_pool(source.fetch_question_pool())

    if len(pool) < count:
        logger.warning(f"Only {len(pool)} questions available, need {count} for {mode}")
    picked = rng.sample(pool, min(count, len(pool)))

    questions = []
    for q in picked:
        answers = list(q.get("answers") or [])
        rng.shuffle(answers)
        questions.append(dict(q, answers=answers))

    logger.info(f"Selected {len(questions)} of {len(pool)} questions for {mode}")
    return questions
