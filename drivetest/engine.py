"""
Exam session engine: question sequencing, answer capture, mock-test timer and scoring.
One ExamSession per attempt; lives in memory, reports to the data source at start,
per answered question (except learning mode) and once on submit.
"""
import logging
import math
import random
import threading
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, Optional, Tuple

from drivetest.data_source import DataSource
from drivetest.errors import ExamStartError, PersistenceError, QuestionLoadError
from drivetest.question_loader import load_question_set
from engine import MOCK_TEST_DURATION_SECONDS, MODE_LEARNING, MODE_MOCK_TEST, MODES, PASS_THRESHOLD

logger = logging.getLogger(__name__)


def correct_answer_for(question: Dict) -> Optional[Dict]:
    """First answer flagged correct, or None when the question has none."""
    return next((a for a in question.get("answers") or [] if a.get("is_correct")), None)


def is_choice_correct(question: Dict, answer_id: Optional[str]) -> bool:
    if answer_id is None:
        return False
    return any(a.get("id") == answer_id and a.get("is_correct") for a in question.get("answers") or [])


def percentage(correct: int, total: int) -> int:
    """round(100 * correct / total), halves rounded up; 0 for an empty exam."""
    if total <= 0:
        return 0
    value = Decimal(100 * correct) / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score_exam(questions: List[Dict], chosen: Dict[str, str]) -> Tuple[int, bool]:
    """
    Score a finished session.

    The denominator is the full question sequence: unanswered questions, and
    questions without a correct-flagged option, count as incorrect.

    Returns:
        (score 0-100, passed)
    """
    correct = sum(1 for q in questions if is_choice_correct(q, chosen.get(q["id"])))
    score = percentage(correct, len(questions))
    return score, score >= PASS_THRESHOLD


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExamSession:
    """State machine for one exam attempt: loading -> in_progress -> submitting -> completed."""

    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"

    def __init__(
        self,
        source: DataSource,
        user_id: str,
        mode: str,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if mode not in MODES:
            raise ValueError(f"Unknown exam mode: {mode!r}")
        self.source = source
        self.user_id = user_id
        self.mode = mode
        self.rng = rng
        self.clock = clock

        self.exam_id: Optional[str] = None
        self.questions: List[Dict] = []
        self.answers: Dict[str, str] = {}  # {question_id: chosen answer_id}
        self.current_question_idx = 0
        self.show_explanation = False

        self.status = self.LOADING
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None
        self.score: Optional[int] = None
        self.passed: Optional[bool] = None
        self.finalize_error: Optional[PersistenceError] = None

        self._persisted: Dict[str, str] = {}  # {question_id: answer_id already recorded}
        self._submit_lock = threading.Lock()

    # ----- lifecycle -----

    def start(self) -> "ExamSession":
        """
        Load the question set and create the exam record.

        Raises:
            ExamStartError: questions could not be loaded or the exam row could not be created
        """
        if self.status != self.LOADING:
            return self
        try:
            self.questions = load_question_set(self.source, self.mode, rng=self.rng)
        except QuestionLoadError as e:
            self.questions = []
            logger.error(f"Failed to load questions for {self.mode}: {e}")
            raise ExamStartError("Failed to load questions") from e

        try:
            self.exam_id = self.source.create_exam(self.user_id, self.mode, len(self.questions))
        except PersistenceError as e:
            logger.error(f"Failed to create exam session: {e}")
            raise ExamStartError("Failed to start exam") from e

        self.started_at = self.clock()
        self.status = self.IN_PROGRESS
        logger.info(f"Exam {self.exam_id} started: mode={self.mode}, questions={len(self.questions)}")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == self.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.status == self.COMPLETED

    # ----- navigation & answers -----

    @property
    def current_question(self) -> Optional[Dict]:
        if not self.questions:
            return None
        return self.questions[self.current_question_idx]

    @property
    def is_last_question(self) -> bool:
        return self.current_question_idx >= len(self.questions) - 1

    def selected_answer_id(self) -> Optional[str]:
        q = self.current_question
        return self.answers.get(q["id"]) if q else None

    def current_correct_answer(self) -> Optional[Dict]:
        q = self.current_question
        return correct_answer_for(q) if q else None

    def select_answer(self, answer_id: str) -> None:
        """Record (or replace) the choice for the current question. Does not move."""
        if not self.is_active:
            return
        q = self.current_question
        if q is None or not any(a.get("id") == answer_id for a in q.get("answers") or []):
            raise ValueError(f"Answer {answer_id!r} is not an option of the current question")
        self.answers[q["id"]] = answer_id
        if self.mode == MODE_LEARNING:
            self.show_explanation = True
        logger.debug(f"Exam {self.exam_id}: Q={q['id'][:8]} -> A={answer_id[:8]}")

    def advance(self) -> str:
        """Save the current response, then move forward, or submit on the last question."""
        if not self.is_active:
            return self.status
        if self.mode != MODE_LEARNING:
            self._persist_current_response()
        if not self.is_last_question:
            self.current_question_idx += 1
            self.show_explanation = False
        else:
            self.submit()
        return self.status

    def retreat(self) -> None:
        if not self.is_active or self.current_question_idx == 0:
            return
        self.current_question_idx -= 1
        self.show_explanation = False

    def _persist_current_response(self) -> None:
        q = self.current_question
        if q is None:
            return
        answer_id = self.answers.get(q["id"])
        if answer_id is None or self._persisted.get(q["id"]) == answer_id:
            return
        try:
            self.source.record_response(self.exam_id, q["id"], answer_id, is_choice_correct(q, answer_id))
            self._persisted[q["id"]] = answer_id
        except Exception as e:
            logger.error(f"Error saving response for exam {self.exam_id}: {e}")

    # ----- timer -----

    def time_remaining(self, now: Optional[datetime] = None) -> Optional[int]:
        """Seconds left on the mock-test countdown; None for untimed modes."""
        if self.mode != MODE_MOCK_TEST or self.started_at is None:
            return None
        if self.ended_at is not None:
            now = self.ended_at
        elapsed = ((now or self.clock()) - self.started_at).total_seconds()
        return max(0, math.ceil(MOCK_TEST_DURATION_SECONDS - elapsed))

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Force submission once the countdown reaches zero. Returns True if this call submitted."""
        if not self.is_active or self.mode != MODE_MOCK_TEST:
            return False
        if self.time_remaining(now) > 0:
            return False
        logger.info(f"Exam {self.exam_id}: time is up, submitting")
        return self._submit() is not None

    # ----- submission -----

    def submit(self) -> Dict:
        """Score and finalize the session. Safe to call repeatedly; only the first call has effects."""
        self._submit()
        return self.result()

    def _submit(self) -> Optional[Dict]:
        with self._submit_lock:
            if self.status != self.IN_PROGRESS:
                return None
            self.status = self.SUBMITTING

        if self.mode != MODE_LEARNING:
            self._persist_current_response()
        self.score, self.passed = score_exam(self.questions, self.answers)
        self.ended_at = self.clock()
        self.status = self.COMPLETED

        try:
            self.source.finalize_exam(self.exam_id, self.ended_at, self.score, self.passed)
        except PersistenceError as e:
            self.finalize_error = e
            logger.error(f"Exam {self.exam_id}: result not saved: {e}")

        logger.info(f"Exam {self.exam_id} completed: Score={self.score}%, Pass={self.passed}")
        return self.result()

    # ----- summaries -----

    def result(self) -> Dict:
        correct = sum(1 for q in self.questions if is_choice_correct(q, self.answers.get(q["id"])))
        return {
            "exam_id": self.exam_id,
            "mode": self.mode,
            "status": self.status,
            "score": self.score,
            "passed": self.passed,
            "total_questions": len(self.questions),
            "questions_answered": len(self.answers),
            "correct_count": correct,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "saved": self.finalize_error is None,
        }

    def get_session_summary(self, now: Optional[datetime] = None) -> Dict:
        """Real-time progress for the exam header."""
        total = len(self.questions)
        return {
            "exam_id": self.exam_id,
            "current_question": self.current_question_idx + 1,
            "total_questions": total,
            "questions_answered": len(self.answers),
            "progress": (self.current_question_idx + 1) / total if total else 0,
            "time_remaining_sec": self.time_remaining(now),
        }
