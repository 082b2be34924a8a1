"""
Data source interface shared by the live Supabase backend and the in-memory fixtures.

One implementation is chosen at process start (see db.get_data_source) and handed
to the exam session, the question bank and the Streamlit pages. Rows are plain
dicts shaped like the Supabase tables.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional


class DataSource(ABC):
    """Everything the app reads from or writes to the backing store."""

    name = "abstract"

    # ============= Questions =============

    @abstractmethod
    def fetch_question_pool(self) -> List[Dict]:
        """
        Return every question with its nested ``answers`` list.

        Raises:
            QuestionLoadError: store unreachable or response unusable
        """

    @abstractmethod
    def list_questions(self) -> List[Dict]:
        """Questions with answers, newest first (admin listing)."""

    @abstractmethod
    def get_question(self, question_id: str) -> Optional[Dict]:
        ...

    @abstractmethod
    def insert_question(self, row: Dict) -> Dict:
        ...

    @abstractmethod
    def update_question(self, question_id: str, row: Dict) -> Dict:
        ...

    @abstractmethod
    def replace_answers(self, question_id: str, answers: List[Dict]) -> List[Dict]:
        """Replace the question's answers with ``answers``; on failure the previous answers are kept."""

    @abstractmethod
    def delete_question(self, question_id: str) -> None:
        ...

    @abstractmethod
    def count_rows(self) -> Dict[str, int]:
        """Returns {questions, users, exams} counts for the admin dashboard."""

    # ============= Exams (result reporter) =============

    @abstractmethod
    def create_exam(self, user_id: str, mode: str, total_questions: int) -> str:
        """
        Insert an ``exams`` row and return its id.

        Raises:
            PersistenceError: insert failed
        """

    @abstractmethod
    def record_response(
        self,
        exam_id: str,
        question_id: str,
        chosen_answer_id: Optional[str],
        is_correct: Optional[bool],
    ) -> None:
        """One row per (exam_id, question_id): a changed choice updates the existing row."""

    @abstractmethod
    def finalize_exam(self, exam_id: str, end_time: datetime, score: int, passed: bool) -> None:
        ...

    @abstractmethod
    def get_exam(self, exam_id: str) -> Optional[Dict]:
        ...

    @abstractmethod
    def get_exam_responses(self, exam_id: str) -> List[Dict]:
        """Responses joined with ``question`` and ``chosen_answer`` rows."""

    @abstractmethod
    def get_recent_exams(self, user_id: str, limit: int = 5) -> List[Dict]:
        ...

    # ============= Accounts =============

    @abstractmethod
    def sign_up(self, email: str, password: str, profile: Dict) -> Dict:
        """Create the auth user and its ``users`` profile row; returns the profile."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Dict:
        """Returns the signed-in user's profile. Raises AuthError."""

    @abstractmethod
    def sign_out(self) -> None:
        ...

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Dict]:
        ...

    @abstractmethod
    def update_profile(self, user_id: str, changes: Dict) -> Dict:
        ...

    # ============= Subscriptions & payments =============

    @abstractmethod
    def get_active_subscription(self, user_id: str) -> Optional[Dict]:
        ...

    @abstractmethod
    def insert_payment(self, row: Dict) -> Dict:
        ...
