"""
Supabase data source for DriveTest.
Handles questions/answers, exams and responses, accounts, subscriptions and payments.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from supabase import Client

from drivetest.data_source import DataSource
from drivetest.errors import AuthError, PersistenceError, QuestionLoadError

logger = logging.getLogger(__name__)

QUESTION_WITH_ANSWERS = "*, answers(*)"
RESPONSE_WITH_JOINS = "*, question:questions(*), chosen_answer:answers(*)"
INVALID_CREDENTIALS = "Invalid login credentials"


class SupabaseDataSource(DataSource):
    """Wrapper around a Supabase client with DriveTest-specific operations."""

    name = "supabase"
    PAGE_SIZE = 1000

    def __init__(self, client: Client):
        self.client = client

    # ============= Questions =============

    def fetch_question_pool(self) -> List[Dict]:
        """Page through all questions with their answers (Supabase caps a response at ~1000 rows)."""
        all_rows = []
        offset = 0
        try:
            while True:
                r = (
                    self.client.table("questions")
                    .select(QUESTION_WITH_ANSWERS)
                    .range(offset, offset + self.PAGE_SIZE - 1)
                    .execute()
                )
                data = r.data or []
                if not data:
                    break
                all_rows.extend(data)
                if len(data) < self.PAGE_SIZE:
                    break
                offset += self.PAGE_SIZE
        except Exception as e:
            logger.error(f"Error fetching question pool: {e}")
            raise QuestionLoadError(f"Could not fetch questions: {e}") from e
        logger.info(f"Fetched {len(all_rows)} questions")
        return all_rows

    def list_questions(self) -> List[Dict]:
        try:
            response = (
                self.client.table("questions")
                .select(QUESTION_WITH_ANSWERS)
                .order("created_at", desc=True)
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error listing questions: {e}")
            raise QuestionLoadError(f"Could not list questions: {e}") from e

    def get_question(self, question_id: str) -> Optional[Dict]:
        try:
            response = (
                self.client.table("questions")
                .select(QUESTION_WITH_ANSWERS)
                .eq("id", str(question_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching question {question_id}: {e}")
            return None
        return response.data[0] if response.data else None

    def insert_question(self, row: Dict) -> Dict:
        return self._insert_one("questions", row)

    def update_question(self, question_id: str, row: Dict) -> Dict:
        try:
            response = self.client.table("questions").update(row).eq("id", str(question_id)).execute()
        except Exception as e:
            logger.error(f"Error updating question {question_id}: {e}")
            raise PersistenceError(f"Could not update question: {e}") from e
        if not response.data:
            raise PersistenceError(f"Question {question_id} not found")
        return response.data[0]

    def replace_answers(self, question_id: str, answers: List[Dict]) -> List[Dict]:
        """Insert the new answers first, then drop the old ones, so a failed insert leaves the question intact."""
        qid = str(question_id)
        rows = [dict(a, question_id=qid) for a in answers]
        try:
            existing = self.client.table("answers").select("id").eq("question_id", qid).execute()
            old_ids = [a["id"] for a in existing.data or []]
            response = self.client.table("answers").insert(rows).execute()
        except Exception as e:
            logger.error(f"Error inserting answers for {question_id}: {e}")
            raise PersistenceError(f"Could not save answers (the previous answers were kept): {e}") from e

        if old_ids:
            try:
                self.client.table("answers").delete().in_("id", old_ids).execute()
            except Exception as e:
                logger.error(f"Error removing old answers for {question_id}: {e}")
                raise PersistenceError(
                    f"New answers saved but the old ones could not be removed; edit the question again: {e}"
                ) from e
        return response.data or []

    def delete_question(self, question_id: str) -> None:
        try:
            self.client.table("questions").delete().eq("id", str(question_id)).execute()
        except Exception as e:
            logger.error(f"Error deleting question {question_id}: {e}")
            raise PersistenceError(f"Could not delete question: {e}") from e

    def count_rows(self) -> Dict[str, int]:
        out = {"questions": 0, "users": 0, "exams": 0}
        for table in out:
            try:
                r = self.client.table(table).select("id", count="exact").limit(0).execute()
                out[table] = getattr(r, "count", None) or 0
            except Exception as e:
                logger.error(f"Error counting {table}: {e}")
        return out

    # ============= Exams =============

    def create_exam(self, user_id: str, mode: str, total_questions: int) -> str:
        row = {
            "user_id": str(user_id),
            "mode": mode,
            "total_questions": total_questions,
            "start_time": _now_iso(),
        }
        return self._insert_one("exams", row)["id"]

    def record_response(
        self,
        exam_id: str,
        question_id: str,
        chosen_answer_id: Optional[str],
        is_correct: Optional[bool],
    ) -> None:
        changes = {"chosen_answer_id": chosen_answer_id, "is_correct": is_correct}
        try:
            response = (
                self.client.table("exam_responses")
                .update(changes)
                .eq("exam_id", str(exam_id))
                .eq("question_id", str(question_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Error updating response for exam {exam_id}: {e}")
            raise PersistenceError(f"Could not save response: {e}") from e
        if response.data:
            return
        # no row for this question yet
        self._insert_one("exam_responses", dict(changes, exam_id=str(exam_id), question_id=str(question_id)))

    def finalize_exam(self, exam_id: str, end_time: datetime, score: int, passed: bool) -> None:
        update_data = {
            "end_time": end_time.isoformat(),
            "score": score,
            "passed": passed,
        }
        try:
            self.client.table("exams").update(update_data).eq("id", str(exam_id)).execute()
        except Exception as e:
            logger.error(f"Error finalizing exam {exam_id}: {e}")
            raise PersistenceError(f"Could not save exam result: {e}") from e

    def get_exam(self, exam_id: str) -> Optional[Dict]:
        try:
            response = self.client.table("exams").select("*").eq("id", str(exam_id)).limit(1).execute()
        except Exception as e:
            logger.error(f"Error fetching exam {exam_id}: {e}")
            return None
        return response.data[0] if response.data else None

    def get_exam_responses(self, exam_id: str) -> List[Dict]:
        try:
            response = (
                self.client.table("exam_responses")
                .select(RESPONSE_WITH_JOINS)
                .eq("exam_id", str(exam_id))
                .order("created_at")
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching responses for exam {exam_id}: {e}")
            return []

    def get_recent_exams(self, user_id: str, limit: int = 5) -> List[Dict]:
        try:
            response = (
                self.client.table("exams")
                .select("*")
                .eq("user_id", str(user_id))
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching exam history: {e}")
            return []

    # ============= Accounts =============

    def sign_up(self, email: str, password: str, profile: Dict) -> Dict:
        try:
            auth = self.client.auth.sign_up({"email": email, "password": password})
        except Exception as e:
            logger.error(f"Sign up failed for {email}: {e}")
            raise AuthError(str(e) or "Could not create account") from e
        if not auth.user:
            raise AuthError("Could not create account")
        row = {"role": "student", **profile, "id": auth.user.id, "email": email}
        try:
            return self._insert_one("users", row)
        except PersistenceError as e:
            raise AuthError("Account created but profile setup failed. Please contact support.") from e

    def sign_in(self, email: str, password: str) -> Dict:
        try:
            auth = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.warning(f"Sign in failed for {email}: {e}")
            if INVALID_CREDENTIALS in str(e):
                raise AuthError("Invalid email or password. Please check your credentials and try again.") from e
            raise AuthError(str(e) or "An error occurred during sign in") from e
        profile = self.get_profile(auth.user.id) if auth.user else None
        if profile is None:
            raise AuthError("No profile found for this account. Please contact support.")
        return profile

    def sign_out(self) -> None:
        try:
            self.client.auth.sign_out()
        except Exception as e:
            logger.error(f"Sign out failed: {e}")
            raise AuthError(str(e)) from e

    def get_profile(self, user_id: str) -> Optional[Dict]:
        try:
            response = self.client.table("users").select("*").eq("id", str(user_id)).limit(1).execute()
        except Exception as e:
            logger.error(f"Error fetching user profile: {e}")
            return None
        return response.data[0] if response.data else None

    def update_profile(self, user_id: str, changes: Dict) -> Dict:
        changes = dict(changes, updated_at=_now_iso())
        try:
            response = self.client.table("users").update(changes).eq("id", str(user_id)).execute()
        except Exception as e:
            logger.error(f"Error updating profile {user_id}: {e}")
            raise PersistenceError(f"Could not update profile: {e}") from e
        return response.data[0] if response.data else {}

    # ============= Subscriptions & payments =============

    def get_active_subscription(self, user_id: str) -> Optional[Dict]:
        try:
            response = (
                self.client.table("subscriptions")
                .select("*")
                .eq("user_id", str(user_id))
                .eq("status", "active")
                .order("start_date", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching subscription: {e}")
            return None
        return response.data[0] if response.data else None

    def insert_payment(self, row: Dict) -> Dict:
        return self._insert_one("payments", row)

    def _insert_one(self, table: str, row: Dict) -> Dict:
        try:
            response = self.client.table(table).insert(row).execute()
        except Exception as e:
            logger.error(f"Error inserting into {table}: {e}")
            raise PersistenceError(f"Could not write to {table}: {e}") from e
        if not response.data:
            raise PersistenceError(f"Insert into {table} returned no row")
        return response.data[0]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
