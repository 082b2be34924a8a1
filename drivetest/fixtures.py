"""
In-memory data source: sample driving-test questions, sample accounts, exams kept in a dict.
Used when no Supabase credentials are configured, and by the test-suite.
"""
import copy
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import NAMESPACE_DNS, uuid4, uuid5

from drivetest.data_source import DataSource
from drivetest.errors import AuthError, PersistenceError

logger = logging.getLogger(__name__)

# (category, question text, [answer texts], index of the correct answer)
SAMPLE_QUESTIONS = [
    ("road_sign", "What does a red octagonal sign mean?",
     ["Stop completely", "Give way", "No entry", "Slow down"], 0),
    ("road_sign", "A triangular sign with a red border is a:",
     ["Warning sign", "Mandatory sign", "Information sign", "Parking sign"], 0),
    ("road_sign", "A round sign with a blue background indicates:",
     ["An instruction you must follow", "A warning", "A prohibition", "A tourist attraction"], 0),
    ("road_sign", "A red circle with a horizontal white bar means:",
     ["No entry for all vehicles", "One-way street", "End of speed limit", "Road works ahead"], 0),
    ("road_sign", "An inverted triangle with a red border means:",
     ["Give way to traffic on the main road", "Stop and wait for a police officer", "Roundabout ahead", "No overtaking"], 0),
    ("road_sign", "A sign showing a pedestrian on a triangular background warns of:",
     ["A pedestrian crossing ahead", "A pedestrian-only zone", "A school bus stop", "A footbridge"], 0),
    ("road_sign", "A white sign with a black diagonal stripe across a speed number means:",
     ["End of that speed limit", "Minimum speed", "Recommended speed", "Speed camera ahead"], 0),
    ("road_rule", "On which side of the road must vehicles normally drive in Rwanda?",
     ["The right-hand side", "The left-hand side", "Either side", "The middle of the road"], 0),
    ("road_rule", "Who has priority at a roundabout?",
     ["Vehicles already on the roundabout", "Vehicles entering the roundabout", "The larger vehicle", "The faster vehicle"], 0),
    ("road_rule", "What is the general speed limit inside built-up areas for cars?",
     ["40 km/h", "60 km/h", "80 km/h", "100 km/h"], 0),
    ("road_rule", "When may you overtake on the right of another vehicle?",
     ["When it is signalling and positioned to turn left", "Never", "Whenever the road is clear", "Only at night"], 0),
    ("road_rule", "A steady amber traffic light means:",
     ["Stop unless it is unsafe to do so", "Speed up to clear the junction", "Proceed with caution", "Pedestrians may cross"], 0),
    ("road_rule", "What must you do when an emergency vehicle approaches with sirens on?",
     ["Pull aside and let it pass", "Keep your speed", "Stop in the middle of the lane", "Follow it closely"], 0),
    ("road_rule", "Using a hand-held mobile phone while driving is:",
     ["Prohibited", "Allowed at low speed", "Allowed when stopped at a light", "Allowed on highways"], 0),
    ("road_rule", "Which vehicles must have a valid technical inspection certificate?",
     ["All motor vehicles used on public roads", "Only buses", "Only trucks", "Only vehicles older than ten years"], 0),
    ("road_rule", "At an uncontrolled intersection you must give way to traffic from:",
     ["The right", "The left", "Behind", "No one"], 0),
    ("general", "What is the minimum safe following distance in good conditions?",
     ["Two seconds", "Half a second", "One car length", "Ten metres at any speed"], 0),
    ("general", "When should you use dipped headlights?",
     ["At night and in poor visibility", "Only on highways", "Only when overtaking", "Never in town"], 0),
    ("general", "What is the main effect of alcohol on a driver?",
     ["Slower reactions and poorer judgement", "Sharper concentration", "Better night vision", "No effect in small amounts"], 0),
    ("general", "Tyres with a tread below the legal minimum:",
     ["Reduce grip, especially on wet roads", "Improve fuel economy safely", "Are allowed on rear wheels", "Only matter for trucks"], 0),
    ("general", "Before changing lanes you should:",
     ["Check mirrors and blind spot, then signal", "Signal and move immediately", "Sound the horn", "Brake firmly"], 0),
    ("general", "If your brakes fail while driving you should first:",
     ["Shift to a lower gear and use the handbrake gradually", "Switch off the engine", "Steer onto the pavement", "Open the door"], 0),
]

SAMPLE_USERS = [
    {
        "id": "00000000-0000-0000-0000-000000000001",
        "full_name": "Demo Student",
        "email": "student@example.com",
        "phone_number": "+250780000001",
        "role": "student",
    },
    {
        "id": "00000000-0000-0000-0000-000000000002",
        "full_name": "Demo Admin",
        "email": "admin@example.com",
        "phone_number": "+250780000002",
        "role": "admin",
    },
]


def _stable_id(*parts: str) -> str:
    return str(uuid5(NAMESPACE_DNS, "drivetest/" + "/".join(parts)))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_sample_questions() -> List[Dict]:
    """Expand SAMPLE_QUESTIONS into question rows with nested answers (stable ids)."""
    rows = []
    created_at = "2025-09-05T00:00:00+00:00"
    for i, (category, text, answer_texts, correct_idx) in enumerate(SAMPLE_QUESTIONS):
        qid = _stable_id("question", str(i))
        answers = [
            {
                "id": _stable_id("answer", str(i), str(j)),
                "question_id": qid,
                "answer_text": answer_text,
                "image_url": None,
                "is_correct": j == correct_idx,
                "created_at": created_at,
            }
            for j, answer_text in enumerate(answer_texts)
        ]
        rows.append({
            "id": qid,
            "question_text": text,
            "image_url": None,
            "category": category,
            "created_by": None,
            "created_at": created_at,
            "answers": answers,
        })
    return rows


class FixtureDataSource(DataSource):
    """Sample data kept in memory for the lifetime of the process."""

    name = "fixture"

    def __init__(self, questions: Optional[List[Dict]] = None, users: Optional[List[Dict]] = None):
        source = build_sample_questions() if questions is None else questions
        self.questions: Dict[str, Dict] = {q["id"]: copy.deepcopy(q) for q in source}
        self.users: Dict[str, Dict] = {u["id"]: dict(u) for u in (SAMPLE_USERS if users is None else users)}
        self.exams: Dict[str, Dict] = {}
        self.responses: List[Dict] = []
        self.subscriptions: List[Dict] = []
        self.payments: List[Dict] = []
        self.current_user_id: Optional[str] = None

    # ============= Questions =============

    def fetch_question_pool(self) -> List[Dict]:
        return copy.deepcopy(list(self.questions.values()))

    def list_questions(self) -> List[Dict]:
        rows = sorted(self.questions.values(), key=lambda q: q.get("created_at") or "", reverse=True)
        return copy.deepcopy(rows)

    def get_question(self, question_id: str) -> Optional[Dict]:
        q = self.questions.get(str(question_id))
        return copy.deepcopy(q) if q else None

    def insert_question(self, row: Dict) -> Dict:
        qid = str(uuid4())
        stored = dict(row, id=qid, created_at=_now_iso(), answers=[])
        self.questions[qid] = stored
        return {k: v for k, v in stored.items() if k != "answers"}

    def update_question(self, question_id: str, row: Dict) -> Dict:
        stored = self.questions.get(str(question_id))
        if stored is None:
            raise PersistenceError(f"Question {question_id} not found")
        stored.update(row)
        return {k: v for k, v in stored.items() if k != "answers"}

    def replace_answers(self, question_id: str, answers: List[Dict]) -> List[Dict]:
        stored = self.questions.get(str(question_id))
        if stored is None:
            raise PersistenceError(f"Question {question_id} not found")
        stored["answers"] = [
            dict(a, id=str(uuid4()), question_id=str(question_id), created_at=_now_iso())
            for a in answers
        ]
        return copy.deepcopy(stored["answers"])

    def delete_question(self, question_id: str) -> None:
        self.questions.pop(str(question_id), None)

    def count_rows(self) -> Dict[str, int]:
        return {"questions": len(self.questions), "users": len(self.users), "exams": len(self.exams)}

    # ============= Exams =============

    def create_exam(self, user_id: str, mode: str, total_questions: int) -> str:
        exam_id = str(uuid4())
        now = _now_iso()
        self.exams[exam_id] = {
            "id": exam_id,
            "user_id": str(user_id),
            "mode": mode,
            "start_time": now,
            "end_time": None,
            "score": 0,
            "total_questions": total_questions,
            "passed": False,
            "created_at": now,
        }
        return exam_id

    def record_response(
        self,
        exam_id: str,
        question_id: str,
        chosen_answer_id: Optional[str],
        is_correct: Optional[bool],
    ) -> None:
        if exam_id not in self.exams:
            raise PersistenceError(f"Exam {exam_id} not found")
        existing = next(
            (r for r in self.responses if r["exam_id"] == exam_id and r["question_id"] == str(question_id)),
            None,
        )
        if existing is not None:
            existing.update(chosen_answer_id=chosen_answer_id, is_correct=is_correct)
            return
        self.responses.append({
            "id": str(uuid4()),
            "exam_id": exam_id,
            "question_id": str(question_id),
            "chosen_answer_id": chosen_answer_id,
            "is_correct": is_correct,
            "created_at": _now_iso(),
        })

    def finalize_exam(self, exam_id: str, end_time: datetime, score: int, passed: bool) -> None:
        exam = self.exams.get(exam_id)
        if exam is None:
            raise PersistenceError(f"Exam {exam_id} not found")
        exam.update({"end_time": end_time.isoformat(), "score": score, "passed": passed})

    def get_exam(self, exam_id: str) -> Optional[Dict]:
        exam = self.exams.get(exam_id)
        return dict(exam) if exam else None

    def get_exam_responses(self, exam_id: str) -> List[Dict]:
        out = []
        for r in self.responses:
            if r["exam_id"] != exam_id:
                continue
            question = self.questions.get(r["question_id"]) or {}
            chosen = next(
                (a for a in question.get("answers", []) if a["id"] == r["chosen_answer_id"]),
                None,
            )
            joined = dict(r)
            joined["question"] = {k: v for k, v in question.items() if k != "answers"}
            joined["chosen_answer"] = dict(chosen) if chosen else None
            out.append(joined)
        return out

    def get_recent_exams(self, user_id: str, limit: int = 5) -> List[Dict]:
        exams = [e for e in self.exams.values() if e["user_id"] == str(user_id)]
        exams.sort(key=lambda e: e["created_at"], reverse=True)
        return [dict(e) for e in exams[:limit]]

    # ============= Accounts =============

    def sign_up(self, email: str, password: str, profile: Dict) -> Dict:
        if any(u.get("email") == email for u in self.users.values()):
            raise AuthError("User already registered")
        user_id = str(uuid4())
        row = {"role": "student", **profile, "id": user_id, "email": email, "created_at": _now_iso(), "updated_at": _now_iso()}
        self.users[user_id] = row
        self.current_user_id = user_id
        return dict(row)

    def sign_in(self, email: str, password: str) -> Dict:
        # Demo accounts accept any password.
        user = next((u for u in self.users.values() if u.get("email") == email), None)
        if user is None:
            raise AuthError("Invalid email or password. Please check your credentials and try again.")
        self.current_user_id = user["id"]
        return dict(user)

    def sign_out(self) -> None:
        self.current_user_id = None

    def get_profile(self, user_id: str) -> Optional[Dict]:
        user = self.users.get(str(user_id))
        return dict(user) if user else None

    def update_profile(self, user_id: str, changes: Dict) -> Dict:
        user = self.users.get(str(user_id))
        if user is None:
            raise PersistenceError(f"User {user_id} not found")
        user.update(changes)
        user["updated_at"] = _now_iso()
        return dict(user)

    # ============= Subscriptions & payments =============

    def get_active_subscription(self, user_id: str) -> Optional[Dict]:
        active = [
            s for s in self.subscriptions
            if s["user_id"] == str(user_id) and s.get("status") == "active"
        ]
        active.sort(key=lambda s: s.get("start_date") or "", reverse=True)
        return dict(active[0]) if active else None

    def insert_payment(self, row: Dict) -> Dict:
        stored = dict(row, id=str(uuid4()), created_at=_now_iso())
        self.payments.append(stored)
        return dict(stored)
