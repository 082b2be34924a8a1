"""DriveTest Prep: driving-test exam simulator (student exams, admin question bank)."""
import logging
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_data_source
from drivetest.engine import ExamSession
from drivetest.errors import AuthError, DriveTestError, ExamStartError, PaymentValidationError, QuestionValidationError
from drivetest.payments import record_payment
from drivetest.question_bank import delete_question, empty_form, form_from_question, save_question
from drivetest.results import load_dashboard, load_exam_review
from engine import (
    CATEGORIES,
    MODE_LEARNING,
    MODE_MOCK_TEST,
    MODE_PRACTICE,
    PASS_THRESHOLD,
    PAYMENT_METHODS,
    QUESTION_COUNTS,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

OPTION_LABELS = "ABCDEFGHIJ"
MODE_CARDS = [
    (MODE_PRACTICE, "Practice Mode", f"{QUESTION_COUNTS[MODE_PRACTICE]} questions, no time limit"),
    (MODE_MOCK_TEST, "Mock Test", f"{QUESTION_COUNTS[MODE_MOCK_TEST]} questions in 20 minutes - real exam simulation"),
    (MODE_LEARNING, "Learning Mode", "See the correct answer as soon as you choose"),
]

st.set_page_config(page_title="DriveTest Prep", layout="wide")
source = get_data_source()

for key, default in (("user", None), ("exam", None), ("review_exam_id", None), ("editing_question", None)):
    if key not in st.session_state:
        st.session_state[key] = default


def label(value: str) -> str:
    return value.replace("_", " ").title()


# ----- Sign in / sign up -----

def login_page():
    st.header("DriveTest Prep")
    if source.name == "fixture":
        st.info("Demo mode: sign in as student@example.com or admin@example.com with any password.")
    tab_in, tab_up = st.tabs(["Sign in", "Create account"])
    with tab_in:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in", type="primary"):
                try:
                    st.session_state["user"] = source.sign_in(email.strip(), password)
                    st.rerun()
                except AuthError as e:
                    st.error(str(e))
    with tab_up:
        with st.form("sign_up"):
            full_name = st.text_input("Full name")
            phone = st.text_input("Phone number")
            email = st.text_input("Email", key="su_email")
            password = st.text_input("Password", type="password", key="su_password")
            if st.form_submit_button("Create account"):
                if not full_name.strip() or not phone.strip():
                    st.error("Full name and phone number are required")
                else:
                    try:
                        profile = {"full_name": full_name.strip(), "phone_number": phone.strip(), "role": "student"}
                        st.session_state["user"] = source.sign_up(email.strip(), password, profile)
                        st.success("Account created successfully!")
                        st.rerun()
                    except DriveTestError as e:
                        st.error(str(e))


def sign_out():
    try:
        source.sign_out()
    except AuthError as e:
        st.error(f"Sign out failed: {e}")
        return
    for key in ("user", "exam", "review_exam_id", "editing_question"):
        st.session_state[key] = None
    st.rerun()


# ----- Student -----

def start_exam(mode: str):
    session = ExamSession(source, st.session_state["user"]["id"], mode)
    try:
        session.start()
    except ExamStartError as e:
        st.error(str(e))
        return
    st.session_state["exam"] = session
    st.session_state["review_exam_id"] = None
    st.rerun()


def student_dashboard():
    user = st.session_state["user"]
    st.header(f"Welcome back, {user.get('full_name') or 'driver'}!")
    data = load_dashboard(source, user["id"])

    sub = data["subscription"]
    if sub:
        expires = f" - expires {sub['end_date']}" if sub.get("end_date") else ""
        st.success(f"Active {sub['plan_type']} plan{expires}")

    with st.expander("Record a mobile-money payment"):
        with st.form("payment_form", clear_on_submit=True):
            amount = st.number_input("Amount (RWF)", min_value=0.0, step=500.0)
            method = st.selectbox("Method", PAYMENT_METHODS, format_func=lambda m: m.replace("_", " "))
            ref = st.text_input("Transaction reference")
            if st.form_submit_button("Submit payment"):
                try:
                    record_payment(source, user["id"], amount, method, ref,
                                   subscription_id=sub["id"] if sub else None)
                    st.success("Payment recorded. It will be confirmed shortly.")
                except PaymentValidationError as e:
                    st.error(str(e))
                except DriveTestError as e:
                    st.error(f"Could not record payment: {e}")

    stats = data["stats"]
    col1, col2, col3 = st.columns(3)
    col1.metric("Total exams", stats["total_exams"])
    col2.metric("Average score", f"{stats['average_score']}%")
    col3.metric("Passed exams", stats["passed_exams"])

    st.subheader("Choose your exam mode")
    for col, (mode, title, description) in zip(st.columns(len(MODE_CARDS)), MODE_CARDS):
        with col:
            st.markdown(f"**{title}**")
            st.caption(description)
            if st.button("Start", key=f"start_{mode}", use_container_width=True):
                start_exam(mode)

    st.subheader("Recent exams")
    if not data["recent_exams"]:
        st.caption("No exams taken yet. Start your first exam!")
    for exam in data["recent_exams"]:
        status = "Passed" if exam.get("passed") else "Failed"
        cols = st.columns([2, 1, 1, 1])
        cols[0].write(label(exam["mode"]))
        cols[1].write(f"{exam.get('score', 0)}%")
        cols[2].write(status)
        if cols[3].button("Review", key=f"review_{exam['id']}"):
            st.session_state["review_exam_id"] = exam["id"]
            st.rerun()


@st.fragment(run_every=1)
def countdown(session: ExamSession):
    remaining = session.time_remaining()
    m, s = divmod(remaining or 0, 60)
    st.metric("Time left", f"{m:02d}:{s:02d}")
    if session.tick():
        st.rerun(scope="app")


def exam_page():
    session: ExamSession = st.session_state["exam"]
    session.tick()
    if session.is_completed:
        results_page(session)
        return

    summary = session.get_session_summary()
    st.header(label(session.mode))
    with st.sidebar:
        if session.mode == MODE_MOCK_TEST:
            countdown(session)
        st.progress(summary["progress"])
        st.caption(f"Question {summary['current_question']} of {summary['total_questions']} · {summary['questions_answered']} answered")
        if st.button("Exit exam"):
            st.session_state["exam"] = None
            st.rerun()

    q = session.current_question
    if q is None:
        st.warning("No questions are available right now.")
        if st.button("Finish"):
            session.submit()
            st.rerun()
        return

    st.caption(label(q.get("category", "general")))
    st.subheader(q.get("question_text", ""))
    if q.get("image_url"):
        st.image(q["image_url"], width=360)

    selected = session.selected_answer_id()
    revealed = session.mode == MODE_LEARNING and session.show_explanation
    for i, answer in enumerate(q.get("answers") or []):
        text = f"{OPTION_LABELS[i % len(OPTION_LABELS)]}. {answer.get('answer_text', '')}"
        if revealed:
            if answer.get("is_correct"):
                st.success(f"✓ {text}")
            elif answer["id"] == selected:
                st.error(f"✗ {text}")
            else:
                st.write(text)
            continue
        marker = "● " if answer["id"] == selected else ""
        if st.button(marker + text, key=f"ans_{q['id']}_{answer['id']}", use_container_width=True):
            session.select_answer(answer["id"])
            st.rerun()

    if revealed:
        correct = session.current_correct_answer()
        st.info(f"The correct answer is: **{correct['answer_text']}**" if correct else "This question has no correct answer on record.")

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        if st.button("← Previous", disabled=session.current_question_idx == 0):
            session.retreat()
            st.rerun()
    with col2:
        next_label = "Finish" if session.is_last_question else "Next →"
        if st.button(next_label, type="primary", disabled=selected is None and session.mode != MODE_LEARNING):
            session.advance()
            st.rerun()
    with col3:
        if st.button("Submit exam"):
            session.submit()
            st.rerun()


def results_page(session: ExamSession = None):
    exam_id = session.exam_id if session else st.session_state["review_exam_id"]
    review = load_exam_review(source, exam_id)
    exam = review["exam"] or {}

    if session:
        result = session.result()
        score, passed = result["score"], result["passed"]
        correct, total = result["correct_count"], result["total_questions"]
        if session.finalize_error:
            st.warning("Your result could not be saved, but here is your score.")
    else:
        score, passed = exam.get("score", 0), exam.get("passed", False)
        correct, total = review["correct_count"], review["total_responses"]

    if passed:
        st.success("Congratulations! You passed the exam.")
    else:
        st.error(f"Keep trying! You need {PASS_THRESHOLD}% to pass.")
    col1, col2, col3 = st.columns(3)
    col1.metric("Score", f"{score}%")
    col2.metric("Correct", f"{correct} / {total}")
    col3.metric("Mode", label(exam.get("mode") or (session.mode if session else "")))

    if review["rows"]:
        st.subheader("Question review")
    for row in review["rows"]:
        icon = "✓" if row["is_correct"] else "✗"
        with st.expander(f"{icon} Question {row['number']} · {label(row['category'])}"):
            st.write(row["question_text"])
            st.caption(f"Your answer: {row['chosen_answer_text']}")

    col1, col2 = st.columns(2)
    with col1:
        if session and st.button("Retake exam", type="primary"):
            start_exam(session.mode)
    with col2:
        if st.button("Back to dashboard"):
            st.session_state["exam"] = None
            st.session_state["review_exam_id"] = None
            st.rerun()


# ----- Admin -----

def question_form(question_id=None):
    form = empty_form()
    if question_id:
        existing = source.get_question(question_id)
        if existing is None:
            st.error("Failed to load question")
            return
        form = form_from_question(existing)

    st.subheader("Edit question" if question_id else "Add question")
    with st.form("question_form"):
        text = st.text_area("Question text", value=form["question_text"])
        category = st.selectbox("Category", CATEGORIES, index=CATEGORIES.index(form["category"]), format_func=label)
        image_url = st.text_input("Image URL (optional)", value=form["image_url"])
        answers = []
        for i, a in enumerate(form["answers"]):
            answers.append({"answer_text": st.text_input(f"Answer {OPTION_LABELS[i]}", value=a["answer_text"], key=f"qf_{question_id or 'new'}_{i}")})
        correct_default = next((i for i, a in enumerate(form["answers"]) if a["is_correct"]), 0)
        correct = st.radio("Correct answer", range(len(answers)), index=correct_default,
                           format_func=lambda i: OPTION_LABELS[i], horizontal=True)
        save = st.form_submit_button("Save", type="primary")
        cancel = st.form_submit_button("Cancel")

    if cancel:
        st.session_state["editing_question"] = None
        st.rerun()
    if save:
        for i, a in enumerate(answers):
            a["is_correct"] = i == correct
        submitted = {"question_text": text, "category": category, "image_url": image_url, "answers": answers}
        try:
            save_question(source, submitted, question_id=question_id, created_by=st.session_state["user"]["id"])
        except QuestionValidationError as e:
            st.error(str(e))
            return
        except DriveTestError as e:
            st.error(f"Failed to save question: {e}")
            return
        st.session_state["editing_question"] = None
        st.success("Question updated successfully" if question_id else "Question created successfully")
        st.rerun()


def admin_dashboard():
    st.header("Admin dashboard")
    counts = source.count_rows()
    col1, col2, col3 = st.columns(3)
    col1.metric("Questions", counts["questions"])
    col2.metric("Users", counts["users"])
    col3.metric("Exams", counts["exams"])

    editing = st.session_state["editing_question"]
    if editing is not None:
        question_form(editing or None)
        return

    if st.button("Add question", type="primary"):
        st.session_state["editing_question"] = ""
        st.rerun()

    try:
        questions = source.list_questions()
    except DriveTestError as e:
        st.error(f"Failed to load questions: {e}")
        return
    if not questions:
        st.caption("No questions yet.")
    for q in questions:
        answers = q.get("answers") or []
        with st.expander(f"[{label(q['category'])}] {q['question_text']} ({len(answers)} answers)"):
            for i, a in enumerate(answers):
                mark = " ✓" if a.get("is_correct") else ""
                st.write(f"{OPTION_LABELS[i % len(OPTION_LABELS)]}. {a['answer_text']}{mark}")
            col1, col2 = st.columns(2)
            if col1.button("Edit", key=f"edit_{q['id']}"):
                st.session_state["editing_question"] = q["id"]
                st.rerun()
            if col2.button("Delete", key=f"delete_{q['id']}"):
                try:
                    delete_question(source, q["id"])
                    st.success("Question deleted successfully")
                    st.rerun()
                except DriveTestError as e:
                    st.error(f"Failed to delete question: {e}")


# ----- Routing -----

user = st.session_state["user"]
st.sidebar.title("DriveTest Prep")
if user is None:
    login_page()
    st.stop()

st.sidebar.caption(f"{user.get('full_name', '')} · {user.get('role', 'student')}")
if st.sidebar.button("Sign out"):
    sign_out()

if user.get("role") == "admin":
    admin_dashboard()
elif st.session_state["exam"] is not None:
    exam_page()
elif st.session_state["review_exam_id"]:
    results_page()
else:
    student_dashboard()
