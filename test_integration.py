#!/usr/bin/env python3
"""
Integration test: Engine + data source workflow.
Demonstrates:
1. Sign in and question selection
2. Answering, navigation and scoring
3. Session persistence and result review
"""
import logging
import random

from drivetest.engine import ExamSession, correct_answer_for
from drivetest.fixtures import FixtureDataSource
from drivetest.results import load_dashboard, load_exam_review

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def test_practice_exam_workflow():
    """Full end-to-end run of a practice exam against the fixture data source."""

    logger.info("=" * 70)
    logger.info("DriveTest Prep - Integration Test")
    logger.info("=" * 70)

    source = FixtureDataSource()
    user = source.sign_in("student@example.com", "demo")
    logger.info(f"\n✓ Signed in: {user['full_name']} ({user['role']})")

    test = ExamSession(source, user["id"], "practice", rng=random.Random(2025)).start()
    logger.info(f"✓ Started exam {test.exam_id} with {len(test.questions)} questions")

    # 7 right, 2 wrong, 1 skipped
    logger.info("\n--- Answering Questions ---")
    for i, q in enumerate(test.questions):
        correct = correct_answer_for(q)
        if i < 7:
            test.select_answer(correct["id"])
        elif i < 9:
            test.select_answer(next(a["id"] for a in q["answers"] if a["id"] != correct["id"]))
        chosen = test.selected_answer_id()
        status = "SKIP" if chosen is None else ("✓ CORRECT" if chosen == correct["id"] else "✗ INCORRECT")
        logger.info(f"  Q{i + 1:>2}: {q['question_text'][:45]:<45} | {status}")
        test.advance()

    result = test.result()
    logger.info("\n--- Test Results ---")
    logger.info(f"  Score: {result['score']}% | Pass: {result['passed']}")
    logger.info(f"  Correct: {result['correct_count']}/{result['total_questions']}")

    assert test.is_completed
    assert result["score"] == 70
    assert result["passed"] is True
    assert result["questions_answered"] == 9

    review = load_exam_review(source, test.exam_id)
    assert review["total_responses"] == 9
    assert review["correct_count"] == 7
    assert review["exam"]["score"] == 70

    dashboard = load_dashboard(source, user["id"])
    assert dashboard["stats"] == {"total_exams": 1, "average_score": 70, "passed_exams": 1}

    logger.info("\n" + "=" * 70)
    logger.info("✓ Integration test completed successfully")
    logger.info("=" * 70)


if __name__ == "__main__":
    test_practice_exam_workflow()
