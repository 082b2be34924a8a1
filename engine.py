"""Exam policy constants: modes, question counts, timing, pass mark. No UI."""
# Score = round(100 * correct / total_questions), pass when score >= PASS_THRESHOLD

MODE_PRACTICE = "practice"
MODE_MOCK_TEST = "mock_test"
MODE_LEARNING = "learning"
MODES = (MODE_PRACTICE, MODE_MOCK_TEST, MODE_LEARNING)

QUESTION_COUNTS = {
    MODE_PRACTICE: 10,
    MODE_MOCK_TEST: 20,
    MODE_LEARNING: 10,
}

MOCK_TEST_DURATION_SECONDS = 20 * 60
PASS_THRESHOLD = 70

CATEGORIES = ("road_sign", "road_rule", "general")
ROLES = ("student", "admin")
PLAN_TYPES = ("weekly", "monthly", "quarterly", "lifetime")
PAYMENT_METHODS = ("MTN_MoMo", "Airtel_Money")

RECENT_EXAMS_LIMIT = 5
MIN_ANSWERS_PER_QUESTION = 2
