"""Admin question bank: validation at write time, create, update, delete."""
import pytest

from drivetest.errors import QuestionValidationError
from drivetest.question_bank import (
    delete_question,
    empty_form,
    form_from_question,
    save_question,
    validate_question_form,
)


def valid_form(**overrides):
    form = {
        "question_text": "What does a flashing amber light mean?",
        "category": "road_rule",
        "image_url": "",
        "answers": [
            {"answer_text": "Proceed with caution", "is_correct": True},
            {"answer_text": "Stop", "is_correct": False},
            {"answer_text": "Turn left only", "is_correct": False},
        ],
    }
    form.update(overrides)
    return form


def test_valid_form_passes():
    validate_question_form(valid_form())


@pytest.mark.parametrize("overrides, message", [
    ({"question_text": "   "}, "Question text is required"),
    ({"category": "motorway"}, "Category must be one of"),
    ({"answers": [{"answer_text": "Only one", "is_correct": True}]}, "At least 2"),
    ({"answers": [{"answer_text": "A", "is_correct": True}, {"answer_text": " ", "is_correct": False}]},
     "All answer options are required"),
    ({"answers": [{"answer_text": "A", "is_correct": False}, {"answer_text": "B", "is_correct": False}]},
     "Exactly one answer"),
    ({"answers": [{"answer_text": "A", "is_correct": True}, {"answer_text": "B", "is_correct": True}]},
     "Exactly one answer"),
])
def test_invalid_forms_rejected(overrides, message):
    with pytest.raises(QuestionValidationError, match=message):
        validate_question_form(valid_form(**overrides))


def test_empty_form_is_not_savable(fixture_source):
    with pytest.raises(QuestionValidationError):
        save_question(fixture_source, empty_form())


def test_create_question_with_answers(fixture_source):
    before = fixture_source.count_rows()["questions"]
    saved = save_question(fixture_source, valid_form(), created_by="admin-1")
    assert fixture_source.count_rows()["questions"] == before + 1

    stored = fixture_source.get_question(saved["id"])
    assert stored["created_by"] == "admin-1"
    assert stored["image_url"] is None
    assert [a["answer_text"] for a in stored["answers"]] == ["Proceed with caution", "Stop", "Turn left only"]
    assert sum(a["is_correct"] for a in stored["answers"]) == 1
    assert fixture_source.list_questions()[0]["id"] == saved["id"]


def test_update_replaces_answers(fixture_source):
    saved = save_question(fixture_source, valid_form())
    form = form_from_question(fixture_source.get_question(saved["id"]))
    form["question_text"] = "What does a flashing red light mean?"
    form["answers"] = [
        {"answer_text": "Stop", "is_correct": True},
        {"answer_text": "Go", "is_correct": False},
    ]
    save_question(fixture_source, form, question_id=saved["id"])

    stored = fixture_source.get_question(saved["id"])
    assert stored["question_text"] == "What does a flashing red light mean?"
    assert [(a["answer_text"], a["is_correct"]) for a in stored["answers"]] == [("Stop", True), ("Go", False)]


def test_rejected_update_leaves_question_untouched(fixture_source):
    saved = save_question(fixture_source, valid_form())
    bad = valid_form(answers=[{"answer_text": "A", "is_correct": True}, {"answer_text": "B", "is_correct": True}])
    with pytest.raises(QuestionValidationError):
        save_question(fixture_source, bad, question_id=saved["id"])
    assert len(fixture_source.get_question(saved["id"])["answers"]) == 3


def test_delete_question(fixture_source):
    saved = save_question(fixture_source, valid_form())
    delete_question(fixture_source, saved["id"])
    assert fixture_source.get_question(saved["id"]) is None


def test_form_round_trip_from_existing_question(fixture_source):
    question = fixture_source.list_questions()[0]
    form = form_from_question(question)
    validate_question_form(form)
    assert form["question_text"] == question["question_text"]
    assert len(form["answers"]) == len(question["answers"])
