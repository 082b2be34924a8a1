"""SupabaseDataSource against a mocked supabase-py client (no network)."""
from datetime import datetime, timezone
from unittest.mock import MagicMock, call

import pytest

from drivetest.database import SupabaseDataSource
from drivetest.errors import AuthError, PersistenceError, QuestionLoadError


def query_of(client):
    return client.table.return_value


def returns(client, data=None, count=None):
    query_of(client).execute.return_value = MagicMock(data=data, count=count)


def test_create_exam_inserts_row_and_returns_id(supabase_client):
    returns(supabase_client, [{"id": "exam-1"}])
    source = SupabaseDataSource(supabase_client)
    assert source.create_exam("user-1", "mock_test", 20) == "exam-1"
    supabase_client.table.assert_called_with("exams")
    row = query_of(supabase_client).insert.call_args.args[0]
    assert row["user_id"] == "user-1"
    assert row["mode"] == "mock_test"
    assert row["total_questions"] == 20
    assert "start_time" in row


def test_create_exam_without_returned_row_fails(supabase_client):
    returns(supabase_client, [])
    with pytest.raises(PersistenceError):
        SupabaseDataSource(supabase_client).create_exam("user-1", "practice", 10)


def test_create_exam_network_error_wrapped(supabase_client):
    query_of(supabase_client).execute.side_effect = ConnectionError("unreachable")
    with pytest.raises(PersistenceError):
        SupabaseDataSource(supabase_client).create_exam("user-1", "practice", 10)


def test_first_response_for_question_is_inserted(supabase_client):
    # update matches nothing, so the row is inserted
    query_of(supabase_client).execute.side_effect = [MagicMock(data=[]), MagicMock(data=[{"id": "r1"}])]
    SupabaseDataSource(supabase_client).record_response("exam-1", "q1", "a2", False)
    supabase_client.table.assert_called_with("exam_responses")
    query = query_of(supabase_client)
    query.eq.assert_any_call("exam_id", "exam-1")
    query.eq.assert_any_call("question_id", "q1")
    query.insert.assert_called_with({
        "exam_id": "exam-1",
        "question_id": "q1",
        "chosen_answer_id": "a2",
        "is_correct": False,
    })


def test_changed_response_updates_existing_row(supabase_client):
    returns(supabase_client, [{"id": "r1"}])
    SupabaseDataSource(supabase_client).record_response("exam-1", "q1", "a0", True)
    query = query_of(supabase_client)
    query.update.assert_called_with({"chosen_answer_id": "a0", "is_correct": True})
    query.insert.assert_not_called()


def test_finalize_exam_updates_by_id(supabase_client):
    end = datetime(2025, 9, 7, 12, 20, tzinfo=timezone.utc)
    SupabaseDataSource(supabase_client).finalize_exam("exam-1", end, 75, True)
    query = query_of(supabase_client)
    query.update.assert_called_with({"end_time": end.isoformat(), "score": 75, "passed": True})
    query.eq.assert_called_with("id", "exam-1")


def test_finalize_failure_raises_persistence_error(supabase_client):
    query_of(supabase_client).execute.side_effect = RuntimeError("500")
    with pytest.raises(PersistenceError):
        SupabaseDataSource(supabase_client).finalize_exam("exam-1", datetime.now(timezone.utc), 10, False)


def test_question_pool_pages_through_results(supabase_client):
    source = SupabaseDataSource(supabase_client)
    first = [{"id": f"q{i}", "question_text": "?", "answers": []} for i in range(source.PAGE_SIZE)]
    second = [{"id": "last", "question_text": "?", "answers": []}]
    query_of(supabase_client).execute.side_effect = [MagicMock(data=first), MagicMock(data=second)]
    pool = source.fetch_question_pool()
    assert len(pool) == source.PAGE_SIZE + 1
    query = query_of(supabase_client)
    query.select.assert_called_with("*, answers(*)")
    assert query.range.call_args_list == [call(0, 999), call(1000, 1999)]


def test_question_pool_error_is_load_error(supabase_client):
    query_of(supabase_client).execute.side_effect = ConnectionError("offline")
    with pytest.raises(QuestionLoadError):
        SupabaseDataSource(supabase_client).fetch_question_pool()


def test_reads_degrade_to_empty_on_error(supabase_client):
    query_of(supabase_client).execute.side_effect = RuntimeError("boom")
    source = SupabaseDataSource(supabase_client)
    assert source.get_recent_exams("user-1") == []
    assert source.get_exam_responses("exam-1") == []
    assert source.get_exam("exam-1") is None
    assert source.get_active_subscription("user-1") is None


def test_recent_exams_query(supabase_client):
    returns(supabase_client, [{"id": "e1"}])
    assert SupabaseDataSource(supabase_client).get_recent_exams("user-1", limit=5) == [{"id": "e1"}]
    query = query_of(supabase_client)
    query.eq.assert_called_with("user_id", "user-1")
    query.order.assert_called_with("created_at", desc=True)
    query.limit.assert_called_with(5)


def test_count_rows(supabase_client):
    returns(supabase_client, [], count=7)
    assert SupabaseDataSource(supabase_client).count_rows() == {"questions": 7, "users": 7, "exams": 7}


def test_replace_answers_inserts_then_deletes_old(supabase_client):
    query_of(supabase_client).execute.side_effect = [
        MagicMock(data=[{"id": "old1"}, {"id": "old2"}]),
        MagicMock(data=[{"id": "a1"}, {"id": "a2"}]),
        MagicMock(data=[]),
    ]
    saved = SupabaseDataSource(supabase_client).replace_answers(
        "q1", [{"answer_text": "Yes", "is_correct": True}, {"answer_text": "No", "is_correct": False}]
    )
    assert saved == [{"id": "a1"}, {"id": "a2"}]
    query = query_of(supabase_client)
    inserted = query.insert.call_args.args[0]
    assert [a["question_id"] for a in inserted] == ["q1", "q1"]
    query.delete.assert_called_once()
    query.in_.assert_called_once_with("id", ["old1", "old2"])


def test_replace_answers_failed_insert_keeps_old_answers(supabase_client):
    query_of(supabase_client).execute.side_effect = [MagicMock(data=[{"id": "old1"}]), RuntimeError("timeout")]
    with pytest.raises(PersistenceError, match="previous answers were kept"):
        SupabaseDataSource(supabase_client).replace_answers("q1", [{"answer_text": "Yes", "is_correct": True}])
    query_of(supabase_client).delete.assert_not_called()


def test_sign_in_invalid_credentials_message(supabase_client):
    supabase_client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")
    with pytest.raises(AuthError, match="Invalid email or password"):
        SupabaseDataSource(supabase_client).sign_in("a@b.c", "wrong")


def test_sign_in_returns_profile(supabase_client):
    supabase_client.auth.sign_in_with_password.return_value = MagicMock(user=MagicMock(id="u1"))
    returns(supabase_client, [{"id": "u1", "role": "admin"}])
    profile = SupabaseDataSource(supabase_client).sign_in("admin@example.com", "pw")
    assert profile == {"id": "u1", "role": "admin"}
    supabase_client.auth.sign_in_with_password.assert_called_with({"email": "admin@example.com", "password": "pw"})


def test_sign_up_creates_profile_row(supabase_client):
    supabase_client.auth.sign_up.return_value = MagicMock(user=MagicMock(id="u9"))
    returns(supabase_client, [{"id": "u9", "full_name": "Ana"}])
    SupabaseDataSource(supabase_client).sign_up("ana@example.com", "pw", {"full_name": "Ana", "phone_number": "1", "role": "student"})
    supabase_client.table.assert_called_with("users")
    row = query_of(supabase_client).insert.call_args.args[0]
    assert row["id"] == "u9"
    assert row["email"] == "ana@example.com"
    assert row["role"] == "student"


def test_sign_up_profile_failure_reported(supabase_client):
    supabase_client.auth.sign_up.return_value = MagicMock(user=MagicMock(id="u9"))
    query_of(supabase_client).execute.side_effect = RuntimeError("rls")
    with pytest.raises(AuthError, match="profile setup failed"):
        SupabaseDataSource(supabase_client).sign_up("ana@example.com", "pw", {"full_name": "Ana"})
