"""
Tests for the remote client.

HTTP goes through FakeHTTP; sleeps are recorded instead of waited.
"""

import pytest
import requests
from datetime import date
from decimal import Decimal

from expense_tracker.models import Budget, ExpenseDraft
from expense_tracker.services.remote import (
    AuthError,
    HTTPStatusError,
    NetworkError,
    NotFoundError,
    SupabaseAuthService,
    SupabaseBudgetStorage,
    SupabaseClient,
    SupabaseExpenseStorage,
    fetch_with_retry,
)


AUTH_RESPONSE = {
    "access_token": "access-1",
    "refresh_token": "refresh-1",
    "expires_in": 3600,
    "expires_at": 1718456400,
    "user": {
        "id": "user-1",
        "email": "ada@example.com",
        "user_metadata": {"first_name": "Ada", "last_name": "Lovelace"},
    },
}


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(supabase_settings, app_settings, make_http, sleeps):
    def _make(replies):
        http = make_http(replies)
        client = SupabaseClient(
            settings=supabase_settings,
            app_settings=app_settings,
            http=http,
            sleep=sleeps.append,
        )
        return client, http
    return _make


class TestFetchWithRetry:
    """Tests for the retry wrapper."""

    def test_first_success_does_not_sleep(self, make_http, make_response, sleeps):
        http = make_http([make_response(200, {"ok": True})])
        response = fetch_with_retry(http, "GET", "https://x.test/a", sleep=sleeps.append)

        assert response.status_code == 200
        assert sleeps == []
        assert http.calls[0]["headers"]["Cache-Control"] == "no-cache"

    def test_retries_then_succeeds(self, make_http, make_response, sleeps):
        http = make_http([make_response(503, {"message": "busy"}), make_response(200, [])])
        response = fetch_with_retry(http, "GET", "https://x.test/a", sleep=sleeps.append)

        assert response.status_code == 200
        assert len(http.calls) == 2
        assert sleeps == [1.0]

    def test_backoff_doubles_and_last_error_propagates(self, make_http, make_response, sleeps):
        http = make_http([make_response(500, {"message": f"fail {i}"}) for i in range(3)])

        with pytest.raises(HTTPStatusError) as exc_info:
            fetch_with_retry(http, "GET", "https://x.test/a", retries=3, sleep=sleeps.append)

        assert len(http.calls) == 3
        assert sleeps == [1.0, 2.0]
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "fail 2"

    def test_transport_failure_becomes_network_error(self, make_http, sleeps):
        http = make_http([requests.ConnectionError("refused")] * 3)

        with pytest.raises(NetworkError):
            fetch_with_retry(http, "GET", "https://x.test/a", sleep=sleeps.append)
        assert len(http.calls) == 3

    def test_status_without_body_gets_generic_message(self, make_http, make_response, sleeps):
        http = make_http([make_response(404, text="")])

        with pytest.raises(HTTPStatusError) as exc_info:
            fetch_with_retry(http, "GET", "https://x.test/a", retries=1, sleep=sleeps.append)
        assert str(exc_info.value) == "HTTP error! status: 404"

    def test_caller_headers_are_kept(self, make_http, make_response, sleeps):
        http = make_http([make_response(204, text="")])
        fetch_with_retry(http, "DELETE", "https://x.test/a", headers={"X-Test": "1"}, sleep=sleeps.append)

        assert http.calls[0]["headers"] == {"X-Test": "1", "Cache-Control": "no-cache"}


class TestSupabaseClient:
    """Tests for URL and header handling."""

    def test_rest_url_and_default_headers(self, make_client, make_response):
        client, http = make_client([make_response(200, [])])
        client.rest("GET", "expenses")

        call = http.calls[0]
        assert call["url"] == "https://project.supabase.co/rest/v1/expenses"
        assert call["headers"]["apikey"] == "anon-key"
        assert call["headers"]["Authorization"] == "Bearer anon-key"
        assert call["headers"]["X-Client-Info"] == "expense-tracker"

    def test_access_token_replaces_anon_bearer(self, make_client, make_response):
        client, http = make_client([make_response(200, [])])
        client.set_access_token("user-token")
        client.rest("GET", "expenses")

        assert http.calls[0]["headers"]["Authorization"] == "Bearer user-token"
        assert http.calls[0]["headers"]["apikey"] == "anon-key"

    def test_empty_body_decodes_to_none(self, make_client, make_response):
        client, _ = make_client([make_response(204, text="")])
        assert client.auth("POST", "/logout") is None

    def test_close(self, make_client):
        client, http = make_client([])
        client.close()
        assert http.closed


class TestSupabaseAuthService:
    """Tests for GoTrue calls."""

    def test_sign_in(self, make_client, make_response):
        client, http = make_client([make_response(200, AUTH_RESPONSE)])
        session = SupabaseAuthService(client).sign_in("ada@example.com", "Secret1!")

        assert session.access_token == "access-1"
        assert session.user.first_name == "Ada"
        assert http.calls[0]["url"].endswith("/auth/v1/token")
        assert http.calls[0]["params"] == {"grant_type": "password"}

    def test_rejected_credentials_raise_auth_error(self, make_client, make_response, sleeps):
        body = {"error": "invalid_grant", "error_description": "Invalid login credentials"}
        client, _ = make_client([make_response(400, body) for _ in range(3)])

        with pytest.raises(AuthError) as exc_info:
            SupabaseAuthService(client).sign_in("ada@example.com", "wrong")
        assert str(exc_info.value) == "Invalid login credentials"
        assert exc_info.value.status_code == 400

    def test_server_errors_are_not_auth_errors(self, make_client, make_response):
        client, _ = make_client([make_response(502, {"message": "bad gateway"}) for _ in range(3)])

        with pytest.raises(HTTPStatusError) as exc_info:
            SupabaseAuthService(client).refresh_session("refresh-1")
        assert not isinstance(exc_info.value, AuthError)

    def test_sign_up_with_confirmation_returns_no_session(self, make_client, make_response):
        client, http = make_client([make_response(200, {"id": "user-1", "email": "ada@example.com"})])

        assert SupabaseAuthService(client).sign_up("ada@example.com", "Secret1!", "Ada", "L") is None
        assert http.calls[0]["json"]["data"] == {"first_name": "Ada", "last_name": "L"}

    def test_request_otp_does_not_create_users(self, make_client, make_response):
        client, http = make_client([make_response(200, {})])
        SupabaseAuthService(client).request_otp("ada@example.com")

        assert http.calls[0]["json"] == {"email": "ada@example.com", "create_user": False}

    def test_update_password_uses_user_token(self, make_client, make_response):
        client, http = make_client([make_response(200, AUTH_RESPONSE["user"])])
        user = SupabaseAuthService(client).update_password("access-9", "NewSecret1!")

        assert user.id == "user-1"
        assert http.calls[0]["method"] == "PUT"
        assert http.calls[0]["headers"]["Authorization"] == "Bearer access-9"


class TestSupabaseStorage:
    """Tests for PostgREST table calls."""

    def test_list_skips_invalid_rows(self, make_client, make_response):
        rows = [
            {"id": 1, "user_id": "u", "amount": 5, "category": "Food", "description": None, "date": "2024-06-01"},
            {"id": 2, "user_id": "u", "amount": 5, "category": "Travel", "description": "", "date": "2024-06-01"},
        ]
        client, http = make_client([make_response(200, rows)])
        expenses = SupabaseExpenseStorage(client).list_expenses()

        assert [e.id for e in expenses] == ["1"]
        assert http.calls[0]["params"] == {"select": "*", "order": "date.desc"}

    def test_create_sends_user_id_and_asks_for_row(self, make_client, make_response):
        row = {"id": 9, "user_id": "u", "amount": 12.5, "category": "Food", "description": "", "date": "2024-06-01"}
        client, http = make_client([make_response(201, [row])])
        draft = ExpenseDraft(amount=Decimal("12.5"), category="Food", date=date(2024, 6, 1))

        expense = SupabaseExpenseStorage(client).create_expense(draft, "u")

        assert expense.id == "9"
        assert http.calls[0]["json"] == [{**draft.to_payload(), "user_id": "u"}]
        assert http.calls[0]["headers"]["Prefer"] == "return=representation"

    def test_update_of_missing_row_raises(self, make_client, make_response):
        client, http = make_client([make_response(200, [])])
        draft = ExpenseDraft(amount=1, category="Food", date=date(2024, 6, 1))

        with pytest.raises(NotFoundError):
            SupabaseExpenseStorage(client).update_expense("404", draft)
        assert http.calls[0]["params"] == {"id": "eq.404"}

    def test_delete_reports_whether_a_row_went(self, make_client, make_response):
        client, _ = make_client([make_response(200, [{"id": 1}]), make_response(200, [])])
        storage = SupabaseExpenseStorage(client)

        assert storage.delete_expense("1") is True
        assert storage.delete_expense("1") is False

    def test_budget_upsert_merges_on_user(self, make_client, make_response):
        client, http = make_client([make_response(201, [{"user_id": "u", "amount": 300}])])
        budget = SupabaseBudgetStorage(client).upsert_budget(Budget(user_id="u", amount=Decimal("300")))

        assert budget.amount == Decimal("300")
        assert http.calls[0]["params"] == {"on_conflict": "user_id"}
        assert "resolution=merge-duplicates" in http.calls[0]["headers"]["Prefer"]

    def test_missing_budget_is_none(self, make_client, make_response):
        client, _ = make_client([make_response(200, [])])
        assert SupabaseBudgetStorage(client).get_budget("u") is None
