"""
tests/test_session_guard.py — Session Guard Unit Tests
======================================================

Refresh-and-retry on an expired access token: at most one refresh and one
retry per call, sign-out when that is not enough, and untouched propagation
of every other error.
"""

from __future__ import annotations

import pytest
from postgrest.exceptions import APIError
from supabase_auth.errors import AuthApiError

from tables_sync.core.errors import NotAuthenticated
from tables_sync.core.session import SessionGuard, SessionState, is_auth_expired_error
from tests.fakes import expired_token_error


@pytest.fixture
async def signed_in(client):
    response = await client.auth.sign_up({"email": "guard@example.com", "password": "pw"})
    session = SessionState()
    session.set_session(response.session)
    return session


@pytest.fixture
def signed_out_calls():
    return []


@pytest.fixture
def guard(client, signed_in, signed_out_calls):
    async def on_signed_out():
        signed_out_calls.append(True)

    return SessionGuard(client, signed_in, on_signed_out=on_signed_out)


class TestExpiryDetection:
    @pytest.mark.parametrize("code", ["PGRST301", "PGRST302", "PGRST303"])
    def test_jwt_error_codes_are_expiry(self, code):
        error = APIError({"message": "JWT problem", "code": code, "hint": None, "details": None})
        assert is_auth_expired_error(error)

    def test_auth_api_401_is_expiry(self):
        assert is_auth_expired_error(AuthApiError("JWT expired", 401, None))

    def test_other_errors_are_not_expiry(self):
        unique_violation = APIError({"message": "duplicate key", "code": "23505", "hint": None, "details": None})
        assert not is_auth_expired_error(unique_violation)
        assert not is_auth_expired_error(AuthApiError("Invalid login credentials", 400, None))
        # Message text alone is not enough
        assert not is_auth_expired_error(RuntimeError("JWT expired"))


class TestRun:
    async def test_success_runs_once(self, guard, client):
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await guard.run(operation) == "ok"
        assert len(calls) == 1
        assert client.auth.refresh_calls == 0

    async def test_expired_token_refreshes_and_retries_once(self, guard, client, signed_in):
        old_token = signed_in.access_token
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise expired_token_error()
            return "ok"

        assert await guard.run(operation) == "ok"
        assert len(calls) == 2
        assert client.auth.refresh_calls == 1
        assert signed_in.is_authenticated
        assert signed_in.access_token != old_token

    async def test_always_expired_runs_at_most_twice(self, guard, client, signed_in, signed_out_calls):
        calls = []

        async def operation():
            calls.append(1)
            raise expired_token_error()

        with pytest.raises(NotAuthenticated):
            await guard.run(operation)

        assert len(calls) == 2
        assert client.auth.refresh_calls == 1
        assert not signed_in.is_authenticated
        assert signed_in.user_id is None
        assert signed_out_calls == [True]

    async def test_failed_refresh_signs_out(self, guard, client, signed_in, signed_out_calls):
        client.auth.refresh_error = AuthApiError("Invalid Refresh Token", 400, None)
        calls = []

        async def operation():
            calls.append(1)
            raise expired_token_error()

        with pytest.raises(NotAuthenticated):
            await guard.run(operation)

        assert len(calls) == 1
        assert client.auth.refresh_calls == 1
        assert not signed_in.is_authenticated
        assert signed_in.access_token is None
        assert signed_out_calls == [True]

    async def test_other_errors_propagate_untouched(self, guard, client, signed_in):
        error = APIError({"message": "duplicate key", "code": "23505", "hint": None, "details": None})

        async def operation():
            raise error

        with pytest.raises(APIError) as excinfo:
            await guard.run(operation)

        assert excinfo.value is error
        assert client.auth.refresh_calls == 0
        assert signed_in.is_authenticated

    async def test_retry_failing_differently_propagates(self, guard, client, signed_in):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise expired_token_error()
            raise ValueError("bad row")

        with pytest.raises(ValueError):
            await guard.run(operation)
        assert client.auth.refresh_calls == 1
        assert signed_in.is_authenticated


class TestSessionState:
    def test_author_name_fallbacks(self):
        session = SessionState()
        assert session.author_name == "Anonymous"
        session.email = "x@example.com"
        assert session.author_name == "x@example.com"
        session.display_name = "Xavier"
        assert session.author_name == "Xavier"

    def test_full_name(self):
        session = SessionState()
        session.display_name = "Xav"
        assert session.full_name == "Xav"
        session.first_name = "Xavier"
        assert session.full_name == "Xavier"
        session.last_name = "Quinn"
        assert session.full_name == "Xavier Quinn"

    def test_require_user_id(self):
        with pytest.raises(NotAuthenticated):
            SessionState().require_user_id()
