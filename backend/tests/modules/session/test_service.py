"""
Tests for the SessionManager.

Time is controlled through the injected FakeClock; the auth service is an
AsyncMock.
"""

import asyncio
from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, call

from modules.session.exceptions import (
    AuthNetworkError,
    InvalidRefreshTokenError,
    NoTokenError,
    ServerRejectedError,
    SessionStoreError,
)
from modules.session.models import (
    LoginCredentials,
    LoginResponse,
    RefreshResponse,
    SessionErrorKind,
    TokenPair,
)

USER = {"id": "u1"}
TOKENS = {"accessToken": "A", "refreshToken": "R"}


def _gated_refresh(gate: asyncio.Event, access_token: str = "A2"):
    async def _refresh(refresh_token: str) -> RefreshResponse:
        await gate.wait()
        return RefreshResponse(access_token=access_token, refresh_token="R2")

    return _refresh


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_then_logout(self, manager, store):
        """A login establishes the session; logout clears it and the store."""
        result = await manager.login(USER, TOKENS)

        assert result.kind == "success"
        assert manager.is_authenticated is True
        assert manager.user.id == "u1"

        await manager.logout()

        assert manager.is_authenticated is False
        assert manager.user is None
        assert store.is_empty

    @pytest.mark.asyncio
    async def test_login_without_access_token(self, manager, store):
        result = await manager.login(USER, {"refreshToken": "R"})

        assert result.kind == "error"
        assert result.error == SessionErrorKind.INVALID_CREDENTIALS
        assert manager.is_authenticated is False
        assert store.is_empty

    @pytest.mark.asyncio
    async def test_login_without_tokens(self, manager):
        result = await manager.login(USER, None)
        assert result.error == SessionErrorKind.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_login_without_user_id(self, manager):
        result = await manager.login({"email": "x@example.com"}, TOKENS)
        assert result.error == SessionErrorKind.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_duplicate_login_leaves_same_state(self, manager, store):
        await manager.login(USER, TOKENS)
        first_user = await store.load_user()
        first_tokens = await store.load_tokens()

        await manager.login(USER, TOKENS)

        assert await store.load_user() == first_user
        assert await store.load_tokens() == first_tokens
        assert manager.is_authenticated is True

    @pytest.mark.asyncio
    async def test_login_persists_auth_state(self, manager, store, clock):
        await manager.login(USER, TOKENS)

        state = await store.load_auth_state()
        assert state.verified is True
        assert state.timestamp == clock.now

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, manager, store):
        store.save_tokens = AsyncMock(side_effect=SessionStoreError("disk full"))

        result = await manager.login(USER, TOKENS)

        assert result.error == SessionErrorKind.STORE_ERROR
        assert manager.is_authenticated is False

    @pytest.mark.asyncio
    async def test_login_with_credentials(self, manager, auth_client):
        auth_client.login.return_value = LoginResponse(
            user={"_id": "u1", "phoneNumber": "9876543210"},
            tokens=TokenPair(access_token="A", refresh_token="R"),
        )

        result = await manager.login_with_credentials(
            LoginCredentials(phone_number="9876543210", otp="123456")
        )

        assert result.kind == "success"
        assert manager.user.phone_number == "9876543210"

    @pytest.mark.asyncio
    async def test_login_with_rejected_credentials(self, manager, auth_client):
        auth_client.login.side_effect = ServerRejectedError("Bad password", status_code=401)

        result = await manager.login_with_credentials(LoginCredentials(email="a@b.c"))

        assert result.error == SessionErrorKind.INVALID_CREDENTIALS
        assert manager.is_authenticated is False


class TestLogout:
    @pytest.mark.asyncio
    async def test_server_failure_is_not_fatal(self, manager, auth_client, store):
        await manager.login(USER, TOKENS)
        auth_client.logout.side_effect = AuthNetworkError("down")

        result = await manager.logout()

        assert result.kind == "success"
        assert manager.is_authenticated is False
        assert store.is_empty

    @pytest.mark.asyncio
    async def test_notifies_server_with_access_token(self, manager, auth_client):
        await manager.login(USER, TOKENS)
        await manager.logout()
        auth_client.logout.assert_awaited_once_with("A")


class TestInitialize:
    @pytest.mark.asyncio
    async def test_no_persisted_session(self, manager, auth_client):
        result = await manager.initialize()

        assert result.error == SessionErrorKind.NO_TOKEN
        assert manager.is_authenticated is False
        auth_client.verify_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_trusted_just_inside_ttl(self, manager, make_manager, auth_client, clock):
        await manager.login(USER, TOKENS)
        clock.advance(minutes=4, seconds=59)

        restarted = make_manager()
        result = await restarted.initialize()

        assert result.kind == "success"
        assert result.from_cache is True
        assert restarted.is_authenticated is True
        auth_client.verify_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_verified_just_past_ttl(self, manager, make_manager, auth_client, clock):
        await manager.login(USER, TOKENS)
        clock.advance(minutes=5, seconds=1)

        restarted = make_manager()
        result = await restarted.initialize()

        assert result.kind == "success"
        assert result.from_cache is False
        auth_client.verify_token.assert_awaited_once_with("A")

    @pytest.mark.asyncio
    async def test_verification_refreshes_cache(self, manager, make_manager, store, clock):
        await manager.login(USER, TOKENS)
        clock.advance(minutes=10)

        await make_manager().initialize()

        state = await store.load_auth_state()
        user = await store.load_user()
        assert state.timestamp == clock.now
        assert user.email == "donor@example.com"

    @pytest.mark.asyncio
    async def test_rejected_token_refreshes_once(
        self, manager, make_manager, auth_client, clock
    ):
        await manager.login(USER, TOKENS)
        clock.advance(minutes=10)
        auth_client.verify_token.side_effect = ServerRejectedError("expired", status_code=401)

        restarted = make_manager()
        result = await restarted.initialize()

        assert result.kind == "success"
        assert result.tokens.access_token == "A2"
        assert restarted.is_authenticated is True
        auth_client.refresh_token.assert_awaited_once_with("R")

    @pytest.mark.asyncio
    async def test_failed_refresh_clears_session(
        self, manager, make_manager, auth_client, store, clock
    ):
        await manager.login(USER, TOKENS)
        clock.advance(minutes=10)
        auth_client.verify_token.side_effect = ServerRejectedError("expired", status_code=401)
        auth_client.refresh_token.side_effect = InvalidRefreshTokenError()

        restarted = make_manager()
        result = await restarted.initialize()

        assert result.error == SessionErrorKind.SESSION_EXPIRED
        assert result.forced_logout is True
        assert restarted.is_authenticated is False
        assert store.is_empty

    @pytest.mark.asyncio
    async def test_rejected_token_without_refresh_token(
        self, manager, make_manager, auth_client, store, clock
    ):
        await manager.login(USER, {"accessToken": "A"})
        clock.advance(minutes=10)
        auth_client.verify_token.side_effect = ServerRejectedError("expired", status_code=401)

        result = await make_manager().initialize()

        assert result.error == SessionErrorKind.SESSION_EXPIRED
        assert store.is_empty
        auth_client.refresh_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_network_error_keeps_cached_session(
        self, manager, make_manager, auth_client, store, clock
    ):
        await manager.login(USER, TOKENS)
        clock.advance(minutes=10)
        auth_client.verify_token.side_effect = AuthNetworkError("offline")

        restarted = make_manager()
        result = await restarted.initialize()

        assert result.error == SessionErrorKind.NETWORK_ERROR
        assert restarted.is_authenticated is True
        assert restarted.user.id == "u1"
        assert await store.load_tokens() is not None

    @pytest.mark.asyncio
    async def test_session_older_than_max_age_is_discarded(
        self, manager, make_manager, auth_client, store, clock
    ):
        await manager.login(USER, TOKENS)
        clock.advance(days=31)

        result = await make_manager().initialize()

        assert result.error == SessionErrorKind.SESSION_EXPIRED
        assert result.forced_logout is True
        assert store.is_empty
        auth_client.verify_token.assert_not_awaited()


class TestRefresh:
    @pytest.mark.asyncio
    async def test_rotates_tokens(self, manager, store):
        await manager.login(USER, TOKENS)

        result = await manager.refresh()

        assert result.kind == "success"
        assert manager.tokens.access_token == "A2"
        assert (await store.load_tokens()).refresh_token == "R2"

    @pytest.mark.asyncio
    async def test_keeps_refresh_token_when_not_rotated(self, manager, auth_client):
        auth_client.refresh_token.return_value = RefreshResponse(access_token="A2")
        await manager.login(USER, TOKENS)

        await manager.refresh()

        assert manager.tokens.refresh_token == "R"

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_call(self, manager, auth_client):
        gate = asyncio.Event()
        auth_client.refresh_token.side_effect = _gated_refresh(gate)
        await manager.login(USER, TOKENS)

        tasks = [asyncio.create_task(manager.refresh()) for _ in range(5)]
        await asyncio.sleep(0)
        assert manager.is_refreshing
        gate.set()
        results = await asyncio.gather(*tasks)

        assert auth_client.refresh_token.await_count == 1
        assert all(r.kind == "success" for r in results)
        assert {r.tokens.access_token for r in results} == {"A2"}

    @pytest.mark.asyncio
    async def test_non_joining_caller_is_told_refresh_in_progress(self, manager, auth_client):
        gate = asyncio.Event()
        auth_client.refresh_token.side_effect = _gated_refresh(gate)
        await manager.login(USER, TOKENS)

        first = asyncio.create_task(manager.refresh())
        await asyncio.sleep(0)
        second = await manager.refresh(join=False)
        gate.set()
        await first

        assert second.error == SessionErrorKind.REFRESH_IN_PROGRESS
        assert auth_client.refresh_token.await_count == 1

    @pytest.mark.asyncio
    async def test_network_error_keeps_session(self, manager, auth_client, store):
        await manager.login(USER, TOKENS)
        auth_client.refresh_token.side_effect = AuthNetworkError("offline")

        result = await manager.refresh()

        assert result.error == SessionErrorKind.NETWORK_ERROR
        assert result.forced_logout is False
        assert manager.is_authenticated is True
        assert manager.tokens.access_token == "A"
        assert not store.is_empty

    @pytest.mark.asyncio
    async def test_invalid_refresh_token_forces_logout(self, manager, auth_client, store):
        await manager.login(USER, TOKENS)
        auth_client.refresh_token.side_effect = InvalidRefreshTokenError()

        result = await manager.refresh()

        assert result.error == SessionErrorKind.SESSION_EXPIRED
        assert result.forced_logout is True
        assert manager.is_authenticated is False
        assert store.is_empty

    @pytest.mark.asyncio
    async def test_no_refresh_token(self, manager):
        await manager.login(USER, {"accessToken": "A"})
        result = await manager.refresh()
        assert result.error == SessionErrorKind.NO_TOKEN

    @pytest.mark.asyncio
    async def test_result_after_logout_is_discarded(self, manager, auth_client, store):
        gate = asyncio.Event()
        auth_client.refresh_token.side_effect = _gated_refresh(gate)
        await manager.login(USER, TOKENS)

        pending = asyncio.create_task(manager.refresh())
        await asyncio.sleep(0)
        await manager.logout()
        gate.set()
        result = await pending

        assert result.kind == "error"
        assert manager.is_authenticated is False
        assert manager.tokens is None
        assert store.is_empty


class TestTokenLifetimeCheck:
    @pytest.mark.asyncio
    async def test_refreshes_below_threshold(self, manager, auth_client, token_factory, clock):
        token = token_factory(issued_at=clock.now, lifetime=timedelta(minutes=10))
        await manager.login(USER, {"accessToken": token, "refreshToken": "R"})

        result = await manager.check_token_lifetime()

        assert result.kind == "success"
        auth_client.refresh_token.assert_awaited_once_with("R")

    @pytest.mark.asyncio
    async def test_no_refresh_with_plenty_of_lifetime(self, manager, auth_client, access_token):
        await manager.login(USER, {"accessToken": access_token, "refreshToken": "R"})

        result = await manager.check_token_lifetime()

        assert result is None
        auth_client.refresh_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_opaque_token_uses_expires_in(self, manager, auth_client, clock):
        await manager.login(
            USER, {"accessToken": "opaque", "refreshToken": "R", "expiresIn": 1200}
        )
        clock.advance(seconds=400)

        await manager.check_token_lifetime()

        auth_client.refresh_token.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skipped_when_signed_out(self, manager, auth_client):
        assert await manager.check_token_lifetime() is None
        auth_client.refresh_token.assert_not_awaited()


class TestRequestWithRefresh:
    @pytest.mark.asyncio
    async def test_retries_once_after_refresh(self, manager, auth_client):
        await manager.login(USER, TOKENS)
        operation = AsyncMock(side_effect=[ServerRejectedError("401", status_code=401), "ok"])

        result = await manager.request_with_refresh(operation)

        assert result == "ok"
        assert operation.await_args_list == [call("A"), call("A2")]
        auth_client.refresh_token.assert_awaited_once_with("R")

    @pytest.mark.asyncio
    async def test_second_rejection_propagates(self, manager, auth_client):
        await manager.login(USER, TOKENS)
        operation = AsyncMock(side_effect=ServerRejectedError("401", status_code=401))

        with pytest.raises(ServerRejectedError):
            await manager.request_with_refresh(operation)

        assert operation.await_count == 2
        assert auth_client.refresh_token.await_count == 1

    @pytest.mark.asyncio
    async def test_success_without_refresh(self, manager, auth_client):
        await manager.login(USER, TOKENS)
        operation = AsyncMock(return_value={"data": 1})

        assert await manager.request_with_refresh(operation) == {"data": 1}
        auth_client.refresh_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_network_error_raises(self, manager, auth_client):
        await manager.login(USER, TOKENS)
        auth_client.refresh_token.side_effect = AuthNetworkError("offline")
        operation = AsyncMock(side_effect=ServerRejectedError("401", status_code=401))

        with pytest.raises(AuthNetworkError):
            await manager.request_with_refresh(operation)

        assert manager.is_authenticated is True

    @pytest.mark.asyncio
    async def test_requires_session(self, manager):
        with pytest.raises(NoTokenError):
            await manager.request_with_refresh(AsyncMock())


class TestProfile:
    @pytest.mark.asyncio
    async def test_update_user_merges_fields(self, manager, store):
        await manager.login(USER, TOKENS)

        result = await manager.update_user({"firstName": "Asha", "phone": "9876543210"})

        assert result.user.first_name == "Asha"
        assert result.user.phone_number == "9876543210"
        assert result.user.display_name == "Asha"
        assert (await store.load_user()).first_name == "Asha"

    @pytest.mark.asyncio
    async def test_update_user_requires_session(self, manager):
        result = await manager.update_user({"firstName": "Asha"})
        assert result.error == SessionErrorKind.NO_TOKEN

    @pytest.mark.asyncio
    async def test_session_info(self, manager, access_token, clock):
        await manager.login(USER, {"accessToken": access_token, "refreshToken": "R"})

        info = manager.get_session_info()

        assert info.user_id == "u1"
        assert info.authenticated_at == clock.now
        assert info.seconds_until_token_expiry == 3600
        assert (info.session_expires_at - clock.now).days == 30

    def test_session_info_when_signed_out(self, manager):
        assert manager.get_session_info() is None

    def test_get_access_token_when_signed_out(self, manager):
        with pytest.raises(NoTokenError):
            manager.get_access_token()


class TestMonitor:
    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, manager):
        manager.start()
        assert manager._monitor.is_running

        await manager.shutdown()

        assert not manager._monitor.is_running
