"""Unit tests for SessionManager."""

import asyncio

import pytest

from gworkspace_gateway.server.session import SessionChannel, SessionState
from gworkspace_gateway.server.session_manager import SessionManager
from gworkspace_gateway.tools import ToolRouter

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": "2025-03-26",
        "capabilities": {},
        "clientInfo": {"name": "test-client", "version": "1.0.0"},
    },
}


@pytest.fixture
def manager(echo_router: ToolRouter) -> SessionManager:
    return SessionManager(echo_router)


async def _open_session(manager: SessionManager) -> SessionChannel:
    channel = manager.create_channel()
    await channel.handle_message(INITIALIZE)
    return channel


@pytest.mark.unit
class TestSessionCreation:
    """Tests for create_channel() and registration on initialize."""

    def test_new_channel_should_not_be_registered(self, manager: SessionManager) -> None:
        channel = manager.create_channel()

        assert channel.state is SessionState.UNINITIALIZED
        assert channel.session_id not in manager
        assert len(manager) == 0

    def test_session_ids_should_be_unique_and_unguessable(self, manager: SessionManager) -> None:
        ids = {manager.create_channel().session_id for _ in range(100)}

        assert len(ids) == 100
        assert all(len(session_id) == 32 for session_id in ids)

    @pytest.mark.asyncio
    async def test_should_register_after_successful_initialize(
        self, manager: SessionManager
    ) -> None:
        channel = manager.create_channel()
        assert manager.get(channel.session_id) is None

        await channel.handle_message(INITIALIZE)

        assert manager.get(channel.session_id) is channel
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_failed_initialize_should_leave_nothing_behind(
        self, manager: SessionManager
    ) -> None:
        channel = manager.create_channel()

        response = await channel.handle_message(
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"bad": True}}
        )

        assert "error" in response
        assert channel.session_id not in manager
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_concurrent_initializations(self, manager: SessionManager) -> None:
        channels = await asyncio.gather(*[_open_session(manager) for _ in range(20)])

        assert len(manager) == 20
        assert all(manager.get(c.session_id) is c for c in channels)


@pytest.mark.unit
class TestSessionLookup:
    """Tests for get()."""

    @pytest.mark.parametrize("session_id", [None, "", "does-not-exist"])
    def test_should_return_none_for_missing_or_unknown_ids(
        self, manager: SessionManager, session_id: str | None
    ) -> None:
        assert manager.get(session_id) is None


@pytest.mark.unit
class TestSessionClose:
    """Tests for close(), channel-initiated close and close_all()."""

    @pytest.mark.asyncio
    async def test_close_should_remove_session(self, manager: SessionManager) -> None:
        channel = await _open_session(manager)

        assert await manager.close(channel.session_id) is True

        assert channel.state is SessionState.CLOSED
        assert channel.session_id not in manager
        assert manager.get(channel.session_id) is None

    @pytest.mark.asyncio
    async def test_close_should_be_idempotent(self, manager: SessionManager) -> None:
        channel = await _open_session(manager)

        first = await manager.close(channel.session_id)
        second = await manager.close(channel.session_id)

        assert (first, second) == (True, False)
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_close_unknown_session_is_a_noop(self, manager: SessionManager) -> None:
        await _open_session(manager)

        assert await manager.close("never-existed") is False
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_channel_close_should_unregister(self, manager: SessionManager) -> None:
        channel = await _open_session(manager)

        await channel.close()

        assert channel.session_id not in manager

    @pytest.mark.asyncio
    async def test_close_only_affects_its_session(self, manager: SessionManager) -> None:
        first = await _open_session(manager)
        second = await _open_session(manager)

        await manager.close(first.session_id)

        assert manager.get(second.session_id) is second
        assert second.state is SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_close_all(self, manager: SessionManager) -> None:
        channels = [await _open_session(manager) for _ in range(3)]

        await manager.close_all()

        assert len(manager) == 0
        assert all(c.state is SessionState.CLOSED for c in channels)
