"""In-memory registry of live MCP sessions.

The session map is the only shared mutable structure in the gateway. It is
owned here and changes in exactly two places: a channel is inserted once its
initialize handshake succeeds, and removed when it closes. Both happen under
one ``asyncio.Lock`` that is never held across a tool call or network I/O.

Sessions live for the lifetime of the process only; clients that hit an
instance without their session must re-initialize.
"""

import asyncio
import logging
import uuid

from gworkspace_gateway.server.session import SessionChannel, SessionState
from gworkspace_gateway.tools.router import ToolRouter

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, tracks and closes session channels.

    Attributes:
        router: Tool router handed to every new channel.
    """

    def __init__(self, router: ToolRouter) -> None:
        self.router = router
        self._sessions: dict[str, SessionChannel] = {}
        self._lock = asyncio.Lock()

    def create_channel(self) -> SessionChannel:
        """Create an unregistered channel with a fresh, unguessable session id.

        The channel registers itself only when its initialize handshake
        completes, so a failed handshake leaves nothing behind.
        """
        session_id = uuid.uuid4().hex
        return SessionChannel(
            session_id,
            self.router,
            on_initialized=self._register,
            on_close=self._discard,
        )

    async def _register(self, channel: SessionChannel) -> None:
        async with self._lock:
            if channel.session_id in self._sessions:
                raise RuntimeError(f"Session id collision: {channel.session_id}")
            self._sessions[channel.session_id] = channel
        logger.info("Session %s created (%d active)", channel.session_id, len(self._sessions))

    async def _discard(self, channel: SessionChannel) -> None:
        async with self._lock:
            if self._sessions.get(channel.session_id) is channel:
                del self._sessions[channel.session_id]

    def get(self, session_id: str | None) -> SessionChannel | None:
        """Look up an active session.

        Returns:
            The channel, or None when the id is missing, unknown or closed.
        """
        if not session_id:
            return None
        channel = self._sessions.get(session_id)
        if channel is None or channel.state is not SessionState.ACTIVE:
            return None
        return channel

    async def close(self, session_id: str) -> bool:
        """Close and remove a session. Closing an absent session is a no-op.

        Returns:
            True if a live session was closed.
        """
        async with self._lock:
            channel = self._sessions.pop(session_id, None)
        if channel is None:
            return False
        await channel.close()
        return True

    async def close_all(self) -> None:
        """Close every session, e.g. on shutdown."""
        async with self._lock:
            channels = list(self._sessions.values())
            self._sessions.clear()
        for channel in channels:
            await channel.close()
        if channels:
            logger.info("Closed %d session(s)", len(channels))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
