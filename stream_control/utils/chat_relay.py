"""
Relay chat messages from the IRC listener thread to overlay clients.
"""

import asyncio
from concurrent.futures import Future
from dataclasses import dataclass

from .logger import get_logger
from .profile_cache import LookupFailed, ProfileCache
from .sse_server import EventHub
from .twitch_client import ChatMessage

logger = get_logger("chat_relay")


@dataclass
class ChatRelay:
    """Resolves each chatter through the profile cache and emits `chatMsg`."""

    cache: ProfileCache
    hub: EventHub
    loop: asyncio.AbstractEventLoop | None = None

    async def relay(self, msg: ChatMessage) -> dict:
        """Resolve the chatter and broadcast the message. Returns the event payload."""
        try:
            record = await self.cache.resolve(msg.username)
            payload = {"user": record.display_name, "profile": record.avatar_url, "message": msg.message}
        except LookupFailed as e:
            logger.warning(f"{e}; showing raw login")
            payload = {"user": msg.username, "profile": None, "message": msg.message}

        await self.hub.broadcast("chatMsg", payload)
        return payload

    def handle_message(self, msg: ChatMessage) -> None:
        """Listener handler; schedules the relay on the event loop from any thread."""
        if self.loop is None or not self.loop.is_running():
            logger.warning("Chat relay: event loop not running, dropping message")
            return

        future = asyncio.run_coroutine_threadsafe(self.relay(msg), self.loop)
        future.add_done_callback(self._relay_done)

    @staticmethod
    def _relay_done(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Chat relay failed: {error}")
