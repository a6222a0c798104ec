"""
SSE (Server-Sent Events) hub for broadcasting overlay events to browser sources.

Browser sources connect to /events to receive `chatMsg` and `shoutout` events
in real time.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from aiohttp import web

from .logger import get_logger

logger = get_logger("sse_server")

KEEPALIVE_SECONDS = 30.0
CLIENT_QUEUE_SIZE = 100

Hook = Callable[[], Awaitable[None]]


def format_event(event: str, data: Any) -> bytes:
    """Encode one named SSE event."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n".encode()


@dataclass
class EventHub:
    """Fan-out of named events to every connected SSE client."""

    keepalive: float = KEEPALIVE_SECONDS
    queue_size: int = CLIENT_QUEUE_SIZE
    on_first_client: Hook | None = None
    on_last_client: Hook | None = None
    _clients: set[asyncio.Queue] = field(default_factory=set)

    async def _run_hook(self, hook: Hook | None, name: str) -> None:
        if hook is None:
            return
        try:
            await hook()
        except Exception as e:
            logger.error(f"SSE {name} hook failed: {e}")

    async def handle_events(self, request: web.Request) -> web.StreamResponse:
        """SSE endpoint - clients connect here to receive overlay events."""
        response = web.StreamResponse(
            status=200,
            reason="OK",
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
            },
        )
        await response.prepare(request)

        queue = self._add_client()
        if len(self._clients) == 1:
            await self._run_hook(self.on_first_client, "first client")

        try:
            await response.write(b": connected\n\n")
            while True:
                try:
                    event, data = await asyncio.wait_for(queue.get(), timeout=self.keepalive)
                    await response.write(format_event(event, data))
                except asyncio.TimeoutError:
                    await response.write(b": keepalive\n\n")
        except ConnectionResetError:
            pass
        finally:
            self._clients.discard(queue)
            logger.info(f"Chat overlay disconnected ({len(self._clients)} remaining)")
            if not self._clients:
                await self._run_hook(self.on_last_client, "last client")

        return response

    def _add_client(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._clients.add(queue)
        logger.info(f"Chat overlay connected ({len(self._clients)} total)")
        return queue

    async def broadcast(self, event: str, data: dict) -> None:
        """Queue an event for every connected client.

        A client whose queue is full has stopped reading; it misses the event.
        """
        for queue in list(self._clients):
            try:
                queue.put_nowait((event, data))
            except asyncio.QueueFull:
                logger.warning(f"Overlay client is not keeping up, dropped {event} event")

    @property
    def client_count(self) -> int:
        """Number of connected clients."""
        return len(self._clients)
