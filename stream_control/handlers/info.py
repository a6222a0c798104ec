"""
Service information routes.
"""

from dataclasses import asdict

from aiohttp import web

from ..app import APPLICATION, SERVICES, VERSION, routes


@routes.get("/")
async def app_info(request: web.Request) -> web.Response:
    """Basic application information."""
    return web.json_response({"application": APPLICATION, "version": VERSION})


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    """Health check with overlay and cache counters."""
    services = request.app[SERVICES]
    return web.json_response({
        "status": "ok",
        "clients": services.hub.client_count,
        "chat_connected": bool(services.chat and services.chat.is_running),
        "cache": {
            **asdict(services.cache.stats),
            "pending_writes": services.cache.pending_writes,
            "in_flight": services.cache.in_flight,
        },
    })
