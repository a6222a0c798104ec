"""
Browser-source overlay routes: the overlay page, its event stream, and shoutouts.
"""

import asyncio
import html
import random
from string import Template

from aiohttp import web

from ..app import ASSETS_DIR, SERVICES, json_status, routes
from ..utils.logger import get_logger
from ..utils.profile_cache import LookupFailed

logger = get_logger("handlers.overlay")

# Query parameter -> default, substituted into overlay.html
OVERLAY_DEFAULTS = {
    "align": "left",
    "nofade": "false",
    "chattop": "0",
    "chatleft": "0",
    "chatwidth": "1920",
    "chatheight": "1080",
    "chatguide": "false",
}

SHOUTOUT_CLIPS = 5


@routes.get("/overlay")
async def overlay(request: web.Request) -> web.Response:
    """Chat and shoutout overlay page for an OBS browser source."""
    params = {
        name: html.escape(request.query.get(name) or default)
        for name, default in OVERLAY_DEFAULTS.items()
    }
    page = Template((ASSETS_DIR / "overlay.html").read_text(encoding="utf-8"))
    return web.Response(text=page.substitute(params), content_type="text/html")


@routes.get("/events")
async def events(request: web.Request) -> web.StreamResponse:
    """SSE stream of chatMsg and shoutout events."""
    return await request.app[SERVICES].hub.handle_events(request)


@routes.get("/shoutout")
async def shoutout(request: web.Request) -> web.Response:
    """Show a shoutout card with one of the broadcaster's recent clips."""
    login = request.query.get("broadcaster")
    if not login:
        return json_status(400, "Bad Request")

    services = request.app[SERVICES]
    try:
        profile = await services.cache.resolve(login)
    except LookupFailed as e:
        logger.warning(f"Shoutout skipped: {e}")
        return json_status(404, "Not Found")

    try:
        clips = await asyncio.to_thread(services.twitch.get_user_clips, login, SHOUTOUT_CLIPS)
    except Exception as e:
        logger.error(f"Clip lookup failed for {login}: {e}")
        return json_status(500, "Internal Server Error")

    clip = random.choice(clips) if clips else None
    await services.hub.broadcast("shoutout", {
        "embed_url": clip["embed_url"] if clip else None,
        "broadcaster": profile.display_name,
        "profile_img": profile.avatar_url,
        "duration": clip["duration"] if clip else None,
    })
    return json_status(200, "OK")
