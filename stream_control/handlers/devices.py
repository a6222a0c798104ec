"""
Smart outlet and HDMI switch routes.
"""

import asyncio

from aiohttp import web

from ..app import SERVICES, json_status, routes
from ..utils.logger import get_logger

logger = get_logger("handlers.devices")


@routes.get("/lights")
async def toggle_light(request: web.Request) -> web.Response:
    """Toggle a named light, e.g. /lights?device=studio light."""
    device = request.query.get("device")
    if not device:
        return json_status(400, "Bad Request")

    lights = request.app[SERVICES].lights
    try:
        is_on = await lights.toggle(device)
    except KeyError:
        return json_status(404, "Not Found")

    return json_status(200, "OK", data={"device": device, "state": "on" if is_on else "off"})


@routes.get("/kvm")
async def switch_kvm(request: web.Request) -> web.Response:
    """Switch the HDMI switch to an input, e.g. /kvm?port=3."""
    kvm = request.app[SERVICES].kvm
    try:
        port = int(request.query["port"])
        await asyncio.to_thread(kvm.switch, port)
    except (KeyError, ValueError):
        return json_status(400, "Bad Request")
    except OSError as e:
        logger.error(f"KVM switch unreachable: {e}")
        return json_status(503, "Service Unavailable")

    return json_status(200, "OK")
