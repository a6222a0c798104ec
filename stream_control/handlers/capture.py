"""
OBS capture source routes.

One call picks the PC or console capture device and applies the crop that
console needs, replacing several manual steps in OBS.
"""

import asyncio

from aiohttp import web

from ..app import SERVICES, json_status, routes
from ..utils.logger import get_logger
from ..utils.obs_client import CAPTURE_SOURCES, CROP_SIDES

logger = get_logger("handlers.capture")


@routes.get("/capture/{source}")
async def set_capture(request: web.Request) -> web.Response:
    """Switch capture device and crop, e.g. /capture/console?left=12&right=12."""
    source = request.match_info["source"]
    sides = {side: request.query[side] for side in CROP_SIDES if side in request.query}
    if source not in CAPTURE_SOURCES or not sides:
        return json_status(400, "Bad Request")

    try:
        crop = {side: int(value or 0) for side, value in sides.items()}
    except ValueError:
        return json_status(400, "Bad Request")

    obs = request.app[SERVICES].obs
    try:
        await asyncio.to_thread(obs.apply_capture, source, crop)
    except Exception as e:
        logger.error(f"Capture switch failed: {e}")
        logger.debug("Capture switch traceback", exc_info=True)
        return json_status(500, "Internal Server Error")

    return json_status(200, "OK")


@routes.get("/finetune/{direction}/{operation}")
async def finetune(request: web.Request) -> web.Response:
    """Nudge one crop side by a pixel, e.g. /finetune/top/increment."""
    direction = request.match_info["direction"]
    operation = request.match_info["operation"]
    if direction not in CROP_SIDES or operation not in ("increment", "decrement"):
        return json_status(400, "Bad Request")

    obs = request.app[SERVICES].obs
    try:
        value = await asyncio.to_thread(obs.finetune_crop, direction, operation)
    except Exception as e:
        logger.error(f"Crop finetune failed: {e}")
        logger.debug("Crop finetune traceback", exc_info=True)
        return json_status(500, "Internal Server Error")

    return json_status(200, "OK", data={direction: value})
