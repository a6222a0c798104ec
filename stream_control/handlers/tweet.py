"""
Tweet embed routes.

/tweet shows a tweet through Twitter's embed widget; /gentweet screenshots
that page into public/tweet.png so an overlay can show a plain image.
"""

import html
from string import Template

from aiohttp import web

from ..app import ASSETS_DIR, SERVICES, json_status, routes
from ..utils.logger import get_logger
from ..utils.tweet_renderer import extract_tweet_id

logger = get_logger("handlers.tweet")


@routes.get("/tweet")
async def show_tweet(request: web.Request) -> web.Response:
    """Render the embed page for a status URL, e.g. /tweet?url=https://twitter.com/x/status/1."""
    tweet_id = extract_tweet_id(request.query.get("url", ""))
    if tweet_id is None:
        return web.Response(status=400, text="400 Bad Request")

    page = Template((ASSETS_DIR / "tweet.html").read_text(encoding="utf-8"))
    return web.Response(
        text=page.substitute(tweet_id=html.escape(tweet_id)),
        content_type="text/html",
    )


@routes.get("/gentweet")
async def generate_tweet_image(request: web.Request) -> web.Response:
    """Render a tweet to /public/tweet.png."""
    url = request.query.get("url", "")
    if extract_tweet_id(url) is None:
        return web.Response(status=400, text="400 Bad Request")

    renderer = request.app[SERVICES].renderer
    try:
        await renderer.render(url)
    except Exception as e:
        logger.error(f"Tweet render failed: {e}")
        return json_status(500, "Internal Server Error", error=str(e))

    return json_status(200, "OK")
