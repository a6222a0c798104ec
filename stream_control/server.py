"""
Stream Control Center

HTTP service that glues together smart outlets, an HDMI switch, OBS, Twitch
chat and a tweet renderer for a single streamer.
"""

from aiohttp import web

from .app import ASSETS_DIR, SERVICES, StreamControl, build_services, json_status, load_settings, routes
from .utils.logger import get_logger

# Import handlers to register them with the route table
from . import handlers  # noqa: F401

logger = get_logger("server")


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """JSON 404 for unknown routes and JSON 500 for unhandled errors."""
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return json_status(404, "Not Found")
    except web.HTTPMethodNotAllowed:
        return json_status(404, "Not Found")
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"{request.method} {request.path} failed: {e}")
        logger.debug("Request traceback", exc_info=True)
        return json_status(500, f"An error occurred: {e}")


def create_app(services: StreamControl) -> web.Application:
    """Build the aiohttp application around an existing service container."""
    app = web.Application(middlewares=[error_middleware])
    app[SERVICES] = services
    app.add_routes(routes)

    public_dir = services.settings.public_dir
    public_dir.mkdir(parents=True, exist_ok=True)
    app.router.add_static("/public", public_dir)
    app.router.add_static("/assets", ASSETS_DIR)

    async def on_startup(app: web.Application) -> None:
        await app[SERVICES].startup()

    async def on_cleanup(app: web.Application) -> None:
        await app[SERVICES].shutdown()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def main():
    """Run the stream control service."""
    settings = load_settings()
    app = create_app(build_services(settings))
    logger.info(f"Stream control listening on http://{settings.http_host}:{settings.http_port}")
    web.run_app(app, host=settings.http_host, port=settings.http_port, print=None)


if __name__ == "__main__":
    main()
