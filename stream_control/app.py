"""
Shared application state: settings, service container, and route table.
"""

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path

from aiohttp import web

from .utils.chat_listener import ChatListener
from .utils.chat_relay import ChatRelay
from .utils.kvm_switch import KVMSwitch
from .utils.lights import LightController, parse_devices
from .utils.logger import get_logger
from .utils.obs_client import OBSClient, StreamStateWatcher
from .utils.profile_cache import ProfileCache
from .utils.profile_store import SQLiteProfileStore
from .utils.sse_server import EventHub
from .utils.tweet_renderer import TweetRenderer
from .utils.twitch_client import TwitchClient

logger = get_logger("app")

APPLICATION = "StreamControlCenter"
VERSION = "1.0.0"

ASSETS_DIR = Path(__file__).parent / "assets"

DEFAULT_LIGHTS = "on-air light=192.168.1.196,studio light=192.168.1.79"

# Handler modules register on this table; server.create_app() adds it to the app
routes = web.RouteTableDef()


@dataclass
class Settings:
    """Service configuration, read from the environment."""

    http_host: str = "0.0.0.0"
    http_port: int = 8008
    public_base_url: str = ""
    public_dir: Path = Path("public")
    user_cache_db: str = "db.sqlite"
    twitch_client_id: str = ""
    twitch_client_secret: str = ""
    twitch_channel: str = ""
    obs_host: str = "localhost"
    obs_port: int = 4455
    obs_password: str = ""
    kvm_host: str = "192.168.1.239"
    kvm_port: int = 5000
    lights: str = DEFAULT_LIGHTS
    crop_scene: str = "*** Game Capture"
    crop_source: str = "*** Game Capture Devices"
    capture_pc: str = "*** AverMedia Live Gamer 4K Device"
    capture_console: str = "*** AverMedia Live Gamer HD Device"

    def __post_init__(self):
        if not self.public_base_url:
            self.public_base_url = f"http://localhost:{self.http_port}"


def _validate_env() -> list[str]:
    """Validate required environment variables. Returns list of missing vars."""
    return [
        name
        for name in ("TWITCH_CLIENT_ID", "TWITCH_CLIENT_SECRET", "TWITCH_CHANNEL")
        if not os.getenv(name)
    ]


def load_settings() -> Settings:
    """Build Settings from environment variables."""
    missing = _validate_env()
    if missing:
        logger.warning(f"Missing env vars: {', '.join(missing)} - chat and lookups will fail")

    defaults = Settings()
    return Settings(
        http_host=os.getenv("HTTP_HOST", defaults.http_host),
        http_port=int(os.getenv("HTTP_PORT", defaults.http_port)),
        public_base_url=os.getenv("PUBLIC_BASE_URL", ""),
        public_dir=Path(os.getenv("PUBLIC_DIR", str(defaults.public_dir))),
        user_cache_db=os.getenv("USER_CACHE_DB", defaults.user_cache_db),
        twitch_client_id=os.getenv("TWITCH_CLIENT_ID", ""),
        twitch_client_secret=os.getenv("TWITCH_CLIENT_SECRET", ""),
        twitch_channel=os.getenv("TWITCH_CHANNEL", ""),
        obs_host=os.getenv("OBS_WEBSOCKET_HOST", defaults.obs_host),
        obs_port=int(os.getenv("OBS_WEBSOCKET_PORT", defaults.obs_port)),
        obs_password=os.getenv("OBS_WEBSOCKET_PASSWORD", ""),
        kvm_host=os.getenv("KVM_HOST", defaults.kvm_host),
        kvm_port=int(os.getenv("KVM_PORT", defaults.kvm_port)),
        lights=os.getenv("LIGHTS", defaults.lights),
        crop_scene=os.getenv("CROP_SCENE", defaults.crop_scene),
        crop_source=os.getenv("CROP_SOURCE", defaults.crop_source),
        capture_pc=os.getenv("CAPTURE_PC", defaults.capture_pc),
        capture_console=os.getenv("CAPTURE_CONSOLE", defaults.capture_console),
    )


@dataclass
class StreamControl:
    """Every service the HTTP routes and background tasks talk to."""

    settings: Settings
    cache: ProfileCache
    hub: EventHub
    twitch: TwitchClient
    obs: OBSClient
    lights: LightController
    kvm: KVMSwitch
    renderer: TweetRenderer
    chat: ChatListener | None = None
    relay: ChatRelay | None = None
    watcher: StreamStateWatcher | None = None
    store: SQLiteProfileStore | None = None
    _chat_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def start_chat(self) -> None:
        """Connect to chat; called when the first overlay attaches."""
        async with self._chat_lock:
            if self.chat is None or self.chat.is_running:
                return
            if self.relay is not None:
                self.relay.loop = asyncio.get_running_loop()
            await asyncio.to_thread(self.chat.start)

    async def stop_chat(self) -> None:
        """Leave chat; called when the last overlay detaches."""
        async with self._chat_lock:
            if self.chat is not None and self.chat.is_running:
                logger.warning("No active overlay connections - disconnecting from Twitch chat")
                await asyncio.to_thread(self.chat.stop)

    async def startup(self) -> None:
        if self.watcher is not None:
            self.watcher.start()

    async def shutdown(self) -> None:
        await self.stop_chat()
        if self.watcher is not None:
            await self.watcher.stop()
        await self.cache.flush()
        await self.renderer.close()
        self.twitch.close()
        if self.store is not None:
            self.store.close()
        logger.info("Stream control services stopped")


SERVICES = web.AppKey("services", StreamControl)


def build_services(settings: Settings) -> StreamControl:
    """Create the real clients for a running service."""
    store = SQLiteProfileStore(settings.user_cache_db)
    twitch = TwitchClient(
        client_id=settings.twitch_client_id,
        client_secret=settings.twitch_client_secret,
    )
    cache = ProfileCache(store=store, lookup=twitch)
    hub = EventHub()
    obs = OBSClient(
        host=settings.obs_host,
        port=settings.obs_port,
        password=settings.obs_password,
        crop_scene=settings.crop_scene,
        crop_source=settings.crop_source,
        capture_pc=settings.capture_pc,
        capture_console=settings.capture_console,
    )
    lights = LightController(parse_devices(settings.lights))

    services = StreamControl(
        settings=settings,
        cache=cache,
        hub=hub,
        twitch=twitch,
        obs=obs,
        lights=lights,
        kvm=KVMSwitch(settings.kvm_host, settings.kvm_port),
        renderer=TweetRenderer(
            base_url=settings.public_base_url,
            output_path=settings.public_dir / "tweet.png",
        ),
        watcher=StreamStateWatcher(obs_client=obs, on_stream_state=lights.set_all),
        store=store,
    )

    if settings.twitch_channel:
        services.chat = ChatListener(channel=settings.twitch_channel)
        services.relay = ChatRelay(cache=cache, hub=hub)
        services.chat.add_handler(services.relay.handle_message)
        hub.on_first_client = services.start_chat
        hub.on_last_client = services.stop_chat
    return services


def json_status(status: int, message: str, **extra) -> web.Response:
    """JSON body used by every route: {"status": ..., "message": ..., ...}."""
    return web.json_response({"status": status, "message": message, **extra}, status=status)
