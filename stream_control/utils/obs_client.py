"""
OBS WebSocket client wrapper and stream-state watcher.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import obsws_python as obs
from obsws_python.error import OBSSDKTimeoutError
from websocket import WebSocketException

from .logger import get_logger

logger = get_logger("obs_client")

CAPTURE_SOURCES = ("pc", "console")
CROP_SIDES = ("top", "bottom", "left", "right")
RETRY_SECONDS = 5.0

# What a dead or stalled obs-websocket connection raises from ReqClient calls
CONNECTION_ERRORS = (OSError, WebSocketException, OBSSDKTimeoutError)


def crop_key(side: str) -> str:
    """Transform key for a crop side, e.g. "top" -> "cropTop"."""
    return "crop" + side.capitalize()


@dataclass
class OBSClient:
    """Wrapper for the OBS WebSocket request client.

    Scene and source names must match OBS exactly (case sensitive).
    """

    host: str
    port: int
    password: str
    crop_scene: str = "*** Game Capture"
    crop_source: str = "*** Game Capture Devices"
    capture_pc: str = "*** AverMedia Live Gamer 4K Device"
    capture_console: str = "*** AverMedia Live Gamer HD Device"
    _client: obs.ReqClient | None = None

    @property
    def client(self) -> obs.ReqClient:
        """Get or create the OBS client connection."""
        if self._client is None:
            self._client = obs.ReqClient(
                host=self.host,
                port=self.port,
                password=self.password,
                timeout=5,
            )
            v = self._client.get_version()
            logger.info(
                f"Connected to OBS instance at {self.host}:{self.port} - "
                f"obs-websocket version {v.obs_web_socket_version} (using RPC v{v.rpc_version})"
            )
        return self._client

    def reset(self) -> None:
        """Drop the connection so the next call reconnects."""
        if self._client is not None:
            try:
                self._client.disconnect()
            except Exception as e:
                logger.debug(f"OBS disconnect error (expected): {e}")
            self._client = None

    def get_version(self) -> str:
        """Get the OBS version string."""
        return self.client.get_version().obs_version

    def get_scene_item_id(self, scene_name: str, source_name: str) -> int:
        return self.client.get_scene_item_id(scene_name, source_name).scene_item_id

    def apply_capture(self, source: str, crop: dict[str, int]) -> None:
        """
        Show one capture device and set the crop on the capture group.

        Args:
            source: "pc" or "console"
            crop: crop per side (top/bottom/left/right); missing sides become 0
        """
        if source not in CAPTURE_SOURCES:
            raise ValueError(f"Unknown capture source: {source}")

        try:
            crop_item = self.get_scene_item_id(self.crop_scene, self.crop_source)

            pc_item = self.get_scene_item_id(self.crop_source, self.capture_pc)
            self.client.set_scene_item_enabled(self.crop_source, pc_item, source == "pc")

            console_item = self.get_scene_item_id(self.crop_source, self.capture_console)
            self.client.set_scene_item_enabled(self.crop_source, console_item, source == "console")

            transform = {crop_key(side): int(crop.get(side, 0)) for side in CROP_SIDES}
            self.client.set_scene_item_transform(self.crop_scene, crop_item, transform)
        except CONNECTION_ERRORS:
            self.reset()
            raise
        logger.info(f"Switched capture to {source} with crop {transform}")

    def finetune_crop(self, side: str, operation: str) -> int:
        """Nudge one crop side by a pixel. Returns the new value."""
        if side not in CROP_SIDES or operation not in ("increment", "decrement"):
            raise ValueError(f"Invalid finetune: {side}/{operation}")

        key = crop_key(side)
        try:
            item_id = self.get_scene_item_id(self.crop_scene, self.crop_source)
            transform = self.client.get_scene_item_transform(self.crop_scene, item_id).scene_item_transform
            value = int(transform.get(key, 0)) + (1 if operation == "increment" else -1)
            self.client.set_scene_item_transform(self.crop_scene, item_id, {key: value})
        except CONNECTION_ERRORS:
            self.reset()
            raise
        return value


@dataclass
class StreamStateWatcher:
    """Listens for OBS stream start/stop and calls back with the new state.

    Retries the event connection every 5 seconds until OBS is reachable, and
    reconnects if a periodic ping fails.
    """

    obs_client: OBSClient
    on_stream_state: Callable[[bool], Awaitable[None]]
    loop: asyncio.AbstractEventLoop | None = None
    _events: obs.EventClient | None = None
    _task: asyncio.Task | None = None

    def on_stream_state_changed(self, data) -> None:
        """EventClient callback (runs on the OBS event thread)."""
        if data.output_state == "OBS_WEBSOCKET_OUTPUT_STARTED":
            live = True
        elif data.output_state == "OBS_WEBSOCKET_OUTPUT_STOPPED":
            live = False
        else:
            return

        logger.info(f"Stream {'started' if live else 'stopped'}")
        if self.loop is None:
            logger.warning("Stream state change ignored: no event loop")
            return
        future = asyncio.run_coroutine_threadsafe(self.on_stream_state(live), self.loop)
        future.add_done_callback(self._callback_done)

    @staticmethod
    def _callback_done(future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"Stream state handler failed: {future.exception()}")

    def _connect(self) -> obs.EventClient:
        events = obs.EventClient(
            host=self.obs_client.host,
            port=self.obs_client.port,
            password=self.obs_client.password,
        )
        events.callback.register(self.on_stream_state_changed)
        return events

    def _disconnect(self) -> None:
        if self._events is not None:
            try:
                self._events.disconnect()
            except Exception as e:
                logger.debug(f"OBS event disconnect error (expected): {e}")
            self._events = None
        self.obs_client.reset()

    async def _run(self) -> None:
        while True:
            if self._events is None:
                try:
                    self._events = await asyncio.to_thread(self._connect)
                    logger.info(f"Listening for OBS stream events at {self.obs_client.host}:{self.obs_client.port}")
                except Exception as e:
                    logger.error(f"Failed to connect to OBS instance: {e}.  Retrying in {RETRY_SECONDS:.0f} seconds...")
            else:
                try:
                    await asyncio.to_thread(self.obs_client.get_version)
                except Exception as e:
                    logger.error(f"Lost connection to OBS ({e}), reconnecting...")
                    self._disconnect()
            await asyncio.sleep(RETRY_SECONDS)

    def start(self) -> None:
        if self._task is None:
            self.loop = self.loop or asyncio.get_running_loop()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._disconnect()
