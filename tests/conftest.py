"""
Shared fixtures and fakes for the stream-control tests.
"""

import threading
import time

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from stream_control.app import Settings, StreamControl
from stream_control.server import create_app
from stream_control.utils.profile_cache import ProfileCache, ProfileRecord, StorageUnavailable
from stream_control.utils.sse_server import EventHub


class FakeStore:
    """In-memory profile store with switchable failures."""

    def __init__(self, records: dict[str, ProfileRecord] | None = None):
        self.records = dict(records or {})
        self.fail_reads = False
        self.fail_writes = False
        self.insert_gate: threading.Event | None = None
        self.inserts = 0

    def find_by_key(self, key: str) -> ProfileRecord | None:
        if self.fail_reads:
            raise StorageUnavailable("database is locked")
        return self.records.get(key)

    def insert(self, record: ProfileRecord) -> None:
        if self.insert_gate is not None:
            self.insert_gate.wait(timeout=5)
        self.inserts += 1
        if self.fail_writes:
            raise StorageUnavailable("disk I/O error")
        self.records.setdefault(record.key, record)


class FakeLookup:
    """Stands in for the Twitch API; counts calls."""

    def __init__(self, profiles: dict[str, tuple[str, str]] | None = None, delay: float = 0.0):
        self.profiles = dict(profiles or {})
        self.delay = delay
        self.error: Exception | None = None
        self.calls: list[str] = []

    def lookup_profile(self, key: str) -> ProfileRecord | None:
        self.calls.append(key)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if key not in self.profiles:
            return None
        display_name, avatar_url = self.profiles[key]
        return ProfileRecord(key=key, display_name=display_name, avatar_url=avatar_url)


class FakeLights:
    def __init__(self, states: dict[str, bool] | None = None):
        self.states = dict(states or {"studio light": False, "on-air light": False})

    async def toggle(self, name: str) -> bool:
        self.states[name] = not self.states[name]
        return self.states[name]

    async def set_all(self, on: bool) -> None:
        for name in self.states:
            self.states[name] = on


class FakeKVM:
    def __init__(self):
        self.ports: list[int] = []
        self.error: OSError | None = None

    def switch(self, port: int) -> None:
        if not 1 <= port <= 16:
            raise ValueError(f"bad port {port}")
        if self.error is not None:
            raise self.error
        self.ports.append(port)


class FakeOBS:
    def __init__(self):
        self.captures: list[tuple[str, dict]] = []
        self.crop = {"top": 0, "bottom": 0, "left": 0, "right": 0}
        self.error: Exception | None = None

    def apply_capture(self, source: str, crop: dict) -> None:
        if self.error is not None:
            raise self.error
        self.captures.append((source, crop))

    def finetune_crop(self, side: str, operation: str) -> int:
        if self.error is not None:
            raise self.error
        self.crop[side] += 1 if operation == "increment" else -1
        return self.crop[side]


class FakeTwitch:
    def __init__(self):
        self.clips: dict[str, list[dict]] = {}
        self.closed = False

    def get_user_clips(self, login: str, count: int = 5) -> list[dict]:
        return self.clips.get(login, [])[:count]

    def close(self) -> None:
        self.closed = True


class FakeRenderer:
    def __init__(self):
        self.rendered: list[str] = []
        self.error: Exception | None = None

    async def render(self, url: str):
        if self.error is not None:
            raise self.error
        self.rendered.append(url)

    async def close(self) -> None:
        pass


class FakeChat:
    def __init__(self):
        self.is_running = False
        self.starts = 0
        self.stops = 0

    def start(self) -> None:
        self.is_running = True
        self.starts += 1

    def stop(self) -> None:
        self.is_running = False
        self.stops += 1


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def lookup():
    return FakeLookup({
        "alice": ("Alice", "https://x/a.png"),
        "bob": ("Bob", "https://x/b.png"),
    })


@pytest.fixture
def cache(store, lookup):
    return ProfileCache(store=store, lookup=lookup)


@pytest.fixture
def services(tmp_path, cache):
    hub = EventHub(keepalive=0.05)
    services = StreamControl(
        settings=Settings(public_dir=tmp_path / "public"),
        cache=cache,
        hub=hub,
        twitch=FakeTwitch(),
        obs=FakeOBS(),
        lights=FakeLights(),
        kvm=FakeKVM(),
        renderer=FakeRenderer(),
        chat=FakeChat(),
    )
    hub.on_first_client = services.start_chat
    hub.on_last_client = services.stop_chat
    return services


@pytest_asyncio.fixture
async def client(services):
    async with TestClient(TestServer(create_app(services))) as client:
        yield client
