"""
Twitch Helix API client wrapper.
"""

from dataclasses import dataclass, field

import httpx

from .logger import get_logger
from .profile_cache import LookupFailed, ProfileRecord
from .twitch_auth import AppTokenProvider

logger = get_logger("twitch_client")

HELIX_URL = "https://api.twitch.tv/helix"


@dataclass
class ChatMessage:
    """Represents a Twitch chat message."""

    username: str
    message: str


@dataclass
class TwitchClient:
    """Wrapper for the Twitch Helix API using an app access token."""

    client_id: str
    client_secret: str
    http: httpx.Client = field(default_factory=lambda: httpx.Client(timeout=10.0))
    _tokens: AppTokenProvider | None = None

    def __post_init__(self):
        if self._tokens is None:
            self._tokens = AppTokenProvider(self.client_id, self.client_secret, self.http)

    def _api_call(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Make an API call, renewing the app token once on 401."""
        extra_headers = kwargs.pop("headers", {})
        kwargs.pop("timeout", None)

        for attempt in range(2):
            headers = {
                "Client-ID": self.client_id,
                "Authorization": f"Bearer {self._tokens.get_token()}",
                **extra_headers,
            }
            resp = self.http.request(method, f"{HELIX_URL}{path}", headers=headers, timeout=10.0, **kwargs)

            if resp.status_code == 401 and attempt == 0:
                logger.warning(f"API call to {path} failed with 401, renewing app token")
                self._tokens.invalidate()
                continue
            if resp.status_code >= 400:
                logger.warning(f"API call to {path} failed: {resp.status_code} - {resp.text[:200]}")
            return resp
        return resp

    def get_user(self, login: str) -> dict | None:
        """Get a user by login name, or None if no such user."""
        resp = self._api_call("GET", "/users", params={"login": login})
        resp.raise_for_status()
        data = resp.json()
        if data.get("data"):
            return data["data"][0]
        return None

    def get_user_clips(self, login: str, count: int = 5) -> list[dict]:
        """Get recent clips from a user's channel."""
        user = self.get_user(login)
        if not user:
            return []

        resp = self._api_call(
            "GET", "/clips", params={"broadcaster_id": user["id"], "first": count}
        )
        resp.raise_for_status()
        return [
            {
                "id": c["id"],
                "url": c["url"],
                "embed_url": c["embed_url"],
                "title": c["title"],
                "duration": c["duration"],
            }
            for c in resp.json().get("data", [])
        ]

    def lookup_profile(self, login: str) -> ProfileRecord | None:
        """
        Look up a chatter's display name and avatar.

        Returns None if Twitch has no such user.

        Raises:
            LookupFailed: rate limited, rejected, or unreachable
        """
        try:
            resp = self._api_call("GET", "/users", params={"login": login})
        except (httpx.HTTPError, ValueError) as e:
            raise LookupFailed(login, str(e)) from e

        if resp.status_code == 429:
            raise LookupFailed(login, "rate limited")
        if resp.status_code >= 400:
            raise LookupFailed(login, f"HTTP {resp.status_code}")

        data = resp.json().get("data") or []
        if not data:
            return None

        user = data[0]
        return ProfileRecord(
            key=login,
            display_name=user.get("display_name") or user.get("login", login),
            avatar_url=user.get("profile_image_url", ""),
        )

    def close(self) -> None:
        self.http.close()
