"""
Twitch app access tokens (client credentials flow).

Profile and clip lookups only need an app token, so no user authorization
is involved.
"""

import time
from dataclasses import dataclass

import httpx

from .logger import get_logger

logger = get_logger("twitch_auth")

TOKEN_URL = "https://id.twitch.tv/oauth2/token"

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN = 60


def request_app_token(http: httpx.Client, client_id: str, client_secret: str) -> dict:
    """Request a new app access token."""
    resp = http.post(
        TOKEN_URL,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "client_credentials",
        },
        timeout=10.0,
    )
    resp.raise_for_status()
    return resp.json()


@dataclass
class AppTokenProvider:
    """Caches an app access token and renews it shortly before expiry."""

    client_id: str
    client_secret: str
    http: httpx.Client
    _token: str | None = None
    _expires_at: float = 0.0

    def get_token(self) -> str:
        """Get a valid app access token, requesting a new one if needed."""
        if self._token and time.time() < self._expires_at:
            return self._token

        if not self.client_id or not self.client_secret:
            raise ValueError("TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET are required")

        data = request_app_token(self.http, self.client_id, self.client_secret)
        self._token = data["access_token"]
        self._expires_at = time.time() + int(data.get("expires_in", 0)) - EXPIRY_MARGIN
        logger.info(f"Got Twitch app token (expires in {int(data.get('expires_in', 0)) // 3600} hours)")
        return self._token

    def invalidate(self) -> None:
        """Forget the cached token so the next call requests a new one."""
        self._token = None
        self._expires_at = 0.0
