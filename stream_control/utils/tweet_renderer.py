"""
Render a tweet embed to a transparent PNG with a headless browser.

The overlay bot can then show a plain image instead of a flaky oEmbed widget.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlencode

from playwright.async_api import Browser, Playwright, async_playwright

from .logger import get_logger

logger = get_logger("tweet_renderer")

TWEET_URL_RE = re.compile(r"https://(?:www\.)?(?:twitter|x)\.com/[^/]+/status/(\d+)")


def extract_tweet_id(url: str) -> str | None:
    """Get the status ID from a twitter.com or x.com status URL."""
    match = TWEET_URL_RE.match(url or "")
    return match.group(1) if match else None


@dataclass
class TweetRenderer:
    """Screenshots the /tweet page of this service into the public directory."""

    base_url: str
    output_path: Path
    timeout_ms: int = 15000
    _playwright: Playwright | None = None
    _browser: Browser | None = None

    async def _get_browser(self) -> Browser:
        """Get or create the shared browser instance."""
        if self._browser is None:
            logger.info("Starting Playwright browser (chromium, headless)")
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=True)
        return self._browser

    async def render(self, tweet_url: str) -> Path:
        """Render a tweet to output_path. Raises ValueError for non-status URLs."""
        tweet_id = extract_tweet_id(tweet_url)
        if tweet_id is None:
            raise ValueError(f"Not a tweet URL: {tweet_url}")

        browser = await self._get_browser()
        page = await browser.new_page()
        try:
            await page.goto(
                f"{self.base_url}/tweet?{urlencode({'url': tweet_url})}",
                wait_until="networkidle",
                timeout=self.timeout_ms,
            )
            container = page.locator("#tweetContainer")
            await container.wait_for(timeout=self.timeout_ms)
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            await container.screenshot(path=str(self.output_path), omit_background=True)
        finally:
            await page.close()

        logger.info(f"Successfully generated image for Tweet #{tweet_id}")
        return self.output_path

    async def close(self) -> None:
        """Close the browser instance."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
