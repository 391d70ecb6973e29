"""Minimal X (Twitter) API v2 client for posting a single tweet."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from src.core.config import TwitterConfig
from src.core.exceptions import ServiceError

logger = logging.getLogger("trendforge.tools.twitter")


class TwitterClient:
    """Posts tweets with a user-context OAuth 2.0 bearer token."""

    def __init__(
        self,
        config: Optional[TwitterConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or TwitterConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def tweet(self, text: str) -> tuple[str, str]:
        """Post `text`. Returns (tweet_id, tweet_url)."""
        if not self.config.bearer_token:
            raise ServiceError("twitter", "TWITTER_BEARER_TOKEN not set")
        try:
            response = await self.client.post(
                "/tweets",
                json={"text": text},
                headers={"Authorization": f"Bearer {self.config.bearer_token}"},
            )
        except httpx.HTTPError as e:
            raise ServiceError("twitter", f"POST /tweets failed: {e}") from e

        if response.status_code >= 400:
            raise ServiceError(
                "twitter", f"POST /tweets: HTTP {response.status_code}", response.status_code,
            )
        tweet_id = str(response.json().get("data", {}).get("id", ""))
        if not tweet_id:
            raise ServiceError("twitter", "Response did not include a tweet id")
        url = f"https://x.com/{self.config.username or 'i'}/status/{tweet_id}"
        logger.info("Tweet posted: %s", url)
        return tweet_id, url

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
