"""GitHub REST API client.

GitHub has no official trending endpoint, so trending repositories are
approximated with the search API: recently created repos sorted by stars,
one query per language (search does not OR language qualifiers), merged and
de-duplicated.
"""

from __future__ import annotations

import base64
import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any, Optional

import httpx

from src.core.config import GitHubConfig
from src.core.exceptions import ServiceError

logger = logging.getLogger("trendforge.tools.github")

_PERIOD_DAYS = {"daily": 1, "weekly": 7, "monthly": 30}


def since_date(period: str, today: Optional[date] = None) -> str:
    """Earliest creation date for a trending period, as YYYY-MM-DD."""
    today = today or datetime.now(UTC).date()
    return (today - timedelta(days=_PERIOD_DAYS.get(period, 1))).isoformat()


class GitHubClient:
    """Async client for the handful of GitHub endpoints the pipeline needs."""

    def __init__(
        self,
        config: Optional[GitHubConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or GitHubConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url,
                headers=headers,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ServiceError("github", f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise ServiceError("github", f"{method} {path} failed: {e}") from e

        if response.status_code == 401:
            raise ServiceError("github", "Invalid or missing GitHub token", 401)
        if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            raise ServiceError("github", "GitHub rate limit exceeded", 403)
        if response.status_code >= 400:
            raise ServiceError(
                "github", f"{method} {path}: HTTP {response.status_code}", response.status_code,
            )
        return response

    async def search_repositories(
        self, query: str, sort: str = "stars", per_page: int = 30,
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "GET",
            "/search/repositories",
            params={"q": query, "sort": sort, "order": "desc", "per_page": per_page},
        )
        return list(response.json().get("items", []))

    async def get_trending(
        self, period: str = "daily", languages: Optional[list[str]] = None, min_stars: int = 100,
    ) -> list[dict[str, Any]]:
        """Recently created repos sorted by stars, merged across languages."""
        base_query = f"created:>{since_date(period)} stars:>{min_stars}"
        queries = [f"{base_query} language:{lang}" for lang in languages] if languages else [base_query]

        seen: set[str] = set()
        merged: list[dict[str, Any]] = []
        for query in queries:
            for item in await self.search_repositories(query):
                full_name = item.get("full_name", "")
                if full_name and full_name not in seen:
                    seen.add(full_name)
                    merged.append(item)

        merged.sort(key=lambda item: item.get("stargazers_count", 0), reverse=True)
        logger.info("Found %d trending repos (period=%s)", len(merged), period)
        return merged

    async def get_repo(self, owner: str, name: str) -> dict[str, Any]:
        response = await self._request("GET", f"/repos/{owner}/{name}")
        return response.json()

    async def get_readme(self, owner: str, name: str) -> Optional[str]:
        try:
            response = await self._request("GET", f"/repos/{owner}/{name}/readme")
        except ServiceError as e:
            if e.status_code == 404:
                return None
            raise
        content = response.json().get("content", "")
        return base64.b64decode(content).decode("utf-8", errors="replace")

    async def create_repo(
        self, name: str, description: str, topics: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Create a public repository under the authenticated user."""
        if not self.config.token:
            raise ServiceError("github", "GITHUB_TOKEN is required to create repositories")
        response = await self._request(
            "POST",
            "/user/repos",
            json={"name": name, "description": description[:350], "auto_init": False},
        )
        data = response.json()
        if topics:
            await self._request(
                "PUT",
                f"/repos/{data['owner']['login']}/{data['name']}/topics",
                json={"names": [t.lower() for t in topics][:20]},
            )
        logger.info("Created GitHub repository %s", data.get("html_url"))
        return data

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
