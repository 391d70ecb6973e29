"""npm registry client: package search and dependency health lookups."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Optional
from urllib.parse import quote

import httpx

from src.core.config import NpmConfig
from src.core.exceptions import ServiceError
from src.core.models import DependencyHealth

logger = logging.getLogger("trendforge.tools.npm")

STALE_AFTER_DAYS = 730


class NpmRegistryClient:
    """Read-only client for registry.npmjs.org."""

    def __init__(
        self,
        config: Optional[NpmConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or NpmConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.registry_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def _get(self, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.get(path, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceError("npm", f"GET {path} failed: {e}") from e
        if response.status_code >= 400:
            raise ServiceError("npm", f"GET {path}: HTTP {response.status_code}", response.status_code)
        return response

    async def search(self, text: str, size: int = 10) -> list[dict[str, Any]]:
        """Return `package` entries from the registry search endpoint."""
        response = await self._get("/-/v1/search", params={"text": text, "size": size})
        return [obj.get("package", {}) for obj in response.json().get("objects", [])]

    async def metadata(self, name: str) -> Optional[dict[str, Any]]:
        """Full packument for `name`, or None if the package does not exist."""
        try:
            response = await self._get(f"/{quote(name, safe='@')}")
        except ServiceError as e:
            if e.status_code == 404:
                return None
            raise
        return response.json()

    async def dependency_health(self, name: str) -> DependencyHealth:
        """Classify a dependency as stable, stale, deprecated or missing."""
        meta = await self.metadata(name)
        if meta is None:
            return DependencyHealth(name=name, stability="experimental", risk="high")

        latest = meta.get("dist-tags", {}).get("latest", "unknown")
        version_info = meta.get("versions", {}).get(latest, {})
        published = _parse_time(meta.get("time", {}).get(latest))

        if version_info.get("deprecated"):
            return DependencyHealth(
                name=name, version=latest, stability="deprecated", last_update=published, risk="high",
            )

        risk = "low"
        if published is not None:
            age_days = (datetime.now(UTC) - published).days
            if age_days > STALE_AFTER_DAYS:
                risk = "medium"
        return DependencyHealth(name=name, version=latest, last_update=published, risk=risk)

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
