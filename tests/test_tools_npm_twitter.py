"""Tests for src/tools/npm.py and src/tools/twitter.py using httpx.MockTransport."""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from src.core.config import TwitterConfig
from src.core.exceptions import ServiceError
from src.tools.npm import STALE_AFTER_DAYS, NpmRegistryClient, _parse_time
from src.tools.twitter import TwitterClient


def _npm(handler):
    return NpmRegistryClient(transport=httpx.MockTransport(handler))


def _packument(name, published, deprecated=None):
    version = {"name": name, "version": "2.0.0"}
    if deprecated:
        version["deprecated"] = deprecated
    return {
        "name": name,
        "dist-tags": {"latest": "2.0.0"},
        "versions": {"2.0.0": version},
        "time": {"2.0.0": published},
    }


def _iso(days_ago):
    return (datetime.now(UTC) - timedelta(days=days_ago)).strftime("%Y-%m-%dT%H:%M:%S.000Z")


class TestNpmSearch:
    async def test_returns_packages(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"objects": [{"package": {"name": "a"}}, {"package": {"name": "b"}}]})

        packages = await _npm(handler).search("widget lens", size=5)
        assert [p["name"] for p in packages] == ["a", "b"]
        assert seen[0].url.path == "/-/v1/search"
        assert seen[0].url.params["text"] == "widget lens"
        assert seen[0].url.params["size"] == "5"

    async def test_error(self):
        with pytest.raises(ServiceError, match="HTTP 503"):
            await _npm(lambda r: httpx.Response(503)).search("x")


class TestDependencyHealth:
    async def test_fresh_package(self):
        client = _npm(lambda r: httpx.Response(200, json=_packument("zod", _iso(10))))
        health = await client.dependency_health("zod")
        assert (health.version, health.stability, health.risk) == ("2.0.0", "stable", "low")
        assert health.last_update is not None

    async def test_stale_package(self):
        client = _npm(lambda r: httpx.Response(200, json=_packument("left-pad", _iso(STALE_AFTER_DAYS + 5))))
        assert (await client.dependency_health("left-pad")).risk == "medium"

    async def test_deprecated_package(self):
        client = _npm(lambda r: httpx.Response(200, json=_packument("request", _iso(10), "use fetch")))
        health = await client.dependency_health("request")
        assert (health.stability, health.risk) == ("deprecated", "high")

    async def test_missing_package(self):
        client = _npm(lambda r: httpx.Response(404, json={"error": "Not found"}))
        health = await client.dependency_health("nope")
        assert (health.stability, health.risk) == ("experimental", "high")

    async def test_scoped_name_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=_packument("@types/node", _iso(1)))

        await _npm(handler).dependency_health("@types/node")
        assert seen[0].url.path == "/@types/node"

    async def test_server_error_propagates(self):
        with pytest.raises(ServiceError):
            await _npm(lambda r: httpx.Response(500)).dependency_health("zod")

    def test_parse_time(self):
        assert _parse_time("2026-10-19T08:00:00.000Z") == datetime(2026, 10, 19, 8, tzinfo=UTC)
        assert _parse_time("2026-10-19T08:00:00").tzinfo is UTC
        assert _parse_time("yesterday") is None
        assert _parse_time(None) is None


def _twitter(handler, **config):
    config.setdefault("bearer_token", "tw-token")
    return TwitterClient(TwitterConfig(**config), transport=httpx.MockTransport(handler))


class TestTwitterClient:
    async def test_posts(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"data": {"id": 42, "text": "hi"}})

        tweet_id, url = await _twitter(handler, username="forge").tweet("hi")
        assert tweet_id == "42"
        assert url == "https://x.com/forge/status/42"
        assert str(seen[0].url) == "https://api.twitter.com/2/tweets"
        assert seen[0].headers["Authorization"] == "Bearer tw-token"

    async def test_url_without_username(self):
        client = _twitter(lambda r: httpx.Response(201, json={"data": {"id": "7"}}))
        assert (await client.tweet("hi"))[1] == "https://x.com/i/status/7"

    async def test_missing_token(self):
        with pytest.raises(ServiceError, match="TWITTER_BEARER_TOKEN"):
            await _twitter(lambda r: httpx.Response(201), bearer_token=None).tweet("hi")

    async def test_http_error(self):
        with pytest.raises(ServiceError, match="HTTP 429") as excinfo:
            await _twitter(lambda r: httpx.Response(429)).tweet("hi")
        assert excinfo.value.status_code == 429

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("down")

        with pytest.raises(ServiceError, match="failed"):
            await _twitter(handler).tweet("hi")
