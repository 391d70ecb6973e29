"""Tests for src/tools/github.py using httpx.MockTransport."""

import base64
import json
from datetime import date

import httpx
import pytest

from src.core.config import GitHubConfig
from src.core.exceptions import ServiceError
from src.tools.github import GitHubClient, since_date


def _client(handler, **config):
    return GitHubClient(GitHubConfig(**config), transport=httpx.MockTransport(handler))


def _repo(full_name, stars):
    owner, name = full_name.split("/")
    return {"full_name": full_name, "name": name, "owner": {"login": owner}, "stargazers_count": stars}


class TestSinceDate:
    def test_periods(self):
        today = date(2026, 10, 19)
        assert since_date("daily", today) == "2026-10-18"
        assert since_date("weekly", today) == "2026-10-12"
        assert since_date("monthly", today) == "2026-09-19"

    def test_unknown_period_is_daily(self):
        assert since_date("hourly", date(2026, 10, 19)) == "2026-10-18"


class TestGetTrending:
    async def test_one_query_per_language_merged(self):
        queries = []
        by_language = {
            "TypeScript": [_repo("a/ts", 300), _repo("c/both", 900)],
            "JavaScript": [_repo("b/js", 500), _repo("c/both", 900)],
        }

        def handler(request):
            query = request.url.params["q"]
            queries.append(query)
            language = query.rsplit("language:", 1)[1]
            return httpx.Response(200, json={"items": by_language[language]})

        repos = await _client(handler).get_trending("weekly", ["TypeScript", "JavaScript"], min_stars=50)

        assert [r["full_name"] for r in repos] == ["c/both", "b/js", "a/ts"]
        assert len(queries) == 2
        assert all("stars:>50" in q and "created:>" in q for q in queries)

    async def test_no_languages_single_query(self):
        queries = []

        def handler(request):
            queries.append(request.url.params["q"])
            assert request.url.params["sort"] == "stars"
            return httpx.Response(200, json={"items": [_repo("a/x", 1), {"stargazers_count": 5}]})

        repos = await _client(handler).get_trending("daily")
        assert [r["full_name"] for r in repos] == ["a/x"]
        assert "language:" not in queries[0]


class TestErrors:
    @pytest.mark.parametrize("status, headers, match", [
        (401, {}, "Invalid or missing GitHub token"),
        (403, {"x-ratelimit-remaining": "0"}, "rate limit exceeded"),
        (403, {}, "HTTP 403"),
        (500, {}, "HTTP 500"),
    ])
    async def test_status_mapping(self, status, headers, match):
        client = _client(lambda r: httpx.Response(status, headers=headers, json={}))
        with pytest.raises(ServiceError, match=match) as excinfo:
            await client.search_repositories("q")
        assert excinfo.value.service == "github"
        assert excinfo.value.status_code == status

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        with pytest.raises(ServiceError, match="failed"):
            await _client(handler).get_repo("a", "b")

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        with pytest.raises(ServiceError, match="timed out"):
            await _client(handler).get_repo("a", "b")


class TestRepoEndpoints:
    async def test_auth_header_when_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"full_name": "a/b"})

        assert (await _client(handler, token="ghp_x").get_repo("a", "b"))["full_name"] == "a/b"
        assert seen[0].headers["Authorization"] == "Bearer ghp_x"
        assert seen[0].url.path == "/repos/a/b"

    async def test_no_auth_header_without_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        await _client(handler).get_repo("a", "b")
        assert "Authorization" not in seen[0].headers

    async def test_readme_decoded(self):
        content = base64.b64encode("# Hello\n".encode()).decode()
        client = _client(lambda r: httpx.Response(200, json={"content": content}))
        assert await client.get_readme("a", "b") == "# Hello\n"

    async def test_readme_missing(self):
        client = _client(lambda r: httpx.Response(404, json={"message": "Not Found"}))
        assert await client.get_readme("a", "b") is None


class TestCreateRepo:
    async def test_requires_token(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ServiceError, match="GITHUB_TOKEN is required"):
            await _client(handler).create_repo("x", "desc")

    async def test_creates_and_sets_topics(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.method == "POST":
                return httpx.Response(201, json={
                    "name": "widget-lens", "owner": {"login": "forge"},
                    "html_url": "https://github.com/forge/widget-lens",
                })
            return httpx.Response(200, json={"names": []})

        data = await _client(handler, token="ghp_x").create_repo(
            "widget-lens", "d" * 400, ["TrendForge", "CLI"],
        )

        assert data["html_url"] == "https://github.com/forge/widget-lens"
        assert [(r.method, r.url.path) for r in seen] == [
            ("POST", "/user/repos"), ("PUT", "/repos/forge/widget-lens/topics"),
        ]
        assert len(json.loads(seen[0].content)["description"]) == 350
        assert json.loads(seen[1].content) == {"names": ["trendforge", "cli"]}
