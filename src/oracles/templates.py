"""Text templates for generated projects and their announcements."""

from __future__ import annotations

import random
import re
from datetime import UTC, date, datetime
from typing import Any, Callable, Optional

from src.core.models import Idea, ImplementationResult

TWEET_LIMIT = 280
TWEET_STYLES = ("honest", "meme", "technical", "chaotic")


def package_name(idea_name: str) -> str:
    """npm-safe package / directory name for an idea."""
    slug = re.sub(r"[^a-z0-9._-]+", "-", idea_name.strip().lower())
    return slug.strip("-._") or "project"


# ---------------------------------------------------------------------------
# Project scaffold
# ---------------------------------------------------------------------------

def package_json(idea: Idea) -> dict[str, Any]:
    return {
        "name": package_name(idea.name),
        "version": "0.1.0",
        "description": idea.tagline,
        "main": "dist/index.js",
        "types": "dist/index.d.ts",
        "type": "module",
        "bin": {package_name(idea.name): "dist/index.js"},
        "scripts": {
            "build": "tsup src/index.ts --dts --format esm,cjs",
            "dev": "tsup src/index.ts --watch",
            "test": "vitest run --passWithNoTests",
        },
        "keywords": ["trendforge", "ai-generated", "typescript"],
        "license": "MIT",
        "dependencies": {dep: "latest" for dep in idea.dependencies},
        "devDependencies": {
            "typescript": "^5.0.0",
            "tsup": "^8.0.0",
            "vitest": "^1.0.0",
            "@types/node": "^20.0.0",
        },
    }


def tsconfig() -> dict[str, Any]:
    return {
        "compilerOptions": {
            "target": "ES2022",
            "module": "NodeNext",
            "moduleResolution": "NodeNext",
            "outDir": "dist",
            "rootDir": "src",
            "strict": True,
            "esModuleInterop": True,
            "skipLibCheck": True,
            "declaration": True,
        },
        "include": ["src"],
        "exclude": ["node_modules", "dist"],
    }


GITIGNORE = """node_modules/
dist/
.env
*.log
.DS_Store
coverage/
"""


def mit_license(holder: str, year: Optional[int] = None) -> str:
    year = year or datetime.now(UTC).year
    return f"""MIT License

Copyright (c) {year} {holder}

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""


def changelog(version: str = "0.1.0", on: Optional[date] = None) -> str:
    on = on or datetime.now(UTC).date()
    return f"""# Changelog

## v{version} ({on.isoformat()})

- Initial release
- Core features implemented
"""


def readme(idea: Idea, implementation: Optional[ImplementationResult] = None) -> str:
    pkg = package_name(idea.name)
    features = "\n".join(f"- **{f.name}**: {f.description}" for f in idea.core_features)
    if implementation is not None:
        time_to_ship = f"{implementation.total_hours:.1f} hours"
    else:
        time_to_ship = f"~{idea.estimated_hours:g} hours (estimated)"

    return f"""# {idea.name}

> {idea.tagline}

{idea.description}

## Features

{features}

## Quick Start

```bash
npx {pkg} --help
```

## Development

```bash
npm install
npm run build
npm test
```

## About

Generated by TrendForge, an automated pipeline that turns trending
repositories into small shipped projects.

**Time to ship:** {time_to_ship}

## License

MIT
"""


def badges(repo_full_name: str, license_name: str = "MIT") -> list[str]:
    return [
        "![Version](https://img.shields.io/badge/version-0.1.0-blue)",
        f"![License](https://img.shields.io/badge/license-{license_name}-green)",
        f"![Stars](https://img.shields.io/github/stars/{repo_full_name}?style=social)",
    ]


# ---------------------------------------------------------------------------
# Tweets
# ---------------------------------------------------------------------------

def _honest(d: dict[str, Any]) -> str:
    return (
        f"Just shipped {d['name']} in {d['hours']:.1f} hours\n\n"
        f"{d['description']}\n\n"
        "Built by an autonomous agent pipeline. It works, mostly.\n\n"
        f"{d['github_url']}\n\n#BuildInPublic"
    )


def _meme(d: dict[str, Any]) -> str:
    return (
        "POV: you gave an AI agent GitHub trending and told it to ship\n\n"
        f"Result: {d['name']}\n\n{d['description']}\n\n{d['github_url']}\n\n"
        "Is this progress? Who knows. But it shipped."
    )


def _technical(d: dict[str, Any]) -> str:
    return (
        f"New project: {d['name']}\n\n"
        f"Inspired by {d['original_repo']}, using a {d['strategy']} approach.\n\n"
        f"Built in {d['hours']:.1f}h\nStatus: it runs\n\n{d['github_url']}"
    )


def _chaotic(d: dict[str, Any]) -> str:
    return (
        "i told an AI to build something inspired by trending repos\n\n"
        f"it made {d['name']}\n\n"
        "is it good? idk\ndoes it work? mostly\n\n"
        f"but it shipped\n\n{d['github_url']}"
    )


_TWEETS: dict[str, Callable[[dict[str, Any]], str]] = {
    "honest": _honest,
    "meme": _meme,
    "technical": _technical,
    "chaotic": _chaotic,
}


def compose_tweet(style: str, idea: Idea, github_url: str, hours: float) -> str:
    """Render a tweet, truncated to 280 characters."""
    data = {
        "name": idea.name,
        "description": idea.tagline or idea.description,
        "github_url": github_url,
        "hours": hours,
        "original_repo": idea.original_repo or "GitHub trending",
        "strategy": idea.strategy,
    }
    text = _TWEETS[style](data)
    if len(text) <= TWEET_LIMIT:
        return text

    # Shorten the description first so the link survives.
    overflow = len(text) - TWEET_LIMIT
    description = data["description"]
    if len(description) > overflow + 3:
        data["description"] = description[: len(description) - overflow - 3] + "..."
        text = _TWEETS[style](data)
    if len(text) <= TWEET_LIMIT:
        return text
    return text[: TWEET_LIMIT - 3] + "..."


def select_tweet_style(
    slop_factor: int,
    complexity: str,
    hour: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    hour = datetime.now().hour if hour is None else hour
    if hour >= 23 or hour < 6:
        return "chaotic"
    if slop_factor > 80:
        return "meme"
    if complexity == "complex":
        return "technical"
    return "technical" if (rng or random).random() > 0.7 else "honest"
