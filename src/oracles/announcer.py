"""Announces a deployed project on X."""

from __future__ import annotations

import random
from typing import Optional

from src.core.exceptions import ServiceError
from src.core.models import DeploymentResult, Idea, ImplementationResult, TweetResult
from src.oracles import templates
from src.oracles.base import AnnouncerOracle
from src.tools.twitter import TwitterClient

BANNED_WORDS = ("spam", "scam", "click here")


def validate_tweet(text: str) -> Optional[str]:
    """Return the reason a tweet is unpostable, or None if it is fine."""
    if len(text) > templates.TWEET_LIMIT:
        return f"Tweet too long: {len(text)} chars"
    if "github.com" not in text:
        return "Missing GitHub URL in tweet"
    lowered = text.lower()
    if any(word in lowered for word in BANNED_WORDS):
        return "Tweet contains banned words"
    return None


class TwitterAnnouncer(AnnouncerOracle):
    def __init__(self, twitter: TwitterClient, rng: Optional[random.Random] = None):
        super().__init__("Announcer")
        self.twitter = twitter
        self.rng = rng

    async def _announce(
        self,
        deployment: DeploymentResult,
        idea: Idea,
        implementation: ImplementationResult,
    ) -> TweetResult:
        style = templates.select_tweet_style(idea.slop_factor, idea.complexity, rng=self.rng)
        text = templates.compose_tweet(style, idea, deployment.repo_url, implementation.total_hours)
        self.logger.info("Tweet composed (%s, %d chars)", style, len(text))

        problem = validate_tweet(text)
        if problem:
            self.logger.warning("Not posting: %s", problem)
            return TweetResult(success=False, text=text, style=style)

        try:
            tweet_id, url = await self.twitter.tweet(text)
        except ServiceError as e:
            self.logger.error("Failed to post announcement: %s", e)
            return TweetResult(success=False, text=text, style=style)

        return TweetResult(success=True, tweet_url=url, tweet_id=tweet_id, text=text, style=style)
