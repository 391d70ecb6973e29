"""Component factory for TrendForge.

Creates and wires the infrastructure (config, LLM client, model router,
service clients) and the seven oracles, then hands them to the
orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from src.core.config import (
    AppConfig,
    ModelRegistry,
    PromptLoader,
    load_config,
    load_model_registry,
)
from src.llm.client import OpenRouterClient
from src.llm.router import ModelRouter
from src.oracles.announcer import TwitterAnnouncer
from src.oracles.deployer import GitHubDeployer
from src.oracles.idea_generator import IdeaGenerator
from src.oracles.idea_judge import IdeaJudge
from src.oracles.implementer import CodingAgentImplementer
from src.oracles.researcher import Researcher
from src.oracles.trend_scout import TrendScout
from src.orchestrator.pipeline import PipelineOrchestrator
from src.orchestrator.state_manager import StateManager
from src.tools.github import GitHubClient
from src.tools.npm import NpmRegistryClient
from src.tools.twitter import TwitterClient

logger = logging.getLogger("trendforge.factory")


@dataclass
class ComponentBundle:
    """Container for all initialized components.

    The factory builds the bundle once; `orchestrator()` wires the oracles
    into a fresh PipelineOrchestrator for one run.
    """

    config: AppConfig
    model_registry: ModelRegistry
    llm_client: OpenRouterClient
    model_router: ModelRouter
    github: GitHubClient
    npm: NpmRegistryClient
    twitter: TwitterClient
    trend_scout: TrendScout
    idea_generator: IdeaGenerator
    idea_judge: IdeaJudge
    researcher: Researcher
    implementer: CodingAgentImplementer
    deployer: GitHubDeployer
    announcer: TwitterAnnouncer
    state_manager: StateManager

    def orchestrator(self) -> PipelineOrchestrator:
        return PipelineOrchestrator(
            config=self.config,
            trend_scout=self.trend_scout,
            idea_generator=self.idea_generator,
            idea_judge=self.idea_judge,
            researcher=self.researcher,
            implementer=self.implementer,
            deployer=self.deployer,
            announcer=self.announcer,
            state_manager=self.state_manager,
        )


class ComponentFactory:
    """Factory for creating and wiring all TrendForge components.

    Usage:
        bundle = ComponentFactory.create(config_dir=Path("config"))
        result = await bundle.orchestrator().run()
        await ComponentFactory.close(bundle)
    """

    @staticmethod
    def create(
        config_dir: Optional[Path] = None,
        env: Optional[str] = None,
        api_key: Optional[str] = None,
        config: Optional[AppConfig] = None,
    ) -> ComponentBundle:
        """Create and wire all components.

        Args:
            config_dir: Path to config/ directory. Default: project root/config.
            env: Environment name for config overlay (e.g., "test", "production").
            api_key: OpenRouter API key. Falls back to OPENROUTER_API_KEY env var.
            config: Pre-built config; skips loading from config_dir.

        Returns:
            ComponentBundle with all components ready to use.
        """
        logger.info("Initializing components...")

        # --- Config ---
        if config is None:
            config = load_config(config_dir=config_dir, env=env)
        model_registry = load_model_registry(config_dir=config_dir)
        prompts = PromptLoader(config_dir / "prompts" if config_dir else None)
        logger.info("Config loaded (%d model roles)", len(model_registry.roles))

        # --- LLM ---
        model_router = ModelRouter(model_registry)
        model_router.require_roles()
        llm_client = OpenRouterClient(config=config.llm, api_key=api_key)
        logger.info("LLM client configured (base_url=%s)", config.llm.base_url)

        # --- Services ---
        github = GitHubClient(config.github)
        npm = NpmRegistryClient(config.npm)
        twitter = TwitterClient(config.twitter)

        # --- Oracles ---
        bundle = ComponentBundle(
            config=config,
            model_registry=model_registry,
            llm_client=llm_client,
            model_router=model_router,
            github=github,
            npm=npm,
            twitter=twitter,
            trend_scout=TrendScout(github),
            idea_generator=IdeaGenerator(llm_client, model_router, prompts),
            idea_judge=IdeaJudge(llm_client, model_router, config.judge, prompts),
            researcher=Researcher(llm_client, model_router, github, npm, prompts),
            implementer=CodingAgentImplementer(config.implementer, config.system.workspace_dir),
            deployer=GitHubDeployer(github, config.github),
            announcer=TwitterAnnouncer(twitter),
            state_manager=StateManager(config.system.state_dir),
        )
        logger.info("All components initialized")
        return bundle

    @staticmethod
    async def close(bundle: ComponentBundle) -> None:
        """Cleanly shut down all network clients."""
        await bundle.llm_client.aclose()
        await bundle.github.aclose()
        await bundle.npm.aclose()
        await bundle.twitter.aclose()
        logger.info("All components shut down")
