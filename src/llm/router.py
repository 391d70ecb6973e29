"""Role to model resolution for the LLM-backed oracles.

Roles come from config/models.yaml. Every role in ORACLE_ROLES must be
configured before a run starts; ``require_roles`` checks that up front so a
missing entry fails at startup instead of mid-pipeline.
"""

from __future__ import annotations

import logging
from typing import Iterable

from src.core.config import ModelRegistry
from src.core.exceptions import ConfigError

logger = logging.getLogger("trendforge.llm.router")

ORACLE_ROLES = ("generator", "judge", "researcher")


class ModelRouter:
    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    def get_model(self, role: str) -> str:
        """Primary model for ``role``; raises ConfigError when unconfigured."""
        return self.registry.get_model(role)

    def get_model_chain(self, role: str) -> list[str]:
        """Primary model followed by its fallbacks, blanks and repeats removed."""
        chain = [self.get_model(role)]
        for model in self.registry.get_fallback_models(role):
            if model and model not in chain:
                chain.append(model)
        logger.debug("Model chain for %s: %s", role, " -> ".join(chain))
        return chain

    def require_roles(self, roles: Iterable[str] = ORACLE_ROLES) -> None:
        missing = [role for role in roles if role not in self.registry.roles]
        if missing:
            raise ConfigError(
                f"config/models.yaml has no model for: {', '.join(missing)}"
            )
