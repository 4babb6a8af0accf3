from __future__ import annotations

import logging
from typing import Any, Protocol

from fastapi import Depends
from opentelemetry import trace

from app.core.auth import (
    AuthenticatedAgent,
    InvalidCredentialError,
    MalformedCredentialError,
    hash_api_key,
)
from app.core.config import Settings, get_settings
from app.services.auth_cache import AgentCache, get_agent_cache
from app.services.moltbook import MoltbookClient, MoltbookProfile, get_moltbook_client
from app.services.repository import AgentRecord, get_repository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ProfileProvider(Protocol):
    async def fetch_profile(self, api_key: str) -> MoltbookProfile | None: ...


class AgentAuthenticator:
    """Resolves Moltbook API keys to local agents.

    Lookup order is cache, then store, then Moltbook; only the last step can
    create an agent. The cache may be empty at any point without changing the
    result.
    """

    def __init__(
        self,
        *,
        repository: Any,
        cache: AgentCache,
        provider: ProfileProvider,
        api_key_prefix: str = "moltbook_",
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.provider = provider
        self.api_key_prefix = api_key_prefix

    async def authenticate(self, api_key: str) -> AuthenticatedAgent:
        with tracer.start_as_current_span("auth.resolve_agent") as span:
            self._require_prefix(api_key)
            api_key_hash = hash_api_key(api_key)

            cached = self.cache.get(api_key_hash)
            if cached is not None:
                span.set_attribute("auth.source", "cache")
                return AuthenticatedAgent(agent=cached, api_key_hash=api_key_hash)

            stored = await self.repository.get_agent_by_hash(api_key_hash)
            if stored is not None:
                span.set_attribute("auth.source", "store")
                self.cache.set(api_key_hash, stored)
                return AuthenticatedAgent(agent=stored, api_key_hash=api_key_hash)

            span.set_attribute("auth.source", "moltbook")
            agent = await self._refresh_from_provider(api_key, api_key_hash)
            return AuthenticatedAgent(agent=agent, api_key_hash=api_key_hash)

    async def verify(self, api_key: str) -> AuthenticatedAgent:
        """Always consult Moltbook and refresh the stored profile."""
        self._require_prefix(api_key)
        api_key_hash = hash_api_key(api_key)
        agent = await self._refresh_from_provider(api_key, api_key_hash)
        return AuthenticatedAgent(agent=agent, api_key_hash=api_key_hash)

    async def update_skills(self, authenticated: AuthenticatedAgent, skills: list[str]) -> AgentRecord:
        agent = await self.repository.update_agent_skills(agent_id=authenticated.agent.id, skills=skills)
        self.cache.invalidate(authenticated.api_key_hash)
        logger.info("agent skills replaced agent_id=%s count=%s", agent.id, len(skills))
        return agent

    def _require_prefix(self, api_key: str) -> None:
        if not api_key or not api_key.startswith(self.api_key_prefix):
            raise MalformedCredentialError(f"Invalid API key format. Must start with {self.api_key_prefix}")

    async def _refresh_from_provider(self, api_key: str, api_key_hash: str) -> AgentRecord:
        profile = await self.provider.fetch_profile(api_key)
        if profile is None:
            raise InvalidCredentialError("Invalid Moltbook API key")

        agent = await self.repository.upsert_agent(profile=profile, api_key_hash=api_key_hash)
        self.cache.set(api_key_hash, agent)
        logger.info("agent profile refreshed agent_id=%s name=%s", agent.id, agent.moltbook_name)
        return agent


def get_authenticator(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    cache: AgentCache = Depends(get_agent_cache),
    provider: MoltbookClient = Depends(get_moltbook_client),
) -> AgentAuthenticator:
    return AgentAuthenticator(
        repository=repository,
        cache=cache,
        provider=provider,
        api_key_prefix=settings.api_key_prefix,
    )
