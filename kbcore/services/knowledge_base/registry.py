"""Explicit registry of knowledge base providers keyed by knowledge base id.

The registry is created by the composition root (:mod:`kbcore.main`) and
passed to whatever needs it; there is no module-level instance.
"""

from __future__ import annotations

import asyncio

import structlog

from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider
from kbcore.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)


class KnowledgeBaseRegistry:
    """Maps knowledge base ids to their providers."""

    def __init__(self) -> None:
        self._providers: dict[str, IKnowledgeBaseProvider] = {}
        self._lock = asyncio.Lock()

    async def register(self, provider: IKnowledgeBaseProvider) -> None:
        """Register *provider* under its knowledge base id, replacing any previous one."""
        kb_id = provider.knowledge_base_id
        async with self._lock:
            replaced = kb_id in self._providers
            self._providers[kb_id] = provider
        logger.info(
            "knowledge_base_registered",
            kb_id=kb_id,
            provider=provider.get_provider_name(),
            replaced=replaced,
        )

    async def unregister(self, kb_id: str) -> IKnowledgeBaseProvider | None:
        async with self._lock:
            return self._providers.pop(kb_id, None)

    async def get(self, kb_id: str) -> IKnowledgeBaseProvider | None:
        async with self._lock:
            return self._providers.get(kb_id)

    async def get_required(self, kb_id: str) -> IKnowledgeBaseProvider:
        provider = await self.get(kb_id)
        if provider is None:
            raise NotFoundError(f"No provider registered for knowledge base '{kb_id}'")
        return provider

    async def has_provider(self, kb_id: str) -> bool:
        async with self._lock:
            return kb_id in self._providers

    async def list_kb_ids(self) -> list[str]:
        async with self._lock:
            return sorted(self._providers)

    async def count(self) -> int:
        async with self._lock:
            return len(self._providers)
