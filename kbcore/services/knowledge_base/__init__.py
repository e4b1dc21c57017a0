"""Knowledge base registry and provider factory."""

from kbcore.services.knowledge_base.provider_factory import KnowledgeBaseFactory
from kbcore.services.knowledge_base.registry import KnowledgeBaseRegistry

__all__ = ["KnowledgeBaseFactory", "KnowledgeBaseRegistry"]
