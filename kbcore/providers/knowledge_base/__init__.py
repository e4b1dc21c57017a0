"""Knowledge base provider implementations.

Only the dependency-free in-memory provider is re-exported here.  The
pgvector and ChromaDB providers are imported directly where needed (see
:mod:`kbcore.services.knowledge_base.provider_factory`) so importing this
package does not pull in database drivers.
"""

from kbcore.providers.knowledge_base.in_memory_provider import InMemoryKnowledgeBaseProvider

__all__ = ["InMemoryKnowledgeBaseProvider"]
