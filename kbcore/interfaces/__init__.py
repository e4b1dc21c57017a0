"""Abstract contracts for the pluggable roles in kbcore.

Concrete chunkers, parsers, embedding adapters and knowledge base backends
implement these ABCs and are selected by enum-keyed factories at the
composition root (:mod:`kbcore.main`).
"""

from kbcore.interfaces.chunking_strategy import IChunkingStrategy
from kbcore.interfaces.document_parser import IDocumentParser
from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider

__all__ = [
    "IChunkingStrategy",
    "IDocumentParser",
    "IEmbeddingProvider",
    "IKnowledgeBaseProvider",
]
