"""Abstract base class for text-embedding providers.

kbcore does not ship a concrete embedding adapter: the model choice belongs
to the caller.  Knowledge base providers consume this interface to embed
documents at add time and queries at search time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Contract for embedding services used by knowledge base providers."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Texts to embed.  Implementations batch internally if the
            underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            One vector per input text, positionally aligned.  Callers verify
            the lengths match and fail the whole operation otherwise.

        Raises
        ------
        kbcore.utils.errors.BackendError
            If the embedding call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed a single text, typically a search query."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the (constant) dimensionality of the vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
