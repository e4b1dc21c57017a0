"""Call-level guard around :meth:`IEmbeddingProvider.embed`.

Providers embed a whole ``add_documents`` batch in one call.  If the
embedding service returns a different number of vectors than texts there
is no safe way to pair them up, so the whole call fails.
"""

from __future__ import annotations

import structlog

from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.utils.errors import BackendError, KBCoreError

logger = structlog.get_logger(logger_name=__name__)


async def embed_texts(
    embedding_provider: IEmbeddingProvider,
    texts: list[str],
    provider_name: str,
) -> list[list[float]]:
    """Embed *texts* and check one vector came back per text.

    Raises
    ------
    BackendError
        If the embedding call fails or returns a mismatched count.
    """
    if not texts:
        return []
    try:
        embeddings = await embedding_provider.embed(texts)
    except KBCoreError:
        raise
    except Exception as exc:
        raise BackendError(
            message=f"Embedding failed: {exc}",
            provider_name=provider_name,
        ) from exc

    if len(embeddings) != len(texts):
        logger.error(
            "embedding_count_mismatch",
            expected=len(texts),
            received=len(embeddings),
            embedding_provider=embedding_provider.get_provider_name(),
        )
        raise BackendError(
            message=(
                f"Embedding count mismatch: expected {len(texts)} vectors, "
                f"got {len(embeddings)}"
            ),
            provider_name=provider_name,
        )
    return embeddings
