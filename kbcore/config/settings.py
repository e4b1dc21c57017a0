"""Application settings loaded from environment variables via pydantic-settings.

Sources, highest priority first:

    1. Environment variables prefixed ``KBCORE_`` (e.g. ``KBCORE_PG_DSN``)
    2. A ``.env`` file in the working directory
    3. The defaults below
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kbcore.models.chunking import ChunkingType
from kbcore.models.knowledge_base import DistanceMetric, KnowledgeBaseType


class Settings(BaseSettings):
    """kbcore settings. Environment variables override defaults."""

    model_config = SettingsConfigDict(
        env_prefix="KBCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Chunking defaults ===
    chunking_type: ChunkingType = ChunkingType.FIXED_SIZE
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=50, ge=0)

    # === Default knowledge base ===
    kb_id: str = "default"
    kb_type: KnowledgeBaseType = KnowledgeBaseType.IN_MEMORY
    embedding_dimensions: int = 1536

    # === pgvector ===
    pg_dsn: str = ""  # Empty string = not configured
    pg_table: str = "kb_documents"
    pg_pool_min_size: int = 1
    pg_pool_max_size: int = 10
    distance_metric: DistanceMetric = DistanceMetric.COSINE

    # === ChromaDB ===
    chromadb_persist_dir: str = "./data/chromadb"

    # === Search defaults ===
    search_top_k: int = Field(default=10, ge=1, le=1000)
    search_similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # === Ingestion ===
    ingest_max_concurrency: int = Field(default=1, ge=1)

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"
