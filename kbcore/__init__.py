"""kbcore: chunking, metadata filtering and ingestion for retrieval knowledge bases."""

__version__ = "0.1.0"
