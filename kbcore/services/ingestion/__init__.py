"""Document ingestion: parser selection, chunk ids and the pipeline orchestrator."""

from kbcore.services.ingestion.document_ids import extract_chunk_index, make_chunk_id
from kbcore.services.ingestion.ingestion_pipeline import IngestionPipeline
from kbcore.services.ingestion.parser_factory import ParserFactory

__all__ = ["IngestionPipeline", "ParserFactory", "extract_chunk_index", "make_chunk_id"]
