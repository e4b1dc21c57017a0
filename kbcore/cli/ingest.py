"""CLI for chunking and ingesting local files.

Usage::

    # Show how a file would be chunked
    python -m kbcore.cli chunk notes.md --strategy recursive --chunk-size 500

    # Ingest files into an in-memory knowledge base and search it
    python -m kbcore.cli ingest a.md b.txt --query "release date" \\
        --filter '{"key": "title", "operator": "contains", "value": "Guide"}'

The in-memory backend scores with lexical term overlap here, so no embedding
model or database is needed.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from kbcore.models.chunking import ChunkingConfig, ChunkingType
from kbcore.models.filters import filter_from_dict
from kbcore.models.ingestion import IngestionConfig, ParserInput
from kbcore.providers.knowledge_base.in_memory_provider import InMemoryKnowledgeBaseProvider
from kbcore.services.chunking.factory import ChunkerFactory
from kbcore.services.ingestion.ingestion_pipeline import IngestionPipeline
from kbcore.services.ingestion.parser_factory import ParserFactory
from kbcore.utils.errors import KBCoreError
from kbcore.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_chunk(args: argparse.Namespace) -> int:
    """Parse one file and print its chunks."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1

    parser_input = ParserInput.from_bytes(path.read_bytes(), filename=path.name)
    parser = ParserFactory.for_input(parser_input)
    parsed = await parser.parse(parser_input)

    config = ChunkingConfig(
        chunk_size=args.chunk_size,
        chunk_overlap=args.chunk_overlap,
        min_chunk_size=args.min_chunk_size,
    )
    chunks = ChunkerFactory.create(args.strategy).chunk(parsed.content, config)

    output = [
        {"content": chunk.content, **chunk.metadata.to_metadata_dict()} for chunk in chunks
    ]
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


async def _handle_ingest(args: argparse.Namespace) -> int:
    """Ingest files into an in-memory knowledge base, then optionally search."""
    metadata_filter = None
    if args.filter:
        metadata_filter = filter_from_dict(json.loads(args.filter))

    inputs: list[ParserInput] = []
    for raw_path in args.files:
        path = Path(raw_path)
        if not path.is_file():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return 1
        inputs.append(ParserInput.from_bytes(path.read_bytes(), filename=path.name))

    provider = InMemoryKnowledgeBaseProvider(kb_id=args.kb_id)
    pipeline = IngestionPipeline(provider=provider)
    config = IngestionConfig(
        chunking_type=ChunkingType(args.strategy),
        chunk_size=args.chunk_size,
        chunk_overlap=args.chunk_overlap,
        min_chunk_size=args.min_chunk_size,
    )

    batch = await pipeline.ingest_batch(inputs, config, max_concurrency=args.concurrency)

    print(f"\n{'=' * 60}")
    print("  INGESTION RESULT")
    print(f"{'=' * 60}")
    print(f"  Documents:      {batch.total_documents}")
    print(f"  Successful:     {batch.successful}")
    print(f"  Failed:         {batch.failed}")
    print(f"  Chunks created: {batch.total_chunks_created}")
    for result in batch.results:
        for error in result.errors:
            where = f"chunk {error.chunk_index}" if error.chunk_index is not None else "document"
            print(f"  ! {result.document_id} ({where}): {error.message}")
    print(f"{'=' * 60}\n")

    if args.query:
        results = await provider.search(
            args.query,
            top_k=args.top_k,
            similarity_threshold=args.threshold,
            metadata_filter=metadata_filter,
        )
        print(f"Search: {args.query!r} ({len(results)} result(s))")
        for rank, result in enumerate(results, start=1):
            preview = result.content[:120].replace("\n", " ")
            print(f"  {rank}. [{result.score:.2f}] {result.id}: {preview}")

    return 0 if batch.is_success else 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_chunking_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--strategy",
        choices=[kind.value for kind in ChunkingType],
        default=ChunkingType.FIXED_SIZE.value,
        help="Chunking strategy (default: fixed_size)",
    )
    parser.add_argument("--chunk-size", type=int, default=1000, help="Target chunk size (default: 1000)")
    parser.add_argument("--chunk-overlap", type=int, default=200, help="Overlap in characters (default: 200)")
    parser.add_argument("--min-chunk-size", type=int, default=50, help="Minimum chunk size (default: 50)")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the kbcore CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m kbcore.cli",
        description="Chunk and ingest documents into a kbcore knowledge base.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", help="kbcore commands")

    # -- chunk --
    chunk_parser = subparsers.add_parser("chunk", help="Print the chunks of a file as JSON")
    chunk_parser.add_argument("file", help="Path to a text, markdown, HTML or JSON file")
    _add_chunking_arguments(chunk_parser)

    # -- ingest --
    ingest_parser = subparsers.add_parser(
        "ingest", help="Ingest files into an in-memory knowledge base"
    )
    ingest_parser.add_argument("files", nargs="+", help="Files to ingest")
    _add_chunking_arguments(ingest_parser)
    ingest_parser.add_argument("--kb-id", default="cli", help="Knowledge base id (default: cli)")
    ingest_parser.add_argument("--concurrency", type=int, default=1, help="Documents ingested at once")
    ingest_parser.add_argument("--query", help="Search the knowledge base after ingesting")
    ingest_parser.add_argument("--filter", help="Metadata filter as JSON")
    ingest_parser.add_argument("--top-k", type=int, default=5, help="Number of results (default: 5)")
    ingest_parser.add_argument(
        "--threshold", type=float, default=0.1, help="Minimum score (default: 0.1)"
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    configure_logging(log_level=args.log_level)

    handler = _handle_chunk if args.command == "chunk" else _handle_ingest
    try:
        exit_code = asyncio.run(handler(args))
    except json.JSONDecodeError as exc:
        print(f"Error: --filter is not valid JSON: {exc}", file=sys.stderr)
        exit_code = 2
    except KBCoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 2

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
