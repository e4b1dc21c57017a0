"""Unit tests for the kbcore CLI (``python -m kbcore.cli``)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from kbcore.cli import ingest as cli


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch):
    """Keep log output out of captured stdout."""
    monkeypatch.setattr(cli, "configure_logging", MagicMock())
    with capture_logs():
        yield


@pytest.fixture()
def docs(tmp_path: Path) -> dict[str, Path]:
    paragraphs = tmp_path / "paragraphs.txt"
    paragraphs.write_text("First paragraph here.\n\nSecond paragraph here.")
    api = tmp_path / "a.txt"
    api.write_text("Rotate the API key every ninety days.")
    limits = tmp_path / "b.md"
    limits.write_text("# Limits\n\nRate limits apply per key.")
    return {"paragraphs": paragraphs, "api": api, "limits": limits}


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


class TestParser:
    def test_defaults(self) -> None:
        args = cli._build_parser().parse_args(["ingest", "a.txt"])
        assert args.strategy == "fixed_size"
        assert (args.chunk_size, args.chunk_overlap, args.min_chunk_size) == (1000, 200, 50)
        assert args.kb_id == "cli"
        assert args.top_k == 5

    def test_rejects_unknown_strategy(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["chunk", "a.txt", "--strategy", "semantic"])

    def test_no_command_prints_help(self, capsys) -> None:
        assert _run([]) == 1
        assert "usage:" in capsys.readouterr().out


class TestChunkCommand:
    def test_prints_chunks_as_json(self, docs, capsys) -> None:
        code = _run(
            [
                "chunk",
                str(docs["paragraphs"]),
                "--strategy",
                "paragraph",
                "--chunk-size",
                "30",
                "--chunk-overlap",
                "0",
                "--min-chunk-size",
                "5",
            ]
        )
        assert code == 0
        chunks = json.loads(capsys.readouterr().out)
        assert [c["content"] for c in chunks] == ["First paragraph here.", "Second paragraph here."]
        assert chunks[1]["chunk_index"] == 1
        assert chunks[1]["total_chunks"] == 2
        assert (chunks[1]["char_start"], chunks[1]["char_end"]) == (23, 45)

    def test_missing_file(self, tmp_path, capsys) -> None:
        assert _run(["chunk", str(tmp_path / "nope.txt")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_invalid_config(self, docs, capsys) -> None:
        code = _run(["chunk", str(docs["api"]), "--chunk-size", "10", "--chunk-overlap", "10"])
        assert code == 2
        assert "chunk_overlap must be less than chunk_size" in capsys.readouterr().err


class TestIngestCommand:
    def test_ingest_and_search(self, docs, capsys) -> None:
        code = _run(["ingest", str(docs["api"]), str(docs["limits"]), "--query", "api key"])
        out = capsys.readouterr().out

        assert code == 0
        assert "INGESTION RESULT" in out
        assert "Documents:      2" in out
        assert "Chunks created: 2" in out
        assert "Search: 'api key' (2 result(s))" in out
        assert "1. [1.00] a.txt_chunk_0: Rotate the API key every ninety days." in out

    def test_ingest_with_filter(self, docs, capsys) -> None:
        metadata_filter = json.dumps({"key": "document_id", "operator": "eq", "value": "b.md"})
        code = _run(
            [
                "ingest",
                str(docs["api"]),
                str(docs["limits"]),
                "--query",
                "api key",
                "--filter",
                metadata_filter,
            ]
        )
        out = capsys.readouterr().out
        assert code == 0
        assert "(1 result(s))" in out
        assert "b.md_chunk_0" in out

    def test_bad_filter_json(self, docs, capsys) -> None:
        code = _run(["ingest", str(docs["api"]), "--query", "x", "--filter", "{not json"])
        assert code == 2
        assert "--filter is not valid JSON" in capsys.readouterr().err

    def test_unknown_filter_operator(self, docs, capsys) -> None:
        metadata_filter = json.dumps({"key": "a", "operator": "regex", "value": "x"})
        code = _run(["ingest", str(docs["api"]), "--filter", metadata_filter])
        assert code == 2
        assert "Unknown filter operator" in capsys.readouterr().err

    def test_invalid_kb_id(self, docs, capsys) -> None:
        code = _run(["ingest", str(docs["api"]), "--kb-id", "not valid!"])
        assert code == 2
        assert "Knowledge base id" in capsys.readouterr().err

    def test_failed_document_sets_exit_code(self, tmp_path, capsys) -> None:
        broken = tmp_path / "broken.txt"
        broken.write_bytes(b"\xff\xfe\xfa")
        code = _run(["ingest", str(broken)])
        out = capsys.readouterr().out
        assert code == 1
        assert "Failed:         1" in out
        assert "! broken.txt (document): Parsing failed:" in out
