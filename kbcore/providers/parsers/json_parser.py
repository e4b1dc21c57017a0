"""JSON parser: validates the input and re-emits it pretty-printed.

The top-level shape is recorded under the ``json_structure`` metadata key,
e.g. ``object{name, value}``, ``array[3]`` or ``string``.
"""

from __future__ import annotations

import json
from typing import Any

from kbcore.interfaces.document_parser import IDocumentParser
from kbcore.models.ingestion import DocumentMetadata, ParsedDocument, ParserInput, ParserType
from kbcore.utils.errors import ParseError

_STRUCTURE_KEYS = 5


class JsonParser(IDocumentParser):
    """Parses a JSON document into indented text."""

    async def parse(self, parser_input: ParserInput) -> ParsedDocument:
        try:
            value = json.loads(parser_input.as_text())
        except json.JSONDecodeError as exc:
            raise ParseError(
                message=f"Invalid JSON: {exc}", provider_name=self.get_provider_name()
            ) from exc

        metadata = DocumentMetadata(
            source=parser_input.filename,
            mime_type="application/json",
            custom={"json_structure": describe_structure(value), **parser_input.metadata},
        )
        content = json.dumps(value, indent=2, ensure_ascii=False)
        return ParsedDocument(content=content, metadata=metadata)

    def supported_extensions(self) -> tuple[str, ...]:
        return ParserType.JSON.extensions

    def supported_mime_types(self) -> tuple[str, ...]:
        return ParserType.JSON.mime_types

    def get_provider_name(self) -> str:
        return "json"


def describe_structure(value: Any) -> str:
    """Short description of a decoded JSON value's top-level shape."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return f"array[{len(value)}]" if value else "array[]"
    keys = list(value)[:_STRUCTURE_KEYS]
    suffix = ",..." if len(value) > len(keys) else ""
    return f"object{{{', '.join(keys)}{suffix}}}"
