"""Plain text parser: decodes the input and passes it through unchanged."""

from __future__ import annotations

from kbcore.interfaces.document_parser import IDocumentParser
from kbcore.models.ingestion import DocumentMetadata, ParsedDocument, ParserInput, ParserType


class PlainTextParser(IDocumentParser):
    """Treats the input as UTF-8 text with no structure."""

    async def parse(self, parser_input: ParserInput) -> ParsedDocument:
        text = parser_input.as_text()
        metadata = DocumentMetadata(
            source=parser_input.filename,
            mime_type="text/plain",
            custom=dict(parser_input.metadata),
        )
        return ParsedDocument(content=text, metadata=metadata)

    def supported_extensions(self) -> tuple[str, ...]:
        return ParserType.PLAIN_TEXT.extensions

    def supported_mime_types(self) -> tuple[str, ...]:
        return ParserType.PLAIN_TEXT.mime_types

    def get_provider_name(self) -> str:
        return "plain-text"
