"""Enum-keyed parser selection with filename and MIME type detection."""

from __future__ import annotations

from kbcore.interfaces.document_parser import IDocumentParser
from kbcore.models.ingestion import ParserInput, ParserType
from kbcore.providers.parsers.html_parser import HtmlParser
from kbcore.providers.parsers.json_parser import JsonParser
from kbcore.providers.parsers.markdown_parser import MarkdownParser
from kbcore.providers.parsers.plain_text_parser import PlainTextParser
from kbcore.utils.errors import ValidationError

_PARSERS: dict[ParserType, type[IDocumentParser]] = {
    ParserType.PLAIN_TEXT: PlainTextParser,
    ParserType.MARKDOWN: MarkdownParser,
    ParserType.HTML: HtmlParser,
    ParserType.JSON: JsonParser,
}


class ParserFactory:
    """Creates parsers and detects the right one for an input."""

    @staticmethod
    def create(parser_type: ParserType | str) -> IDocumentParser:
        try:
            kind = ParserType(parser_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown parser type: {parser_type!r}") from exc
        return _PARSERS[kind]()

    @staticmethod
    def detect_from_filename(filename: str) -> ParserType | None:
        if "." not in filename:
            return None
        extension = filename.rsplit(".", 1)[-1].lower()
        for parser_type in ParserType:
            if extension in parser_type.extensions:
                return parser_type
        return None

    @staticmethod
    def detect_from_mime_type(mime_type: str) -> ParserType | None:
        essence = mime_type.split(";", 1)[0].strip().lower()
        for parser_type in ParserType:
            if essence in parser_type.mime_types:
                return parser_type
        return None

    @classmethod
    def for_input(
        cls,
        parser_input: ParserInput,
        parser_type: ParserType | None = None,
    ) -> IDocumentParser:
        """Explicit type, else MIME type, else filename extension, else plain text."""
        detected = parser_type
        if detected is None and parser_input.mime_type:
            detected = cls.detect_from_mime_type(parser_input.mime_type)
        if detected is None and parser_input.filename:
            detected = cls.detect_from_filename(parser_input.filename)
        return cls.create(detected or ParserType.PLAIN_TEXT)

    @staticmethod
    def supported_extensions() -> list[str]:
        return [ext for parser_type in ParserType for ext in parser_type.extensions]
