"""Abstract base class for document parsers.

Parsers turn a raw :class:`~kbcore.models.ingestion.ParserInput` into plain
text plus :class:`~kbcore.models.ingestion.DocumentMetadata`.  Only plain
text and markdown ship with kbcore; other formats plug in here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kbcore.models.ingestion import ParsedDocument, ParserInput


class IDocumentParser(ABC):
    """Contract for format-specific document parsers."""

    @abstractmethod
    async def parse(self, parser_input: ParserInput) -> ParsedDocument:
        """Parse raw input into text and metadata.

        Raises
        ------
        kbcore.utils.errors.ParseError
            If the input cannot be decoded or is malformed for this format.
        """

    @abstractmethod
    def supported_extensions(self) -> tuple[str, ...]:
        """Lower-case file extensions (without the dot) this parser handles."""

    @abstractmethod
    def supported_mime_types(self) -> tuple[str, ...]:
        """MIME types this parser handles."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"plain-text"``."""

    def supports_file(self, filename: str) -> bool:
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        return extension in self.supported_extensions()

    def supports_mime_type(self, mime_type: str) -> bool:
        return mime_type.split(";", 1)[0].strip().lower() in self.supported_mime_types()
