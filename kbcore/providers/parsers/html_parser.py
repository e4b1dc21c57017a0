"""HTML parser.

Uses BeautifulSoup with the stdlib ``html.parser`` backend.  ``script``,
``style``, ``noscript`` and ``head`` elements are dropped, the remaining
text is collected one block per line, and blank lines are removed.  The
title comes from ``<title>``, falling back to the first ``<h1>``.
"""

from __future__ import annotations

import structlog
from bs4 import BeautifulSoup

from kbcore.interfaces.document_parser import IDocumentParser
from kbcore.models.ingestion import DocumentMetadata, ParsedDocument, ParserInput, ParserType

logger = structlog.get_logger(logger_name=__name__)

_HIDDEN_TAGS = ["script", "style", "noscript", "head"]


class HtmlParser(IDocumentParser):
    """Extracts visible text and the page title from an HTML document."""

    async def parse(self, parser_input: ParserInput) -> ParsedDocument:
        soup = BeautifulSoup(parser_input.as_text(), "html.parser")
        title = _extract_title(soup)

        for tag in soup.find_all(_HIDDEN_TAGS):
            tag.decompose()

        root = soup.body if soup.body is not None else soup
        lines = (line.strip() for line in root.get_text(separator="\n").splitlines())
        text = "\n".join(line for line in lines if line)

        logger.debug("html_parsed", filename=parser_input.filename, title=title)
        metadata = DocumentMetadata(
            title=title,
            source=parser_input.filename,
            mime_type="text/html",
            custom=dict(parser_input.metadata),
        )
        return ParsedDocument(content=text, metadata=metadata)

    def supported_extensions(self) -> tuple[str, ...]:
        return ParserType.HTML.extensions

    def supported_mime_types(self) -> tuple[str, ...]:
        return ParserType.HTML.mime_types

    def get_provider_name(self) -> str:
        return "html"


def _extract_title(soup: BeautifulSoup) -> str | None:
    for tag in (soup.title, soup.find("h1")):
        if tag is not None:
            title = tag.get_text(" ", strip=True)
            if title:
                return title
    return None
