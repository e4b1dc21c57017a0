"""Markdown parser.

Parses CommonMark with markdown-it-py and renders the block tokens back to
plain text:

* headings stay as ``#`` lines (the recursive chunker splits on them) and
  the first level-one heading becomes the document title;
* paragraphs and list items keep their text, minus emphasis, link and
  image syntax;
* fenced and indented code is kept verbatim but indented by four spaces,
  so a ``# comment`` inside code never reads as a heading.

Blocks are separated by blank lines.  YAML front matter is dropped before
parsing.
"""

from __future__ import annotations

import re

import structlog
from markdown_it import MarkdownIt
from markdown_it.token import Token

from kbcore.interfaces.document_parser import IDocumentParser
from kbcore.models.ingestion import DocumentMetadata, ParsedDocument, ParserInput, ParserType

logger = structlog.get_logger(logger_name=__name__)

_FRONT_MATTER_RE = re.compile(r"\A---\s*\n.*?\n---\s*(?:\n|\Z)", re.DOTALL)
_CODE_INDENT = "    "


class MarkdownParser(IDocumentParser):
    """Converts markdown to lightly cleaned text, preserving headings and paragraphs."""

    def __init__(self) -> None:
        self._markdown = MarkdownIt("commonmark")

    async def parse(self, parser_input: ParserInput) -> ParsedDocument:
        raw = parser_input.as_text()
        body = _FRONT_MATTER_RE.sub("", raw, count=1)

        text, title = _render_blocks(self._markdown.parse(body))

        logger.debug("markdown_parsed", filename=parser_input.filename, title=title)
        metadata = DocumentMetadata(
            title=title,
            source=parser_input.filename,
            mime_type="text/markdown",
            custom=dict(parser_input.metadata),
        )
        return ParsedDocument(content=text, metadata=metadata)

    def supported_extensions(self) -> tuple[str, ...]:
        return ParserType.MARKDOWN.extensions

    def supported_mime_types(self) -> tuple[str, ...]:
        return ParserType.MARKDOWN.mime_types

    def get_provider_name(self) -> str:
        return "markdown"


# ---------------------------------------------------------------------------
# Token rendering
# ---------------------------------------------------------------------------


def _render_blocks(tokens: list[Token]) -> tuple[str, str | None]:
    blocks: list[str] = []
    title: str | None = None
    item_marker = False

    for index, token in enumerate(tokens):
        if token.type == "heading_open":
            level = int(token.tag[1:])
            heading = _inline_text(tokens[index + 1]).replace("\n", " ").strip()
            if level == 1 and title is None and heading:
                title = heading
            blocks.append(f"{'#' * level} {heading}")
        elif token.type == "list_item_open":
            item_marker = True
        elif token.type == "inline" and tokens[index - 1].type == "paragraph_open":
            paragraph = _inline_text(token).strip()
            if item_marker:
                paragraph = f"- {paragraph}"
                item_marker = False
            if paragraph:
                blocks.append(paragraph)
        elif token.type in ("fence", "code_block"):
            code = token.content.rstrip("\n")
            if code.strip():
                blocks.append(
                    "\n".join(_CODE_INDENT + line if line else line for line in code.split("\n"))
                )

    return "\n\n".join(blocks), title


def _inline_text(token: Token) -> str:
    parts: list[str] = []
    for child in token.children or []:
        if child.type in ("text", "code_inline", "image"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append("\n")
    return "".join(parts)
