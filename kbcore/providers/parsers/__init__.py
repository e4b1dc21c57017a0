"""Built-in document parsers (plain text, markdown, HTML and JSON)."""

from kbcore.providers.parsers.html_parser import HtmlParser
from kbcore.providers.parsers.json_parser import JsonParser
from kbcore.providers.parsers.markdown_parser import MarkdownParser
from kbcore.providers.parsers.plain_text_parser import PlainTextParser

__all__ = ["HtmlParser", "JsonParser", "MarkdownParser", "PlainTextParser"]
