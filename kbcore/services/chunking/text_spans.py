"""Span-based text splitting helpers shared by the chunking strategies.

Every splitter works on a ``[start, end)`` window of a larger text and
returns ``(start, end)`` spans into that same text, trimmed of surrounding
whitespace.  Working in spans keeps chunk offsets exact no matter how many
levels of splitting a strategy goes through.
"""

from __future__ import annotations

import re

Span = tuple[int, int]

# Abbreviations whose trailing period does not end a sentence.
_ABBREVIATIONS = (
    "Dr",
    "Mr",
    "Mrs",
    "Ms",
    "Prof",
    "Jr",
    "Sr",
    "St",
    "Ave",
    "Blvd",
    "Vol",
    "No",
    "vs",
    "etc",
    "approx",
    "dept",
    "est",
    "govt",
    "inc",
    "ltd",
    "co",
    "ft",
    "e.g",
    "i.e",
)

_ABBREVIATION_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(abbr) for abbr in _ABBREVIATIONS) + r")\."
)

# ASCII terminators need trailing whitespace (or end of text); CJK full-width
# terminators end a sentence on their own.
_SENTENCE_END_RE = re.compile(r"[.!?]+[\"')\]]*(?=\s|$)|[。！？]+")

_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n")

_HEADER_LINE_RE = re.compile(r"^#", re.MULTILINE)

_WORD_RE = re.compile(r"\S+")


def trim_span(text: str, start: int, end: int) -> Span | None:
    """Shrink ``[start, end)`` past surrounding whitespace; ``None`` if nothing is left."""
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start >= end:
        return None
    return start, end


def _split_at(text: str, start: int, end: int, cuts: list[int]) -> list[Span]:
    spans: list[Span] = []
    last = start
    for cut in [*cuts, end]:
        span = trim_span(text, last, cut)
        if span is not None:
            spans.append(span)
        last = cut
    return spans


def split_sentences(text: str, start: int = 0, end: int | None = None) -> list[Span]:
    """Split at sentence terminators, ignoring periods after common abbreviations."""
    end = len(text) if end is None else end
    window = text[start:end]

    # Replace abbreviation periods with NUL (same length, so offsets line up).
    masked = _ABBREVIATION_RE.sub(lambda m: m.group(0)[:-1] + "\x00", window)

    cuts = [start + match.end() for match in _SENTENCE_END_RE.finditer(masked)]
    return _split_at(text, start, end, cuts)


def split_paragraphs(text: str, start: int = 0, end: int | None = None) -> list[Span]:
    """Split on blank lines (two newlines with only spaces/tabs between)."""
    end = len(text) if end is None else end
    spans: list[Span] = []
    last = start
    for match in _PARAGRAPH_BREAK_RE.finditer(text, start, end):
        span = trim_span(text, last, match.start())
        if span is not None:
            spans.append(span)
        last = match.end()
    span = trim_span(text, last, end)
    if span is not None:
        spans.append(span)
    return spans


def split_headers(text: str, start: int = 0, end: int | None = None) -> list[Span]:
    """Start a new section at every line beginning with ``#`` (except the first line)."""
    end = len(text) if end is None else end
    window = text[start:end]
    cuts = [start + match.start() for match in _HEADER_LINE_RE.finditer(window) if match.start() > 0]
    return _split_at(text, start, end, cuts)


def split_words(text: str, start: int = 0, end: int | None = None) -> list[Span]:
    end = len(text) if end is None else end
    return [(start + m.start(), start + m.end()) for m in _WORD_RE.finditer(text[start:end])]


def find_word_boundary_before(text: str, position: int) -> int:
    """Return the start of the word containing *position*.

    Returns ``len(text)`` when *position* is at or past the end, and
    *position* itself when there is no whitespace before it.
    """
    if position >= len(text):
        return len(text)
    boundary = position
    while boundary > 0 and not text[boundary - 1].isspace():
        boundary -= 1
    return position if boundary == 0 else boundary


def find_word_boundary_after(text: str, position: int) -> int:
    """Return the index of the first whitespace at or after *position* (or ``len(text)``)."""
    boundary = position
    while boundary < len(text) and not text[boundary].isspace():
        boundary += 1
    return boundary
