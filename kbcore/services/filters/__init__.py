"""Filter evaluation and backend translation."""

from kbcore.services.filters.chroma_translator import translate_filter
from kbcore.services.filters.evaluator import evaluate_filter
from kbcore.services.filters.sql_compiler import SqlFilter, compile_filter

__all__ = ["SqlFilter", "compile_filter", "evaluate_filter", "translate_filter"]
