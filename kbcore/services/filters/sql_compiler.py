"""Compile metadata filters into PostgreSQL ``jsonb`` WHERE fragments.

The output is a clause with ``%s`` placeholders plus the positional
parameter list, collected left to right, ready for psycopg's
``execute(sql, params)``.  Keys and values are always parameters and never
interpolated; only the (validated) column name is written into the SQL.

Each condition is wrapped so that it evaluates to TRUE or FALSE and never
NULL, which keeps ``NOT`` and ``OR`` consistent with the in-memory truth
table in :mod:`kbcore.services.filters.evaluator` when a key is missing.
"""

from __future__ import annotations

import json
from typing import Any, NamedTuple

from kbcore.models.filters import (
    FilterCondition,
    FilterConnector,
    FilterGroup,
    FilterOperator,
    MetadataFilter,
)
from kbcore.services.filters.evaluator import is_number
from kbcore.utils.validation import validate_sql_identifier

_COMPARISON_SQL = {
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
}


class SqlFilter(NamedTuple):
    """A WHERE fragment and its positional parameters."""

    clause: str
    params: list[Any]


def compile_filter(metadata_filter: MetadataFilter, column: str = "metadata") -> SqlFilter:
    """Compile *metadata_filter* against the ``jsonb`` column *column*.

    Examples
    --------
    >>> compile_filter(FilterCondition.eq("category", "docs"))
    SqlFilter(clause='COALESCE(metadata -> %s = %s::jsonb, FALSE)', params=['category', '"docs"'])
    """
    validate_sql_identifier(column)
    params: list[Any] = []
    clause = _compile(metadata_filter, column, params)
    return SqlFilter(clause, params)


def _compile(metadata_filter: MetadataFilter, column: str, params: list[Any]) -> str:
    if isinstance(metadata_filter, FilterGroup):
        if not metadata_filter.filters:
            return "TRUE" if metadata_filter.connector is FilterConnector.AND else "FALSE"
        joiner = " AND " if metadata_filter.connector is FilterConnector.AND else " OR "
        parts = [_compile(child, column, params) for child in metadata_filter.filters]
        return "(" + joiner.join(parts) + ")"
    return _compile_condition(metadata_filter, column, params)


def _compile_condition(condition: FilterCondition, column: str, params: list[Any]) -> str:
    operator = condition.operator
    key = condition.key
    value = condition.value

    if operator is FilterOperator.EXISTS:
        params.append(key)
        return f"({column} ? %s)"
    if operator is FilterOperator.NOT_EXISTS:
        params.append(key)
        return f"(NOT ({column} ? %s))"

    if operator in (FilterOperator.EQ, FilterOperator.NE):
        params.extend([key, _jsonb(value)])
        clause = f"COALESCE({column} -> %s = %s::jsonb, FALSE)"
        return clause if operator is FilterOperator.EQ else f"(NOT {clause})"

    if operator in _COMPARISON_SQL:
        if not is_number(value):
            return "FALSE"
        params.extend([key, key, value])
        return (
            f"COALESCE(CASE WHEN jsonb_typeof({column} -> %s) = 'number' "
            f"THEN ({column} ->> %s)::numeric {_COMPARISON_SQL[operator]} %s::numeric END, FALSE)"
        )

    if operator in (FilterOperator.CONTAINS, FilterOperator.STARTS_WITH, FilterOperator.ENDS_WITH):
        if not isinstance(value, str):
            return "FALSE"
        if operator is FilterOperator.CONTAINS:
            params.extend([key, key, value])
            test = f"strpos({column} ->> %s, %s::text) > 0"
        elif operator is FilterOperator.STARTS_WITH:
            params.extend([key, key, value])
            test = f"starts_with({column} ->> %s, %s::text)"
        else:
            params.extend([key, key, value, value])
            test = f"right({column} ->> %s, char_length(%s::text)) = %s::text"
        return f"COALESCE(jsonb_typeof({column} -> %s) = 'string' AND {test}, FALSE)"

    # IN / NOT IN
    if not value:
        return "FALSE" if operator is FilterOperator.IN else "TRUE"
    params.append(key)
    params.extend(_jsonb(item) for item in value)
    placeholders = ", ".join("%s::jsonb" for _ in value)
    clause = f"COALESCE({column} -> %s IN ({placeholders}), FALSE)"
    return clause if operator is FilterOperator.IN else f"(NOT {clause})"


def _jsonb(value: Any) -> str:
    return json.dumps(value)
