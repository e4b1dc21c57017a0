"""In-memory evaluation of metadata filters.

This module defines the reference truth table that every backend
translation reproduces:

* ``exists`` / ``not_exists`` test key presence only.
* ``eq`` / ``ne``: numbers compare as floats across int/float; strings,
  booleans and null compare exactly; a missing key is never equal.
* ``gt`` / ``gte`` / ``lt`` / ``lte``: both sides must be numbers
  (booleans are not numbers), otherwise false.
* ``contains`` / ``starts_with`` / ``ends_with``: stored value and filter
  value must both be strings, otherwise false.
* ``in`` / ``not_in``: membership using the ``eq`` rule.
* Empty AND group is true, empty OR group is false.
"""

from __future__ import annotations

from typing import Any, Mapping

from kbcore.models.filters import (
    FilterCondition,
    FilterConnector,
    FilterGroup,
    FilterOperator,
    MetadataFilter,
)

_MISSING = object()


def evaluate_filter(metadata_filter: MetadataFilter, metadata: Mapping[str, Any]) -> bool:
    """Return ``True`` if *metadata* satisfies *metadata_filter*."""
    if isinstance(metadata_filter, FilterGroup):
        results = (evaluate_filter(child, metadata) for child in metadata_filter.filters)
        if metadata_filter.connector is FilterConnector.AND:
            return all(results)
        return any(results)
    return evaluate_condition(metadata_filter, metadata)


def evaluate_condition(condition: FilterCondition, metadata: Mapping[str, Any]) -> bool:
    operator = condition.operator
    stored = metadata.get(condition.key, _MISSING)

    if operator is FilterOperator.EXISTS:
        return stored is not _MISSING
    if operator is FilterOperator.NOT_EXISTS:
        return stored is _MISSING

    expected = condition.value

    if operator is FilterOperator.EQ:
        return stored is not _MISSING and values_equal(stored, expected)
    if operator is FilterOperator.NE:
        return not (stored is not _MISSING and values_equal(stored, expected))

    if operator in (FilterOperator.GT, FilterOperator.GTE, FilterOperator.LT, FilterOperator.LTE):
        if not (is_number(stored) and is_number(expected)):
            return False
        left, right = float(stored), float(expected)
        if operator is FilterOperator.GT:
            return left > right
        if operator is FilterOperator.GTE:
            return left >= right
        if operator is FilterOperator.LT:
            return left < right
        return left <= right

    if operator in (FilterOperator.CONTAINS, FilterOperator.STARTS_WITH, FilterOperator.ENDS_WITH):
        if not (isinstance(stored, str) and isinstance(expected, str)):
            return False
        if operator is FilterOperator.CONTAINS:
            return expected in stored
        if operator is FilterOperator.STARTS_WITH:
            return stored.startswith(expected)
        return stored.endswith(expected)

    member = stored is not _MISSING and any(values_equal(stored, item) for item in expected)
    if operator is FilterOperator.IN:
        return member
    return not member


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(stored: Any, expected: Any) -> bool:
    """Scalar equality: numbers as floats, everything else exact and type-strict."""
    if is_number(stored) and is_number(expected):
        return float(stored) == float(expected)
    if isinstance(stored, bool) or isinstance(expected, bool):
        return isinstance(stored, bool) and isinstance(expected, bool) and stored == expected
    if stored is None or expected is None:
        return stored is None and expected is None
    if isinstance(stored, str) and isinstance(expected, str):
        return stored == expected
    return False
