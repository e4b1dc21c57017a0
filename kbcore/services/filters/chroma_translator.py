"""Translate metadata filters into ChromaDB ``where`` trees.

Mapping:

    eq -> $eq   ne -> $ne   gt/gte/lt/lte -> $gt/$gte/$lt/$lte
    in -> $in   not_in -> $nin
    AND group -> $and   OR group -> $or

ChromaDB wants every ``$in`` / ``$nin`` operand to share one type, so a
list is split into one clause per type, joined with ``$or`` for ``in``
and ``$and`` for ``not_in``.  Numbers are listed as floats and, when
integral, also as ints.

ChromaDB has no substring, prefix, suffix or key-presence operators on
metadata and does not store nulls, so ``contains``, ``starts_with``,
``ends_with``, ``exists``, ``not_exists`` and null values raise
:class:`~kbcore.utils.errors.UnsupportedFilterError` instead of being
dropped.

``$and`` / ``$or`` need at least two children in ChromaDB, so groups are
folded: a single child is unwrapped and empty groups become constants.
The translator therefore returns either a ``where`` dict or a bool:
``True`` (match everything, pass no ``where``) or ``False`` (match nothing,
skip the query).
"""

from __future__ import annotations

from typing import Any, Union

from kbcore.models.filters import (
    FilterCondition,
    FilterConnector,
    FilterGroup,
    FilterOperator,
    MetadataFilter,
)
from kbcore.services.filters.evaluator import is_number
from kbcore.utils.errors import UnsupportedFilterError

ChromaWhere = Union[dict[str, Any], bool]

_NATIVE_OPERATORS = {
    FilterOperator.EQ: "$eq",
    FilterOperator.NE: "$ne",
    FilterOperator.GT: "$gt",
    FilterOperator.GTE: "$gte",
    FilterOperator.LT: "$lt",
    FilterOperator.LTE: "$lte",
    FilterOperator.IN: "$in",
    FilterOperator.NOT_IN: "$nin",
}

PROVIDER_NAME = "chromadb"


def translate_filter(metadata_filter: MetadataFilter) -> ChromaWhere:
    """Translate *metadata_filter* into a ChromaDB ``where`` dict or a constant."""
    if isinstance(metadata_filter, FilterGroup):
        return _translate_group(metadata_filter)
    return _translate_condition(metadata_filter)


def _translate_group(group: FilterGroup) -> ChromaWhere:
    is_and = group.connector is FilterConnector.AND
    clauses: list[dict[str, Any]] = []

    for child in group.filters:
        translated = translate_filter(child)
        if translated is True:
            if not is_and:
                return True
            continue
        if translated is False:
            if is_and:
                return False
            continue
        clauses.append(translated)

    if not clauses:
        return is_and
    if len(clauses) == 1:
        return clauses[0]
    return {"$and" if is_and else "$or": clauses}


def _translate_condition(condition: FilterCondition) -> ChromaWhere:
    native = _NATIVE_OPERATORS.get(condition.operator)
    if native is None:
        raise UnsupportedFilterError(
            message=(
                f"Operator '{condition.operator.value}' has no ChromaDB equivalent "
                f"(key '{condition.key}')"
            ),
            provider_name=PROVIDER_NAME,
        )

    value = condition.value
    if condition.operator.takes_list:
        _check_scalars(condition, value)
        if not value:
            return condition.operator is FilterOperator.NOT_IN
        return _translate_membership(condition.key, native, value)

    _check_scalars(condition, (value,))
    return {condition.key: {native: value}}


def _check_scalars(condition: FilterCondition, values: tuple) -> None:
    for item in values:
        if item is None or isinstance(item, tuple):
            raise UnsupportedFilterError(
                message=(
                    f"ChromaDB filters cannot compare against {item!r} "
                    f"(key '{condition.key}')"
                ),
                provider_name=PROVIDER_NAME,
            )


def _translate_membership(key: str, native: str, values: tuple) -> dict[str, Any]:
    buckets: dict[type, list[Any]] = {}
    for item in values:
        if is_number(item):
            # Numbers go in both numeric buckets so a stored 1 and a stored
            # 1.0 match regardless of how the backend compares int and float.
            _add_unique(buckets.setdefault(float, []), float(item))
            if float(item).is_integer():
                _add_unique(buckets.setdefault(int, []), int(item))
        else:
            _add_unique(buckets.setdefault(type(item), []), item)

    clauses = [{key: {native: items}} for items in buckets.values()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$or" if native == "$in" else "$and": clauses}


def _add_unique(items: list[Any], value: Any) -> None:
    if value not in items:
        items.append(value)
