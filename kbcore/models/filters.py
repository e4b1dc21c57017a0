"""Backend-agnostic metadata filter DSL.

A :data:`MetadataFilter` is either a :class:`FilterCondition` (one key, one
operator, at most one value) or a :class:`FilterGroup` (an AND/OR connector
over an ordered tuple of child filters).  Both are frozen: a filter is built
once and then passed unchanged through search and delete calls.

Evaluation lives in :mod:`kbcore.services.filters.evaluator`; translation to
backend query languages in :mod:`kbcore.services.filters.sql_compiler` and
:mod:`kbcore.services.filters.chroma_translator`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence, Union

from kbcore.utils.errors import ValidationError


class FilterOperator(str, Enum):
    """Comparison operators understood by every filter backend."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"

    @property
    def symbol(self) -> str:
        return _OPERATOR_SYMBOLS[self]

    @property
    def takes_value(self) -> bool:
        return self not in (FilterOperator.EXISTS, FilterOperator.NOT_EXISTS)

    @property
    def takes_list(self) -> bool:
        return self in (FilterOperator.IN, FilterOperator.NOT_IN)

    def __str__(self) -> str:
        return self.symbol


_OPERATOR_SYMBOLS: dict[FilterOperator, str] = {
    FilterOperator.EQ: "=",
    FilterOperator.NE: "!=",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
    FilterOperator.CONTAINS: "contains",
    FilterOperator.STARTS_WITH: "starts_with",
    FilterOperator.ENDS_WITH: "ends_with",
    FilterOperator.IN: "in",
    FilterOperator.NOT_IN: "not_in",
    FilterOperator.EXISTS: "exists",
    FilterOperator.NOT_EXISTS: "not_exists",
}


class FilterConnector(str, Enum):
    """Boolean connector joining the children of a :class:`FilterGroup`."""

    AND = "and"
    OR = "or"

    def __str__(self) -> str:
        return self.value.upper()


# str | int | float | bool | None | tuple of those (lists are frozen to tuples).
FilterValue = Union[str, int, float, bool, None, tuple]

_SCALAR_TYPES = (str, int, float, bool)


class _Unset:
    """Marker for a condition built without a value."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def _freeze_value(value: Any, key: str) -> FilterValue:
    if value is None or isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_value(item, key) for item in value)
    raise ValidationError(
        f"Unsupported filter value type {type(value).__name__} for key '{key}'"
    )


@dataclass(frozen=True)
class FilterCondition:
    """A single ``key <operator> value`` predicate over document metadata."""

    key: str
    operator: FilterOperator
    value: Any = UNSET

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key:
            raise ValidationError("Filter key must be a non-empty string")

        try:
            operator = FilterOperator(self.operator)
        except ValueError as exc:
            raise ValidationError(f"Unknown filter operator: {self.operator!r}") from exc
        object.__setattr__(self, "operator", operator)

        if not operator.takes_value:
            if self.value is not UNSET and self.value is not None:
                raise ValidationError(
                    f"Operator '{operator.value}' does not take a value (key '{self.key}')"
                )
            object.__setattr__(self, "value", None)
            return

        if self.value is UNSET:
            raise ValidationError(
                f"Operator '{operator.value}' requires a value (key '{self.key}')"
            )

        frozen = _freeze_value(self.value, self.key)
        if operator.takes_list and not isinstance(frozen, tuple):
            raise ValidationError(
                f"Operator '{operator.value}' requires a list value (key '{self.key}')"
            )
        if not operator.takes_list and isinstance(frozen, tuple):
            raise ValidationError(
                f"Operator '{operator.value}' requires a scalar value (key '{self.key}')"
            )
        object.__setattr__(self, "value", frozen)

    # -- Convenience constructors ------------------------------------------

    @classmethod
    def eq(cls, key: str, value: Any) -> FilterCondition:
        return cls(key, FilterOperator.EQ, value)

    @classmethod
    def ne(cls, key: str, value: Any) -> FilterCondition:
        return cls(key, FilterOperator.NE, value)

    @classmethod
    def gt(cls, key: str, value: Any) -> FilterCondition:
        return cls(key, FilterOperator.GT, value)

    @classmethod
    def gte(cls, key: str, value: Any) -> FilterCondition:
        return cls(key, FilterOperator.GTE, value)

    @classmethod
    def lt(cls, key: str, value: Any) -> FilterCondition:
        return cls(key, FilterOperator.LT, value)

    @classmethod
    def lte(cls, key: str, value: Any) -> FilterCondition:
        return cls(key, FilterOperator.LTE, value)

    @classmethod
    def contains(cls, key: str, value: str) -> FilterCondition:
        return cls(key, FilterOperator.CONTAINS, value)

    @classmethod
    def starts_with(cls, key: str, value: str) -> FilterCondition:
        return cls(key, FilterOperator.STARTS_WITH, value)

    @classmethod
    def ends_with(cls, key: str, value: str) -> FilterCondition:
        return cls(key, FilterOperator.ENDS_WITH, value)

    @classmethod
    def in_list(cls, key: str, values: Sequence[Any]) -> FilterCondition:
        return cls(key, FilterOperator.IN, list(values))

    @classmethod
    def not_in_list(cls, key: str, values: Sequence[Any]) -> FilterCondition:
        return cls(key, FilterOperator.NOT_IN, list(values))

    @classmethod
    def exists(cls, key: str) -> FilterCondition:
        return cls(key, FilterOperator.EXISTS)

    @classmethod
    def not_exists(cls, key: str) -> FilterCondition:
        return cls(key, FilterOperator.NOT_EXISTS)

    def __str__(self) -> str:
        if not self.operator.takes_value:
            return f"{self.key} {self.operator}"
        return f"{self.key} {self.operator} {self.value!r}"


@dataclass(frozen=True)
class FilterGroup:
    """An AND/OR combination of child filters.

    An empty AND group is true and an empty OR group is false, the identity
    elements of the two connectors.
    """

    connector: FilterConnector = FilterConnector.AND
    filters: tuple[MetadataFilter, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        try:
            connector = FilterConnector(self.connector)
        except ValueError as exc:
            raise ValidationError(f"Unknown filter connector: {self.connector!r}") from exc
        object.__setattr__(self, "connector", connector)

        children = tuple(self.filters)
        for child in children:
            if not isinstance(child, (FilterCondition, FilterGroup)):
                raise ValidationError(
                    f"Filter group children must be filters, got {type(child).__name__}"
                )
        object.__setattr__(self, "filters", children)

    @classmethod
    def and_(cls, filters: Sequence[MetadataFilter]) -> FilterGroup:
        return cls(FilterConnector.AND, tuple(filters))

    @classmethod
    def or_(cls, filters: Sequence[MetadataFilter]) -> FilterGroup:
        return cls(FilterConnector.OR, tuple(filters))

    @property
    def is_empty(self) -> bool:
        return not self.filters

    def __str__(self) -> str:
        joined = f" {self.connector} ".join(str(child) for child in self.filters)
        return f"({joined})"


MetadataFilter = Union[FilterCondition, FilterGroup]


class FilterBuilder:
    """Accumulates conditions and groups into a single filter.

    Every method appends and returns the builder, so calls chain::

        FilterBuilder().eq("category", "docs").gt("version", 1).build()

    ``build()`` returns ``None`` when nothing was added, the bare filter when
    exactly one was added, and a :class:`FilterGroup` with the builder's
    connector otherwise.
    """

    def __init__(self, connector: FilterConnector = FilterConnector.AND) -> None:
        self._connector = FilterConnector(connector)
        self._filters: list[MetadataFilter] = []

    @classmethod
    def or_(cls) -> FilterBuilder:
        return cls(FilterConnector.OR)

    def condition(self, condition: FilterCondition) -> FilterBuilder:
        self._filters.append(condition)
        return self

    def group(self, metadata_filter: MetadataFilter) -> FilterBuilder:
        self._filters.append(metadata_filter)
        return self

    def eq(self, key: str, value: Any) -> FilterBuilder:
        return self.condition(FilterCondition.eq(key, value))

    def ne(self, key: str, value: Any) -> FilterBuilder:
        return self.condition(FilterCondition.ne(key, value))

    def gt(self, key: str, value: Any) -> FilterBuilder:
        return self.condition(FilterCondition.gt(key, value))

    def gte(self, key: str, value: Any) -> FilterBuilder:
        return self.condition(FilterCondition.gte(key, value))

    def lt(self, key: str, value: Any) -> FilterBuilder:
        return self.condition(FilterCondition.lt(key, value))

    def lte(self, key: str, value: Any) -> FilterBuilder:
        return self.condition(FilterCondition.lte(key, value))

    def contains(self, key: str, value: str) -> FilterBuilder:
        return self.condition(FilterCondition.contains(key, value))

    def starts_with(self, key: str, value: str) -> FilterBuilder:
        return self.condition(FilterCondition.starts_with(key, value))

    def ends_with(self, key: str, value: str) -> FilterBuilder:
        return self.condition(FilterCondition.ends_with(key, value))

    def in_list(self, key: str, values: Sequence[Any]) -> FilterBuilder:
        return self.condition(FilterCondition.in_list(key, values))

    def not_in_list(self, key: str, values: Sequence[Any]) -> FilterBuilder:
        return self.condition(FilterCondition.not_in_list(key, values))

    def exists(self, key: str) -> FilterBuilder:
        return self.condition(FilterCondition.exists(key))

    def not_exists(self, key: str) -> FilterBuilder:
        return self.condition(FilterCondition.not_exists(key))

    def build(self) -> MetadataFilter | None:
        if not self._filters:
            return None
        if len(self._filters) == 1:
            return self._filters[0]
        return FilterGroup(self._connector, tuple(self._filters))


# ---------------------------------------------------------------------------
# Dict (JSON) serialization
# ---------------------------------------------------------------------------


def _thaw_value(value: FilterValue) -> Any:
    if isinstance(value, tuple):
        return [_thaw_value(item) for item in value]
    return value


def filter_to_dict(metadata_filter: MetadataFilter) -> dict[str, Any]:
    """Serialize a filter tree to plain JSON-compatible dicts."""
    if isinstance(metadata_filter, FilterCondition):
        data: dict[str, Any] = {
            "key": metadata_filter.key,
            "operator": metadata_filter.operator.value,
        }
        if metadata_filter.operator.takes_value:
            data["value"] = _thaw_value(metadata_filter.value)
        return data
    return {
        "connector": metadata_filter.connector.value,
        "filters": [filter_to_dict(child) for child in metadata_filter.filters],
    }


def filter_from_dict(data: Mapping[str, Any]) -> MetadataFilter:
    """Rebuild a filter tree from :func:`filter_to_dict` output.

    Raises
    ------
    ValidationError
        If the mapping is neither a condition nor a group.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(f"Filter must be a mapping, got {type(data).__name__}")
    if "filters" in data:
        children = data["filters"]
        if not isinstance(children, list):
            raise ValidationError("Filter group 'filters' must be a list")
        return FilterGroup(
            data.get("connector", FilterConnector.AND.value),
            tuple(filter_from_dict(child) for child in children),
        )
    if "key" in data and "operator" in data:
        return FilterCondition(data["key"], data["operator"], data.get("value", UNSET))
    raise ValidationError("Filter mapping must define either 'filters' or 'key' and 'operator'")
