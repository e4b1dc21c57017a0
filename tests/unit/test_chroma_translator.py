"""Unit tests for the ChromaDB where-clause translator."""

from __future__ import annotations

import pytest

from kbcore.models.filters import FilterCondition, FilterGroup
from kbcore.services.filters.chroma_translator import translate_filter
from kbcore.utils.errors import UnsupportedFilterError, ValidationError


class TestConditionTranslation:
    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (FilterCondition.eq("category", "docs"), {"category": {"$eq": "docs"}}),
            (FilterCondition.ne("category", "docs"), {"category": {"$ne": "docs"}}),
            (FilterCondition.gt("version", 1), {"version": {"$gt": 1}}),
            (FilterCondition.gte("version", 1), {"version": {"$gte": 1}}),
            (FilterCondition.lt("version", 1.5), {"version": {"$lt": 1.5}}),
            (FilterCondition.lte("version", 1), {"version": {"$lte": 1}}),
            (FilterCondition.in_list("lang", ["en", "de"]), {"lang": {"$in": ["en", "de"]}}),
            (FilterCondition.not_in_list("lang", ["en"]), {"lang": {"$nin": ["en"]}}),
        ],
    )
    def test_native_operators(self, condition, expected) -> None:
        assert translate_filter(condition) == expected

    @pytest.mark.parametrize(
        "condition",
        [
            FilterCondition.contains("title", "Guide"),
            FilterCondition.starts_with("path", "docs/"),
            FilterCondition.ends_with("path", ".md"),
            FilterCondition.exists("author"),
            FilterCondition.not_exists("author"),
        ],
    )
    def test_unsupported_operators_rejected(self, condition) -> None:
        with pytest.raises(UnsupportedFilterError) as exc_info:
            translate_filter(condition)
        assert exc_info.value.provider_name == "chromadb"

    def test_unsupported_is_a_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            translate_filter(FilterCondition.contains("title", "x"))

    def test_null_value_rejected(self) -> None:
        with pytest.raises(UnsupportedFilterError):
            translate_filter(FilterCondition.eq("author", None))

    def test_null_inside_list_rejected(self) -> None:
        with pytest.raises(UnsupportedFilterError):
            translate_filter(FilterCondition.in_list("author", ["ann", None]))

    def test_empty_in_lists_fold_to_constants(self) -> None:
        assert translate_filter(FilterCondition.in_list("lang", [])) is False
        assert translate_filter(FilterCondition.not_in_list("lang", [])) is True


class TestGroupTranslation:
    def test_and_group(self) -> None:
        group = FilterGroup.and_(
            [FilterCondition.eq("category", "docs"), FilterCondition.gt("version", 1)]
        )
        assert translate_filter(group) == {
            "$and": [{"category": {"$eq": "docs"}}, {"version": {"$gt": 1}}]
        }

    def test_nested_or(self) -> None:
        group = FilterGroup.or_(
            [
                FilterGroup.and_(
                    [FilterCondition.eq("category", "docs"), FilterCondition.gt("version", 1)]
                ),
                FilterCondition.eq("category", "faq"),
            ]
        )
        assert translate_filter(group) == {
            "$or": [
                {"$and": [{"category": {"$eq": "docs"}}, {"version": {"$gt": 1}}]},
                {"category": {"$eq": "faq"}},
            ]
        }

    def test_single_child_unwrapped(self) -> None:
        group = FilterGroup.or_([FilterCondition.eq("a", 1)])
        assert translate_filter(group) == {"a": {"$eq": 1}}

    def test_empty_groups_are_constants(self) -> None:
        assert translate_filter(FilterGroup.and_([])) is True
        assert translate_filter(FilterGroup.or_([])) is False

    def test_constant_children_fold(self) -> None:
        a = FilterCondition.eq("a", 1)
        assert translate_filter(FilterGroup.and_([a, FilterGroup.and_([])])) == {"a": {"$eq": 1}}
        assert translate_filter(FilterGroup.and_([a, FilterGroup.or_([])])) is False
        assert translate_filter(FilterGroup.or_([a, FilterGroup.and_([])])) is True
        assert translate_filter(FilterGroup.or_([a, FilterGroup.or_([])])) == {"a": {"$eq": 1}}

    def test_unsupported_child_rejects_whole_group(self) -> None:
        group = FilterGroup.or_([FilterCondition.eq("a", 1), FilterCondition.exists("b")])
        with pytest.raises(UnsupportedFilterError):
            translate_filter(group)


class TestMixedTypeMembership:
    def test_numbers_listed_as_floats_and_ints(self) -> None:
        assert translate_filter(FilterCondition.in_list("version", [1.0, 2, 2.5])) == {
            "$or": [{"version": {"$in": [1.0, 2.0, 2.5]}}, {"version": {"$in": [1, 2]}}]
        }

    def test_mixed_types_not_in_split_into_and(self) -> None:
        condition = FilterCondition.not_in_list("version", ["v1", 2, "v3", True])
        assert translate_filter(condition) == {
            "$and": [
                {"version": {"$nin": ["v1", "v3"]}},
                {"version": {"$nin": [2.0]}},
                {"version": {"$nin": [2]}},
                {"version": {"$nin": [True]}},
            ]
        }

    def test_non_integral_floats_stay_single_clause(self) -> None:
        assert translate_filter(FilterCondition.in_list("score", [0.5, 1.5])) == {
            "score": {"$in": [0.5, 1.5]}
        }
