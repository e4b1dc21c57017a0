"""Unit tests for the PostgreSQL jsonb filter compiler."""

from __future__ import annotations

import pytest

from kbcore.models.filters import FilterCondition, FilterGroup
from kbcore.services.filters.sql_compiler import SqlFilter, compile_filter
from kbcore.utils.errors import ValidationError


class TestConditions:
    def test_eq(self) -> None:
        compiled = compile_filter(FilterCondition.eq("category", "docs"))
        assert compiled == SqlFilter(
            "COALESCE(metadata -> %s = %s::jsonb, FALSE)", ["category", '"docs"']
        )

    def test_ne_negates_null_safe_eq(self) -> None:
        compiled = compile_filter(FilterCondition.ne("version", 2))
        assert compiled.clause == "(NOT COALESCE(metadata -> %s = %s::jsonb, FALSE))"
        assert compiled.params == ["version", "2"]

    def test_eq_null_and_bool_are_json_encoded(self) -> None:
        assert compile_filter(FilterCondition.eq("author", None)).params == ["author", "null"]
        assert compile_filter(FilterCondition.eq("flag", True)).params == ["flag", "true"]

    def test_numeric_comparison_casts(self) -> None:
        compiled = compile_filter(FilterCondition.gt("version", 1))
        assert "jsonb_typeof(metadata -> %s) = 'number'" in compiled.clause
        assert "(metadata ->> %s)::numeric > %s::numeric" in compiled.clause
        assert compiled.params == ["version", "version", 1]

    @pytest.mark.parametrize(
        ("condition", "operator"),
        [
            (FilterCondition.gte("v", 1), ">="),
            (FilterCondition.lt("v", 1), "<"),
            (FilterCondition.lte("v", 1.5), "<="),
        ],
    )
    def test_comparison_operators(self, condition, operator) -> None:
        assert f"::numeric {operator} %s::numeric" in compile_filter(condition).clause

    def test_comparison_with_non_number_is_false(self) -> None:
        assert compile_filter(FilterCondition.gt("v", "10")) == SqlFilter("FALSE", [])

    def test_contains(self) -> None:
        compiled = compile_filter(FilterCondition.contains("title", "Guide"))
        assert "strpos(metadata ->> %s, %s::text) > 0" in compiled.clause
        assert "jsonb_typeof(metadata -> %s) = 'string'" in compiled.clause
        assert compiled.params == ["title", "title", "Guide"]

    def test_starts_with(self) -> None:
        compiled = compile_filter(FilterCondition.starts_with("path", "docs/"))
        assert "starts_with(metadata ->> %s, %s::text)" in compiled.clause
        assert compiled.params == ["path", "path", "docs/"]

    def test_ends_with(self) -> None:
        compiled = compile_filter(FilterCondition.ends_with("path", ".md"))
        assert "right(metadata ->> %s, char_length(%s::text)) = %s::text" in compiled.clause
        assert compiled.params == ["path", "path", ".md", ".md"]

    def test_exists(self) -> None:
        assert compile_filter(FilterCondition.exists("author")) == SqlFilter(
            "(metadata ? %s)", ["author"]
        )

    def test_not_exists(self) -> None:
        assert compile_filter(FilterCondition.not_exists("author")) == SqlFilter(
            "(NOT (metadata ? %s))", ["author"]
        )

    def test_in(self) -> None:
        compiled = compile_filter(FilterCondition.in_list("lang", ["en", "de"]))
        assert compiled.clause == "COALESCE(metadata -> %s IN (%s::jsonb, %s::jsonb), FALSE)"
        assert compiled.params == ["lang", '"en"', '"de"']

    def test_not_in(self) -> None:
        compiled = compile_filter(FilterCondition.not_in_list("v", [1]))
        assert compiled.clause == "(NOT COALESCE(metadata -> %s IN (%s::jsonb), FALSE))"
        assert compiled.params == ["v", "1"]

    def test_empty_in_lists(self) -> None:
        assert compile_filter(FilterCondition.in_list("lang", [])) == SqlFilter("FALSE", [])
        assert compile_filter(FilterCondition.not_in_list("lang", [])) == SqlFilter("TRUE", [])

    def test_values_are_never_interpolated(self) -> None:
        compiled = compile_filter(FilterCondition.eq("name", "x'; DROP TABLE kb; --"))
        assert "DROP" not in compiled.clause


class TestGroups:
    def test_parameters_collected_left_to_right(self) -> None:
        compiled = compile_filter(
            FilterGroup.or_(
                [
                    FilterGroup.and_(
                        [FilterCondition.eq("category", "docs"), FilterCondition.exists("v")]
                    ),
                    FilterCondition.eq("category", "faq"),
                ]
            )
        )
        assert compiled.clause == (
            "((COALESCE(metadata -> %s = %s::jsonb, FALSE) AND (metadata ? %s)) "
            "OR COALESCE(metadata -> %s = %s::jsonb, FALSE))"
        )
        assert compiled.params == ["category", '"docs"', "v", "category", '"faq"']

    def test_empty_groups(self) -> None:
        assert compile_filter(FilterGroup.and_([])).clause == "TRUE"
        assert compile_filter(FilterGroup.or_([])).clause == "FALSE"

    def test_custom_column(self) -> None:
        compiled = compile_filter(FilterCondition.exists("a"), column="doc_meta")
        assert compiled.clause == "(doc_meta ? %s)"

    def test_invalid_column_rejected(self) -> None:
        with pytest.raises(ValidationError):
            compile_filter(FilterCondition.exists("a"), column="metadata; DROP")
