"""Tests for semantic ranking-value extraction.

This module verifies:
- Field rules pick the first truthy numeric candidate in order
- Unruled fields and unmatched rules fall back to the generic chain
- The generic chain ends with the sum of a fiscal-year mapping
- Absent, empty and non-mapping payloads yield 0
- Lenient number coercion
"""

import math

import pytest

from fitmarket.extraction import (
    EXTRACTION_RULES,
    extract_ranking_value,
    first_fiscal_mapping,
    generic_ranking_value,
    resolve_path,
    to_number,
)
from fitmarket.schema import JSON_FIELDS


class TestToNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (5, 5.0),
            (2.5, 2.5),
            ("12.5", 12.5),
            ("  7 USD", 7.0),
            ("-3", -3.0),
            ("1e3", 1000.0),
            (".5", 0.5),
            ("abc", 0.0),
            ("", 0.0),
            (None, 0.0),
            (True, 0.0),
            ({"a": 1}, 0.0),
            (math.nan, 0.0),
            (math.inf, 0.0),
        ],
    )
    def test_coercion(self, value, expected):
        assert to_number(value) == expected


class TestResolvePath:
    def test_nested(self):
        assert resolve_path({"summary": {"total": 3}}, "summary.total") == 3

    def test_missing_step(self):
        assert resolve_path({"summary": {}}, "summary.total") is None
        assert resolve_path({"summary": 4}, "summary.total") is None
        assert resolve_path(None, "summary") is None


class TestFieldRules:
    def test_funding_department_top_10_rollup(self):
        payload = {"summary": {"total_top_10_departments": 42}}
        assert extract_ranking_value(payload, "funding_department") == 42.0

    def test_first_candidate_wins(self):
        payload = {"summary": {"total_all_departments": 100, "total_top_10_departments": 42}}
        assert extract_ranking_value(payload, "funding_department") == 100.0

    def test_zero_candidate_is_skipped(self):
        payload = {"summary": {"total_top_15_resellers": 0, "total_all_resellers": 80}}
        assert extract_ranking_value(payload, "reseller") == 80.0

    def test_string_candidates_are_coerced(self):
        assert extract_ranking_value({"total_obligated": "1500.25"}, "obligations") == 1500.25

    def test_one_gov_tier_average(self):
        payload = {"mode_tier": "BIC", "average_obligations_per_year": 300}
        assert extract_ranking_value(payload, "one_gov_tier") == 300.0

    def test_unmatched_rule_uses_generic_chain(self):
        assert extract_ranking_value({"total": 9}, "reseller") == 9.0

    def test_every_rule_targets_a_json_field(self):
        assert set(EXTRACTION_RULES) <= JSON_FIELDS


class TestGenericFallback:
    def test_unruled_field_total(self):
        assert extract_ranking_value({"total": 7}, "usai_profile") == 7.0

    def test_generic_order(self):
        payload = {"total": 1, "total_obligations": 2, "summary": {"grand_total_obligations": 3}}
        assert generic_ranking_value(payload) == 2.0

    def test_fiscal_sum_is_last_resort(self):
        payload = {"fiscal_years": {"2023": 10, "2024": "5"}}
        assert extract_ranking_value(payload, "usai_profile") == 15.0

    def test_fiscal_key_order(self):
        payload = {"yearly_totals": {"2024": 1}, "fiscal_year_obligations": {"2024": 2}}
        assert first_fiscal_mapping(payload) == {"2024": 2}

    def test_nothing_matches(self):
        assert extract_ranking_value({"label": "x"}, "reseller") == 0.0


class TestDegenerateInputs:
    @pytest.mark.parametrize("payload", [None, {}, [], "text", True])
    def test_zero(self, payload):
        assert extract_ranking_value(payload, "reseller") == 0.0

    def test_bare_number(self):
        assert extract_ranking_value(12, "obligations") == 12.0

    def test_integer_beyond_float_range(self):
        assert to_number(10**400) == 0.0
        assert extract_ranking_value({"total": 10**400}, "usai_profile") == 0.0
        assert extract_ranking_value({"total_obligated": 10**400, "total": 3}, "obligations") == 3.0
