"""Tests for fiscal-year series extraction and aggregation.

This module verifies:
- Key-wise summing of fiscal_year_obligations across entities
- Summary-collection fields sum their sub-entity series
- Name selection restricts contributors
- Year labels stay strings, including non-numeric ones
- Year detection and its default window
"""

from fitmarket.entity import EntityKind
from fitmarket.fiscal import (
    DEFAULT_FISCAL_YEARS,
    aggregate_fiscal_years,
    detect_fiscal_years,
    extract_fiscal_year_data,
    fiscal_series_for,
)

from tests.conftest import make_record, obligations


class TestAggregateFiscalYears:
    def test_key_wise_sum(self):
        entities = [
            make_record("A", EntityKind.AGENCY, 1, obligations={"fiscal_year_obligations": {"2023": 10}}),
            make_record("B", EntityKind.AGENCY, 2, obligations={"fiscal_year_obligations": {"2023": 5, "2024": 2}}),
        ]
        assert aggregate_fiscal_years(entities, "obligations") == {"2023": 15.0, "2024": 2.0}

    def test_selected_names(self):
        entities = [
            make_record("A", obligations=obligations(fy2023=10.0)),
            make_record("B", obligations=obligations(fy2023=5.0)),
        ]
        assert aggregate_fiscal_years(entities, "obligations", ["B"]) == {"2023": 5.0}

    def test_empty_selection_means_all(self):
        entities = [make_record("A", obligations=obligations(fy2023=1.0))]
        assert aggregate_fiscal_years(entities, "obligations", []) == {"2023": 1.0}

    def test_entities_without_series_contribute_nothing(self):
        entities = [
            make_record("A", obligations=obligations(100.0)),
            make_record("B", obligations=obligations(fy2024=3.0)),
        ]
        assert aggregate_fiscal_years(entities, "obligations") == {"2024": 3.0}

    def test_non_numeric_year_labels_survive(self):
        entities = [
            make_record("A", sum_type={"fiscal_years": {"FY2024": 4, "2024-Q1": "1.5"}}),
            make_record("B", sum_type={"fiscal_years": {"FY2024": 1}}),
        ]
        assert aggregate_fiscal_years(entities, "sum_type") == {"FY2024": 5.0, "2024-Q1": 1.5}

    def test_reseller_summaries(self):
        record = make_record(
            "Acme",
            reseller={
                "top_15_reseller_summaries": {
                    "R1": {"fiscal_years": {"2024": 400}},
                    "R2": {"fiscal_years": {"2024": 300, "2025": 50}},
                    "R3": {"name": "no series"},
                }
            },
        )
        assert aggregate_fiscal_years([record], "reseller") == {"2024": 700.0, "2025": 50.0}

    def test_summary_list_form(self):
        record = make_record(
            "Acme",
            funding_agency={"top_10_agency_summaries": [{"fiscal_years": {"2023": 2}}, {"fiscal_years": {"2023": 3}}]},
        )
        assert aggregate_fiscal_years([record], "funding_agency") == {"2023": 5.0}


class TestFiscalSeriesFor:
    def test_bic_oem_reads_yearly_totals(self):
        payload = {"yearly_totals": {"2024": 8}, "fiscal_years": {"2024": 99}}
        assert fiscal_series_for(payload, "bic_oem") == {"2024": 8.0}

    def test_missing_collection(self):
        assert fiscal_series_for({"summary": {}}, "fas_oem") is None

    def test_non_mapping(self):
        assert fiscal_series_for(None, "obligations") is None
        assert fiscal_series_for({}, "obligations") is None


class TestDetectFiscalYears:
    def test_top_level_and_nested(self):
        payload = {
            "fiscal_year_obligations": {"2023": 1, "2024": 2},
            "top_15_reseller_summaries": {"R1": {"2025": 3}},
            "label": "ignored",
        }
        assert detect_fiscal_years(payload) == ["2023", "2024", "2025"]

    def test_default_window(self):
        assert detect_fiscal_years({"summary": {"total": 1}}) == list(DEFAULT_FISCAL_YEARS)
        assert detect_fiscal_years(None) == list(DEFAULT_FISCAL_YEARS)


class TestExtractFiscalYearData:
    def test_known_key(self):
        assert extract_fiscal_year_data({"fiscal_years": {"2024": 1}}) == {"2024": 1}

    def test_nested_summary(self):
        assert extract_fiscal_year_data({"summary": {"fiscal_years": {"2022": 4}}}) == {"2022": 4}

    def test_absent(self):
        assert extract_fiscal_year_data({"summary": {}}) is None
