"""
Tests for the historical aggregator
"""
from datetime import datetime

import pytest

from core.exceptions import MalformedInputError
from d2_scoring.models import CategoryScoreMethod
from d4_history.aggregator import HistoricalAggregator, cycle_codes, cycle_matches
from d4_history.models import NO_DATA, HistoricalRecord
from tests.helpers import FakeAuditSource

pytestmark = [pytest.mark.unit]

CURRENT = "GMRL-FSACR-0048"


def record(document_number, cycle, created, total=None, **section_scores):
    return HistoricalRecord.from_row(
        {
            "document_number": document_number,
            "cycle": cycle,
            "created": created,
            "total_score": total,
            "section_scores": section_scores,
        }
    )


class TestCycleMatching:
    def test_label_with_period_matches_code(self):
        assert cycle_matches("C1 (Jan/Feb)", "C1")

    def test_other_cycle_does_not_match(self):
        assert not cycle_matches("C2", "C1")

    def test_case_insensitive(self):
        assert cycle_matches("c3", "C3")

    def test_missing_label(self):
        assert not cycle_matches(None, "C1")
        assert not cycle_matches("", "C1")

    def test_cycle_codes(self):
        assert cycle_codes(6) == ["C1", "C2", "C3", "C4", "C5", "C6"]


class TestHistoricalAggregator:
    def test_newest_record_wins_per_cycle(self):
        older = record("GMRL-FSACR-0010", "C3", datetime(2024, 5, 1), total=70.0)
        newer = record("GMRL-FSACR-0040", "C3", datetime(2025, 5, 1), total=90.0)

        aggregator = HistoricalAggregator([older, newer], CURRENT)

        assert aggregator.record_for_cycle("C3").document_number == "GMRL-FSACR-0040"
        assert aggregator.total_series().values[2].percentage == 90.0

    def test_ties_keep_source_order(self):
        first = record("DOC-A", "C1", datetime(2025, 1, 1))
        second = record("DOC-B", "C1", datetime(2025, 1, 1))
        assert HistoricalAggregator([first, second], CURRENT).record_for_cycle("C1").document_number == "DOC-A"

    def test_current_document_always_excluded(self):
        current = record(CURRENT, "C3", datetime(2025, 6, 1), total=99.0)
        prior = record("GMRL-FSACR-0040", "C3", datetime(2025, 5, 1), total=90.0)

        aggregator = HistoricalAggregator([current, prior], CURRENT)

        assert all(r.document_number != CURRENT for r in aggregator.records)
        assert aggregator.record_for_cycle("C3").document_number == "GMRL-FSACR-0040"

    def test_missing_cycle_is_no_data_not_zero(self):
        aggregator = HistoricalAggregator([record("DOC-A", "C1", datetime(2025, 1, 1), total=0.0)], CURRENT)
        values = aggregator.total_series().values

        assert values[0].percentage == 0.0
        assert values[0].display == "0.00%"
        assert values[1].percentage is None
        assert values[1].display == NO_DATA

    def test_columns(self):
        aggregator = HistoricalAggregator([record("DOC-A", "C2 (Mar/Apr)", datetime(2025, 3, 1))], CURRENT, max_cycles=3)
        columns = aggregator.columns()

        assert [c.code for c in columns] == ["C1", "C2", "C3"]
        assert columns[1].document_number == "DOC-A"
        assert columns[1].cycle_label == "C2 (Mar/Apr)"
        assert not columns[0].has_data

    def test_section_series(self):
        aggregator = HistoricalAggregator(
            [record("DOC-A", "C1", datetime(2025, 1, 1), **{"Food Storage": {"earned": 3, "max": 4, "percentage": 75}})],
            CURRENT,
        )
        series = aggregator.section_series("Food Storage")
        assert series.values[0].percentage == 75.0
        assert aggregator.section_series("Unknown").values[0].percentage is None

    def test_category_series_weighted(self):
        aggregator = HistoricalAggregator(
            [
                record(
                    "DOC-A",
                    "C1",
                    datetime(2025, 1, 1),
                    **{"A": {"earned": 3, "max": 4, "percentage": 75}, "B": {"earned": 1, "max": 6, "percentage": 16.67}},
                )
            ],
            CURRENT,
        )
        value = aggregator.category_series("Storage", ["A", "B"]).values[0]
        assert value.percentage == 40.0
        assert value.method is CategoryScoreMethod.WEIGHTED

    def test_category_series_averaged_for_legacy_rows(self):
        aggregator = HistoricalAggregator(
            [record("DOC-A", "C1", datetime(2025, 1, 1), A=80, B=91)],
            CURRENT,
        )
        value = aggregator.category_series("Storage", ["A", "B"]).values[0]
        assert value.percentage == 85.5
        assert value.method is CategoryScoreMethod.AVERAGED

    def test_category_series_without_record(self):
        value = HistoricalAggregator([], CURRENT).category_series("Storage", ["A"]).values[0]
        assert value.percentage is None
        assert value.display == NO_DATA


class TestLoad:
    @pytest.mark.asyncio
    async def test_fetches_once_and_parses(self):
        source = FakeAuditSource(
            history=[
                {"document_number": "DOC-A", "cycle": "C1", "created": "2025-01-01T00:00:00", "total_score": "88.5"},
                {"document_number": "", "cycle": "C2"},
                {"document_number": CURRENT, "cycle": "C3"},
            ]
        )
        aggregator = await HistoricalAggregator.load(source, "Store", CURRENT)

        assert source.calls == ["get_store_history"]
        assert [r.document_number for r in aggregator.records] == ["DOC-A"]
        assert aggregator.records[0].total_score == 88.5
        assert aggregator.warning is None

    @pytest.mark.asyncio
    async def test_malformed_rows_skipped(self):
        source = FakeAuditSource(
            history=[
                "DOC-X",
                {"document_number": "DOC-B", "cycle": "C2", "section_scores": ["Food Storage", 80]},
                {"document_number": "DOC-A", "cycle": "C1", "section_scores": {"Food Storage": 75}},
            ]
        )
        aggregator = await HistoricalAggregator.load(source, "Store", CURRENT)

        assert [r.document_number for r in aggregator.records] == ["DOC-A"]
        assert aggregator.section_series("Food Storage").values[0].percentage == 75.0
        assert aggregator.record_for_cycle("C2") is None

    @pytest.mark.asyncio
    async def test_unreachable_source_gives_empty_history(self):
        source = FakeAuditSource(failures=["get_store_history"])
        aggregator = await HistoricalAggregator.load(source, "Store", CURRENT)

        assert aggregator.records == []
        assert "unavailable" in aggregator.warning
        assert all(v.percentage is None for v in aggregator.total_series().values)

    @pytest.mark.asyncio
    async def test_sql_history_excludes_current_and_incomplete(self, seeded_session_factory, store_name, current_document):
        from d0_gateway.sql_source import SqlAuditSource

        aggregator = await HistoricalAggregator.load(SqlAuditSource(seeded_session_factory), store_name, current_document)

        assert [r.document_number for r in aggregator.records] == ["GMRL-FSACR-0040", "GMRL-FSACR-0031"]
        assert aggregator.record_for_cycle("C3").document_number == "GMRL-FSACR-0040"
        assert aggregator.record_for_cycle("C2").document_number == "GMRL-FSACR-0031"
        assert aggregator.section_series("Food Storage and Dry Storage").values[1].percentage == 50.0


class TestHistoricalRecord:
    def test_section_scores_must_be_a_mapping(self):
        with pytest.raises(MalformedInputError, match="not a mapping"):
            HistoricalRecord.from_row({"document_number": "DOC-A", "section_scores": ["Food Storage"]})

    def test_missing_section_scores(self):
        assert HistoricalRecord.from_row({"document_number": "DOC-A", "section_scores": None}).section_scores == {}
