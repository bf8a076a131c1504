"""
Tests for repetitive finding detection
"""
import json

import pytest

from d1_ingest.models import Choice
from d4_history.repetitive import RepetitiveFinding, RepetitiveFindingIndex
from tests.helpers import FakeAuditSource, make_item

pytestmark = [pytest.mark.unit]

CURRENT = "GMRL-FSACR-0048"


def finding_record(document_number, reference, choice="No", title=None):
    return {
        "DocumentNumber": document_number,
        "ResponseID": f"{document_number}-{reference}",
        "ReferenceValue": reference,
        "Title": title or f"{reference} Question",
        "SelectedChoice": choice,
    }


class TestFromRecords:
    def test_counts_prior_findings(self):
        index = RepetitiveFindingIndex.from_records(
            [finding_record("DOC-1", "1.2"), finding_record("DOC-2", "1.2", choice="Partially"), finding_record("DOC-3", "1.3")],
            CURRENT,
        )
        found = index.lookup(make_item("1.2", Choice.NO))

        assert found.count == 2
        assert found.documents == ["DOC-1", "DOC-2"]
        assert found.overflow == 0
        assert "2 previous audit(s)" in found.label

    def test_yes_and_na_are_not_findings(self):
        index = RepetitiveFindingIndex.from_records(
            [finding_record("DOC-1", "1.2", choice="Yes"), finding_record("DOC-2", "1.2", choice="NA")], CURRENT
        )
        assert index.lookup(make_item("1.2", Choice.NO)) is None

    def test_current_document_excluded(self):
        index = RepetitiveFindingIndex.from_records([finding_record(CURRENT, "1.2")], CURRENT)
        assert index.lookup(make_item("1.2", Choice.NO)) is None

    def test_documents_deduplicated_and_capped(self):
        records = [finding_record(f"DOC-{n}", "1.2") for n in range(1, 8)]
        records.append(finding_record("DOC-1", "1.2"))

        found = RepetitiveFindingIndex.from_records(records, CURRENT, display_limit=5).lookup(make_item("1.2", Choice.NO))

        assert found.count == 8
        assert found.documents == ["DOC-1", "DOC-2", "DOC-3", "DOC-4", "DOC-5"]
        assert found.overflow == 2
        assert "(+2 more)" in found.label

    def test_response_json_items_expanded(self):
        list_item = {
            "DocumentNumber": "DOC-9",
            "ResponseJSON": json.dumps(
                [
                    {"Id": "1", "ReferenceValue": "2.26", "Title": "Fridge temps", "SelectedChoice": "No"},
                    {"Id": "2", "ReferenceValue": "2.27", "Title": "Freezer temps", "SelectedChoice": "Yes"},
                ]
            ),
        }
        index = RepetitiveFindingIndex.from_records([list_item, {"DocumentNumber": "DOC-8", "ResponseJSON": "[{broken"}], CURRENT)

        assert index.lookup(make_item("2.26", Choice.NO)).documents == ["DOC-9"]
        assert index.lookup(make_item("2.27", Choice.NO)) is None

    def test_missing_reference_falls_back_to_title(self):
        record = {"DocumentNumber": "DOC-1", "Title": "Hand wash station stocked", "SelectedChoice": "No"}
        index = RepetitiveFindingIndex.from_records([record], CURRENT)

        current = make_item("4.1", Choice.NO, title="Hand wash station stocked")

        assert index.lookup(current).documents == ["DOC-1"]

    def test_to_dict(self):
        assert RepetitiveFinding(reference_value="1.2", count=1, documents=["DOC-1"]).to_dict() == {
            "reference_value": "1.2",
            "count": 1,
            "documents": ["DOC-1"],
            "overflow": 0,
        }


class TestLoad:
    @pytest.mark.asyncio
    async def test_unreachable_source_gives_empty_index(self):
        index = await RepetitiveFindingIndex.load(FakeAuditSource(failures=["get_historical_findings"]), "Store", CURRENT)
        assert len(index) == 0
        assert "unavailable" in index.warning

    @pytest.mark.asyncio
    async def test_sql_findings(self, seeded_session_factory, store_name, current_document):
        from d0_gateway.sql_source import SqlAuditSource

        index = await RepetitiveFindingIndex.load(SqlAuditSource(seeded_session_factory), store_name, current_document)
        found = index.lookup(make_item("1.2", Choice.NO))

        assert found.count == 2
        assert found.documents == ["GMRL-FSACR-0040", "GMRL-FSACR-0031"]
