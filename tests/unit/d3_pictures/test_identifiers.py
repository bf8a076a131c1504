"""
Tests for composite identifier parsing
"""
import pytest

from d3_pictures.identifiers import belongs_to, document_number_of, parse_composite_id, question_id_of

pytestmark = [pytest.mark.unit]


class TestParseCompositeId:
    def test_four_segments(self):
        parsed = parse_composite_id("GMRL-FSACR-0048-87")
        assert parsed.document_number == "GMRL-FSACR-0048"
        assert parsed.question_id == "87"
        assert parsed.is_composite

    def test_more_than_four_segments(self):
        parsed = parse_composite_id("GMRL-FSACR-0048-2-87")
        assert parsed.document_number == "GMRL-FSACR-0048"
        assert parsed.question_id == "87"

    @pytest.mark.parametrize("identifier", ["GMRL-FSACR-0048", "FSACR-87", "87", "", None])
    def test_short_identifiers_have_no_document(self, identifier):
        parsed = parse_composite_id(identifier)
        assert parsed.document_number is None
        assert not parsed.is_composite

    def test_plain_numeric_id_is_its_own_question(self):
        assert question_id_of("87") == "87"
        assert question_id_of(87) == "87"

    def test_trailing_segment_is_question(self):
        assert question_id_of("FSACR-87") == "87"

    def test_whitespace_stripped(self):
        assert document_number_of("  AAA-BBB-0001-12 ") == "AAA-BBB-0001"


class TestBelongsTo:
    def test_match(self):
        assert belongs_to("AAA-BBB-0001-12", "AAA-BBB-0001")

    def test_other_document(self):
        assert not belongs_to("AAA-BBB-0002-12", "AAA-BBB-0001")

    def test_short_identifier_excluded_without_error(self):
        assert not belongs_to("AAA-12", "AAA-BBB-0001")
        assert not belongs_to(None, "AAA-BBB-0001")
