"""
Unit tests for the RecordLocator cascade.

Filenames use the epoch 1700000000000 ms = 2023-11-14 22:13:20 UTC.
"""

import pytest
from datetime import datetime, timedelta

from models import InquiryRef, InquiryRefKind
from services.record_locator import (
    RecordLocator,
    parse_generation_time,
    parse_timestamp,
    resolve_inquiry,
)


GENERATED_AT = datetime(2023, 11, 14, 22, 13, 20)
RANDOM_NAME = "quotation-1700000000000-7421.pdf"


@pytest.fixture
def locator():
    return RecordLocator()


@pytest.fixture
def locate(database, locator):
    """Run the locator in its own session; returns (quotation_id, strategy) or None."""

    def _locate(filename):
        with database.session() as session:
            match = locator.locate(session, filename)
            if match is None:
                return None
            return match.quotation.id, match.strategy

    return _locate


class TestFilenameParsing:
    """Tests for timestamp extraction."""

    def test_millisecond_timestamp(self):
        assert parse_timestamp("1700000000000") == GENERATED_AT

    def test_second_timestamp(self):
        assert parse_timestamp("1700000000") == GENERATED_AT

    def test_random_suffix_tolerance(self):
        ts, tolerance = parse_generation_time(RANDOM_NAME)
        assert ts == GENERATED_AT
        assert tolerance == timedelta(seconds=5)

    def test_embedded_reference_tolerance(self):
        ts, tolerance = parse_generation_time("quotation_INQ251019001_1700000000000.pdf")
        assert ts == GENERATED_AT
        assert tolerance == timedelta(seconds=10)

    def test_unrecognized_name(self):
        assert parse_generation_time("invoice.pdf") is None


class TestInquiryRef:
    """Tests for the tagged inquiry reference."""

    def test_identifier_shape(self):
        ref = InquiryRef.parse("0123456789abcdef0123456789abcdef")
        assert ref.kind is InquiryRefKind.ID

    def test_number_shape(self):
        ref = InquiryRef.parse("INQ251019001")
        assert ref.kind is InquiryRefKind.NUMBER
        assert ref.value == "INQ251019001"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_ref(self, raw):
        assert InquiryRef.parse(raw) is None

    def test_resolve_inquiry_from_either_form(self, database, make_inquiry, make_quotation):
        inquiry = make_inquiry()
        by_id = make_quotation(inquiry.id)
        by_number = make_quotation(inquiry.inquiry_number)

        with database.session() as session:
            assert resolve_inquiry(session, by_id).id == inquiry.id
            assert resolve_inquiry(session, by_number).id == inquiry.id


class TestCascade:
    """Tests for matcher order and each matcher."""

    def test_strategy_order(self, locator):
        assert locator.strategies == ("exact", "fuzzy", "inquiry", "timestamp")

    def test_exact_pointer(self, locate, make_inquiry, make_quotation):
        make_inquiry()
        quotation = make_quotation("INQ251019001", artifact_pointer=RANDOM_NAME)

        assert locate(RANDOM_NAME) == (quotation.id, "exact")

    def test_exact_beats_later_strategies(self, locate, make_inquiry, make_quotation):
        make_inquiry()
        name = "quotation_INQ251019001_1700000000000.pdf"
        exact = make_quotation("INQ251019001", artifact_pointer=name)
        # Newer, and would win every later matcher
        make_quotation(
            "INQ251019001",
            artifact_pointer="archive-" + name,
            created_at=GENERATED_AT + timedelta(seconds=1),
        )

        assert locate(name) == (exact.id, "exact")

    def test_fuzzy_pointer_is_case_insensitive(self, locate, make_quotation):
        quotation = make_quotation("INQ-none", artifact_pointer="quotation-1700000000000-7421.pdf",
                                   created_at=datetime(2020, 1, 1))

        assert locate("QUOTATION-1700000000000-7421") == (quotation.id, "fuzzy")

    def test_inquiry_by_number_ref(self, locate, make_inquiry, make_quotation):
        make_inquiry(inquiry_number="INQ251019001")
        quotation = make_quotation("INQ251019001", created_at=datetime(2020, 1, 1))

        name = "quotation_INQ251019001_1700000000000.pdf"
        assert locate(name) == (quotation.id, "inquiry")

    def test_inquiry_by_id_ref(self, locate, make_inquiry, make_quotation):
        inquiry = make_inquiry(inquiry_number="INQ251019002")
        quotation = make_quotation(inquiry.id, created_at=datetime(2020, 1, 1))

        name = "quotation_INQ251019002_1700000000000.pdf"
        assert locate(name) == (quotation.id, "inquiry")

    def test_inquiry_picks_most_recent_quotation(self, locate, make_inquiry, make_quotation):
        inquiry = make_inquiry()
        make_quotation(inquiry.inquiry_number, created_at=datetime(2020, 1, 1))
        newest = make_quotation(inquiry.id, created_at=datetime(2021, 1, 1))

        name = "quotation_INQ251019001_1700000000000.pdf"
        assert locate(name) == (newest.id, "inquiry")

    def test_random_suffix_within_five_seconds(self, locate, make_quotation):
        make_quotation("INQ-a", created_at=GENERATED_AT - timedelta(seconds=3))
        closest_recent = make_quotation("INQ-b", created_at=GENERATED_AT + timedelta(seconds=2))
        make_quotation("INQ-c", created_at=GENERATED_AT + timedelta(seconds=8))

        assert locate(RANDOM_NAME) == (closest_recent.id, "timestamp")

    def test_embedded_reference_within_ten_seconds(self, locate, make_quotation):
        # No inquiry with this number, so only the timestamp can match
        quotation = make_quotation("INQ-a", created_at=GENERATED_AT + timedelta(seconds=8))

        assert locate("quotation_INQ999999999_1700000000000.pdf") == (quotation.id, "timestamp")

    @pytest.mark.parametrize("offset, found", [
        (5, True),
        (-5, True),
        (6, False),
        (-6, False),
    ])
    def test_random_suffix_window_edges(self, locate, make_quotation, offset, found):
        quotation = make_quotation("INQ-a", created_at=GENERATED_AT + timedelta(seconds=offset))

        expected = (quotation.id, "timestamp") if found else None
        assert locate(RANDOM_NAME) == expected

    @pytest.mark.parametrize("offset, found", [
        (10, True),
        (-10, True),
        (11, False),
        (-11, False),
    ])
    def test_embedded_reference_window_edges(self, locate, make_quotation, offset, found):
        quotation = make_quotation("INQ-a", created_at=GENERATED_AT + timedelta(seconds=offset))

        expected = (quotation.id, "timestamp") if found else None
        assert locate("quotation_INQ999999999_1700000000000.pdf") == expected

    @pytest.mark.parametrize("name", ["quotation.pdf", "q.pdf", "1.pdf", "_.pdf", "pdf"])
    def test_generic_names_do_not_match(self, locate, make_inquiry, make_quotation, name):
        make_inquiry(inquiry_number="INQ251019001")
        make_quotation("INQ251019001", artifact_pointer="quotation_INQ251019001_1760875200000.pdf",
                       created_at=datetime(2020, 1, 1))

        assert locate(name) is None

    def test_nothing_matches(self, locate, make_quotation):
        make_quotation("INQ-a", created_at=GENERATED_AT + timedelta(seconds=60))

        assert locate(RANDOM_NAME) is None

    def test_empty_database(self, locate):
        assert locate(RANDOM_NAME) is None
