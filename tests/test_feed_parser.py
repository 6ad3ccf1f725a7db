"""
Unit tests for feed entry parsing.
"""

import json
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from flat_notifier.components.feed_parser import DescriptionExtractor, FeedParser
from flat_notifier.models.failure import FailureType
from flat_notifier.models.listing import FLATS_CATEGORY, RawFeedEntry


class TestDescriptionExtractor:
    """Test cases for DescriptionExtractor class."""

    def setup_method(self):
        self.extractor = DescriptionExtractor()

    def test_extracts_all_fields(self, sample_raw_entry):
        fields = self.extractor.extract_fields(sample_raw_entry.description)

        assert fields["price"] == "95 000 €"
        assert fields["price_value"] == 95000
        assert fields["price_per_m2"] == 1759.0
        assert fields["district"] == "Teika"
        assert fields["rooms"] == 2.0
        assert fields["area"] == 54.0
        assert fields["floor"] == "3/5"

    def test_empty_description(self):
        assert self.extractor.extract_fields("") == {}

    def test_price_with_comma_grouping(self):
        fields = self.extractor.extract_fields("Cena: <b>1,250,000 €</b>")

        assert fields["price"] == "1,250,000 €"
        assert fields["price_value"] == 1250000

    def test_price_without_number_keeps_text(self):
        fields = self.extractor.extract_fields("Cena: <b>pēc vienošanās</b>")

        assert fields["price"] == "pēc vienošanās"
        assert "price_value" not in fields

    def test_rooms_other_is_absent(self):
        fields = self.extractor.extract_fields("Ist.: <b>Citi</b>")

        assert "rooms" not in fields

    def test_fractional_rooms(self):
        fields = self.extractor.extract_fields("Ist.: <b>1.5</b>")

        assert fields["rooms"] == 1.5

    def test_district_cut_at_newline(self):
        fields = self.extractor.extract_fields("Pagasts: <b>Centrs\nRīga</b>")

        assert fields["district"] == "Centrs"

    def test_malformed_field_leaves_others(self):
        fields = self.extractor.extract_fields(
            "m2: <b>nezināms</b><br/>Ist.: <b>3</b>"
        )

        assert "area" not in fields
        assert fields["rooms"] == 3.0

    def test_price_per_m2_requires_its_label(self):
        # An unrelated bolded field must not be taken for the price per m2
        fields = self.extractor.extract_fields(
            "Iela: <b>Brīvības 100</b><br/>Cena: <b>70 000 €</b>"
        )

        assert "price_per_m2" not in fields
        assert fields["price_value"] == 70000

    @pytest.mark.parametrize("label", ["Cena/m2", "Cena par m2"])
    def test_area_not_taken_from_price_per_m2(self, label):
        fields = self.extractor.extract_fields(
            f"{label}: <b>1 759 €</b><br/>m2: <b>54</b><br/>"
        )

        assert fields["price_per_m2"] == 1759.0
        assert fields["area"] == 54.0


class TestFeedParser:
    """Test cases for FeedParser class."""

    def test_parse_complete_entry(self, sample_raw_entry):
        listing = FeedParser().parse_entry(sample_raw_entry)

        assert listing.id == "bxkfo"
        assert listing.title == "Ropažu 10, 2 ist., 54 m²"
        assert listing.link == sample_raw_entry.link
        assert listing.price_value == 95000
        assert listing.district == "Teika"
        assert listing.rooms == 2
        assert listing.category == FLATS_CATEGORY
        assert listing.pub_date == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert not listing.is_placeholder

    def test_entry_with_only_three_fields(self):
        entry = RawFeedEntry(
            link="https://www.ss.lv/msg/lv/real-estate/flats/riga/teika/abc.html",
            description=(
                "Cena: <b>95 000 €</b><br/>Pagasts: <b>Teika</b><br/>Ist.: <b>2</b>"
            ),
        )

        listing = FeedParser().parse_entry(entry)

        assert listing.price_value == 95000
        assert listing.district == "Teika"
        assert listing.rooms == 2
        assert listing.area is None
        assert listing.floor is None
        assert listing.price_per_m2 is None

    def test_entry_missing_every_field(self):
        before = datetime.now(timezone.utc)

        listing = FeedParser().parse_entry(RawFeedEntry())

        assert listing.id == ""
        assert listing.title == ""
        assert listing.link == ""
        assert listing.price == ""
        assert listing.price_value is None
        assert listing.pub_date >= before

    def test_unparseable_date_uses_now(self, sample_raw_entry):
        sample_raw_entry.pub_date = "not a date"
        before = datetime.now(timezone.utc)

        listing = FeedParser().parse_entry(sample_raw_entry)

        assert listing.pub_date >= before
        assert listing.pub_date.tzinfo is not None

    def test_id_is_deterministic(self):
        parser = FeedParser()
        link = "https://www.ss.lv/msg/lv/real-estate/flats/riga/centre/dgkjx.html"

        assert parser.extract_listing_id(link) == "dgkjx"
        assert parser.extract_listing_id(link) == parser.extract_listing_id(link)

    def test_id_falls_back_to_link(self):
        link = "https://www.ss.lv/msg/lv/real-estate/flats/riga/centre/"

        assert FeedParser().extract_listing_id(link) == link

    def test_configured_category(self, sample_raw_entry):
        listing = FeedParser(category="commercial").parse_entry(sample_raw_entry)

        assert listing.category == "commercial"

    def test_malformed_entry_yields_placeholder(self):
        sink = Mock()
        entry = RawFeedEntry(link=12345, title="Broken entry")

        listing = FeedParser(failure_sink=sink).parse_entry(entry)

        assert listing.is_placeholder
        assert listing.title == "Broken entry"
        sink.record_failure.assert_called_once()
        args, kwargs = sink.record_failure.call_args
        assert args[0] == FailureType.PARSING_ERROR
        assert json.loads(kwargs["raw_data"])["title"] == "Broken entry"

    def test_placeholder_without_sink(self):
        listing = FeedParser().parse_entry(RawFeedEntry(link=["not", "a", "string"]))

        assert listing.is_placeholder
        assert listing.title == "Parsing Error"

    def test_sink_error_does_not_escape(self):
        sink = Mock()
        sink.record_failure.side_effect = RuntimeError("disk full")

        listing = FeedParser(failure_sink=sink).parse_entry(RawFeedEntry(link=1))

        assert listing.is_placeholder

    @pytest.mark.parametrize("rooms", ["Citi", " Citi "])
    def test_rooms_other_never_zero(self, rooms):
        entry = RawFeedEntry(
            link="https://www.ss.lv/msg/a.html", description=f"Ist.: <b>{rooms}</b>"
        )

        listing = FeedParser().parse_entry(entry)

        assert listing.rooms is None
