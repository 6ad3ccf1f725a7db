"""
Unit tests for listing message formatting.
"""

from flat_notifier.components.listing_formatter import (
    COMMERCIAL_ICON,
    PRICE_FALLBACK,
    RESIDENTIAL_ICON,
    ListingFormatter,
    format_number,
)
from flat_notifier.models.listing import COMMERCIAL_CATEGORY, Listing


class TestListingFormatter:
    """Test cases for ListingFormatter class."""

    def setup_method(self):
        self.formatter = ListingFormatter()

    def test_full_listing(self, sample_listing):
        message = self.formatter.format_listing(sample_listing)

        assert message == "\n".join(
            [
                f"{RESIDENTIAL_ICON} New Listing Alert! {RESIDENTIAL_ICON}",
                "",
                "Title: Ropažu 10, 2 ist., 54 m²",
                "Price: 95 000 €",
                "Price per m²: 1759 €/m²",
                "Rooms: 2",
                "Area: 54 m²",
                "Floor: 3/5",
                "District: Teika",
                "",
                f"🔗 {sample_listing.link}",
            ]
        )

    def test_minimal_listing(self):
        listing = Listing(id="x", title="Flat", link="https://www.ss.lv/msg/x.html")

        message = self.formatter.format_listing(listing)

        assert f"Price: {PRICE_FALLBACK}" in message
        assert "Rooms:" not in message
        assert "Area:" not in message
        assert "Floor:" not in message
        assert "District:" not in message
        assert "Price per m²" not in message
        assert "Property Type" not in message
        assert message.endswith("🔗 https://www.ss.lv/msg/x.html")

    def test_commercial_marker_in_title(self, sample_listing):
        sample_listing.title = "Citi, telpas birojam"

        message = self.formatter.format_listing(sample_listing)

        assert message.startswith(f"{COMMERCIAL_ICON} New Listing Alert!")
        assert "Property Type: Commercial" in message

    def test_commercial_category(self, sample_listing):
        sample_listing.category = COMMERCIAL_CATEGORY

        assert ListingFormatter.is_commercial(sample_listing)
        assert "Property Type: Commercial" in self.formatter.format_listing(
            sample_listing
        )

    def test_fractional_rooms(self, sample_listing):
        sample_listing.rooms = 1.5

        assert "Rooms: 1.5" in self.formatter.format_listing(sample_listing)

    def test_format_number(self):
        assert format_number(2.0) == "2"
        assert format_number(2.5) == "2.5"
        assert format_number(3) == "3"
