"""
Listing message formatting for the Flat Notifier system.

Renders a listing as the plain-text chat message used both for scheduled
notifications and for on-demand lookups. Formatting has no side effects.
"""

from typing import Optional, Union

from ..models.listing import COMMERCIAL_CATEGORY, Listing

RESIDENTIAL_ICON = "🏠"
COMMERCIAL_ICON = "🏢"

# Title marker the feed uses for non-residential property
COMMERCIAL_TITLE_MARKER = "Citi"

PRICE_FALLBACK = "Contact for price"


def format_number(value: Union[int, float]) -> str:
    """Drop a trailing '.0' so 2.0 rooms reads as '2'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ListingFormatter:
    """Formats listings into notification messages."""

    def format_listing(self, listing: Listing) -> str:
        """
        Format a listing into a message.

        Args:
            listing: Listing to render

        Returns:
            Message text
        """
        is_commercial = self.is_commercial(listing)
        icon = COMMERCIAL_ICON if is_commercial else RESIDENTIAL_ICON

        lines = [
            f"{icon} New Listing Alert! {icon}",
            "",
            f"Title: {listing.title}",
            f"Price: {listing.price or PRICE_FALLBACK}",
        ]

        if listing.price_per_m2:
            lines.append(f"Price per m²: {format_number(listing.price_per_m2)} €/m²")

        optional_lines = (
            ("Rooms", self._maybe_number(listing.rooms)),
            ("Area", self._maybe_area(listing.area)),
            ("Floor", listing.floor),
            ("District", listing.district),
        )
        for label, value in optional_lines:
            if value:
                lines.append(f"{label}: {value}")

        if is_commercial:
            lines.append("Property Type: Commercial")

        lines.extend(["", f"🔗 {listing.link}"])

        return "\n".join(lines)

    @staticmethod
    def is_commercial(listing: Listing) -> bool:
        """Commercial if the title carries the marker or the category says so."""
        return (
            COMMERCIAL_TITLE_MARKER in (listing.title or "")
            or listing.category == COMMERCIAL_CATEGORY
        )

    @staticmethod
    def _maybe_number(value: Optional[float]) -> Optional[str]:
        return format_number(value) if value else None

    @staticmethod
    def _maybe_area(value: Optional[float]) -> Optional[str]:
        return f"{format_number(value)} m²" if value else None
