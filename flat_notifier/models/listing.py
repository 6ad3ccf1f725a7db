"""
Listing data models for the Flat Notifier system.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

# The only listing kind the feed carries
FLATS_CATEGORY = "flats"
COMMERCIAL_CATEGORY = "commercial"

# Ids of placeholder listings produced for unparseable feed entries
INVALID_ID_PREFIX = "error-"


@dataclass
class RawFeedEntry:
    """One entry of the feed envelope; every field may be missing."""

    link: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    pub_date: Optional[str] = None


@dataclass
class Listing:
    """Parsed real-estate listing."""

    id: str
    title: str
    link: str
    price: str = ""
    price_value: Optional[int] = None
    price_per_m2: Optional[float] = None
    district: Optional[str] = None
    rooms: Optional[float] = None
    area: Optional[float] = None
    floor: Optional[str] = None
    category: str = FLATS_CATEGORY
    pub_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_placeholder(self) -> bool:
        """True for the stand-in record returned when parsing failed."""
        return self.id.startswith(INVALID_ID_PREFIX)

    def validate(self) -> bool:
        """Validate the listing data."""
        if not self.id or not self.id.strip():
            raise ValueError("Listing ID cannot be empty")

        if not self.link or not self.link.strip():
            raise ValueError("Listing link cannot be empty")

        parsed_url = urlparse(self.link)
        if not parsed_url.scheme or not parsed_url.netloc:
            raise ValueError(f"Invalid URL format: {self.link}")

        if not self.category or not self.category.strip():
            raise ValueError("Listing category cannot be empty")

        if self.rooms is not None and self.rooms < 0:
            raise ValueError("Room count cannot be negative")

        if self.area is not None and self.area < 0:
            raise ValueError("Area cannot be negative")

        return True


@dataclass
class ListingFilter:
    """Query shape shared by the listing store and the on-demand lookup."""

    category: Optional[str] = None
    district: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    rooms_min: Optional[float] = None
    rooms_max: Optional[float] = None
    area_min: Optional[float] = None
    area_max: Optional[float] = None
    created_since: Optional[datetime] = None
    require_price: bool = False


@dataclass
class IngestionResult:
    """Counters for one batch of feed entries pushed through parse + upsert."""

    created: int = 0
    existing: int = 0
    invalid: int = 0
    failed: int = 0
    created_ids: list = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.existing + self.invalid + self.failed
