"""
Feed entry parsing components for the Flat Notifier system.

This module converts raw feed entries into Listing objects. The description
markup of the feed is only loosely structured, so every field is pulled out
by its own label extractor and a malformed value leaves just that field unset.
"""

import json
import logging
import re
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from dateutil import parser as date_parser

from ..interfaces import IFailureSink
from ..models.failure import FailureType
from ..models.listing import FLATS_CATEGORY, INVALID_ID_PREFIX, Listing, RawFeedEntry
from ..utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

# Sentinel the feed uses in the rooms field for "other"
OTHER_ROOMS_VALUE = "Citi"


def _leading_number(text: str) -> float:
    """Parse the numeric prefix of text ("2.5 m" -> 2.5)."""
    match = re.match(r"\s*([-+]?\d+(?:\.\d+)?)", text)
    if not match:
        raise ValueError(f"No numeric value in '{text}'")
    return float(match.group(1))


class DescriptionExtractor:
    """Extracts labelled field values from description markup."""

    # Every pattern captures the bolded value that follows its label
    FIELD_PATTERNS = {
        "price": r"Cena:\s*<b>([^<]+)</b>",
        "price_per_m2": (
            r"(?:[Mm]2\s*[Cc]ena|[Cc]ena\s*(?:/|par)\s*[Mm]2)\s*:\s*<b>([^<]+)</b>"
        ),
        "district": r"Pagasts:\s*<b>([^<]+)</b>",
        "rooms": r"Ist\.:\s*<b>([^<]+)</b>",
        "area": r"(?<![/\w ])m2:\s*<b>([^<]+)</b>",
        "floor": r"Stāvs:\s*<b>([^<]+)</b>",
    }

    def __init__(self):
        """Initialize description extractor."""
        self.field_regexes = {
            name: re.compile(pattern) for name, pattern in self.FIELD_PATTERNS.items()
        }
        self.converters = {
            "price": self._convert_price,
            "price_per_m2": self._convert_price_per_m2,
            "district": self._convert_district,
            "rooms": self._convert_rooms,
            "area": self._convert_area,
            "floor": self._convert_floor,
        }

    def extract_fields(self, description: str) -> Dict[str, Any]:
        """
        Run every extractor over the description.

        Args:
            description: Description markup of a feed entry

        Returns:
            Mapping of listing attribute name to value; absent or malformed
            fields are simply missing from the mapping
        """
        fields: Dict[str, Any] = {}

        for name, regex in self.field_regexes.items():
            match = regex.search(description)
            if not match:
                continue

            try:
                fields.update(self.converters[name](match.group(1)))
            except ValueError as e:
                logger.debug(f"Ignoring malformed {name} value: {e}")

        return fields

    def _convert_price(self, value: str) -> Dict[str, Any]:
        price = value.strip()
        result: Dict[str, Any] = {"price": price}

        numeric_match = re.search(r"(\d[\d\s,]*)", price)
        if numeric_match:
            raw_price = re.sub(r"[\s,]+", "", numeric_match.group(1))
            result["price_value"] = int(raw_price)

        return result

    def _convert_price_per_m2(self, value: str) -> Dict[str, Any]:
        raw_value = re.sub(r"[\s,€]+", "", value)
        return {"price_per_m2": _leading_number(raw_value)}

    def _convert_district(self, value: str) -> Dict[str, Any]:
        district = value.strip()
        district = district.split("\n", 1)[0].strip()
        return {"district": district} if district else {}

    def _convert_rooms(self, value: str) -> Dict[str, Any]:
        rooms = value.strip()
        if rooms == OTHER_ROOMS_VALUE:
            return {}
        return {"rooms": _leading_number(rooms)}

    def _convert_area(self, value: str) -> Dict[str, Any]:
        return {"area": _leading_number(value.strip())}

    def _convert_floor(self, value: str) -> Dict[str, Any]:
        floor = value.strip()
        return {"floor": floor} if floor else {}


class FeedParser:
    """Main parser that converts feed entries to Listing objects."""

    ID_PATTERN = re.compile(r"/(\w+)\.html$")

    def __init__(
        self,
        failure_sink: Optional[IFailureSink] = None,
        category: str = FLATS_CATEGORY,
    ):
        """
        Initialize feed parser.

        Args:
            failure_sink: Where parse failures are recorded
            category: Category assigned to every parsed listing
        """
        self.failure_sink = failure_sink
        self.category = category
        self.extractor = DescriptionExtractor()

    def parse_entry(self, entry: RawFeedEntry) -> Listing:
        """
        Parse a raw feed entry into a Listing.

        Never raises. When the entry cannot be parsed the failure is recorded
        and a placeholder listing (see Listing.is_placeholder) is returned.

        Args:
            entry: Raw entry from the feed

        Returns:
            Parsed Listing or placeholder
        """
        try:
            link = entry.link or ""
            title = entry.title or ""
            description = entry.description or ""

            listing = Listing(
                id=self.extract_listing_id(link),
                title=title,
                link=link,
                category=self.category,
                pub_date=self._parse_pub_date(entry.pub_date),
            )

            for name, value in self.extractor.extract_fields(description).items():
                setattr(listing, name, value)

            logger.debug(f"Parsed listing {listing.id}: {listing.title}")
            return listing

        except Exception as e:
            logger.error(f"Error parsing feed entry: {e}")
            self._record_parse_failure(entry, e)
            return self._placeholder(entry)

    def extract_listing_id(self, link: str) -> str:
        """Stable id: the last path segment before '.html', else the whole link."""
        match = self.ID_PATTERN.search(link)
        return match.group(1) if match else link

    def _parse_pub_date(self, pub_date: Optional[str]) -> datetime:
        if not pub_date:
            return utcnow()

        try:
            return ensure_utc(date_parser.parse(pub_date))
        except (ValueError, OverflowError) as e:
            logger.warning(f"Could not parse date '{pub_date}': {e}")
            return utcnow()

    def _record_parse_failure(self, entry: RawFeedEntry, error: Exception) -> None:
        if self.failure_sink is None:
            return

        try:
            raw_data = json.dumps(asdict(entry), default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            raw_data = repr(entry)

        try:
            self.failure_sink.record_failure(
                FailureType.PARSING_ERROR,
                error=f"RSS parsing error: {error}",
                title=self._safe_text(getattr(entry, "title", None)) or "unknown",
                link=self._safe_text(getattr(entry, "link", None)) or "unknown",
                raw_data=raw_data,
            )
        except Exception as sink_error:
            logger.error(f"Failed to record parsing error: {sink_error}")

    def _placeholder(self, entry: RawFeedEntry) -> Listing:
        return Listing(
            id=f"{INVALID_ID_PREFIX}{int(time.time() * 1000)}",
            title=self._safe_text(getattr(entry, "title", None)) or "Parsing Error",
            link=self._safe_text(getattr(entry, "link", None)) or "",
            category=self.category,
            pub_date=utcnow(),
        )

    @staticmethod
    def _safe_text(value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None
