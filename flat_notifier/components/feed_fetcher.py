"""
Feed fetching components for the Flat Notifier system.

This module retrieves the listings RSS feed (the base feed or a
district-scoped one) and unpacks its envelope into raw entries. Network and
envelope errors degrade to an empty result.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional
from urllib.parse import urlencode

import feedparser
import requests

from ..models.config import DEFAULT_DISTRICT_BASE_URL, DEFAULT_FEED_URL
from ..models.listing import RawFeedEntry
from ..utils.error_handling import ErrorCategory, ErrorSeverity, get_error_tracker

logger = logging.getLogger(__name__)

# Query slots of the district feed: topt[8] is price, topt[1] is rooms
PRICE_SLOT = "topt[8]"
ROOMS_SLOT = "topt[1]"


class FeedFetcher:
    """Retrieves raw entries from the listings feed."""

    def __init__(
        self,
        feed_url: str = DEFAULT_FEED_URL,
        district_base_url: str = DEFAULT_DISTRICT_BASE_URL,
        timeout: float = 10.0,
    ):
        """
        Initialize feed fetcher.

        Args:
            feed_url: Base RSS feed URL
            district_base_url: Prefix of district feeds ("<prefix><district>/rss/")
            timeout: Request timeout in seconds
        """
        self.feed_url = feed_url
        self.district_base_url = district_base_url
        self.timeout = timeout

        self.last_fetch_time: Optional[datetime] = None
        self.consecutive_failures = 0

        self.session = requests.Session()
        self.session.headers.update(
            {"User-Agent": "Flat-Notifier/0.1 (RSS Monitor)"}
        )

    def fetch_default(self) -> List[RawFeedEntry]:
        """Fetch entries from the base feed."""
        return self.fetch_feed(self.feed_url)

    def fetch_by_district(
        self,
        district: str,
        price_min: Optional[float] = None,
        price_max: Optional[float] = None,
        rooms_min: Optional[float] = None,
        rooms_max: Optional[float] = None,
    ) -> List[RawFeedEntry]:
        """
        Fetch entries from a district feed.

        Args:
            district: District key (e.g. 'centre', 'teika')
            price_min: Minimum price query filter
            price_max: Maximum price query filter
            rooms_min: Minimum rooms query filter
            rooms_max: Maximum rooms query filter

        Returns:
            List of raw entries, empty on any failure
        """
        return self.fetch_feed(
            self.build_district_url(district, price_min, price_max, rooms_min, rooms_max)
        )

    def build_district_url(
        self,
        district: str,
        price_min: Optional[float] = None,
        price_max: Optional[float] = None,
        rooms_min: Optional[float] = None,
        rooms_max: Optional[float] = None,
    ) -> str:
        """Build the district feed URL; zero or unset bounds are left out."""
        url = f"{self.district_base_url}{district}/rss/"

        params = []
        for slot, bound, value in (
            (PRICE_SLOT, "min", price_min),
            (PRICE_SLOT, "max", price_max),
            (ROOMS_SLOT, "min", rooms_min),
            (ROOMS_SLOT, "max", rooms_max),
        ):
            if value:
                params.append((f"{slot}[{bound}]", self._format_param(value)))

        if params:
            url += f"?{urlencode(params)}"

        return url

    def fetch_feed(self, url: str) -> List[RawFeedEntry]:
        """
        Fetch a feed and unpack its entries.

        Args:
            url: Feed URL

        Returns:
            List of raw entries, empty on network or envelope failure
        """
        content = self._download(url)
        if content is None:
            return []

        return self.parse_envelope(content)

    def parse_envelope(self, content: Any) -> List[RawFeedEntry]:
        """
        Unpack the RSS envelope into raw entries.

        Args:
            content: Feed document (bytes or str)

        Returns:
            List of raw entries, empty if the envelope is not a usable feed
        """
        try:
            parsed_feed = feedparser.parse(content)
        except Exception as e:
            logger.error(f"Failed to parse RSS feed data: {e}")
            return []

        if parsed_feed.bozo:
            logger.warning(f"RSS feed parsing warning: {parsed_feed.bozo_exception}")

        if not parsed_feed.get("version") and not parsed_feed.entries:
            logger.error("Invalid RSS feed structure")
            return []

        entries = [self._to_raw_entry(entry) for entry in parsed_feed.entries]
        if not entries:
            logger.warning("RSS feed contains no entries")

        return entries

    def _download(self, url: str) -> Optional[bytes]:
        try:
            logger.info(f"Fetching RSS feed from: {url}")

            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()

            self.consecutive_failures = 0
            self.last_fetch_time = datetime.now()

            return response.content

        except requests.exceptions.Timeout:
            self._record_failure(url, f"Timeout after {self.timeout}s")
            return None

        except requests.exceptions.ConnectionError as e:
            self._record_failure(url, f"Connection error: {e}")
            return None

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            self._record_failure(url, f"HTTP error {status}")
            return None

        except requests.exceptions.RequestException as e:
            self._record_failure(url, f"Request failed: {e}")
            return None

    def _record_failure(self, url: str, reason: str) -> None:
        self.consecutive_failures += 1
        logger.warning(
            f"Failed to fetch RSS feed {url}: {reason} "
            f"(failure #{self.consecutive_failures})"
        )
        get_error_tracker().record_error(
            component="feed_fetcher",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.LOW,
            message=reason,
            context={"url": url, "consecutive_failures": self.consecutive_failures},
        )

    @staticmethod
    def _to_raw_entry(entry: Any) -> RawFeedEntry:
        return RawFeedEntry(
            link=entry.get("link"),
            title=entry.get("title"),
            description=entry.get("description"),
            pub_date=entry.get("published"),
        )

    @staticmethod
    def _format_param(value: float) -> str:
        return str(int(value)) if float(value).is_integer() else str(value)
