"""Subscription matcher deciding whether a listing satisfies a saved filter."""

import logging
from typing import Optional

from ..models.districts import normalize_district
from ..models.listing import Listing
from ..models.subscription import SubscriptionCriteria

logger = logging.getLogger(__name__)


class RangeFilter:
    """Inclusive numeric bound check that lets missing values through."""

    def __init__(self, minimum: Optional[float] = None, maximum: Optional[float] = None):
        """Initialize range filter with optional bounds."""
        self.minimum = minimum
        self.maximum = maximum

    def check(self, value: Optional[float]) -> bool:
        """Check a listing value against the bounds."""
        if value is None:
            return True  # No information available, let it pass

        if self.minimum is not None and value < self.minimum:
            return False

        if self.maximum is not None and value > self.maximum:
            return False

        return True


class SubscriptionMatcher:
    """
    Pure predicate over (listing, criteria).

    Matching is permissive: an unset criterion always passes and a listing
    lacking a bounded attribute passes that bound.
    """

    def matches(self, listing: Listing, criteria: SubscriptionCriteria) -> bool:
        """Return True if the listing satisfies the criteria."""
        if listing.category != criteria.category:
            return False

        if not self._check_district(listing.district, criteria.district):
            return False

        ranges = (
            ("price", listing.price_value, criteria.price_min, criteria.price_max),
            ("rooms", listing.rooms, criteria.rooms_min, criteria.rooms_max),
            ("area", listing.area, criteria.area_min, criteria.area_max),
        )
        for name, value, minimum, maximum in ranges:
            if not RangeFilter(minimum, maximum).check(value):
                logger.debug(
                    f"Listing {listing.id} rejected on {name}: {value} "
                    f"not in [{minimum}, {maximum}]"
                )
                return False

        return True

    @staticmethod
    def _check_district(
        listing_district: Optional[str], wanted_district: Optional[str]
    ) -> bool:
        wanted = normalize_district(wanted_district)
        if wanted is None:
            return True

        return normalize_district(listing_district) == wanted
