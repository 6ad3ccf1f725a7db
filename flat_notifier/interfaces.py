"""
Protocol interfaces for the Flat Notifier system.

This module defines the protocol interfaces that establish the pipeline
boundaries and enable dependency injection throughout the application.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional, Protocol

from .models.delivery import DeliveryRecord, DeliveryResult
from .models.failure import FailureRecord, FailureStats, FailureType
from .models.listing import Listing, ListingFilter, RawFeedEntry
from .models.subscription import Subscription, SubscriptionCriteria


class IFeedFetcher(Protocol):
    """Protocol for retrieving raw feed entries."""

    def fetch_default(self) -> List[RawFeedEntry]:
        """Fetch entries from the base feed."""
        ...

    def fetch_by_district(
        self,
        district: str,
        price_min: Optional[float] = None,
        price_max: Optional[float] = None,
        rooms_min: Optional[float] = None,
        rooms_max: Optional[float] = None,
    ) -> List[RawFeedEntry]:
        """Fetch entries from a district-scoped feed."""
        ...


class IFeedParser(Protocol):
    """Protocol for turning raw entries into listings."""

    def parse_entry(self, entry: RawFeedEntry) -> Listing:
        """Parse an entry; unparseable entries yield a placeholder listing."""
        ...


class IListingStore(Protocol):
    """Protocol for listing persistence."""

    def upsert(self, listing: Listing) -> bool:
        """Create the listing if absent. Returns False when it already existed."""
        ...

    def query(
        self, listing_filter: ListingFilter, limit: Optional[int] = None
    ) -> List[Listing]:
        """Filtered listings, newest first."""
        ...

    def find_latest(self, listing_filter: ListingFilter) -> Optional[Listing]:
        """Most recently created listing matching the filter."""
        ...

    def count(self, listing_filter: Optional[ListingFilter] = None) -> int:
        """Number of stored listings matching the filter."""
        ...


class IFailureSink(Protocol):
    """Protocol for the failure audit trail."""

    def record_failure(
        self,
        failure_type: FailureType,
        error: str,
        listing_id: Optional[str] = None,
        title: Optional[str] = None,
        link: Optional[str] = None,
        raw_data: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[FailureRecord]:
        """Append a failure record."""
        ...

    def list_failures(
        self,
        failure_type: Optional[FailureType] = None,
        resolved: Optional[bool] = False,
        limit: int = 50,
    ) -> List[FailureRecord]:
        """List failures, newest first."""
        ...

    def mark_resolved(self, failure_id: str) -> FailureRecord:
        """Flag a failure as resolved."""
        ...

    def stats(self, since: timedelta = timedelta(hours=24)) -> FailureStats:
        """Aggregate failure counters."""
        ...


class ISubscriptionStore(Protocol):
    """Protocol for users and their saved filters."""

    def ensure_user(self, chat_id: str) -> bool:
        """Create the user on first interaction."""
        ...

    def create_subscription(
        self, chat_id: str, criteria: SubscriptionCriteria
    ) -> Subscription:
        """Save a new filter for the user."""
        ...

    def list_subscriptions(self, chat_id: str) -> List[Subscription]:
        """Filters owned by the user."""
        ...

    def list_all_subscriptions(self) -> List[Subscription]:
        """Every saved filter."""
        ...

    def get_subscription(self, chat_id: str, subscription_id: str) -> Subscription:
        """Owner-scoped lookup."""
        ...

    def remove_subscription(self, chat_id: str, subscription_id: str) -> None:
        """Owner-scoped delete."""
        ...


class IDeliveryLedger(Protocol):
    """Protocol for the at-most-once delivery record."""

    def already_notified(self, user_chat_id: str, listing_id: str) -> bool:
        """True if the user was already sent the listing."""
        ...

    def record_notified(self, user_chat_id: str, listing_id: str) -> DeliveryRecord:
        """Record a delivery; duplicates raise DuplicateDeliveryError."""
        ...


class ISubscriptionMatcher(Protocol):
    """Protocol for subscription matching."""

    def matches(self, listing: Listing, criteria: SubscriptionCriteria) -> bool:
        """True if the listing satisfies the criteria."""
        ...


class IListingFormatter(Protocol):
    """Protocol for rendering listings as chat messages."""

    def format_listing(self, listing: Listing) -> str:
        """Human-readable message for a listing."""
        ...


class INotifier(Protocol):
    """Protocol for delivering a message to a user."""

    def send(self, chat_id: str, text: str) -> DeliveryResult:
        """Send text to the chat."""
        ...
