"""
Poll service for the Flat Notifier system.

Runs one poll cycle: fetch the feed, ingest new listings, match listings
created within the recent window against every subscription, and notify
each user at most once per listing. Per-item failures are routed to the
failure sink and never abort the cycle.

Also hosts the on-demand latest-listing lookup, which reuses the same
ingestion path so manual lookups backfill the store.
"""

import threading
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..interfaces import (
    IDeliveryLedger,
    IFailureSink,
    IFeedFetcher,
    IFeedParser,
    IListingFormatter,
    IListingStore,
    INotifier,
    ISubscriptionMatcher,
    ISubscriptionStore,
)
from ..models.cycle import CycleReport, CycleState
from ..models.districts import district_key
from ..models.failure import FailureType
from ..models.listing import IngestionResult, Listing, ListingFilter, RawFeedEntry
from ..models.subscription import Subscription, SubscriptionCriteria
from ..utils.error_handling import DuplicateDeliveryError
from ..utils.logging import get_logger
from ..utils.timeutils import utcnow

DEFAULT_RECENT_WINDOW = timedelta(minutes=10)

# Recorded when the transport reports failure without a reason
DELIVERY_FAILED = "Delivery failed"


class PollService:
    """Drives the fetch, ingest, match and notify pipeline."""

    def __init__(
        self,
        fetcher: IFeedFetcher,
        parser: IFeedParser,
        listing_store: IListingStore,
        subscription_store: ISubscriptionStore,
        ledger: IDeliveryLedger,
        matcher: ISubscriptionMatcher,
        formatter: IListingFormatter,
        notifier: INotifier,
        failure_sink: IFailureSink,
        recent_window: timedelta = DEFAULT_RECENT_WINDOW,
    ):
        """
        Initialize the poll service.

        Args:
            fetcher: Feed fetcher
            parser: Feed entry parser
            listing_store: Listing store
            subscription_store: Source of every user subscription
            ledger: Delivery ledger used as the dedup gate
            matcher: Subscription matcher
            formatter: Listing message formatter
            notifier: Message transport
            failure_sink: Failure audit trail
            recent_window: Trailing span of ingestion time matched each cycle
        """
        self.fetcher = fetcher
        self.parser = parser
        self.listing_store = listing_store
        self.subscription_store = subscription_store
        self.ledger = ledger
        self.matcher = matcher
        self.formatter = formatter
        self.notifier = notifier
        self.failure_sink = failure_sink
        self.recent_window = recent_window

        self.logger = get_logger("services.poll_service")
        self.state = CycleState.IDLE
        self.last_report: Optional[CycleReport] = None
        self._cycle_lock = threading.Lock()

    @property
    def cycle_running(self) -> bool:
        return self._cycle_lock.locked()

    def run_cycle(self) -> CycleReport:
        """
        Run one complete poll cycle.

        Cycles are serialized: a caller arriving while another cycle runs
        waits for it to finish before starting its own.

        Returns:
            CycleReport with the counters of this cycle
        """
        with self._cycle_lock:
            report = CycleReport(started_at=utcnow())
            try:
                self._run_cycle(report)
            finally:
                self.state = CycleState.IDLE
                report.finished_at = utcnow()
                self.last_report = report

            self.logger.info(
                "Poll cycle finished",
                extra={
                    "fetched": report.fetched,
                    "created": report.created,
                    "recent": report.recent_listings,
                    "sent": report.sent,
                    "send_failures": report.send_failures,
                    "ledger_failures": report.ledger_failures,
                    "duration_seconds": report.duration_seconds,
                },
            )
            return report

    def _run_cycle(self, report: CycleReport) -> None:
        self._enter(CycleState.FETCHING, report)
        entries = self.fetcher.fetch_default()
        report.fetched = len(entries)
        if not entries:
            self.logger.info("No feed entries fetched, nothing to do this cycle")
            return

        self._enter(CycleState.INGESTING, report)
        ingestion = self.ingest_entries(entries)
        report.created = ingestion.created
        report.existing = ingestion.existing
        report.invalid_entries = ingestion.invalid
        report.storage_failures = ingestion.failed

        self._enter(CycleState.MATCHING, report)
        recent = self.listing_store.query(
            ListingFilter(created_since=utcnow() - self.recent_window)
        )
        report.recent_listings = len(recent)
        if not recent:
            self.logger.debug("No recent listings to match")
            return

        subscriptions = self.subscription_store.list_all_subscriptions()
        for listing in recent:
            self._process_listing(listing, subscriptions, report)

    def _enter(self, state: CycleState, report: CycleReport) -> None:
        self.state = state
        report.last_state = state

    def ingest_entries(self, entries: List[RawFeedEntry]) -> IngestionResult:
        """
        Parse entries and store every valid listing.

        Placeholder listings from failed parses are skipped; the parser has
        already recorded their failure.
        """
        result = IngestionResult()

        for entry in entries:
            listing = self.parser.parse_entry(entry)
            if listing.is_placeholder:
                result.invalid += 1
                continue

            try:
                listing.validate()
            except ValueError as e:
                result.invalid += 1
                self.failure_sink.record_failure(
                    FailureType.INVALID_DATA,
                    f"Invalid listing: {e}",
                    listing_id=listing.id,
                    title=listing.title,
                    link=listing.link,
                )
                continue

            try:
                created = self.listing_store.upsert(listing)
            except SQLAlchemyError as e:
                result.failed += 1
                self.logger.error(
                    "Failed to store listing",
                    extra={"listing_id": listing.id, "error": str(e)},
                )
                self.failure_sink.record_failure(
                    FailureType.INVALID_DATA,
                    f"Database storage error: {e}",
                    listing_id=listing.id,
                    title=listing.title,
                    link=listing.link,
                    context={"price": listing.price, "district": listing.district},
                )
                continue

            if created:
                result.created += 1
                result.created_ids.append(listing.id)
            else:
                result.existing += 1

        self.logger.info(
            "Ingested feed entries",
            extra={
                "processed": result.processed,
                "created": result.created,
                "existing": result.existing,
                "invalid": result.invalid,
                "failed": result.failed,
            },
        )
        return result

    def _process_listing(
        self,
        listing: Listing,
        subscriptions: List[Subscription],
        report: CycleReport,
    ) -> None:
        if listing.price_value is None or listing.price_value <= 0:
            report.invalid_price += 1
            self.failure_sink.record_failure(
                FailureType.INVALID_DATA,
                f"Invalid price value: {listing.price_value}",
                listing_id=listing.id,
                title=listing.title,
                link=listing.link,
                context={"price": listing.price},
            )
            return

        message = None
        for subscription in subscriptions:
            if not self.matcher.matches(listing, subscription.criteria):
                continue

            report.matched += 1
            try:
                notified = self.ledger.already_notified(
                    subscription.user_chat_id, listing.id
                )
            except SQLAlchemyError as e:
                # Unknown delivery state: no send, the pair is retried next cycle
                report.ledger_failures += 1
                self._record_delivery_failure(
                    listing, subscription, f"Delivery ledger error: {e}"
                )
                continue

            if notified:
                report.already_sent += 1
                continue

            self._enter(CycleState.NOTIFYING, report)
            if message is None:
                message = self.formatter.format_listing(listing)
            self._deliver(listing, subscription, message, report)

    def _deliver(
        self,
        listing: Listing,
        subscription: Subscription,
        message: str,
        report: CycleReport,
    ) -> None:
        chat_id = subscription.user_chat_id
        try:
            result = self.notifier.send(chat_id, message)
            error = None if result.success else (result.error_message or DELIVERY_FAILED)
        except Exception as e:
            error = str(e) or e.__class__.__name__

        if error is not None:
            report.send_failures += 1
            self._record_delivery_failure(listing, subscription, error)
            return

        report.sent += 1
        try:
            self.ledger.record_notified(chat_id, listing.id)
        except DuplicateDeliveryError as e:
            self.logger.warning(
                "Delivery already recorded",
                extra={"listing_id": listing.id, "user_chat_id": chat_id, "error": str(e)},
            )
            return
        except SQLAlchemyError as e:
            report.ledger_failures += 1
            self.logger.error(
                "Delivered but not recorded",
                extra={"listing_id": listing.id, "user_chat_id": chat_id, "error": str(e)},
            )
            self._record_delivery_failure(
                listing, subscription, f"Delivery ledger error: {e}"
            )
            return

        self.logger.info(
            "Listing delivered",
            extra={
                "listing_id": listing.id,
                "user_chat_id": chat_id,
                "subscription_id": subscription.id,
            },
        )

    def _record_delivery_failure(
        self, listing: Listing, subscription: Subscription, error: str
    ) -> None:
        self.failure_sink.record_failure(
            FailureType.NOTIFICATION_ERROR,
            error,
            listing_id=listing.id,
            title=listing.title,
            link=listing.link,
            context={
                "user_chat_id": subscription.user_chat_id,
                "subscription_id": subscription.id,
            },
        )

    def get_latest_listing(self, criteria: SubscriptionCriteria) -> Optional[Listing]:
        """
        Fetch fresh data and return the newest stored listing matching the criteria.

        A district-scoped feed is fetched when the criteria name a district,
        otherwise the default feed. Only listings with a price qualify.
        """
        if criteria.district:
            entries = self.fetcher.fetch_by_district(
                district_key(criteria.district) or criteria.district.strip(),
                price_min=criteria.price_min,
                price_max=criteria.price_max,
                rooms_min=criteria.rooms_min,
                rooms_max=criteria.rooms_max,
            )
        else:
            entries = self.fetcher.fetch_default()

        if entries:
            self.ingest_entries(entries)

        return self.listing_store.find_latest(
            ListingFilter(
                category=criteria.category,
                district=criteria.district,
                price_min=criteria.price_min,
                price_max=criteria.price_max,
                rooms_min=criteria.rooms_min,
                rooms_max=criteria.rooms_max,
                area_min=criteria.area_min,
                area_max=criteria.area_max,
                require_price=True,
            )
        )
