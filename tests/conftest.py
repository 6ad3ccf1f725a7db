"""
Pytest configuration and shared fixtures.

This module provides common fixtures for the Flat Notifier test suite: an
in-memory database, the stores built on it, sample feed data and a stub
notifier that records what it was asked to send.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest

from flat_notifier.models.delivery import DeliveryResult
from flat_notifier.models.listing import Listing, RawFeedEntry
from flat_notifier.models.subscription import SubscriptionCriteria
from flat_notifier.services.database import Database
from flat_notifier.services.delivery_ledger import DeliveryLedger
from flat_notifier.services.failure_sink import FailureSink
from flat_notifier.services.listing_store import ListingStore
from flat_notifier.services.subscription_store import SubscriptionStore
from flat_notifier.utils.timeutils import utcnow

SAMPLE_DESCRIPTION = (
    'Iela: <b><a href="https://www.ss.lv/msg/lv/real-estate/flats/riga/teika/">'
    "Ropažu 10</a></b><br/>"
    "Pagasts: <b>Teika</b><br/>"
    "Ist.: <b>2</b><br/>"
    "m2: <b>54</b><br/>"
    "Stāvs: <b>3/5</b><br/>"
    "Sērija: <b>LT proj.</b><br/>"
    "M2 cena: <b>1,759 €</b><br/>"
    "Cena: <b>95 000 €</b><br/>"
)


class StubNotifier:
    """Notifier double that records messages instead of sending them."""

    def __init__(self, fail_for: Optional[List[str]] = None, raise_for=None):
        self.sent: List[Tuple[str, str]] = []
        self.fail_for = set(fail_for or [])
        self.raise_for = set(raise_for or [])

    def send(self, chat_id: str, text: str) -> DeliveryResult:
        if chat_id in self.raise_for:
            raise ConnectionError("Telegram unreachable")

        if chat_id in self.fail_for:
            return DeliveryResult(
                success=False,
                delivery_time=datetime.now(timezone.utc),
                error_message="Forbidden: bot was blocked by the user",
            )

        self.sent.append((chat_id, text))
        return DeliveryResult(
            success=True, delivery_time=datetime.now(timezone.utc), error_message=None
        )


# Test data fixtures
@pytest.fixture
def sample_raw_entry():
    """Create a sample RawFeedEntry for testing."""
    return RawFeedEntry(
        link="https://www.ss.lv/msg/lv/real-estate/flats/riga/teika/bxkfo.html",
        title="Ropažu 10, 2 ist., 54 m²",
        description=SAMPLE_DESCRIPTION,
        pub_date="Mon, 01 Jan 2024 12:00:00 +0200",
    )


@pytest.fixture
def sample_listing():
    """Create a sample Listing for testing."""
    return Listing(
        id="bxkfo",
        title="Ropažu 10, 2 ist., 54 m²",
        link="https://www.ss.lv/msg/lv/real-estate/flats/riga/teika/bxkfo.html",
        price="95 000 €",
        price_value=95000,
        price_per_m2=1759.0,
        district="Teika",
        rooms=2.0,
        area=54.0,
        floor="3/5",
        pub_date=datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def teika_criteria():
    """Two-room flats in Teika up to 100k."""
    return SubscriptionCriteria(district="teika", price_max=100000, rooms_min=2)


def make_listing(listing_id: str, **overrides) -> Listing:
    """Build a listing with sensible defaults."""
    fields = dict(
        id=listing_id,
        title=f"Listing {listing_id}",
        link=f"https://www.ss.lv/msg/lv/real-estate/flats/riga/centre/{listing_id}.html",
        price="80 000 €",
        price_value=80000,
        district="Centrs",
        rooms=2.0,
        area=50.0,
        created_at=utcnow(),
    )
    fields.update(overrides)
    return Listing(**fields)


def make_entry(listing_id: str, district: str = "Teika", price: str = "95 000 €") -> RawFeedEntry:
    """Build a raw feed entry with the usual description markup."""
    return RawFeedEntry(
        link=f"https://www.ss.lv/msg/lv/real-estate/flats/riga/x/{listing_id}.html",
        title=f"Flat {listing_id}",
        description=(
            f"Pagasts: <b>{district}</b><br/>Ist.: <b>2</b><br/>"
            f"m2: <b>50</b><br/>Cena: <b>{price}</b><br/>"
        ),
        pub_date="Mon, 01 Jan 2024 12:00:00 GMT",
    )


# Storage fixtures
@pytest.fixture
def database():
    """Fresh in-memory SQLite database with the schema created."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def listing_store(database):
    return ListingStore(database)


@pytest.fixture
def subscription_store(database):
    return SubscriptionStore(database)


@pytest.fixture
def ledger(database):
    return DeliveryLedger(database)


@pytest.fixture
def failure_sink(database):
    return FailureSink(database)


@pytest.fixture
def stub_notifier():
    return StubNotifier()
