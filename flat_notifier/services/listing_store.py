"""Listing persistence with create-if-absent semantics.

A listing is written once, the first time its id is seen. Later upserts of
the same id leave the stored row untouched.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..interfaces import IListingStore
from ..models.districts import normalize_district
from ..models.listing import Listing, ListingFilter
from ..utils.timeutils import utcnow
from .database import Database, ListingRow

logger = logging.getLogger(__name__)


class ListingStore(IListingStore):
    """SQLAlchemy-backed listing store."""

    def __init__(self, database: Database):
        self.database = database

    def upsert(self, listing: Listing) -> bool:
        """
        Store the listing unless its id is already known.

        Returns:
            True if a row was created, False if the listing already existed

        Raises:
            SQLAlchemyError: If the storage layer rejects the row
        """
        try:
            with self.database.session() as session:
                if session.get(ListingRow, listing.id) is not None:
                    logger.debug(f"Listing {listing.id} already stored")
                    return False

                session.add(self._to_row(listing))
        except IntegrityError:
            # A concurrent ingestion stored the same id (or link) first
            logger.debug(f"Listing {listing.id} stored concurrently, skipping")
            return False

        logger.debug(f"Stored listing {listing.id}")
        return True

    def get(self, listing_id: str) -> Optional[Listing]:
        with self.database.session() as session:
            row = session.get(ListingRow, listing_id)
            return self._to_listing(row) if row is not None else None

    def query(
        self, listing_filter: ListingFilter, limit: Optional[int] = None
    ) -> List[Listing]:
        """Listings matching the filter, newest first."""
        statement = self._filtered(select(ListingRow), listing_filter).order_by(
            ListingRow.created_at.desc(), ListingRow.id.desc()
        )
        if limit is not None:
            statement = statement.limit(limit)

        with self.database.session() as session:
            return [self._to_listing(row) for row in session.scalars(statement)]

    def find_latest(self, listing_filter: ListingFilter) -> Optional[Listing]:
        """Most recently created listing matching the filter."""
        listings = self.query(listing_filter, limit=1)
        return listings[0] if listings else None

    def count(self, listing_filter: Optional[ListingFilter] = None) -> int:
        statement = self._filtered(
            select(func.count()).select_from(ListingRow),
            listing_filter or ListingFilter(),
        )
        with self.database.session() as session:
            return session.scalar(statement) or 0

    @staticmethod
    def _filtered(statement, listing_filter: ListingFilter):
        conds = []

        if listing_filter.category:
            conds.append(ListingRow.category == listing_filter.category)

        district = normalize_district(listing_filter.district)
        if district:
            conds.append(ListingRow.district_key == district)

        if listing_filter.require_price:
            conds.append(ListingRow.price_value.is_not(None))

        ranges = (
            (ListingRow.price_value, listing_filter.price_min, listing_filter.price_max),
            (ListingRow.rooms, listing_filter.rooms_min, listing_filter.rooms_max),
            (ListingRow.area, listing_filter.area_min, listing_filter.area_max),
        )
        for column, minimum, maximum in ranges:
            if minimum is not None:
                conds.append(column >= minimum)
            if maximum is not None:
                conds.append(column <= maximum)

        if listing_filter.created_since is not None:
            conds.append(ListingRow.created_at >= listing_filter.created_since)

        return statement.where(*conds) if conds else statement

    @staticmethod
    def _to_row(listing: Listing) -> ListingRow:
        return ListingRow(
            id=listing.id,
            title=listing.title,
            price=listing.price,
            price_value=listing.price_value,
            price_per_m2=listing.price_per_m2,
            district=listing.district,
            district_key=normalize_district(listing.district),
            rooms=listing.rooms,
            area=listing.area,
            floor=listing.floor,
            category=listing.category,
            link=listing.link,
            pub_date=listing.pub_date,
            created_at=listing.created_at or utcnow(),
        )

    @staticmethod
    def _to_listing(row: ListingRow) -> Listing:
        return Listing(
            id=row.id,
            title=row.title,
            link=row.link,
            price=row.price,
            price_value=row.price_value,
            price_per_m2=row.price_per_m2,
            district=row.district,
            rooms=row.rooms,
            area=row.area,
            floor=row.floor,
            category=row.category,
            pub_date=row.pub_date,
            created_at=row.created_at,
        )
