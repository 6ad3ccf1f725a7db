"""Delivery ledger: the durable set of (user, listing) pairs already notified."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..interfaces import IDeliveryLedger
from ..models.delivery import DeliveryRecord
from ..utils.error_handling import DuplicateDeliveryError
from ..utils.timeutils import utcnow
from .database import Database, SentListingRow

logger = logging.getLogger(__name__)


class DeliveryLedger(IDeliveryLedger):
    """At-most-once delivery record keyed by (user chat id, listing id)."""

    def __init__(self, database: Database):
        self.database = database

    def already_notified(self, user_chat_id: str, listing_id: str) -> bool:
        with self.database.session() as session:
            return (
                session.get(SentListingRow, (str(user_chat_id), listing_id))
                is not None
            )

    def record_notified(self, user_chat_id: str, listing_id: str) -> DeliveryRecord:
        """
        Record that the user was sent the listing.

        Raises:
            DuplicateDeliveryError: If the pair is already recorded
        """
        record = DeliveryRecord(
            user_chat_id=str(user_chat_id), listing_id=listing_id, sent_at=utcnow()
        )

        try:
            with self.database.session() as session:
                # Explicit INSERT; a merge would silently overwrite the pair
                session.add(
                    SentListingRow(
                        user_chat_id=record.user_chat_id,
                        listing_id=record.listing_id,
                        sent_at=record.sent_at,
                    )
                )
                session.flush()
        except IntegrityError as e:
            raise DuplicateDeliveryError(record.user_chat_id, listing_id) from e

        logger.debug(f"Recorded delivery of {listing_id} to {user_chat_id}")
        return record

    def count(self, user_chat_id: Optional[str] = None) -> int:
        statement = select(func.count()).select_from(SentListingRow)
        if user_chat_id is not None:
            statement = statement.where(
                SentListingRow.user_chat_id == str(user_chat_id)
            )
        with self.database.session() as session:
            return session.scalar(statement) or 0
