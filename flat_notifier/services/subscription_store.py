"""Users and their saved filters."""

import logging
import uuid
from dataclasses import replace
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..interfaces import ISubscriptionStore
from ..models.districts import district_key
from ..models.subscription import Subscription, SubscriptionCriteria
from ..utils.error_handling import SubscriptionNotFoundError
from ..utils.timeutils import utcnow
from .database import Database, SubscriptionRow, UserRow

logger = logging.getLogger(__name__)

CRITERIA_FIELDS = (
    "category",
    "district",
    "price_min",
    "price_max",
    "rooms_min",
    "rooms_max",
    "area_min",
    "area_max",
)


class SubscriptionStore(ISubscriptionStore):
    """SQLAlchemy-backed subscription store."""

    def __init__(self, database: Database):
        self.database = database

    def ensure_user(self, chat_id: str) -> bool:
        """
        Create the user on first interaction.

        Returns:
            True if the user was created, False if it already existed
        """
        chat_id = str(chat_id)
        try:
            with self.database.session() as session:
                if session.get(UserRow, chat_id) is not None:
                    return False
                session.add(UserRow(chat_id=chat_id, created_at=utcnow()))
        except IntegrityError:
            return False

        logger.info(f"Registered user {chat_id}")
        return True

    def create_subscription(
        self, chat_id: str, criteria: SubscriptionCriteria
    ) -> Subscription:
        """
        Save a new filter for the user.

        District labels are stored as their lookup key when one is known.

        Raises:
            ValueError: If the criteria bounds are invalid
        """
        criteria.validate()
        chat_id = str(chat_id)
        self.ensure_user(chat_id)

        if criteria.district:
            criteria = replace(
                criteria,
                district=district_key(criteria.district) or criteria.district.strip(),
            )

        subscription = Subscription(
            id=str(uuid.uuid4()),
            user_chat_id=chat_id,
            criteria=criteria,
            created_at=utcnow(),
        )

        with self.database.session() as session:
            session.add(
                SubscriptionRow(
                    id=subscription.id,
                    user_chat_id=chat_id,
                    created_at=subscription.created_at,
                    **criteria.as_dict(),
                )
            )

        logger.info(f"User {chat_id} created subscription {subscription.id}")
        return subscription

    def list_subscriptions(self, chat_id: str) -> List[Subscription]:
        """Filters owned by the user, newest first."""
        statement = (
            select(SubscriptionRow)
            .where(SubscriptionRow.user_chat_id == str(chat_id))
            .order_by(SubscriptionRow.created_at.desc())
        )
        with self.database.session() as session:
            return [self._to_subscription(row) for row in session.scalars(statement)]

    def list_all_subscriptions(self) -> List[Subscription]:
        statement = select(SubscriptionRow).order_by(SubscriptionRow.created_at)
        with self.database.session() as session:
            return [self._to_subscription(row) for row in session.scalars(statement)]

    def get_subscription(self, chat_id: str, subscription_id: str) -> Subscription:
        """
        Owner-scoped lookup.

        Raises:
            SubscriptionNotFoundError: If the id is unknown or owned by someone else
        """
        with self.database.session() as session:
            row = self._owned_row(session, chat_id, subscription_id)
            return self._to_subscription(row)

    def remove_subscription(self, chat_id: str, subscription_id: str) -> None:
        """
        Owner-scoped delete.

        Raises:
            SubscriptionNotFoundError: If the id is unknown or owned by someone else
        """
        with self.database.session() as session:
            row = self._owned_row(session, chat_id, subscription_id)
            session.delete(row)

        logger.info(f"User {chat_id} removed subscription {subscription_id}")

    @staticmethod
    def _owned_row(session, chat_id: str, subscription_id: str) -> SubscriptionRow:
        row = session.get(SubscriptionRow, subscription_id)
        if row is None or row.user_chat_id != str(chat_id):
            # Foreign ids are reported exactly like unknown ones
            raise SubscriptionNotFoundError(
                f"Subscription {subscription_id} not found"
            )
        return row

    @staticmethod
    def _to_subscription(row: SubscriptionRow) -> Subscription:
        criteria = SubscriptionCriteria(
            **{name: getattr(row, name) for name in CRITERIA_FIELDS}
        )
        return Subscription(
            id=row.id,
            user_chat_id=row.user_chat_id,
            criteria=criteria,
            created_at=row.created_at,
        )
