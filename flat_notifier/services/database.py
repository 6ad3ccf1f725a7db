"""Database engine, session factory and ORM tables.

Any SQLAlchemy URL works; SQLite is the default. Timestamps are written as
UTC and always come back timezone-aware.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from ..utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """DateTime stored as naive UTC, returned as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        return ensure_utc(value)


class UserRow(Base):
    __tablename__ = "users"
    chat_id = Column(String(64), primary_key=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class ListingRow(Base):
    __tablename__ = "listings"
    id = Column(String(255), primary_key=True)
    title = Column(Text, nullable=False, default="")
    price = Column(Text, nullable=False, default="")
    price_value = Column(Integer)
    price_per_m2 = Column(Float)
    district = Column(Text)
    district_key = Column(String(255), index=True)
    rooms = Column(Float)
    area = Column(Float)
    floor = Column(Text)
    category = Column(String(64), nullable=False, index=True)
    link = Column(Text, nullable=False, unique=True)
    pub_date = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"
    id = Column(String(36), primary_key=True)
    user_chat_id = Column(
        String(64), ForeignKey("users.chat_id", ondelete="CASCADE"), nullable=False
    )
    category = Column(String(64), nullable=False)
    district = Column(Text)
    price_min = Column(Float)
    price_max = Column(Float)
    rooms_min = Column(Float)
    rooms_max = Column(Float)
    area_min = Column(Float)
    area_max = Column(Float)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class SentListingRow(Base):
    __tablename__ = "sent_listings"
    user_chat_id = Column(String(64), primary_key=True)
    listing_id = Column(String(255), primary_key=True)
    sent_at = Column(UTCDateTime, nullable=False, default=utcnow)


class FailedListingRow(Base):
    __tablename__ = "failed_listings"
    id = Column(String(36), primary_key=True)
    failure_type = Column(String(32), nullable=False)
    listing_id = Column(String(255))
    title = Column(Text)
    link = Column(Text)
    error = Column(Text, nullable=False)
    raw_data = Column(Text)
    additional_info = Column(JSON)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


Index("idx_subscriptions_user", SubscriptionRow.user_chat_id)
Index("idx_failed_listings_type_resolved", FailedListingRow.failure_type, FailedListingRow.resolved)
Index("idx_failed_listings_created", FailedListingRow.created_at)


class Database:
    """Owns the engine and hands out short-lived sessions."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = self._create_engine(url, echo)
        self.session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    @staticmethod
    def _create_engine(url: str, echo: bool):
        parsed = make_url(url)

        if parsed.get_backend_name() != "sqlite":
            return create_engine(url, echo=echo, pool_pre_ping=True)

        # Sessions are used from the scheduler and bot worker threads
        connect_args = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            return create_engine(
                url, echo=echo, connect_args=connect_args, poolclass=StaticPool
            )

        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, echo=echo, connect_args=connect_args)

    def create_all(self) -> None:
        """Create missing tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database schema ready ({self.engine.url.get_backend_name()})")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on error."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
