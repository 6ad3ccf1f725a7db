"""
Failure sink for the Flat Notifier system.

Durable audit trail of parse, validation and delivery failures. Records are
written to the failed_listings table and mirrored as JSON lines to the
failures log. Writing a record never raises: the pipeline must keep going
even when the audit store itself is unavailable.
"""

import json
import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..interfaces import IFailureSink
from ..models.failure import FailureRecord, FailureStats, FailureType
from ..utils.error_handling import FailureNotFoundError
from ..utils.logging import FAILURE_LOGGER_NAME
from ..utils.timeutils import utcnow
from .database import Database, FailedListingRow

logger = logging.getLogger(__name__)
failure_log = logging.getLogger(FAILURE_LOGGER_NAME)


class FailureSink(IFailureSink):
    """SQLAlchemy-backed failure audit store."""

    def __init__(self, database: Database):
        self.database = database

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
        """
        Append a failure record.

        Args:
            failure_type: Failure kind
            error: Human-readable error description
            listing_id: Listing the failure concerns, if known
            title: Listing title, if known
            link: Listing link, if known
            raw_data: Serialized raw payload snapshot
            context: Structured context (user id, subscription id, ...)

        Returns:
            The stored record, or None if it could not be stored
        """
        record = FailureRecord(
            failure_type=failure_type,
            error=error,
            listing_id=listing_id,
            title=title,
            link=link,
            raw_data=raw_data,
            context=context,
            created_at=utcnow(),
            id=str(uuid.uuid4()),
        )

        try:
            record.validate()
        except ValueError as e:
            logger.error(f"Refusing malformed failure record: {e}")
            return None

        self._mirror_to_log(record)

        try:
            with self.database.session() as session:
                session.add(self._to_row(record))
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to store {failure_type.value} failure for listing "
                f"{listing_id}: {e}"
            )
            return None

        logger.warning(
            f"Recorded {failure_type.value} for listing {listing_id or '-'}: {error}"
        )
        return record

    def list_failures(
        self,
        failure_type: Optional[FailureType] = None,
        resolved: Optional[bool] = False,
        limit: int = 50,
    ) -> List[FailureRecord]:
        """
        List failures, newest first.

        Args:
            failure_type: Only this kind, or every kind when None
            resolved: Resolution flag to filter on; None returns both
            limit: Maximum number of records
        """
        statement = select(FailedListingRow)
        if failure_type is not None:
            statement = statement.where(
                FailedListingRow.failure_type == failure_type.value
            )
        if resolved is not None:
            statement = statement.where(FailedListingRow.resolved == resolved)

        statement = statement.order_by(FailedListingRow.created_at.desc()).limit(limit)

        with self.database.session() as session:
            return [self._to_record(row) for row in session.scalars(statement)]

    def get_failure(self, failure_id: str) -> FailureRecord:
        with self.database.session() as session:
            row = session.get(FailedListingRow, failure_id)
            if row is None:
                raise FailureNotFoundError(f"Failure {failure_id} not found")
            return self._to_record(row)

    def mark_resolved(self, failure_id: str) -> FailureRecord:
        """Flag a failure as resolved; resolving twice keeps the first timestamp."""
        with self.database.session() as session:
            row = session.get(FailedListingRow, failure_id)
            if row is None:
                raise FailureNotFoundError(f"Failure {failure_id} not found")

            if not row.resolved:
                row.resolved = True
                row.resolved_at = utcnow()
                logger.info(f"Failure {failure_id} marked resolved")

            return self._to_record(row)

    def stats(self, since: timedelta = timedelta(hours=24)) -> FailureStats:
        """Total, per-kind, unresolved and recent counts."""
        cutoff = utcnow() - since

        with self.database.session() as session:
            by_type = dict(
                session.execute(
                    select(
                        FailedListingRow.failure_type, func.count()
                    ).group_by(FailedListingRow.failure_type)
                ).all()
            )
            unresolved = session.scalar(
                select(func.count())
                .select_from(FailedListingRow)
                .where(FailedListingRow.resolved.is_(False))
            )
            since_count = session.scalar(
                select(func.count())
                .select_from(FailedListingRow)
                .where(FailedListingRow.created_at >= cutoff)
            )

        return FailureStats(
            total=sum(by_type.values()),
            by_type=by_type,
            unresolved=unresolved or 0,
            since_count=since_count or 0,
        )

    @staticmethod
    def _mirror_to_log(record: FailureRecord) -> None:
        failure_log.error(
            json.dumps(
                {
                    "timestamp": record.created_at.isoformat(),
                    "id": record.id,
                    "type": record.failure_type.value,
                    "listing_id": record.listing_id,
                    "title": record.title,
                    "link": record.link,
                    "error": record.error,
                    "raw_data": record.raw_data,
                    "context": record.context,
                },
                ensure_ascii=False,
                default=str,
            )
        )

    @staticmethod
    def _to_row(record: FailureRecord) -> FailedListingRow:
        return FailedListingRow(
            id=record.id,
            failure_type=record.failure_type.value,
            listing_id=record.listing_id,
            title=record.title,
            link=record.link,
            error=record.error,
            raw_data=record.raw_data,
            additional_info=record.context,
            resolved=record.resolved,
            resolved_at=record.resolved_at,
            created_at=record.created_at,
        )

    @staticmethod
    def _to_record(row: FailedListingRow) -> FailureRecord:
        return FailureRecord(
            failure_type=FailureType(row.failure_type),
            error=row.error,
            listing_id=row.listing_id,
            title=row.title,
            link=row.link,
            raw_data=row.raw_data,
            context=row.additional_info,
            resolved=row.resolved,
            resolved_at=row.resolved_at,
            created_at=row.created_at,
            id=row.id,
        )
