"""
Failure audit models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class FailureType(Enum):
    """Kinds of pipeline failures kept in the failure sink."""

    PARSING_ERROR = "PARSING_ERROR"
    INVALID_DATA = "INVALID_DATA"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"


@dataclass
class FailureRecord:
    """An audit entry for one pipeline error."""

    failure_type: FailureType
    error: str
    listing_id: Optional[str] = None
    title: Optional[str] = None
    link: Optional[str] = None
    raw_data: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    def validate(self) -> bool:
        """Validate failure record data."""
        if not isinstance(self.failure_type, FailureType):
            raise ValueError("failure_type must be a FailureType enum")

        if not self.error or not self.error.strip():
            raise ValueError("Failure error description cannot be empty")

        if self.context is not None and not isinstance(self.context, dict):
            raise ValueError("context must be a dictionary")

        return True


@dataclass
class FailureStats:
    """Aggregated failure counters."""

    total: int
    by_type: Dict[str, int] = field(default_factory=dict)
    unresolved: int = 0
    since_count: int = 0
