"""
Poll cycle state and reporting models.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CycleState(Enum):
    """States a poll cycle moves through."""

    IDLE = "idle"
    FETCHING = "fetching"
    INGESTING = "ingesting"
    MATCHING = "matching"
    NOTIFYING = "notifying"


@dataclass
class CycleReport:
    """Summary of one poll cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    fetched: int = 0
    created: int = 0
    existing: int = 0
    invalid_entries: int = 0
    storage_failures: int = 0
    recent_listings: int = 0
    invalid_price: int = 0
    matched: int = 0
    already_sent: int = 0
    sent: int = 0
    send_failures: int = 0
    ledger_failures: int = 0
    last_state: CycleState = CycleState.IDLE

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
