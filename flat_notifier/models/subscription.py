"""
Subscription (saved filter) models.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

from .listing import FLATS_CATEGORY


@dataclass
class SubscriptionCriteria:
    """
    Matching criteria of a saved filter.

    All bounds are inclusive; an unset bound is unbounded on that side.
    """

    category: str = FLATS_CATEGORY
    district: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    rooms_min: Optional[float] = None
    rooms_max: Optional[float] = None
    area_min: Optional[float] = None
    area_max: Optional[float] = None

    def validate(self) -> bool:
        """Validate criteria bounds."""
        if not self.category or not self.category.strip():
            raise ValueError("Category cannot be empty")

        for name in ("price", "rooms", "area"):
            low = getattr(self, f"{name}_min")
            high = getattr(self, f"{name}_max")

            for bound in (low, high):
                if bound is not None and bound < 0:
                    raise ValueError(f"{name.capitalize()} bounds cannot be negative")

            if low is not None and high is not None and low > high:
                raise ValueError(
                    f"Minimum {name} ({low}) cannot exceed maximum {name} ({high})"
                )

        return True

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class Subscription:
    """A user's saved filter."""

    id: str
    user_chat_id: str
    criteria: SubscriptionCriteria
    created_at: Optional[datetime] = None
