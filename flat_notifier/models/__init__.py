"""
Data models for the Flat Notifier system.

This module contains the data classes and type definitions used throughout
the application for listings, subscriptions, deliveries, failures and
configuration.
"""

from .config import Configuration, DatabaseConfig, FeedConfig, TelegramConfig
from .cycle import CycleReport, CycleState
from .delivery import DeliveryRecord, DeliveryResult
from .failure import FailureRecord, FailureStats, FailureType
from .listing import (
    COMMERCIAL_CATEGORY,
    FLATS_CATEGORY,
    INVALID_ID_PREFIX,
    IngestionResult,
    Listing,
    ListingFilter,
    RawFeedEntry,
)
from .subscription import Subscription, SubscriptionCriteria

__all__ = [
    "RawFeedEntry",
    "Listing",
    "ListingFilter",
    "IngestionResult",
    "FLATS_CATEGORY",
    "COMMERCIAL_CATEGORY",
    "INVALID_ID_PREFIX",
    "Subscription",
    "SubscriptionCriteria",
    "DeliveryRecord",
    "DeliveryResult",
    "FailureRecord",
    "FailureStats",
    "FailureType",
    "CycleReport",
    "CycleState",
    "Configuration",
    "FeedConfig",
    "TelegramConfig",
    "DatabaseConfig",
]
