"""
Service layer for the Flat Notifier system.

This module contains the stateful services: configuration loading, the
database-backed stores, and the poll service that drives the pipeline.
"""

from .config_manager import ConfigurationManager
from .database import Database
from .delivery_ledger import DeliveryLedger
from .failure_sink import FailureSink
from .listing_store import ListingStore
from .poll_service import PollService
from .subscription_store import SubscriptionStore

__all__ = [
    "ConfigurationManager",
    "Database",
    "DeliveryLedger",
    "FailureSink",
    "ListingStore",
    "PollService",
    "SubscriptionStore",
]
