"""
Core components for the Flat Notifier system.

This module contains the leaf components of the pipeline: feed fetching and
parsing, subscription matching, message formatting and Telegram delivery.
"""

from .feed_fetcher import FeedFetcher
from .feed_parser import DescriptionExtractor, FeedParser
from .listing_formatter import ListingFormatter
from .matcher import RangeFilter, SubscriptionMatcher
from .notifier import TelegramNotifier

__all__ = [
    "FeedFetcher",
    "FeedParser",
    "DescriptionExtractor",
    "ListingFormatter",
    "SubscriptionMatcher",
    "RangeFilter",
    "TelegramNotifier",
]
