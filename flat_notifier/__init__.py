"""
Flat Notifier

Polls a real-estate classifieds RSS feed, stores newly seen listings,
matches them against per-user saved filters and delivers notifications
through a Telegram bot.
"""

__version__ = "0.1.0"
__author__ = "Flat Notifier Team"
