"""
Telegram bot command handler for the Flat Notifier.

A thin command surface over the subscription store, the failure sink and
the on-demand latest-listing lookup. Blocking core calls run in the default
executor so the bot's event loop stays responsive while a cycle runs.
"""

import asyncio
import functools
import re
from typing import Callable, List, Optional, TypeVar

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from ..interfaces import IFailureSink, IListingFormatter, ISubscriptionStore
from ..models.districts import ANY_DISTRICT_WORDS, RIGA_DISTRICTS, district_key
from ..models.subscription import Subscription, SubscriptionCriteria
from ..utils.error_handling import InvalidCriteriaError, SubscriptionNotFoundError
from ..utils.logging import get_logger

logger = get_logger("components.telegram_bot_handler")

T = TypeVar("T")

RANGE_KEYS = ("price", "rooms", "area")
RANGE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)?\s*(-)?\s*(\d+(?:\.\d+)?)?\s*$")

HELP_TEXT = """🏠 Flat Notifier Bot

Commands:
/addfilter key=value ... - Save a new filter
/myfilters - Show your filters
/removefilter <id> - Delete a filter
/latest <id> - Newest listing matching a filter
/districts - Known district keys
/help - Show this message

Filter keys:
district=teika (or any)
price=50000-150000, price=-90000, price=40000-
rooms=2, rooms=1-3
area=40-80

Example:
/addfilter district=centre price=-120000 rooms=2-3"""


def _parse_number(text: str, key: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise InvalidCriteriaError(f"'{text}' is not a number for {key}")
    if value < 0:
        raise InvalidCriteriaError(f"{key} cannot be negative")
    return value


def parse_range(key: str, text: str):
    """
    Parse 'a-b', 'a-', '-b' or 'a' into an inclusive (min, max) pair.

    A single value pins both bounds.
    """
    match = RANGE_PATTERN.match(text)
    if not match or not (match.group(1) or match.group(3)):
        raise InvalidCriteriaError(f"Invalid {key} range '{text}', use e.g. {key}=1-3")

    low, dash, high = match.groups()
    if not dash:
        if high is not None:
            raise InvalidCriteriaError(f"Invalid {key} range '{text}'")
        value = _parse_number(low, key)
        return value, value

    minimum = _parse_number(low, key) if low else None
    maximum = _parse_number(high, key) if high else None
    return minimum, maximum


def parse_filter_args(args: List[str]) -> SubscriptionCriteria:
    """
    Build subscription criteria from '/addfilter' arguments.

    Raises:
        InvalidCriteriaError: On unknown keys, malformed values or empty ranges
    """
    criteria = SubscriptionCriteria()
    seen = set()

    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.strip().lower()
        value = value.strip()
        if not sep or not key:
            raise InvalidCriteriaError(f"Expected key=value, got '{arg}'")
        if key in seen:
            raise InvalidCriteriaError(f"'{key}' given more than once")
        seen.add(key)

        if key == "district":
            if not value:
                raise InvalidCriteriaError("district needs a value")
            criteria.district = (
                None
                if value.casefold() in ANY_DISTRICT_WORDS
                else district_key(value) or value
            )
        elif key in RANGE_KEYS:
            minimum, maximum = parse_range(key, value)
            setattr(criteria, f"{key}_min", minimum)
            setattr(criteria, f"{key}_max", maximum)
        else:
            raise InvalidCriteriaError(f"Unknown filter key '{key}'")

    try:
        criteria.validate()
    except ValueError as e:
        raise InvalidCriteriaError(str(e)) from e

    return criteria


def _format_bound(minimum: Optional[float], maximum: Optional[float]) -> Optional[str]:
    if minimum is None and maximum is None:
        return None

    def fmt(value):
        return str(int(value)) if float(value).is_integer() else str(value)

    if minimum is not None and maximum is not None:
        return fmt(minimum) if minimum == maximum else f"{fmt(minimum)}-{fmt(maximum)}"
    if minimum is not None:
        return f"from {fmt(minimum)}"
    return f"up to {fmt(maximum)}"


def describe_subscription(subscription: Subscription) -> str:
    """One-block summary of a saved filter."""
    criteria = subscription.criteria
    district = criteria.district
    lines = [
        f"🔎 {subscription.id}",
        f"District: {RIGA_DISTRICTS.get(district, district) if district else 'any'}",
    ]
    for key, unit in (("price", " €"), ("rooms", ""), ("area", " m²")):
        bound = _format_bound(
            getattr(criteria, f"{key}_min"), getattr(criteria, f"{key}_max")
        )
        if bound:
            lines.append(f"{key.capitalize()}: {bound}{unit}")
    return "\n".join(lines)


class TelegramBotHandler:
    """Registers the bot commands and runs Telegram long polling."""

    def __init__(
        self,
        bot_token: str,
        subscription_store: ISubscriptionStore,
        poll_service,
        formatter: IListingFormatter,
        failure_sink: IFailureSink,
        admin_chat_ids: Optional[List[str]] = None,
    ):
        """
        Initialize Telegram bot handler.

        Args:
            bot_token: Telegram bot token
            subscription_store: Users and saved filters
            poll_service: Service providing get_latest_listing()
            formatter: Listing message formatter
            failure_sink: Failure audit trail shown to admins
            admin_chat_ids: Chats allowed to see failure reports
        """
        self.bot_token = bot_token
        self.subscription_store = subscription_store
        self.poll_service = poll_service
        self.formatter = formatter
        self.failure_sink = failure_sink
        self.admin_chat_ids = {str(chat_id) for chat_id in admin_chat_ids or []}

        self.application = Application.builder().token(bot_token).build()
        self.is_polling = False

        self._setup_handlers()

    def _setup_handlers(self) -> None:
        commands = {
            "start": self._handle_start,
            "help": self._handle_help,
            "addfilter": self._handle_add_filter,
            "myfilters": self._handle_my_filters,
            "removefilter": self._handle_remove_filter,
            "latest": self._handle_latest,
            "districts": self._handle_districts,
            "failedlistings": self._handle_failed_listings,
        }
        for name, callback in commands.items():
            self.application.add_handler(CommandHandler(name, callback))

        logger.info("Telegram bot handlers configured", extra={"commands": list(commands)})

    async def start_polling(self) -> None:
        """Start polling for messages from Telegram."""
        if self.is_polling:
            logger.warning("Bot is already polling")
            return

        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling()
        self.is_polling = True

        logger.info("Telegram bot polling started")

    async def stop_polling(self) -> None:
        """Stop polling for messages."""
        if not self.is_polling:
            return

        self.is_polling = False
        try:
            if self.application.updater:
                await self.application.updater.stop()
            await self.application.stop()
            await self.application.shutdown()
        except Exception as e:
            logger.error(f"Error stopping bot polling: {e}")
            return

        logger.info("Telegram bot polling stopped")

    async def _run_blocking(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def _reply(self, update: Update, text: str) -> None:
        await self.application.bot.send_message(
            chat_id=update.effective_chat.id, text=text
        )

    async def _handle_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /start command."""
        chat_id = str(update.effective_chat.id)
        if await self._run_blocking(self.subscription_store.ensure_user, chat_id):
            logger.info("New user started the bot", extra={"chat_id": chat_id})
        await self._reply(update, HELP_TEXT)

    async def _handle_help(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /help command."""
        await self._reply(update, HELP_TEXT)

    async def _handle_add_filter(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /addfilter command."""
        chat_id = str(update.effective_chat.id)
        args = context.args or []
        if not args:
            await self._reply(update, "Usage: /addfilter key=value ...\nSee /help")
            return

        try:
            criteria = parse_filter_args(args)
        except InvalidCriteriaError as e:
            await self._reply(update, f"❌ {e}")
            return

        subscription = await self._run_blocking(
            self.subscription_store.create_subscription, chat_id, criteria
        )
        await self._reply(
            update, "✅ Filter saved\n\n" + describe_subscription(subscription)
        )

    async def _handle_my_filters(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /myfilters command."""
        chat_id = str(update.effective_chat.id)
        subscriptions = await self._run_blocking(
            self.subscription_store.list_subscriptions, chat_id
        )
        if not subscriptions:
            await self._reply(update, "📭 You have no filters. Add one with /addfilter")
            return

        await self._reply(
            update, "\n\n".join(describe_subscription(s) for s in subscriptions)
        )

    async def _handle_remove_filter(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /removefilter command."""
        chat_id = str(update.effective_chat.id)
        if len(context.args or []) != 1:
            await self._reply(update, "Usage: /removefilter <id>")
            return

        try:
            await self._run_blocking(
                self.subscription_store.remove_subscription, chat_id, context.args[0]
            )
        except SubscriptionNotFoundError:
            await self._reply(update, "❌ Filter not found")
            return

        await self._reply(update, "🗑 Filter removed")

    async def _handle_latest(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /latest command with a filter id or inline key=value filters."""
        chat_id = str(update.effective_chat.id)
        args = context.args or []

        try:
            if len(args) == 1 and "=" not in args[0]:
                subscription = await self._run_blocking(
                    self.subscription_store.get_subscription, chat_id, args[0]
                )
                criteria = subscription.criteria
            else:
                criteria = parse_filter_args(args)
        except SubscriptionNotFoundError:
            await self._reply(update, "❌ Filter not found")
            return
        except InvalidCriteriaError as e:
            await self._reply(update, f"❌ {e}")
            return

        listing = await self._run_blocking(
            self.poll_service.get_latest_listing, criteria
        )
        if listing is None:
            await self._reply(update, "Nothing matches this filter right now")
            return

        await self._reply(update, self.formatter.format_listing(listing))

    async def _handle_districts(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /districts command."""
        lines = [f"{key} - {label}" for key, label in sorted(RIGA_DISTRICTS.items())]
        await self._reply(update, "📍 Districts:\n\n" + "\n".join(lines))

    async def _handle_failed_listings(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /failedlistings command (admins only)."""
        chat_id = str(update.effective_chat.id)
        if chat_id not in self.admin_chat_ids:
            logger.warning("Unauthorized failure report request", extra={"chat_id": chat_id})
            await self._reply(update, "❌ Not authorized")
            return

        stats = await self._run_blocking(self.failure_sink.stats)
        failures = await self._run_blocking(
            functools.partial(self.failure_sink.list_failures, limit=10)
        )

        lines = [
            "📊 Failed listings",
            f"Total: {stats.total}",
            f"Unresolved: {stats.unresolved}",
            f"Last 24h: {stats.since_count}",
        ]
        lines.extend(f"{kind}: {count}" for kind, count in sorted(stats.by_type.items()))
        for failure in failures:
            lines.append("")
            lines.append(f"[{failure.failure_type.value}] {failure.listing_id or '-'}")
            lines.append(failure.error[:200])

        await self._reply(update, "\n".join(lines))
