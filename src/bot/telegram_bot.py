"""
Aura Assistant — Telegram Bot.

Telegram is the chat front end: free text goes through the ChatService
(which may create a task or an alarm), and a handful of commands read or
toggle what is stored.

Every Telegram account is mapped to one store user ("telegram:<id>"),
registered on first contact. When ALLOWED_USER_IDS is set, everybody else
is silently ignored.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings
from src.core.chat_service import CreatedEntity, TurnError
from src.ports.store_port import StoreError

if TYPE_CHECKING:
    from src.core.chat_service import ChatService
    from src.data.db import Store

logger = logging.getLogger(__name__)

_HISTORY_LIMIT = 10


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from users outside ALLOWED_USER_IDS.

    An empty allow-list lets everyone in.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        allowed = settings.ALLOWED_USER_IDS
        if user is None or (allowed and user.id not in allowed):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _username_for(telegram_user_id: int) -> str:
    return f"telegram:{telegram_user_id}"


def _owner_id(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Map the Telegram sender to a store user, registering on first contact."""
    store: Store = context.bot_data["store"]
    tg_user = update.effective_user
    username = _username_for(tg_user.id)

    user = store.users.get_by_username(username)
    if user is None:
        user = store.register_user(username, name=tg_user.first_name)
    return user.id


def _local(value: datetime) -> datetime:
    """Show stored instants (UTC) in the configured timezone."""
    return value.astimezone(ZoneInfo(settings.TIMEZONE))


def _describe_created(entity: CreatedEntity) -> str:
    """One-line confirmation for a task or alarm created during a turn."""
    data = entity.data
    if entity.type == "task":
        return f"📝 Task #{data.id}: {data.title} — {_local(data.date):%a %d %b, %H:%M}"
    return f"⏰ Alarm #{data.id}: {data.title} at {_local(data.time):%H:%M} ({data.days})"


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — register and welcome."""
    try:
        _owner_id(update, context)
    except StoreError as exc:
        logger.error("/start registration error: %s", exc)
        await update.message.reply_text("Couldn't set up your account. Please try again.")
        return

    await update.message.reply_text(
        "Hi there! I'm *Aura*, your personal assistant.\n\n"
        "• Tell me things like 'schedule a meeting tomorrow at 3pm' or "
        "'wake me at 7am' and I'll create the task or alarm\n"
        "• Use /tasks and /alarms to see what you have\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/tasks — List your tasks\n"
        "/alarms — List your alarms\n"
        "/done <id> — Toggle a task's completion\n"
        "/history — Show recent chat messages\n"
        "/settings — Show your settings\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_tasks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /tasks — list the user's tasks."""
    store: Store = context.bot_data["store"]

    try:
        tasks = store.tasks.list_tasks(_owner_id(update, context))
    except StoreError as exc:
        logger.error("/tasks error: %s", exc)
        await update.message.reply_text("Couldn't load tasks. Please try again.")
        return

    if not tasks:
        await update.message.reply_text("No tasks yet.")
        return

    lines = ["Your tasks:\n"]
    for t in tasks:
        mark = "✅" if t.completed else "⬜"
        lines.append(f"{mark} {t.id} — {t.title} ({_local(t.date):%a %d %b, %H:%M})")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_alarms(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alarms — list the user's alarms."""
    store: Store = context.bot_data["store"]

    try:
        alarms = store.alarms.list_alarms(_owner_id(update, context))
    except StoreError as exc:
        logger.error("/alarms error: %s", exc)
        await update.message.reply_text("Couldn't load alarms. Please try again.")
        return

    if not alarms:
        await update.message.reply_text("No alarms yet.")
        return

    lines = ["Your alarms:\n"]
    for a in alarms:
        state = "on" if a.is_active else "off"
        lines.append(f"⏰ {a.id} — {a.title} at {_local(a.time):%H:%M}, {a.days} ({state})")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> — toggle a task's completion."""
    store: Store = context.bot_data["store"]

    args = context.args
    if not args:
        await update.message.reply_text("Usage: /done <task_id>\nUse /tasks to see IDs.")
        return

    try:
        task_id = int(args[0])
    except ValueError:
        await update.message.reply_text("Invalid task ID. Use /tasks to see valid IDs.")
        return

    try:
        task = store.tasks.toggle_completed(task_id, _owner_id(update, context))
    except StoreError as exc:
        logger.error("/done error: %s", exc)
        await update.message.reply_text("Something went wrong. Please try again.")
        return

    if task is None:
        await update.message.reply_text(f"Task {task_id} not found. Use /tasks to see valid IDs.")
        return

    state = "done" if task.completed else "not done"
    await update.message.reply_text(f"✅ Marked '{task.title}' as {state}.")


@authorized_only
async def cmd_history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /history — show the most recent chat messages."""
    service: ChatService = context.bot_data["chat_service"]

    try:
        messages = service.history(_owner_id(update, context), limit=_HISTORY_LIMIT)
    except StoreError as exc:
        logger.error("/history error: %s", exc)
        await update.message.reply_text("Couldn't load your history. Please try again.")
        return

    if not messages:
        await update.message.reply_text("No messages yet.")
        return

    lines = [
        f"{'You' if m.is_user else 'Aura'}: {m.content}" for m in messages
    ]
    await update.message.reply_text("\n\n".join(lines))


@authorized_only
async def cmd_settings(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings — show the user's settings (created on first view)."""
    store: Store = context.bot_data["store"]

    try:
        prefs = store.settings.get_or_create(_owner_id(update, context))
    except StoreError as exc:
        logger.error("/settings error: %s", exc)
        await update.message.reply_text("Couldn't load settings. Please try again.")
        return

    def _flag(value: bool) -> str:
        return "on" if value else "off"

    await update.message.reply_text(
        "Your settings:\n"
        f"Dark mode: {_flag(prefs.dark_mode)}\n"
        f"Notifications: {_flag(prefs.notifications)}\n"
        f"AI suggestions: {_flag(prefs.ai_suggestions)}\n"
        f"Auto task creation: {_flag(prefs.auto_task_creation)}\n"
        f"Calendar sync: {_flag(prefs.calendar_sync)}"
    )


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — one chat turn."""
    service: ChatService = context.bot_data["chat_service"]

    try:
        result = await service.process_turn(_owner_id(update, context), update.message.text)
    except (TurnError, StoreError) as exc:
        logger.error("Chat turn error: %s", exc)
        await update.message.reply_text("Something went wrong. Please try again.")
        return

    reply = result.assistant_message.content
    if result.created_entity is not None:
        reply += "\n\n" + _describe_created(result.created_entity)
    await update.message.reply_text(reply)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def build_app(
    store: Store | None = None,
    chat_service: ChatService | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Entity store. Defaults to a SQLite Store at DATABASE_PATH.
        chat_service: Chat service. Defaults to one wired to `store` and the
                      extractor chosen by build_extractor().
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if store is None:
        from src.data.db import Store
        store = Store()

    if chat_service is None:
        from src.core.chat_service import ChatService
        from src.core.extractor import build_extractor
        chat_service = ChatService(store, build_extractor())

    app.bot_data["store"] = store
    app.bot_data["chat_service"] = chat_service

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("tasks", cmd_tasks))
    app.add_handler(CommandHandler("alarms", cmd_alarms))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("history", cmd_history))
    app.add_handler(CommandHandler("settings", cmd_settings))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    token = settings.TELEGRAM_BOT_TOKEN
    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting Aura Assistant bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    main()
