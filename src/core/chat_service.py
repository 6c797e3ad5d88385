"""
Aura Assistant — UI-agnostic chat service.

Runs one chat turn end to end:
save the user's message -> extract intent -> create the task/alarm ->
compose the reply -> save the reply -> return a structured result.

Each front end (Telegram, web) calls this service and renders the result
in its own way. The store and the extractor are injected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.core.composer import FAILURE_REPLY, compose_reply
from src.core.extractor import Extraction
from src.core.intents import CreateAlarm, CreateTask, Intent, NoIntent
from src.data.models import Alarm, AlarmFields, Message, Task, TaskFields
from src.ports.store_port import StoreError

if TYPE_CHECKING:
    from src.core.extractor import IntentExtractor
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


class TurnError(Exception):
    """A chat turn could not be completed because persistence failed."""


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


@dataclass
class CreatedEntity:
    type: str            # "task" | "alarm"
    data: Task | Alarm


@dataclass
class TurnResult:
    assistant_message: Message
    created_entity: CreatedEntity | None = None


# ---------------------------------------------------------------------------
# ChatService
# ---------------------------------------------------------------------------


class ChatService:
    """Coordinates a chat turn; holds no per-turn state between calls."""

    def __init__(self, store: StorePort, extractor: IntentExtractor) -> None:
        self._store = store
        self._extractor = extractor

    async def process_turn(self, user_id: int, utterance: str) -> TurnResult:
        """Handle one user utterance and return the assistant's reply.

        Raises TurnError when a message or entity can't be saved. The
        user's own message, once saved, is never rolled back.
        """
        try:
            self._store.create_message(utterance, True, user_id)
        except StoreError as exc:
            logger.error("Could not save message for user %d: %s", user_id, exc)
            raise TurnError("Failed to save message") from exc

        reply: str | None = None
        try:
            extraction = await self._extractor.extract(utterance)
        except Exception as exc:
            logger.error("Intent extraction failed for user %d: %s", user_id, exc)
            extraction = Extraction(intent=NoIntent())
            reply = FAILURE_REPLY

        try:
            created = self._materialize(extraction.intent, user_id)
            if reply is None:
                reply = compose_reply(extraction)
            assistant_message = self._store.create_message(reply, False, user_id)
        except StoreError as exc:
            logger.error("Chat turn failed for user %d: %s", user_id, exc)
            raise TurnError("Failed to generate AI response") from exc

        return TurnResult(assistant_message=assistant_message, created_entity=created)

    def history(self, user_id: int, limit: int | None = None) -> list[Message]:
        """Return the user's chat history, oldest first."""
        return self._store.get_messages(user_id, limit=limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _materialize(self, intent: Intent, user_id: int) -> CreatedEntity | None:
        """Create the entity an intent asks for, if any."""
        if isinstance(intent, CreateTask):
            task = self._store.create_task(
                TaskFields(
                    title=intent.title,
                    date=intent.date,
                    description=intent.description,
                    category_id=self._resolve_category(intent.category_id, user_id),
                ),
                user_id,
            )
            logger.info("Chat created task #%d for user %d", task.id, user_id)
            return CreatedEntity(type="task", data=task)

        if isinstance(intent, CreateAlarm):
            alarm = self._store.create_alarm(
                AlarmFields(
                    title=intent.title,
                    time=intent.time,
                    days=intent.days,
                    is_active=intent.is_active,
                ),
                user_id,
            )
            logger.info("Chat created alarm #%d for user %d", alarm.id, user_id)
            return CreatedEntity(type="alarm", data=alarm)

        return None

    def _resolve_category(self, requested: int | None, user_id: int) -> int | None:
        """Keep a requested category only if the user owns it; else their first one."""
        categories = self._store.get_categories(user_id)
        if requested is not None and any(c.id == requested for c in categories):
            return requested
        if requested is not None:
            logger.warning("Ignoring category %d not owned by user %d", requested, user_id)
        return categories[0].id if categories else None
