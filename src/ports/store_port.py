"""Store port — abstract interface for the persistence the chat pipeline needs.

The chat service depends on this protocol, never on SQLite directly.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import Alarm, AlarmFields, Category, Message, Task, TaskFields


class StoreError(Exception):
    """Raised when a read or write against the store fails."""


class StorePort(Protocol):
    """Owner-scoped persistence used by the chat pipeline."""

    def create_message(self, content: str, is_user: bool, user_id: int) -> Message: ...

    def get_messages(self, user_id: int, limit: int | None = None) -> list[Message]: ...

    def create_task(self, fields: TaskFields, user_id: int) -> Task: ...

    def create_alarm(self, fields: AlarmFields, user_id: int) -> Alarm: ...

    def get_categories(self, user_id: int) -> list[Category]: ...
