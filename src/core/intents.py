"""Tagged results of intent extraction.

Exactly one of these comes out of every extraction; the chat service turns
CreateTask/CreateAlarm into stored entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class NoIntent:
    """The utterance asks for nothing we can create."""


@dataclass(frozen=True)
class CreateTask:
    title: str
    date: datetime
    description: str | None = None
    category_id: int | None = None  # None → owner's default category


@dataclass(frozen=True)
class CreateAlarm:
    title: str
    time: datetime
    days: str = "Once"
    is_active: bool = True


Intent = NoIntent | CreateTask | CreateAlarm
