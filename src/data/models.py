"""
Aura Assistant — Data Models.

Every row except User belongs to exactly one owner (`user_id`).
Instants are timezone-aware datetimes; the DB layer stores them as ISO text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """A registered assistant user."""

    id: int
    username: str
    name: str | None = None
    email: str | None = None
    created_at: str = ""


@dataclass
class Category:
    """A colour-tagged task category, e.g. Work/blue."""

    id: int
    name: str
    color: str
    user_id: int


@dataclass
class Task:
    """A dated to-do item.

    category_id is a weak reference: it may point at a category that
    no longer exists, and readers must tolerate that.
    """

    id: int
    title: str
    date: datetime
    user_id: int
    description: str | None = None
    completed: bool = False
    category_id: int | None = None


@dataclass
class Alarm:
    """A timed alarm with a free-form recurrence token."""

    id: int
    title: str
    time: datetime
    user_id: int
    days: str = "Once"       # "Daily", "Mon-Fri", "Once", "mon,wed,fri"
    is_active: bool = True


@dataclass
class Message:
    """One chat line, either from the user or from the assistant."""

    id: int
    content: str
    is_user: bool
    timestamp: datetime
    user_id: int


@dataclass
class UserSettings:
    """Per-user preferences, created lazily with these defaults."""

    user_id: int
    dark_mode: bool = True
    notifications: bool = True
    ai_suggestions: bool = True
    auto_task_creation: bool = True
    calendar_sync: bool = False
    updated_at: str = ""


# ---------------------------------------------------------------------------
# Creation payloads (no id / owner yet)
# ---------------------------------------------------------------------------


@dataclass
class TaskFields:
    title: str
    date: datetime
    description: str | None = None
    completed: bool = False
    category_id: int | None = None


@dataclass
class AlarmFields:
    title: str
    time: datetime
    days: str = "Once"
    is_active: bool = field(default=True)
