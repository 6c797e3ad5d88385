"""
Aura Assistant — SQLite storage.

One database file holds every entity table. Each table has its own small
class (UserDB, TaskDB, ...) and the `Store` facade bundles them and
implements the StorePort used by the chat service.

Every read, update and delete is scoped by the owner's user_id: a row that
belongs to someone else behaves exactly like a row that does not exist.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from src.data.models import (
    Alarm,
    AlarmFields,
    Category,
    Message,
    Task,
    TaskFields,
    User,
    UserSettings,
)
from src.ports.store_port import StoreError

logger = logging.getLogger(__name__)

# Seeded for every newly registered user; the first one is the default
# category for tasks created from chat.
DEFAULT_CATEGORIES: list[tuple[str, str]] = [
    ("Daily", "purple"),
    ("Work", "blue"),
    ("Personal", "purple"),
]


def _to_iso(value: datetime) -> str:
    # Stored as UTC so ORDER BY on the text is chronological
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


class _SQLiteDB:
    """Shared connection handling for the per-table classes.

    Subclasses create their table in `_init_db`, called from __init__.
    """

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction; sqlite errors become StoreError."""
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open database {self._db_path}: {exc}") from exc

        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()


class UserDB(_SQLiteDB):
    """SQLite-backed storage for registered users."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    username    TEXT NOT NULL UNIQUE,
                    name        TEXT,
                    email       TEXT,
                    created_at  TEXT NOT NULL
                )
            """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            name=row["name"],
            email=row["email"],
            created_at=row["created_at"],
        )

    def add_user(
        self,
        username: str,
        name: str | None = None,
        email: str | None = None,
    ) -> User:
        """Register a new user. Duplicate usernames raise StoreError."""
        now = _now_iso()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO users (username, name, email, created_at) VALUES (?, ?, ?, ?)",
                (username, name, email, now),
            )
            user_id = cursor.lastrowid

        logger.info("User registered: #%d '%s'", user_id, username)
        return User(id=user_id, username=username, name=name, email=email, created_at=now)

    def get_user(self, user_id: int) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_by_username(self, username: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?", (username,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> list[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(r) for r in rows]


class CategoryDB(_SQLiteDB):
    """SQLite-backed storage for task categories."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id       INTEGER PRIMARY KEY AUTOINCREMENT,
                    name     TEXT    NOT NULL,
                    color    TEXT    NOT NULL,
                    user_id  INTEGER NOT NULL
                )
            """)
        logger.debug("Categories table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"], name=row["name"], color=row["color"], user_id=row["user_id"],
        )

    def add_category(self, name: str, color: str, user_id: int) -> Category:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO categories (name, color, user_id) VALUES (?, ?, ?)",
                (name, color, user_id),
            )
            category_id = cursor.lastrowid

        logger.info("Category added: #%d '%s' for user %d", category_id, name, user_id)
        return Category(id=category_id, name=name, color=color, user_id=user_id)

    def get_category(self, category_id: int, user_id: int) -> Category | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_category(row)

    def list_categories(self, user_id: int) -> list[Category]:
        """Return the user's categories, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM categories WHERE user_id = ? ORDER BY id", (user_id,)
            ).fetchall()
        return [self._row_to_category(r) for r in rows]


class TaskDB(_SQLiteDB):
    """SQLite-backed storage for tasks."""

    _UPDATABLE = {"title", "description", "date", "completed", "category_id"}

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    title        TEXT    NOT NULL,
                    description  TEXT,
                    date         TEXT    NOT NULL,
                    completed    INTEGER NOT NULL DEFAULT 0,
                    category_id  INTEGER,
                    user_id      INTEGER NOT NULL
                )
            """)
        logger.debug("Tasks table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            date=_from_iso(row["date"]),
            completed=bool(row["completed"]),
            category_id=row["category_id"],
            user_id=row["user_id"],
        )

    def add_task(
        self,
        title: str,
        date: datetime,
        user_id: int,
        description: str | None = None,
        completed: bool = False,
        category_id: int | None = None,
    ) -> Task:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks (title, description, date, completed, category_id, user_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (title, description, _to_iso(date), int(completed), category_id, user_id),
            )
            task_id = cursor.lastrowid

        logger.info("Task added: #%d '%s' at %s for user %d", task_id, title, date.isoformat(), user_id)
        return Task(
            id=task_id,
            title=title,
            description=description,
            date=date,
            completed=completed,
            category_id=category_id,
            user_id=user_id,
        )

    def get_task(self, task_id: int, user_id: int) -> Task | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks(self, user_id: int) -> list[Task]:
        """Return the user's tasks ordered by date."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE user_id = ? ORDER BY date, id", (user_id,)
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def update_task(self, task_id: int, user_id: int, **fields: Any) -> Task | None:
        """Apply a partial update. Returns None if the task isn't the user's."""
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_task(task_id, user_id)

        if "date" in fields:
            fields["date"] = _to_iso(fields["date"])
        if "completed" in fields:
            fields["completed"] = int(bool(fields["completed"]))

        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ? AND user_id = ?",
                (*fields.values(), task_id, user_id),
            )
        if cursor.rowcount == 0:
            return None
        logger.info("Task #%d updated: %s", task_id, ", ".join(fields))
        return self.get_task(task_id, user_id)

    def toggle_completed(self, task_id: int, user_id: int) -> Task | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE tasks SET completed = 1 - completed WHERE id = ? AND user_id = ?",
                (task_id, user_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_task(task_id, user_id)

    def delete_task(self, task_id: int, user_id: int) -> bool:
        """Permanently delete a task."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted


class AlarmDB(_SQLiteDB):
    """SQLite-backed storage for alarms."""

    _UPDATABLE = {"title", "time", "days", "is_active"}

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS alarms (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    title      TEXT    NOT NULL,
                    time       TEXT    NOT NULL,
                    days       TEXT,
                    is_active  INTEGER NOT NULL DEFAULT 1,
                    user_id    INTEGER NOT NULL
                )
            """)
        logger.debug("Alarms table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_alarm(row: sqlite3.Row) -> Alarm:
        return Alarm(
            id=row["id"],
            title=row["title"],
            time=_from_iso(row["time"]),
            days=row["days"] or "Once",
            is_active=bool(row["is_active"]),
            user_id=row["user_id"],
        )

    def add_alarm(
        self,
        title: str,
        time: datetime,
        user_id: int,
        days: str = "Once",
        is_active: bool = True,
    ) -> Alarm:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO alarms (title, time, days, is_active, user_id) VALUES (?, ?, ?, ?, ?)",
                (title, _to_iso(time), days, int(is_active), user_id),
            )
            alarm_id = cursor.lastrowid

        logger.info("Alarm added: #%d '%s' at %s (%s) for user %d", alarm_id, title, time.isoformat(), days, user_id)
        return Alarm(
            id=alarm_id, title=title, time=time, days=days, is_active=is_active, user_id=user_id,
        )

    def get_alarm(self, alarm_id: int, user_id: int) -> Alarm | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM alarms WHERE id = ? AND user_id = ?", (alarm_id, user_id)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_alarm(row)

    def list_alarms(self, user_id: int) -> list[Alarm]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM alarms WHERE user_id = ? ORDER BY time, id", (user_id,)
            ).fetchall()
        return [self._row_to_alarm(r) for r in rows]

    def update_alarm(self, alarm_id: int, user_id: int, **fields: Any) -> Alarm | None:
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update alarm fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_alarm(alarm_id, user_id)

        if "time" in fields:
            fields["time"] = _to_iso(fields["time"])
        if "is_active" in fields:
            fields["is_active"] = int(bool(fields["is_active"]))

        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE alarms SET {assignments} WHERE id = ? AND user_id = ?",
                (*fields.values(), alarm_id, user_id),
            )
        if cursor.rowcount == 0:
            return None
        logger.info("Alarm #%d updated: %s", alarm_id, ", ".join(fields))
        return self.get_alarm(alarm_id, user_id)

    def set_active(self, alarm_id: int, user_id: int, active: bool) -> Alarm | None:
        return self.update_alarm(alarm_id, user_id, is_active=active)

    def delete_alarm(self, alarm_id: int, user_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM alarms WHERE id = ? AND user_id = ?", (alarm_id, user_id)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Alarm #%d deleted", alarm_id)
        return deleted


class MessageDB(_SQLiteDB):
    """Append-only chat history."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    content    TEXT    NOT NULL,
                    is_user    INTEGER NOT NULL DEFAULT 1,
                    timestamp  TEXT    NOT NULL,
                    user_id    INTEGER NOT NULL
                )
            """)
        logger.debug("Messages table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            content=row["content"],
            is_user=bool(row["is_user"]),
            timestamp=_from_iso(row["timestamp"]),
            user_id=row["user_id"],
        )

    def add_message(self, content: str, is_user: bool, user_id: int) -> Message:
        # UTC keeps the ISO text sortable across DST changes
        timestamp = datetime.now(timezone.utc)
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO messages (content, is_user, timestamp, user_id) VALUES (?, ?, ?, ?)",
                (content, int(is_user), _to_iso(timestamp), user_id),
            )
            message_id = cursor.lastrowid

        logger.debug("Message #%d stored for user %d (is_user=%s)", message_id, user_id, is_user)
        return Message(
            id=message_id, content=content, is_user=is_user, timestamp=timestamp, user_id=user_id,
        )

    def list_messages(self, user_id: int, limit: int | None = None) -> list[Message]:
        """Return the user's messages oldest first.

        With a limit, only the most recent `limit` messages are returned
        (still oldest first). Equal timestamps fall back to insertion order.
        """
        query = "SELECT * FROM messages WHERE user_id = ? ORDER BY timestamp DESC, id DESC"
        params: list = [user_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [self._row_to_message(r) for r in reversed(rows)]


class SettingsDB(_SQLiteDB):
    """One settings row per user, created on first access."""

    _FLAGS = ("dark_mode", "notifications", "ai_suggestions", "auto_task_creation", "calendar_sync")

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_settings (
                    user_id             INTEGER PRIMARY KEY,
                    dark_mode           INTEGER NOT NULL DEFAULT 1,
                    notifications       INTEGER NOT NULL DEFAULT 1,
                    ai_suggestions      INTEGER NOT NULL DEFAULT 1,
                    auto_task_creation  INTEGER NOT NULL DEFAULT 1,
                    calendar_sync       INTEGER NOT NULL DEFAULT 0,
                    updated_at          TEXT    NOT NULL
                )
            """)
        logger.debug("Settings table initialized at %s", self._db_path)

    @classmethod
    def _row_to_settings(cls, row: sqlite3.Row) -> UserSettings:
        return UserSettings(
            user_id=row["user_id"],
            updated_at=row["updated_at"],
            **{flag: bool(row[flag]) for flag in cls._FLAGS},
        )

    def get(self, user_id: int) -> UserSettings | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_settings(row)

    def get_or_create(self, user_id: int) -> UserSettings:
        """Fetch the user's settings, inserting the defaults on first access."""
        defaults = UserSettings(user_id=user_id)
        columns = ", ".join(self._FLAGS)
        with self._connect() as conn:
            cursor = conn.execute(
                f"""
                INSERT OR IGNORE INTO user_settings (user_id, {columns}, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, *(int(getattr(defaults, f)) for f in self._FLAGS), _now_iso()),
            )
            if cursor.rowcount:
                logger.info("Default settings created for user %d", user_id)
            row = conn.execute(
                "SELECT * FROM user_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        return self._row_to_settings(row)

    def update(self, user_id: int, **flags: bool) -> UserSettings:
        """Update some flags; missing settings are created with defaults first."""
        unknown = set(flags) - set(self._FLAGS)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        self.get_or_create(user_id)
        if flags:
            assignments = ", ".join(f"{name} = ?" for name in flags)
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE user_settings SET {assignments}, updated_at = ? WHERE user_id = ?",
                    (*(int(bool(v)) for v in flags.values()), _now_iso(), user_id),
                )
            logger.info("Settings updated for user %d: %s", user_id, flags)
        return self.get_or_create(user_id)


class Store:
    """All entity tables behind one explicitly constructed object.

    Implements StorePort for the chat service; the per-table classes are
    exposed as attributes for everything else.
    """

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self.users = UserDB(db_path)
        self.categories = CategoryDB(db_path)
        self.tasks = TaskDB(db_path)
        self.alarms = AlarmDB(db_path)
        self.messages = MessageDB(db_path)
        self.settings = SettingsDB(db_path)

    def register_user(
        self, username: str, name: str | None = None, email: str | None = None,
    ) -> User:
        """Add a user and seed their default categories."""
        user = self.users.add_user(username, name=name, email=email)
        for cat_name, color in DEFAULT_CATEGORIES:
            self.categories.add_category(cat_name, color, user.id)
        return user

    # ------------------------------------------------------------------
    # StorePort
    # ------------------------------------------------------------------

    def create_message(self, content: str, is_user: bool, user_id: int) -> Message:
        return self.messages.add_message(content, is_user, user_id)

    def get_messages(self, user_id: int, limit: int | None = None) -> list[Message]:
        return self.messages.list_messages(user_id, limit=limit)

    def create_task(self, fields: TaskFields, user_id: int) -> Task:
        return self.tasks.add_task(
            title=fields.title,
            date=fields.date,
            user_id=user_id,
            description=fields.description,
            completed=fields.completed,
            category_id=fields.category_id,
        )

    def create_alarm(self, fields: AlarmFields, user_id: int) -> Alarm:
        return self.alarms.add_alarm(
            title=fields.title,
            time=fields.time,
            user_id=user_id,
            days=fields.days,
            is_active=fields.is_active,
        )

    def get_categories(self, user_id: int) -> list[Category]:
        return self.categories.list_categories(user_id)
