"""Tests for src.data.models — entity dataclasses."""

from dataclasses import asdict
from datetime import datetime, timezone

from src.data.models import Alarm, AlarmFields, Message, Task, TaskFields, UserSettings

WHEN = datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc)


def test_task_defaults():
    task = Task(id=1, title="Dentist", date=WHEN, user_id=7)
    assert task.description is None
    assert task.completed is False
    assert task.category_id is None


def test_alarm_defaults():
    alarm = Alarm(id=1, title="Wake", time=WHEN, user_id=7)
    assert alarm.days == "Once"
    assert alarm.is_active is True


def test_settings_defaults():
    prefs = UserSettings(user_id=7)
    assert asdict(prefs) == {
        "user_id": 7,
        "dark_mode": True,
        "notifications": True,
        "ai_suggestions": True,
        "auto_task_creation": True,
        "calendar_sync": False,
        "updated_at": "",
    }


def test_creation_payload_defaults():
    assert TaskFields(title="A", date=WHEN).completed is False
    fields = AlarmFields(title="B", time=WHEN)
    assert (fields.days, fields.is_active) == ("Once", True)


def test_message_to_dict():
    msg = Message(id=3, content="hello", is_user=True, timestamp=WHEN, user_id=7)
    d = asdict(msg)
    assert d["content"] == "hello"
    assert d["is_user"] is True
    assert d["timestamp"] == WHEN
