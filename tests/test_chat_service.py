"""Tests for src.core.chat_service — one chat turn end to end.

Uses a real temp-file Store and the keyword extractor with a fixed clock;
the model strategy is driven by a mocked completion function.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.chat_service import ChatService, CreatedEntity, TurnError, TurnResult
from src.core.composer import CLARIFICATION_PROMPT, FAILURE_REPLY
from src.core.extractor import Extraction, KeywordIntentExtractor, ModelIntentExtractor
from src.core.intents import CreateTask
from src.data.models import Alarm, Task
from src.ports.store_port import StoreError

# Monday 2026-02-09 10:15:30 UTC
FIXED_NOW = datetime(2026, 2, 9, 10, 15, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _keyword_service(store):
    return ChatService(store, KeywordIntentExtractor(clock=lambda: FIXED_NOW))


def _model_service(store, response=None, side_effect=None):
    complete = AsyncMock(return_value=response, side_effect=side_effect)
    extractor = ModelIntentExtractor(
        complete=complete,
        fallback=KeywordIntentExtractor(clock=lambda: FIXED_NOW),
        clock=lambda: FIXED_NOW,
    )
    return ChatService(store, extractor)


# ---------------------------------------------------------------------------
# Keyword strategy turns
# ---------------------------------------------------------------------------


class TestKeywordTurns:
    @pytest.mark.asyncio
    async def test_doctor_appointment_scenario(self, store, user):
        service = _keyword_service(store)
        result = await service.process_turn(
            user.id, "I need to schedule a doctor's appointment tomorrow at 2pm",
        )

        assert isinstance(result, TurnResult)
        assert result.created_entity is not None
        assert result.created_entity.type == "task"
        task = result.created_entity.data
        assert isinstance(task, Task)
        assert task.title == "I need to schedule..."
        assert task.date == datetime(2026, 2, 10, 14, 0, tzinfo=timezone.utc)
        assert task.user_id == user.id
        assert "2:00 PM" in result.assistant_message.content
        assert result.assistant_message.is_user is False

    @pytest.mark.asyncio
    async def test_created_task_is_readable(self, store, user):
        service = _keyword_service(store)
        result = await service.process_turn(user.id, "remind me to pay rent at 9:30am")

        tasks = store.tasks.list_tasks(user.id)
        assert len(tasks) == 1
        assert tasks[0].id == result.created_entity.data.id
        assert tasks[0].title == "remind me to pay..."
        assert tasks[0].date == FIXED_NOW.replace(hour=9, minute=30, second=0)

    @pytest.mark.asyncio
    async def test_task_gets_default_category(self, store, user):
        service = _keyword_service(store)
        result = await service.process_turn(user.id, "meeting at 3pm")

        default = store.get_categories(user.id)[0]
        assert result.created_entity.data.category_id == default.id

    @pytest.mark.asyncio
    async def test_task_without_categories(self, store):
        bare = store.users.add_user("bare")
        service = _keyword_service(store)
        result = await service.process_turn(bare.id, "meeting at 3pm")
        assert result.created_entity.data.category_id is None

    @pytest.mark.asyncio
    async def test_wake_me_scenario(self, store, user):
        service = _keyword_service(store)
        result = await service.process_turn(user.id, "wake me at 7am")

        assert result.created_entity.type == "alarm"
        alarm = result.created_entity.data
        assert isinstance(alarm, Alarm)
        assert (alarm.time.hour, alarm.time.minute) == (7, 0)
        assert alarm.days == "Once"
        assert alarm.is_active is True
        assert store.alarms.list_alarms(user.id)[0].id == alarm.id
        assert "07:00 AM" in result.assistant_message.content

    @pytest.mark.asyncio
    async def test_both_keywords_only_creates_task(self, store, user):
        service = _keyword_service(store)
        result = await service.process_turn(user.id, "set an alarm for the meeting at 4pm")

        assert result.created_entity.type == "task"
        assert len(store.tasks.list_tasks(user.id)) == 1
        assert store.alarms.list_alarms(user.id) == []

    @pytest.mark.asyncio
    async def test_hello_scenario(self, store, user):
        service = _keyword_service(store)
        result = await service.process_turn(user.id, "hello")

        assert result.created_entity is None
        assert result.assistant_message.content == CLARIFICATION_PROMPT
        assert store.tasks.list_tasks(user.id) == []
        assert store.alarms.list_alarms(user.id) == []

    @pytest.mark.asyncio
    async def test_both_messages_persisted_in_order(self, store, user):
        service = _keyword_service(store)
        await service.process_turn(user.id, "hello")

        history = service.history(user.id)
        assert [m.is_user for m in history] == [True, False]
        assert history[0].content == "hello"
        assert history[1].content == CLARIFICATION_PROMPT

    @pytest.mark.asyncio
    async def test_entities_are_owner_scoped(self, store, user, other_user):
        service = _keyword_service(store)
        await service.process_turn(user.id, "meeting at 3pm")

        assert store.tasks.list_tasks(other_user.id) == []
        assert service.history(other_user.id) == []


# ---------------------------------------------------------------------------
# Model strategy turns
# ---------------------------------------------------------------------------


class TestModelTurns:
    @pytest.mark.asyncio
    async def test_model_task_and_reply(self, store, user):
        service = _model_service(
            store,
            response=(
                "Done! I've added your dentist visit.\n"
                '{"type": "task", "title": "Dentist", "date": "2026-02-10T16:00:00", "description": "Checkup"}'
            ),
        )
        result = await service.process_turn(user.id, "dentist tomorrow at 4pm")

        assert result.assistant_message.content == "Done! I've added your dentist visit."
        task = result.created_entity.data
        assert task.title == "Dentist"
        assert task.description == "Checkup"
        assert task.date == datetime(2026, 2, 10, 16, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_model_category_must_be_owned(self, store, user, other_user):
        foreign = store.get_categories(other_user.id)[0].id
        service = _model_service(
            store,
            response=f'Ok {{"type": "task", "title": "X", "date": "2026-02-10T09:00:00", "categoryId": {foreign}}}',
        )
        result = await service.process_turn(user.id, "task X")
        assert result.created_entity.data.category_id == store.get_categories(user.id)[0].id

    @pytest.mark.asyncio
    async def test_model_owned_category_kept(self, store, user):
        work = store.get_categories(user.id)[1].id
        service = _model_service(
            store,
            response=f'Ok {{"type": "task", "title": "Report", "date": "2026-02-10T09:00:00", "categoryId": {work}}}',
        )
        result = await service.process_turn(user.id, "work task")
        assert result.created_entity.data.category_id == work

    @pytest.mark.asyncio
    async def test_malformed_model_json_does_not_escape(self, store, user):
        raw = "I'll note that {not: valid json}"
        service = _model_service(store, response=raw)
        result = await service.process_turn(user.id, "schedule something at 3pm")

        assert result.created_entity is None
        assert result.assistant_message.content == raw
        history = store.get_messages(user.id)
        assert len(history) == 2
        assert history[0].is_user and not history[1].is_user

    @pytest.mark.asyncio
    async def test_model_unavailable_uses_keywords(self, store, user):
        service = _model_service(store, side_effect=Exception("connection refused"))
        result = await service.process_turn(user.id, "wake me at 7am")

        assert result.created_entity.type == "alarm"
        assert "07:00 AM" in result.assistant_message.content
        assert "connection refused" not in result.assistant_message.content

    @pytest.mark.asyncio
    async def test_tasks_from_both_strategies_list_chronologically(self, store, user):
        await _keyword_service(store).process_turn(user.id, "meeting tomorrow at 10am")
        # 09:00-05:00 is 14:00 UTC, four hours after the keyword meeting
        await _model_service(
            store,
            response='Booked. {"type": "task", "title": "call", "date": "2026-02-10T09:00:00-05:00"}',
        ).process_turn(user.id, "call at 9 eastern")

        titles = [t.title for t in store.tasks.list_tasks(user.id)]
        assert titles == ["meeting tomorrow at 10am...", "call"]

    @pytest.mark.asyncio
    async def test_model_incomplete_payload_creates_nothing(self, store, user):
        service = _model_service(store, response='Sure. {"type": "alarm", "title": "Wake"}')
        result = await service.process_turn(user.id, "alarm please")

        assert result.created_entity is None
        assert store.alarms.list_alarms(user.id) == []
        assert result.assistant_message.content == "Sure."


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_extractor_exception_gives_safe_reply(self, store, user):
        extractor = MagicMock()
        extractor.extract = AsyncMock(side_effect=RuntimeError("boom"))
        service = ChatService(store, extractor)

        result = await service.process_turn(user.id, "schedule a meeting at 2pm")

        assert result.created_entity is None
        assert result.assistant_message.content == FAILURE_REPLY
        assert "boom" not in result.assistant_message.content
        assert len(store.get_messages(user.id)) == 2

    @pytest.mark.asyncio
    async def test_store_failure_on_user_message_aborts_before_extraction(self):
        store = MagicMock()
        store.create_message.side_effect = StoreError("disk full")
        extractor = MagicMock()
        extractor.extract = AsyncMock()
        service = ChatService(store, extractor)

        with pytest.raises(TurnError):
            await service.process_turn(1, "hello")
        extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_on_entity_write_is_turn_error(self):
        store = MagicMock()
        store.get_categories.return_value = []
        store.create_task.side_effect = StoreError("locked")
        extractor = MagicMock()
        extractor.extract = AsyncMock(return_value=Extraction(
            intent=CreateTask(title="X...", date=FIXED_NOW),
        ))
        service = ChatService(store, extractor)

        with pytest.raises(TurnError) as exc_info:
            await service.process_turn(1, "task X")
        assert isinstance(exc_info.value.__cause__, StoreError)
        # only the user's message was written
        assert store.create_message.call_count == 1

    @pytest.mark.asyncio
    async def test_store_failure_on_reply_is_turn_error(self):
        store = MagicMock()
        store.create_message.side_effect = [MagicMock(), StoreError("locked")]
        service = ChatService(store, KeywordIntentExtractor(clock=lambda: FIXED_NOW))

        with pytest.raises(TurnError):
            await service.process_turn(1, "hello")

    @pytest.mark.asyncio
    async def test_interleaved_turns_keep_history_ordered(self, store, user):
        service = _keyword_service(store)
        for text in ("hello", "wake me at 6am", "meeting at 9am"):
            await service.process_turn(user.id, text)

        history = service.history(user.id)
        assert len(history) == 6
        assert [m.id for m in history] == sorted(m.id for m in history)
        assert history[-1].is_user is False


def test_created_entity_shape():
    task = Task(id=1, title="T", date=FIXED_NOW + timedelta(hours=1), user_id=1)
    entity = CreatedEntity(type="task", data=task)
    assert entity.data.title == "T"
