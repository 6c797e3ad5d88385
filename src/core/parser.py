"""
Aura Assistant — LLM reply parser.

The model answers in natural language and, when the user wants a task or an
alarm, appends one inline JSON object describing it. This module owns that
fragile protocol: it builds the system prompt, finds and strips the JSON
span, and validates the payload into a typed intent.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.core.intents import CreateAlarm, CreateTask, Intent, NoIntent

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JSON contract embedded in the model's reply
# ---------------------------------------------------------------------------


class TaskPayload(BaseModel):
    """Task request embedded by the model.

    JSON example:
    {"type": "task", "title": "Doctor's appointment",
     "date": "2026-02-14T14:00:00", "description": "Annual check-up",
     "categoryId": 2}
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    type: Literal["task"]
    title: str = Field(min_length=1)
    date: datetime
    description: str | None = None
    category_id: int | None = Field(default=None, alias="categoryId")


class AlarmPayload(BaseModel):
    """Alarm request embedded by the model.

    JSON example:
    {"type": "alarm", "title": "Wake up", "time": "2026-02-14T07:00:00",
     "days": "Mon-Fri"}
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: Literal["alarm"]
    title: str = Field(min_length=1)
    time: datetime
    days: str | None = None


# ---------------------------------------------------------------------------
# System prompt for LLM
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are Aura, an AI assistant for a task and alarm management app.
Analyze the user message and identify if they want to create a task or set an alarm.
If so, extract the relevant details (title, date/time, description if any).

The current date and time is {now} ({timezone}).

Reply in friendly natural language. If a task or alarm should be created, put exactly
one JSON object at the end of your reply, using one of these schemas:

Task:
{{"type": "task", "title": "string", "date": "YYYY-MM-DDTHH:MM:SS", "description": "string"}}

Alarm:
{{"type": "alarm", "title": "string", "time": "YYYY-MM-DDTHH:MM:SS", "days": "Once"}}

- "date" / "time" are full ISO datetimes in the user's local time.
- Interpret relative dates ("tomorrow", "next Monday") relative to now.
- "days" is one of "Once", "Daily", "Mon-Fri", "Sat-Sun" or a comma list like "Mon,Wed,Fri".
- If the user isn't asking for a task or an alarm, do not include any JSON.
"""

_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}")
_EMPTY_FENCE_RE = re.compile(r"```(?:json)?\s*```")


def build_system_prompt(now: datetime) -> str:
    tz_name = now.tzname() or "local time"
    return _SYSTEM_PROMPT.format(now=now.strftime("%Y-%m-%d %H:%M"), timezone=tz_name)


# ---------------------------------------------------------------------------
# Reply splitting
# ---------------------------------------------------------------------------


@dataclass
class ModelReply:
    """The model's reply split into display text and an optional payload."""

    text: str
    payload: dict[str, Any] | None = None


def _handle_json_decode_error(exc: json.JSONDecodeError, raw_text: str) -> None:
    """Log and handle JSON decoding errors from LLM response."""
    logger.error("Failed to parse LLM response JSON: %s — raw: '%s'", exc, raw_text)


def _handle_unknown_type(kind: Any) -> None:
    logger.warning("LLM returned unknown payload type: '%s'", kind)


def split_model_reply(raw_text: str) -> ModelReply:
    """Locate the embedded `{...}` span, parse it and strip it from the text.

    The span runs from the first "{" to the last "}". When it doesn't parse,
    the payload is None and the raw text is kept as the reply.
    """
    match = _JSON_SPAN_RE.search(raw_text)
    if match is None:
        return ModelReply(text=raw_text.strip())

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        _handle_json_decode_error(exc, raw_text)
        return ModelReply(text=raw_text.strip())

    text = raw_text[:match.start()] + raw_text[match.end():]
    text = _EMPTY_FENCE_RE.sub("", text).strip()
    return ModelReply(text=text, payload=data)


# ---------------------------------------------------------------------------
# Payload → intent
# ---------------------------------------------------------------------------


def _localize(value: datetime, tz: tzinfo) -> datetime:
    """Treat naive datetimes as the user's local time."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def payload_to_intent(payload: dict[str, Any], tz: tzinfo) -> Intent:
    """Validate a parsed payload into CreateTask / CreateAlarm.

    Anything incomplete or of an unknown type becomes NoIntent; a partial
    entity is never produced.
    """
    kind = payload.get("type")

    try:
        if kind == "task":
            task = TaskPayload.model_validate(payload)
            logger.info("Parsed task creation: %s at %s", task.title, task.date)
            return CreateTask(
                title=task.title,
                date=_localize(task.date, tz),
                description=task.description,
                category_id=task.category_id,
            )
        if kind == "alarm":
            alarm = AlarmPayload.model_validate(payload)
            logger.info("Parsed alarm creation: %s at %s", alarm.title, alarm.time)
            return CreateAlarm(
                title=alarm.title,
                time=_localize(alarm.time, tz),
                days=alarm.days or "Once",
            )
    except ValidationError as exc:
        logger.warning("Rejected %s payload from LLM: %s", kind, exc)
        return NoIntent()

    _handle_unknown_type(kind)
    return NoIntent()
