"""Reply composition for a chat turn — pure business logic.

No I/O: turns an Extraction into the assistant's reply text, never empty.
"""

from __future__ import annotations

from src.core.extractor import Extraction
from src.core.intents import CreateAlarm, CreateTask
from src.core.time_parser import format_12h

CLARIFICATION_PROMPT = (
    "I understand you need assistance. Could you please provide more details "
    "about what you'd like me to help you with?"
)

FAILURE_REPLY = (
    "Sorry, I couldn't work that out just now. Could you try rephrasing?"
)


def compose_reply(extraction: Extraction) -> str:
    """Model text when there is some, otherwise a templated confirmation."""
    text = extraction.reply_text.strip()
    if text:
        return text

    intent = extraction.intent
    if isinstance(intent, CreateTask):
        return (
            f"I've added a task for {intent.title} at {format_12h(intent.date)}. "
            "Is there anything else you need?"
        )
    if isinstance(intent, CreateAlarm):
        return (
            f"I've set an alarm for {format_12h(intent.time)}. "
            "Is there anything else you need?"
        )
    return CLARIFICATION_PROMPT
