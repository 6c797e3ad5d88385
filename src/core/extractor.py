"""
Aura Assistant — Intent extraction strategies.

Two interchangeable strategies behind the IntentExtractor protocol:

* KeywordIntentExtractor — keyword classification plus a regex time token.
  Deterministic, no network.
* ModelIntentExtractor — asks the configured LLM and reads the JSON it
  embeds in its reply. Any provider error or timeout hands the utterance
  to the keyword strategy for that turn.

`build_extractor()` picks one once per process, based on whether an LLM
API key is configured.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Protocol
from zoneinfo import ZoneInfo

from src.core.intents import CreateAlarm, CreateTask, Intent, NoIntent
from src.core.parser import build_system_prompt, payload_to_intent, split_model_reply
from src.core.time_parser import resolve_time

logger = logging.getLogger(__name__)

TASK_KEYWORDS = ("schedule", "task", "appointment", "meeting", "remind me to")
ALARM_KEYWORDS = ("alarm", "reminder", "wake me", "alert")

_TITLE_WORDS = 4
_DEFAULT_ALARM_TITLE = "Alarm"

Clock = Callable[[], datetime]
CompleteFn = Callable[..., Awaitable[str]]


def _default_clock() -> datetime:
    from src.config import settings

    return datetime.now(ZoneInfo(settings.TIMEZONE))


@dataclass
class Extraction:
    """What one strategy made of one utterance."""

    intent: Intent = field(default_factory=NoIntent)
    strategy: str = "keyword"   # "keyword" | "model"
    reply_text: str = ""        # model reply with the JSON stripped; "" for keyword


class IntentExtractor(Protocol):
    """Classify an utterance and extract a creation payload."""

    async def extract(self, text: str) -> Extraction: ...


# ---------------------------------------------------------------------------
# Keyword strategy
# ---------------------------------------------------------------------------


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def derive_task_title(text: str) -> str:
    """First four words of the utterance plus an ellipsis."""
    return " ".join(text.split()[:_TITLE_WORDS]) + "..."


class KeywordIntentExtractor:
    """Lexical fallback: keyword presence decides, task before alarm."""

    strategy = "keyword"

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or _default_clock

    async def extract(self, text: str) -> Extraction:
        return self.classify(text)

    def classify(self, text: str) -> Extraction:
        """Synchronous core of extract(); pure apart from reading the clock."""
        if not text or not text.strip():
            return Extraction(intent=NoIntent(), strategy=self.strategy)

        if _contains_any(text, TASK_KEYWORDS):
            when = resolve_time(text, self._clock())
            if "tomorrow" in text.lower():
                when += timedelta(days=1)
            intent: Intent = CreateTask(
                title=derive_task_title(text),
                date=when,
                description=text,
            )
        elif _contains_any(text, ALARM_KEYWORDS):
            intent = CreateAlarm(
                title=_DEFAULT_ALARM_TITLE,
                time=resolve_time(text, self._clock()),
                days="Once",
            )
        else:
            intent = NoIntent()

        logger.debug("Keyword extraction: %s", type(intent).__name__)
        return Extraction(intent=intent, strategy=self.strategy)


# ---------------------------------------------------------------------------
# Model strategy
# ---------------------------------------------------------------------------


class ModelIntentExtractor:
    """Delegates to the LLM; degrades to `fallback` when the service fails."""

    strategy = "model"

    def __init__(
        self,
        complete: CompleteFn,
        fallback: IntentExtractor,
        timeout: float = 20.0,
        clock: Clock | None = None,
        max_tokens: int = 512,
    ) -> None:
        self._complete = complete
        self._fallback = fallback
        self._timeout = timeout
        self._clock = clock or _default_clock
        self._max_tokens = max_tokens

    async def extract(self, text: str) -> Extraction:
        if not text or not text.strip():
            return Extraction(intent=NoIntent(), strategy=self.strategy)

        now = self._clock()
        try:
            raw_text = await asyncio.wait_for(
                self._complete(
                    system=build_system_prompt(now),
                    user_message=text,
                    max_tokens=self._max_tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("LLM call timed out after %.1fs — using keyword extraction", self._timeout)
            return await self._fallback.extract(text)
        except Exception as exc:
            logger.warning("LLM unavailable (%s) — using keyword extraction", exc)
            return await self._fallback.extract(text)

        reply = split_model_reply(raw_text or "")
        intent: Intent = NoIntent()
        if reply.payload is not None:
            intent = payload_to_intent(reply.payload, now.tzinfo or ZoneInfo("UTC"))

        return Extraction(intent=intent, strategy=self.strategy, reply_text=reply.text)


# ---------------------------------------------------------------------------
# Selection (once per process)
# ---------------------------------------------------------------------------


def build_extractor(clock: Clock | None = None) -> IntentExtractor:
    """Model strategy when an LLM key is configured, keyword strategy otherwise."""
    from src.config import settings
    from src.core import llm

    keyword = KeywordIntentExtractor(clock)
    if not llm.is_configured():
        logger.info("No LLM_API_KEY configured — using keyword intent extraction")
        return keyword

    logger.info("Using LLM intent extraction (provider: %s)", settings.LLM_PROVIDER)
    return ModelIntentExtractor(
        complete=llm.complete,
        fallback=keyword,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        clock=clock,
    )
