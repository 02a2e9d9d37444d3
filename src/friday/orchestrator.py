"""Session orchestrator: one pass of wake, listen, understand, act, speak.

``SessionOrchestrator.run_once`` drives the injected engines in strict
order and publishes progress on the event bus. A failing stage aborts the
turn with that stage's ``PipelineError``; ``run_sessions`` logs it and
starts the next session. Sessions never overlap, though work a turn
detaches (timers) keeps running after it returns.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

from friday.constants import DEFAULT_SESSION_ID
from friday.dialogue import DialogueManager
from friday.env import LOGGER
from friday.errors import (
    AsrError,
    ExecutionError,
    FridayError,
    PipelineError,
    TtsError,
    WakeError,
)
from friday.events import (
    EventBus,
    EventHandler,
    EventSender,
    FinalTranscript,
    IntentRecognized,
    WakeDetected,
    consume_events,
)
from friday.intents import Intent
from friday.protocols import (
    Executor,
    IntentSource,
    SpeechToText,
    TextToSpeech,
    WakeDetector,
)

T = TypeVar("T")


async def _stage(error: type[PipelineError], work: Awaitable[T]) -> T:
    """Await *work*, re-raising foreign exceptions as the stage's error."""
    try:
        return await work
    except PipelineError:
        raise
    except FridayError as exc:
        raise error(str(exc)) from exc
    except Exception as exc:
        raise error(f"{type(exc).__name__}: {exc}") from exc


class SessionOrchestrator:
    """Runs the assistant pipeline over interchangeable engines."""

    def __init__(
        self,
        wake: WakeDetector,
        stt: SpeechToText,
        intent_source: IntentSource,
        executor: Executor,
        tts: TextToSpeech,
        *,
        dialogue: DialogueManager | None = None,
        session_id: str = DEFAULT_SESSION_ID,
    ) -> None:
        self.wake = wake
        self.stt = stt
        self.intent_source = intent_source
        self.executor = executor
        self.tts = tts
        self.dialogue = dialogue
        self.session_id = session_id

    async def run_once(self, sink: EventSender) -> None:
        """Run one full session turn, sending progress events on *sink*."""
        start = time.perf_counter()

        await _stage(WakeError, self.wake.wait_for_wake())
        await sink.send(WakeDetected())

        text = await _stage(AsrError, self.stt.stream_until_silence(sink))
        text = text.strip()
        await sink.send(FinalTranscript(text))

        intent, reply = self._resolve(text)
        if intent is None:
            # Dialogue prompt or cancellation: answer without executing.
            response = reply or ""
        else:
            await sink.send(IntentRecognized(intent))
            response = await _stage(ExecutionError, self.executor.execute(intent, sink))

        await _stage(TtsError, self.tts.speak(response, sink))
        LOGGER.debug(
            "Session %s turn finished in %.0fms",
            self.session_id,
            (time.perf_counter() - start) * 1000,
        )

    def _resolve(self, text: str) -> tuple[Intent | None, str | None]:
        if self.dialogue is None:
            return self.intent_source.parse_intent(text), None
        turn = self.dialogue.process_turn(self.session_id, text)
        if turn.needs_more_input or turn.intent is None:
            return None, turn.text
        return turn.intent, turn.text


async def run_sessions(
    orchestrator: SessionOrchestrator,
    sink: EventSender,
    sessions: int = 1,
) -> int:
    """Run *sessions* turns back to back; return how many failed.

    A failed turn is logged and the loop moves on. *sink* is closed when
    the loop ends so the event consumer can finish once detached tasks
    drop their own handles.
    """
    failures = 0
    with sink:
        for index in range(sessions):
            try:
                await orchestrator.run_once(sink)
            except PipelineError as exc:
                failures += 1
                LOGGER.error("session error: [%s] %s", exc.stage, exc)
            else:
                LOGGER.debug("Session %d/%d complete", index + 1, sessions)
    return failures


async def run_with_bus(
    orchestrator: SessionOrchestrator,
    bus: EventBus,
    handler: EventHandler,
    sessions: int = 1,
) -> int:
    """Run sessions while a consumer drains *bus* into *handler*.

    Returns the failure count once every event, including those sent by
    detached timers, has been handled.
    """
    consumer = asyncio.create_task(consume_events(bus, handler))
    failures = await run_sessions(orchestrator, bus.sender(), sessions)
    await consumer
    return failures
