"""Structural capability interfaces consumed by the session orchestrator.

Concrete engines (mocks, subprocess wrappers, plugin-backed executors) only
need to satisfy these shapes; nothing inherits from them.
"""

from typing import Any, Protocol

from friday.events import EventSender
from friday.intents import Intent
from friday.plugins.manifest import PluginContext, PluginManifest, PluginResult


class WakeDetector(Protocol):
    """Suspends until the user addresses the assistant."""

    async def wait_for_wake(self) -> None: ...


class SpeechToText(Protocol):
    """Captures one utterance and returns its transcript.

    May send ``PartialTranscript`` events on *sink* before returning.
    """

    async def stream_until_silence(self, sink: EventSender) -> str: ...


class TextToSpeech(Protocol):
    """Speaks *text*, bracketed by ``TtsStarted``/``TtsFinished`` events."""

    async def speak(self, text: str, sink: EventSender) -> None: ...


class IntentSource(Protocol):
    def parse_intent(self, text: str) -> Intent: ...


class Executor(Protocol):
    """Carries out an intent and returns the response to speak."""

    async def execute(self, intent: Intent, sink: EventSender) -> str: ...


class Plugin(Protocol):
    """A third-party capability hosted by the plugin runtime."""

    @property
    def manifest(self) -> PluginManifest: ...

    async def initialize(self, context: PluginContext) -> None: ...

    async def execute(
        self, intent_name: str, parameters: dict[str, Any]
    ) -> PluginResult: ...

    async def cleanup(self) -> None: ...

    def validate_config(self, config: dict[str, Any]) -> None: ...
