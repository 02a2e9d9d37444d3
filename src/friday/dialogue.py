"""Multi-turn dialogue: per-session state and slot filling.

Each session is either idle (no active intent) or awaiting one slot of an
active intent. A new utterance goes through the intent matcher; if the
resulting intent type declares required slots, every slot that can be
pulled out of the utterance is filled and the first missing one is
prompted for. Follow-up turns are treated as answers to that prompt until
the intent is complete, then the state returns to idle.

Sessions are created lazily, purged after ``session_timeout_seconds`` of
inactivity, and evicted least-recently-active first once there are more
than ``max_sessions``.
"""

from __future__ import annotations

import logging
import re
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from friday.constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_LANGUAGE,
    DEFAULT_MAX_SESSIONS,
    DEFAULT_SESSION_TIMEOUT_SECONDS,
)
from friday.errors import SlotExtractionError
from friday.intents import AppLaunch, Intent, Timer, Unknown, Weather
from friday.matcher import (
    extract_app,
    extract_location,
    extract_timer,
    format_duration,
    parse_duration,
)
from friday.protocols import IntentSource

_log = logging.getLogger("friday")


@dataclass(frozen=True, slots=True)
class DialogueConfig:
    """Session bookkeeping limits."""

    session_timeout_seconds: float = DEFAULT_SESSION_TIMEOUT_SECONDS
    max_sessions: int = DEFAULT_MAX_SESSIONS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    language: str = DEFAULT_LANGUAGE
    default_location: str | None = None

    def __post_init__(self) -> None:
        if self.session_timeout_seconds <= 0:
            raise ValueError("session_timeout_seconds must be positive")
        if self.max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")


# ---------------------------------------------------------------------------
# Slot schemas
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SlotSchema:
    intent_type: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()


SLOT_SCHEMAS: Final[Mapping[str, SlotSchema]] = {
    "timer": SlotSchema("timer", ("duration",), ("label",)),
    "weather": SlotSchema("weather", ("location",)),
    "app_launch": SlotSchema("app_launch", ("app_name",)),
}

SLOT_PROMPTS: Final[Mapping[str, str]] = {
    "duration": "How long should I set the timer for?",
    "label": "What should I call this timer?",
    "location": "Which city would you like the weather for?",
    "app_name": "Which app would you like me to open?",
}

REPROMPT_PREFIX: Final = "Sorry, I didn't understand that. "
CANCELLED_RESPONSE: Final = "Okay, never mind."

# Utterances the matcher cannot classify but that clearly start a
# slot-bearing intent.
_TRIGGERS: Final = (
    (re.compile(r"\b(?:timer|remind\s+me|alarm)\b", re.I), "timer"),
    (re.compile(r"\b(?:weather|forecast|temperature)\b", re.I), "weather"),
    (re.compile(r"^\s*(?:please\s+)?(?:open|launch)\W*$", re.I), "app_launch"),
)
_CANCEL_RE: Final = re.compile(
    r"^\s*(?:cancel|never\s*mind|forget\s+it|stop)\b", re.I
)
_LEADING_WORDS_RE: Final = re.compile(
    r"^\s*(?:in|for|at|to|open|launch|call\s+it|it'?s|the)\s+", re.I
)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DialogueContext:
    language: str = DEFAULT_LANGUAGE
    location: str | None = None
    topics: deque[str] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_LIMIT)
    )


@dataclass(slots=True)
class ActiveIntent:
    """An intent being assembled over several turns.

    ``missing_slots`` is always the required slots not yet filled, in
    declaration order; the next prompt targets ``missing_slots[0]``.
    """

    intent_type: str
    required_slots: tuple[str, ...]
    optional_slots: tuple[str, ...] = ()
    filled_slots: dict[str, Any] = field(default_factory=dict)
    missing_slots: list[str] = field(default_factory=list)
    utterance: str = ""

    def refresh_missing(self) -> None:
        self.missing_slots = [
            s for s in self.required_slots if s not in self.filled_slots
        ]

    @property
    def awaiting(self) -> str | None:
        return self.missing_slots[0] if self.missing_slots else None


@dataclass(frozen=True, slots=True)
class Turn:
    user_text: str
    response: str | None
    intent_type: str | None
    timestamp: float


@dataclass(slots=True)
class DialogueState:
    session_id: str
    created_at: float
    last_activity: float
    context: DialogueContext = field(default_factory=DialogueContext)
    active_intent: ActiveIntent | None = None
    history: deque[Turn] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_LIMIT)
    )
    turn_count: int = 0

    @property
    def state(self) -> str:
        """'awaiting_slot' while an intent is incomplete, else 'no_active_intent'."""
        if self.active_intent is not None and self.active_intent.missing_slots:
            return "awaiting_slot"
        return "no_active_intent"


@dataclass(frozen=True, slots=True)
class DialogueResponse:
    """Result of one dialogue turn.

    Attributes:
        text: What to say back. None for intents the dialogue layer passes
            through untouched; the executor produces their reply.
        needs_more_input: True while a slot prompt is outstanding.
        intent: The completed (or passed-through) intent, if any.
        awaiting_slot: Slot the prompt asks for.
    """

    text: str | None
    needs_more_input: bool
    intent: Intent | None = None
    awaiting_slot: str | None = None


# ---------------------------------------------------------------------------
# Slot extraction
# ---------------------------------------------------------------------------


def _clean_free_text(text: str) -> str:
    cleaned = _LEADING_WORDS_RE.sub("", text.strip())
    return cleaned.strip().strip(".,!?\"'").strip()


def extract_slot(slot: str, text: str, *, follow_up: bool) -> Any:
    """Pull one slot value out of *text*.

    On the opening utterance only pattern-anchored values are accepted (a
    location must follow "in", an app name must follow "open"). On a
    follow-up the whole reply is the answer. Raises SlotExtractionError
    when nothing usable is found.
    """
    value: Any = None
    match slot:
        case "duration":
            seconds = parse_duration(text)
            value = seconds if seconds else None
        case "label":
            value = (
                _clean_free_text(text)
                if follow_up
                else extract_timer(text).get("label")
            )
        case "location":
            value = (
                _clean_free_text(text)
                if follow_up
                else extract_location(text).get("location")
            )
            if value and (len(value) < 2 or not re.search(r"[A-Za-z]", value)):
                value = None
        case "app_name":
            value = (
                _clean_free_text(text)
                if follow_up
                else extract_app(text).get("app_name")
            )
    if not value:
        raise SlotExtractionError(slot, text)
    return value


def _seed_slots(intent: Intent) -> dict[str, Any]:
    match intent:
        case Timer(duration_seconds=seconds, label=label):
            slots: dict[str, Any] = {"duration": seconds}
            if label:
                slots["label"] = label
            return slots
        case Weather(location=location) if location:
            return {"location": location}
        case AppLaunch(app_name=app_name):
            return {"app_name": app_name}
    return {}


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class DialogueManager:
    """Slot-filling dialogue state machine keyed by session id.

    The session map is owned by a single orchestrator flow and is not
    guarded for concurrent mutation.
    """

    def __init__(
        self,
        matcher: IntentSource,
        config: DialogueConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._matcher = matcher
        self._config = config or DialogueConfig()
        self._clock = clock
        self._sessions: dict[str, DialogueState] = {}

    @property
    def config(self) -> DialogueConfig:
        return self._config

    @property
    def sessions(self) -> Mapping[str, DialogueState]:
        return self._sessions

    def get_session(self, session_id: str) -> DialogueState | None:
        return self._sessions.get(session_id)

    def end_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def is_awaiting(self, session_id: str) -> bool:
        state = self._sessions.get(session_id)
        return state is not None and state.state == "awaiting_slot"

    # -- bookkeeping -------------------------------------------------------

    def cleanup_expired_sessions(self, now: float | None = None) -> list[str]:
        """Drop sessions idle for longer than the configured timeout."""
        now = self._clock() if now is None else now
        cutoff = now - self._config.session_timeout_seconds
        expired = [
            sid for sid, state in self._sessions.items()
            if state.last_activity < cutoff
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            _log.debug("Expired %d dialogue session(s)", len(expired))
        return expired

    def _enforce_ceiling(self) -> None:
        while len(self._sessions) > self._config.max_sessions:
            oldest = min(
                self._sessions.values(), key=lambda s: s.last_activity
            )
            _log.debug("Evicting dialogue session %s", oldest.session_id)
            del self._sessions[oldest.session_id]

    def _session(self, session_id: str, now: float) -> DialogueState:
        state = self._sessions.get(session_id)
        if state is None:
            state = DialogueState(
                session_id=session_id,
                created_at=now,
                last_activity=now,
                context=DialogueContext(
                    language=self._config.language,
                    location=self._config.default_location,
                    topics=deque(maxlen=self._config.history_limit),
                ),
                history=deque(maxlen=self._config.history_limit),
            )
            self._sessions[session_id] = state
            self._enforce_ceiling()
        return state

    # -- turns -------------------------------------------------------------

    def process_turn(self, session_id: str, text: str) -> DialogueResponse:
        """Advance *session_id* by one user utterance."""
        now = self._clock()
        self.cleanup_expired_sessions(now)
        state = self._session(session_id, now)
        state.last_activity = now
        state.turn_count += 1

        if state.active_intent is not None:
            response = self._continue(state, text)
        else:
            response = self._start(state, text)

        state.history.append(
            Turn(
                user_text=text,
                response=response.text,
                intent_type=response.intent.kind if response.intent else None,
                timestamp=now,
            )
        )
        return response

    def _start(self, state: DialogueState, text: str) -> DialogueResponse:
        intent = self._matcher.parse_intent(text)
        schema = SLOT_SCHEMAS.get(intent.kind)
        if schema is None and isinstance(intent, Unknown):
            schema = self._trigger_schema(text)
        if schema is None:
            state.context.topics.append(intent.kind)
            return DialogueResponse(text=None, needs_more_input=False, intent=intent)

        active = ActiveIntent(
            intent_type=schema.intent_type,
            required_slots=schema.required,
            optional_slots=schema.optional,
            filled_slots=_seed_slots(intent),
            utterance=text,
        )
        for slot in schema.required + schema.optional:
            if slot in active.filled_slots:
                continue
            try:
                active.filled_slots[slot] = extract_slot(slot, text, follow_up=False)
            except SlotExtractionError:
                continue
        if "location" in schema.required and "location" not in active.filled_slots:
            if state.context.location:
                active.filled_slots["location"] = state.context.location
        active.refresh_missing()

        if active.missing_slots:
            state.active_intent = active
            return self._prompt(active.missing_slots[0])
        return self._complete(state, active)

    def _continue(self, state: DialogueState, text: str) -> DialogueResponse:
        active = state.active_intent
        assert active is not None
        if _CANCEL_RE.search(text):
            state.active_intent = None
            return DialogueResponse(text=CANCELLED_RESPONSE, needs_more_input=False)

        slot = active.missing_slots[0]
        try:
            value = extract_slot(slot, text, follow_up=True)
        except SlotExtractionError as exc:
            _log.debug("%s", exc)
            return self._prompt(slot, retry=True)

        active.filled_slots[slot] = value
        active.refresh_missing()
        if active.missing_slots:
            return self._prompt(active.missing_slots[0])
        state.active_intent = None
        return self._complete(state, active)

    def _trigger_schema(self, text: str) -> SlotSchema | None:
        for pattern, intent_type in _TRIGGERS:
            if pattern.search(text):
                return SLOT_SCHEMAS[intent_type]
        return None

    @staticmethod
    def _prompt(slot: str, retry: bool = False) -> DialogueResponse:
        prompt = SLOT_PROMPTS.get(slot, f"What is the {slot.replace('_', ' ')}?")
        if retry:
            prompt = REPROMPT_PREFIX + prompt
        return DialogueResponse(text=prompt, needs_more_input=True, awaiting_slot=slot)

    def _complete(self, state: DialogueState, active: ActiveIntent) -> DialogueResponse:
        slots = active.filled_slots
        intent: Intent
        match active.intent_type:
            case "timer":
                seconds = int(slots["duration"])
                label = slots.get("label")
                intent = Timer(
                    duration_seconds=seconds, label=label, utterance=active.utterance
                )
                text = f"Timer set for {format_duration(seconds)}"
                if label:
                    text = f"{text}: {label}"
            case "weather":
                location = str(slots["location"])
                state.context.location = location
                intent = Weather(location=location, utterance=active.utterance)
                text = f"Checking the weather in {location}"
            case "app_launch":
                app_name = str(slots["app_name"])
                intent = AppLaunch(app_name=app_name, utterance=active.utterance)
                text = f"Opening {app_name}"
            case other:
                raise ValueError(f"No completion for intent type {other!r}")
        state.context.topics.append(intent.kind)
        return DialogueResponse(text=text, needs_more_input=False, intent=intent)
