"""Rule-based intent matching with confidence scores.

The rule table is built once at import time and never mutated. Matching
evaluates every rule against the input; the rule with the strictly highest
confidence wins, so on ties the earlier-registered rule is kept. Winning
rules below the confidence threshold classify as ``Unknown``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from friday.constants import DEFAULT_CONFIDENCE_THRESHOLD, DEFAULT_TIMER_SECONDS
from friday.intents import (
    AppLaunch,
    Greeting,
    Intent,
    Query,
    SystemAction,
    SystemControl,
    Timer,
    Unknown,
    Weather,
)

_log = logging.getLogger("friday")

type Extractor = Callable[[str], dict[str, Any]]


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

_UNIT_SECONDS: Final = {"s": 1, "m": 60, "h": 3600}

_ONES: Final = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12, "thirteen": 13, "fourteen": 14, "fifteen": 15,
    "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
}
_TENS: Final = {"twenty": 20, "thirty": 30, "forty": 40, "fifty": 50, "sixty": 60}

_NUMBER = (
    r"\d+"
    rf"|(?:{'|'.join(_TENS)})(?:[\s-](?:{'|'.join(k for k in _ONES if _ONES[k] < 10)}))?"
    rf"|{'|'.join(sorted(_ONES, key=len, reverse=True))}"
    r"|an?"
)
_DURATION_RE: Final = re.compile(
    rf"\b({_NUMBER})\s*(seconds?|secs?|minutes?|mins?|hours?|hrs?)\b",
    re.IGNORECASE,
)
_BARE_NUMBER_RE: Final = re.compile(r"\b(\d+)\b")


def _number_value(token: str) -> int:
    token = token.lower()
    if token.isdigit():
        return int(token)
    if token in ("a", "an"):
        return 1
    total = 0
    for part in re.split(r"[\s-]+", token):
        total += _TENS.get(part, 0) or _ONES.get(part, 0)
    return total


def parse_duration(text: str) -> int | None:
    """Parse a spoken duration into seconds.

    Sums every ``<number> <unit>`` pair (``"1 hour 30 minutes"`` is 5400).
    A bare integer with no unit counts as seconds. Returns None when the
    text holds no number at all.
    """
    total = 0
    found = False
    for match in _DURATION_RE.finditer(text):
        unit = match.group(2).lower()[0]
        total += _number_value(match.group(1)) * _UNIT_SECONDS[unit]
        found = True
    if found:
        return total
    bare = _BARE_NUMBER_RE.search(text)
    if bare:
        return int(bare.group(1))
    return None


def format_duration(seconds: int) -> str:
    """Render seconds the way a person would say them: '1 hour and 5 minutes'."""
    parts: list[str] = []
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    for value, unit in ((hours, "hour"), (minutes, "minute"), (secs, "second")):
        if value:
            parts.append(f"{value} {unit}{'s' if value != 1 else ''}")
    if not parts:
        return "0 seconds"
    if len(parts) == 1:
        return parts[0]
    return ", ".join(parts[:-1]) + " and " + parts[-1]


# ---------------------------------------------------------------------------
# Parameter extractors
# ---------------------------------------------------------------------------

_LABEL_RE: Final = re.compile(r"\b(?:called|named)\s+(.+?)(?:\s+timer)?$", re.I)
_LOCATION_RE: Final = re.compile(
    r"\b(?:in|for|at)\s+(.+?)(?:\s+today|\s+tomorrow|[?.!]|$)", re.I
)
_APP_RE: Final = re.compile(r"\b(?:open|launch|start|run)\s+(.+)", re.I)
_QUESTION_RE: Final = re.compile(
    r"\b(?:what|who|when|where|how|why|tell\s+me\s+about)\s+"
    r"(?:is\s+|was\s+|will\s+|do\s+|to\s+)?(.+)",
    re.I,
)

_SYSTEM_KEYWORDS: Final[tuple[tuple[tuple[str, ...], SystemAction], ...]] = (
    (("volume up", "louder", "increase"), SystemAction.VOLUME_UP),
    (("volume down", "quieter", "decrease", "lower"), SystemAction.VOLUME_DOWN),
    (("unmute",), SystemAction.UNMUTE),
    (("mute",), SystemAction.MUTE),
    (("sleep",), SystemAction.SLEEP),
    (("shutdown", "shut down"), SystemAction.SHUTDOWN),
    (("restart", "reboot"), SystemAction.RESTART),
)


def extract_timer(text: str) -> dict[str, Any]:
    duration = parse_duration(text)
    params: dict[str, Any] = {
        "duration_seconds": duration if duration is not None else DEFAULT_TIMER_SECONDS,
    }
    label = _LABEL_RE.search(text.strip())
    if label:
        params["label"] = label.group(1).strip()
    return params


def extract_location(text: str) -> dict[str, Any]:
    match = _LOCATION_RE.search(text.strip())
    if match:
        location = match.group(1).strip()
        if len(location) > 1:
            return {"location": location}
    return {}


def extract_app(text: str) -> dict[str, Any]:
    match = _APP_RE.search(text.strip())
    if not match:
        return {}
    return {"app_name": match.group(1).strip().rstrip(".!?")}


def extract_system_action(text: str) -> dict[str, Any]:
    lowered = text.lower()
    for keywords, action in _SYSTEM_KEYWORDS:
        if any(k in lowered for k in keywords):
            return {"action": action}
    return {}


def extract_question(text: str) -> dict[str, Any]:
    match = _QUESTION_RE.search(text.strip())
    question = match.group(1).strip() if match else text.strip()
    return {"question": question.rstrip("?").strip() or text.strip()}


# ---------------------------------------------------------------------------
# Rule registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IntentRule:
    """One pattern for one intent type."""

    kind: str
    pattern: re.Pattern[str]
    confidence: float
    extractor: Extractor | None = None


@dataclass(frozen=True, slots=True)
class MatchResult:
    kind: str
    confidence: float
    parameters: dict[str, Any] = field(default_factory=dict)
    rule_index: int = -1


def _rules(
    kind: str,
    entries: Sequence[tuple[str, float]],
    extractor: Extractor | None = None,
) -> list[IntentRule]:
    return [
        IntentRule(kind, re.compile(p, re.IGNORECASE), c, extractor)
        for p, c in entries
    ]


def build_default_rules() -> tuple[IntentRule, ...]:
    _UNIT = r"(second|minute|hour)s?\b"
    return tuple(
        _rules(
            "greeting",
            [
                (r"\b(?:hey|hi|hello|yo)\s+(?:friday|assistant)\b", 0.95),
                (r"\b(?:good\s+)?(?:morning|afternoon|evening)\s+friday\b", 0.9),
                (r"\bwhat'?s\s+up\s+friday\b", 0.9),
            ],
        )
        + _rules(
            "timer",
            [
                (rf"\bset\s+(?:a\s+)?timer\s+for\s+(\d+)\s+{_UNIT}", 0.9),
                (rf"\b(?:remind|alert)\s+me\s+in\s+(\d+)\s+{_UNIT}", 0.8),
                (rf"\btimer\s+(\d+)\s+{_UNIT}", 0.7),
                (r"\b(\d+)\s+(second|minute|hour)\s+timer\b", 0.7),
                (r"\bset\s+timer\s+(\d+)\b", 0.6),
            ],
            extract_timer,
        )
        + _rules(
            "weather",
            [
                (r"\bwhat'?s\s+the\s+weather\b", 0.9),
                (r"\bweather\s+\S", 0.8),
                (r"\bhow'?s\s+the\s+weather\b", 0.8),
                (r"\bis\s+it\s+(?:raining|sunny|cloudy|snowing)\b", 0.7),
                (r"\btemperature\s+\S", 0.7),
            ],
            extract_location,
        )
        + _rules(
            "app_launch",
            [
                (r"\bopen\s+\S", 0.9),
                (r"\blaunch\s+\S", 0.9),
                (r"\bstart\s+\S", 0.8),
                (r"\brun\s+\S", 0.7),
            ],
            extract_app,
        )
        + _rules(
            "system_control",
            [
                (r"\bvolume\s+up\b", 0.9),
                (r"\bvolume\s+down\b", 0.9),
                (r"\b(?:louder|increase\s+(?:the\s+)?volume)\b", 0.8),
                (r"\b(?:quieter|(?:decrease|lower)\s+(?:the\s+)?volume)\b", 0.8),
                (r"\bmute\b", 0.9),
                (r"\bunmute\b", 0.9),
                (r"\bsleep\b", 0.8),
                (r"\bshut\s*down\b", 0.9),
                (r"\b(?:restart|reboot)\b", 0.9),
            ],
            extract_system_action,
        )
        + _rules(
            "query",
            [
                (r"\bwhat\s+is\b", 0.7),
                (r"\bwhat\s+(?:time|day|date)\b", 0.7),
                (r"\bwho\s+(?:is|are)\b", 0.7),
                (r"\bwhen\s+(?:is|was|will)\b", 0.7),
                (r"\bwhere\s+is\b", 0.7),
                (r"\bhow\s+(?:do\s+i|do\s+you|to)\b", 0.7),
                (r"\bwhy\b", 0.6),
                (r"\btell\s+me\s+about\b", 0.8),
            ],
            extract_question,
        )
    )


DEFAULT_RULES: Final = build_default_rules()


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


class IntentMatcher:
    """Deterministic text-to-intent classifier over an ordered rule table."""

    __slots__ = ("_rules", "_threshold", "_user_name")

    def __init__(
        self,
        rules: Sequence[IntentRule] = DEFAULT_RULES,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        user_name: str | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._threshold = confidence_threshold
        self._user_name = user_name

    @property
    def rules(self) -> tuple[IntentRule, ...]:
        return self._rules

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    def match(self, text: str) -> MatchResult | None:
        """Best-scoring rule for *text*, with its parameters extracted."""
        best: IntentRule | None = None
        best_index = -1
        for index, rule in enumerate(self._rules):
            if rule.pattern.search(text) is None:
                continue
            if best is None or rule.confidence > best.confidence:
                best = rule
                best_index = index
        if best is None:
            return None
        parameters = best.extractor(text) if best.extractor else {}
        return MatchResult(best.kind, best.confidence, parameters, best_index)

    def parse_intent(self, text: str) -> Intent:
        text = text.strip()
        result = self.match(text)
        if result is None or result.confidence < self._threshold:
            return Unknown(text=text, utterance=text)
        intent = self._construct(result, text)
        _log.debug(
            "Matched %s (confidence %.2f): %r", result.kind, result.confidence, intent
        )
        return intent

    def _construct(self, result: MatchResult, text: str) -> Intent:
        params = result.parameters
        match result.kind:
            case "timer":
                return Timer(
                    duration_seconds=params["duration_seconds"],
                    label=params.get("label"),
                    utterance=text,
                )
            case "greeting":
                return Greeting(user_name=self._user_name, utterance=text)
            case "weather":
                return Weather(location=params.get("location"), utterance=text)
            case "app_launch" if params.get("app_name"):
                return AppLaunch(app_name=params["app_name"], utterance=text)
            case "query":
                return Query(question=params["question"], utterance=text)
            case "system_control" if "action" in params:
                return SystemControl(action=params["action"], utterance=text)
        return Unknown(text=text, utterance=text)
