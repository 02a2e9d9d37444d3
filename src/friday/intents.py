"""Typed intents produced by the matcher and consumed by executors."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Any, ClassVar


class SystemAction(StrEnum):
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    MUTE = "mute"
    UNMUTE = "unmute"
    SLEEP = "sleep"
    SHUTDOWN = "shutdown"
    RESTART = "restart"


@dataclass(frozen=True, slots=True)
class BaseIntent:
    """Common fields for every intent variant.

    Attributes:
        utterance: The text this intent was parsed from. Not part of
            equality, so intents built by hand compare equal to parsed ones.
    """

    kind: ClassVar[str] = "unknown"

    utterance: str = field(default="", kw_only=True, compare=False)

    @property
    def source_text(self) -> str:
        return self.utterance


@dataclass(frozen=True, slots=True)
class Timer(BaseIntent):
    kind: ClassVar[str] = "timer"

    duration_seconds: int
    label: str | None = None


@dataclass(frozen=True, slots=True)
class Greeting(BaseIntent):
    kind: ClassVar[str] = "greeting"

    user_name: str | None = None


@dataclass(frozen=True, slots=True)
class Weather(BaseIntent):
    kind: ClassVar[str] = "weather"

    location: str | None = None


@dataclass(frozen=True, slots=True)
class AppLaunch(BaseIntent):
    kind: ClassVar[str] = "app_launch"

    app_name: str


@dataclass(frozen=True, slots=True)
class Query(BaseIntent):
    kind: ClassVar[str] = "query"

    question: str


@dataclass(frozen=True, slots=True)
class SystemControl(BaseIntent):
    kind: ClassVar[str] = "system_control"

    action: SystemAction


@dataclass(frozen=True, slots=True)
class Unknown(BaseIntent):
    kind: ClassVar[str] = "unknown"

    text: str

    @property
    def source_text(self) -> str:
        return self.utterance or self.text


Intent = Timer | Greeting | Weather | AppLaunch | Query | SystemControl | Unknown


def slot_values(intent: Intent) -> dict[str, Any]:
    """The intent's filled fields by name; unset optionals and the utterance are left out."""
    values: dict[str, Any] = {}
    for f in fields(intent):
        value = getattr(intent, f.name)
        if f.name != "utterance" and value is not None:
            values[f.name] = value
    return values


def intent_to_dict(intent: Intent) -> dict[str, Any]:
    """Serialize as ``{"<Variant>": {field: value}}``, omitting the utterance."""
    payload = {
        f.name: getattr(intent, f.name)
        for f in fields(intent)
        if f.name != "utterance"
    }
    return {type(intent).__name__: payload}
