"""Assistant configuration.

Settings are frozen dataclasses with working defaults; ``load_config``
overlays a JSON file (``~/.config/friday/config.json`` unless a path or
``FRIDAY_CONFIG_DIR`` says otherwise). A missing file yields defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from friday.audio.vad import SegmenterConfig
from friday.constants import (
    DEFAULT_CHANNELS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_DIR_ENV,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DISPATCH_POLICY,
    DEFAULT_EVENT_CAPACITY,
    DEFAULT_PARTIAL_INTERVAL,
    DEFAULT_PIPER_BIN,
    DEFAULT_PIPER_TIMEOUT,
    DEFAULT_PLUGINS_DIR,
    DEFAULT_RECORD_MAX_MS,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_SESSION_ID,
    DEFAULT_TTS_DELAY,
    DEFAULT_WAKE_DELAY,
    DEFAULT_WAKE_KEYWORD,
    DEFAULT_WAKE_TIMEOUT,
    DEFAULT_WHISPER_BIN,
    DEFAULT_WHISPER_TIMEOUT,
)
from friday.dialogue import DialogueConfig
from friday.errors import ConfigError

_log = logging.getLogger("friday")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AudioConfig:
    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS
    device: int | None = None
    max_record_ms: int = DEFAULT_RECORD_MAX_MS


@dataclass(frozen=True, slots=True)
class WakeConfig:
    """Wake detector selection.

    ``mock`` waits ``delay`` seconds; ``command`` runs ``command`` and waits
    for ``keyword`` on its stdout; ``energy`` listens on the microphone for
    ``trigger_ms`` of audio above ``energy_threshold``.
    """

    kind: Literal["mock", "command", "energy"] = "mock"
    delay: float = DEFAULT_WAKE_DELAY
    command: tuple[str, ...] = ()
    keyword: str = DEFAULT_WAKE_KEYWORD
    timeout: float = DEFAULT_WAKE_TIMEOUT
    energy_threshold: float = 0.02
    trigger_ms: int = 150


@dataclass(frozen=True, slots=True)
class AsrConfig:
    kind: Literal["mock", "whisper"] = "mock"
    utterances: tuple[str, ...] = ("hello there assistant",)
    partial_interval: float = DEFAULT_PARTIAL_INTERVAL
    whisper_bin: str = DEFAULT_WHISPER_BIN
    model_path: str = ""
    audio_path: str | None = None
    language: str = "en"
    timeout: float = DEFAULT_WHISPER_TIMEOUT


@dataclass(frozen=True, slots=True)
class TtsConfig:
    kind: Literal["mock", "piper"] = "mock"
    delay: float = DEFAULT_TTS_DELAY
    piper_bin: str = DEFAULT_PIPER_BIN
    model_path: str = ""
    output_path: str | None = None
    player: tuple[str, ...] = ()
    timeout: float = DEFAULT_PIPER_TIMEOUT


@dataclass(frozen=True, slots=True)
class MatcherConfig:
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    user_name: str | None = None


@dataclass(frozen=True, slots=True)
class PluginConfig:
    enabled: bool = True
    plugins_dir: str = DEFAULT_PLUGINS_DIR
    security_enabled: bool = True
    dispatch_policy: Literal["first_match", "best_confidence"] = DEFAULT_DISPATCH_POLICY
    builtin: tuple[str, ...] = ("weather",)
    settings: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ExecutorConfig:
    weather_api_key: str | None = None


@dataclass(frozen=True, slots=True)
class FridayConfig:
    """Top-level configuration loaded from ~/.config/friday/config.json."""

    audio: AudioConfig = field(default_factory=AudioConfig)
    segmenter: SegmenterConfig = field(default_factory=SegmenterConfig)
    wake: WakeConfig = field(default_factory=WakeConfig)
    asr: AsrConfig = field(default_factory=AsrConfig)
    tts: TtsConfig = field(default_factory=TtsConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    dialogue: DialogueConfig = field(default_factory=DialogueConfig)
    plugins: PluginConfig = field(default_factory=PluginConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    event_capacity: int = DEFAULT_EVENT_CAPACITY
    session_id: str = DEFAULT_SESSION_ID
    use_dialogue: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------


def _section(cls: type, raw: Any, name: str) -> Any:
    """Build a section dataclass from a JSON object, ignoring unknown keys."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"'{name}' must be a JSON object")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        _log.debug("Ignoring unknown keys in %s: %s", name, sorted(unknown))
    kwargs = {
        k: tuple(v) if isinstance(v, list) else v
        for k, v in raw.items()
        if k in known
    }
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid '{name}' section: {exc}") from exc


def config_path(path: str | None = None) -> Path:
    config_dir = Path(
        os.environ.get(DEFAULT_CONFIG_DIR_ENV, "") or DEFAULT_CONFIG_DIR,
    ).expanduser()
    return Path(path).expanduser() if path else config_dir / DEFAULT_CONFIG_FILE


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(path: str | None = None) -> FridayConfig:
    """Load assistant configuration from a JSON file.

    Reads ``~/.config/friday/config.json`` (or *path*); the
    ``FRIDAY_CONFIG_DIR`` environment variable overrides the directory.
    Returns a default config if the file does not exist. Raises
    ConfigError when the file is not valid JSON or a section is malformed.
    """
    resolved = config_path(path)
    if not resolved.exists():
        _log.debug("No config at %s; using defaults", resolved)
        return FridayConfig()

    try:
        with open(resolved) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{resolved}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{resolved}: top level must be a JSON object")

    plugins_raw = data.get("plugins")
    if isinstance(plugins_raw, dict) and "settings" in plugins_raw:
        settings = plugins_raw["settings"]
        if not isinstance(settings, dict):
            raise ConfigError("'plugins.settings' must map plugin names to objects")

    try:
        event_capacity = int(data.get("event_capacity", DEFAULT_EVENT_CAPACITY))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid event_capacity: {exc}") from exc

    return FridayConfig(
        audio=_section(AudioConfig, data.get("audio"), "audio"),
        segmenter=_section(SegmenterConfig, data.get("segmenter"), "segmenter"),
        wake=_section(WakeConfig, data.get("wake"), "wake"),
        asr=_section(AsrConfig, data.get("asr"), "asr"),
        tts=_section(TtsConfig, data.get("tts"), "tts"),
        matcher=_section(MatcherConfig, data.get("matcher"), "matcher"),
        dialogue=_section(DialogueConfig, data.get("dialogue"), "dialogue"),
        plugins=_section(PluginConfig, plugins_raw, "plugins"),
        executor=_section(ExecutorConfig, data.get("executor"), "executor"),
        event_capacity=event_capacity,
        session_id=str(data.get("session_id", DEFAULT_SESSION_ID)),
        use_dialogue=bool(data.get("use_dialogue", True)),
    )
