"""Default configuration values for friday."""

from typing import Final

# Audio / segmentation
DEFAULT_SAMPLE_RATE: Final = 16_000
DEFAULT_CHANNELS: Final = 1
DEFAULT_VAD_FRAME_MS: Final = 30
DEFAULT_VAD_ENERGY_THRESHOLD: Final = 0.01
DEFAULT_VAD_ZCR_THRESHOLD: Final = 0.3
DEFAULT_VAD_MIN_SPEECH_MS: Final = 300
DEFAULT_VAD_MAX_SILENCE_MS: Final = 1500
DEFAULT_VAD_BUFFER_MS: Final = 5000
DEFAULT_RECORD_MAX_MS: Final = 15_000
DEFAULT_AUDIO_QUEUE_MAXSIZE: Final = 200

# Event bus
DEFAULT_EVENT_CAPACITY: Final = 32

# Intent matching
DEFAULT_CONFIDENCE_THRESHOLD: Final = 0.6
DEFAULT_TIMER_SECONDS: Final = 10

# Dialogue
DEFAULT_SESSION_ID: Final = "default"
DEFAULT_SESSION_TIMEOUT_SECONDS: Final = 300.0
DEFAULT_MAX_SESSIONS: Final = 100
DEFAULT_HISTORY_LIMIT: Final = 10
DEFAULT_LANGUAGE: Final = "en"

# Plugins
DEFAULT_PLUGINS_DIR: Final = "~/.friday/plugins"
DEFAULT_DISPATCH_POLICY: Final = "first_match"

# Engines
DEFAULT_WAKE_DELAY: Final = 0.5
DEFAULT_WAKE_TIMEOUT: Final = 60.0
DEFAULT_WAKE_KEYWORD: Final = "detected"
DEFAULT_PARTIAL_INTERVAL: Final = 0.25
DEFAULT_TTS_DELAY: Final = 0.4
DEFAULT_WHISPER_BIN: Final = "whisper"
DEFAULT_WHISPER_TIMEOUT: Final = 30.0
DEFAULT_PIPER_BIN: Final = "piper"
DEFAULT_PIPER_TIMEOUT: Final = 30.0

# Config file
DEFAULT_CONFIG_DIR: Final = "~/.config/friday"
DEFAULT_CONFIG_DIR_ENV: Final = "FRIDAY_CONFIG_DIR"
DEFAULT_CONFIG_FILE: Final = "config.json"
