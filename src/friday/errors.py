"""Exception hierarchy for the assistant core.

Pipeline-stage errors abort a single turn; the session loop logs them and
moves on. Plugin errors are recovered by the fallback executor, and
dialogue errors by re-prompting.
"""


class FridayError(Exception):
    """Base class for every error raised by friday."""


class ConfigError(FridayError):
    """Malformed configuration file or value."""


class EventBusClosed(FridayError, RuntimeError):
    """Raised when sending on a producer handle that was already dropped."""


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


class PipelineError(FridayError):
    """A stage of the session pipeline failed."""

    stage = "pipeline"


class WakeError(PipelineError):
    stage = "wake"


class AsrError(PipelineError):
    stage = "asr"


class ExecutionError(PipelineError):
    stage = "execute"


class TtsError(PipelineError):
    stage = "tts"


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------


class PluginError(FridayError):
    """Base class for plugin runtime failures."""


class PluginNotFound(PluginError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Plugin not found: {name}")
        self.name = name


class PermissionDenied(PluginError):
    def __init__(self, name: str, reason: str = "") -> None:
        message = f"Permission denied for plugin {name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.name = name


class InvalidConfig(PluginError):
    """Manifest or plugin configuration failed validation."""


class ExecutionFailed(PluginError):
    """A plugin raised or refused while executing an intent."""


# ---------------------------------------------------------------------------
# Dialogue
# ---------------------------------------------------------------------------


class DialogueError(FridayError):
    """Non-fatal dialogue failure; callers recover by re-prompting."""


class SlotExtractionError(DialogueError):
    def __init__(self, slot: str, text: str) -> None:
        super().__init__(f"Could not extract {slot!r} from {text!r}")
        self.slot = slot
        self.text = text
