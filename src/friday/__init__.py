__version__ = "0.1.0"


def __getattr__(name: str):
    """Lazy re-exports of the pieces most callers wire together."""
    _exports = {
        "build_assistant": "friday.assistant",
        "load_config": "friday.config",
        "EventBus": "friday.events",
        "IntentMatcher": "friday.matcher",
        "DialogueManager": "friday.dialogue",
        "PluginRuntime": "friday.plugins.runtime",
        "SessionOrchestrator": "friday.orchestrator",
        "VoiceActivitySegmenter": "friday.audio.vad",
    }
    if name in _exports:
        import importlib

        return getattr(importlib.import_module(_exports[name]), name)
    raise AttributeError(f"module 'friday' has no attribute {name!r}")
