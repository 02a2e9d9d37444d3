"""Built-in weather plugin.

No forecast backend is wired in; with an API key configured the plugin
answers with a canned report, otherwise it asks for a key.
"""

from __future__ import annotations

import logging
from typing import Any

from friday.errors import ExecutionFailed, InvalidConfig
from friday.plugins.manifest import (
    IntentPattern,
    Network,
    ParameterDef,
    PluginContext,
    PluginLog,
    PluginManifest,
    PluginResult,
)

_log = logging.getLogger("friday")

WEATHER_MANIFEST = PluginManifest(
    name="weather",
    version="1.0.0",
    description="Get weather information for any location",
    author="friday",
    entry_point="friday.plugins.weather:WeatherPlugin",
    permissions=(Network(domains=("api.openweathermap.org",)),),
    intent_patterns=(
        IntentPattern(
            name="get_weather",
            patterns=(
                r"weather.*in\s+(\w+)",
                r"what.*weather.*like",
                r"temperature.*in\s+(\w+)",
            ),
            confidence=0.8,
            parameters=(
                ParameterDef(
                    name="location",
                    param_type="string",
                    required=True,
                    description="City or location name",
                ),
            ),
        ),
    ),
    config_schema={
        "type": "object",
        "properties": {"api_key": {"type": "string"}},
        "required": ["api_key"],
    },
)


class WeatherPlugin:
    __slots__ = ("_api_key", "_context")

    def __init__(self) -> None:
        self._api_key: str | None = None
        self._context: PluginContext | None = None

    @property
    def manifest(self) -> PluginManifest:
        return WEATHER_MANIFEST

    async def initialize(self, context: PluginContext) -> None:
        self._context = context
        self._api_key = context.config.get("api_key") or None
        _log.debug("Weather plugin initialized (api key: %s)", bool(self._api_key))

    async def execute(self, intent_name: str, parameters: dict[str, Any]) -> PluginResult:
        if intent_name != "get_weather":
            raise ExecutionFailed(f"Unknown intent: {intent_name}")

        location = parameters.get("location") or "your location"
        if self._api_key:
            message = (
                f"The weather in {location} is partly cloudy "
                "with a temperature of 72°F"
            )
        else:
            message = (
                f"Weather information for {location} is not available. "
                "Please configure an API key."
            )
        return PluginResult(
            success=True,
            message=message,
            data={
                "location": location,
                "temperature": 72,
                "condition": "partly_cloudy",
            },
            events=(PluginLog("info", f"Weather requested for {location}"),),
        )

    async def cleanup(self) -> None:
        self._context = None

    def validate_config(self, config: dict[str, Any]) -> None:
        if not config.get("api_key"):
            raise InvalidConfig("Weather plugin requires an 'api_key'")
        self._api_key = str(config["api_key"])
