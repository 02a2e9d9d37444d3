"""Plugin manifests, permissions, contexts and results.

A manifest is the declarative half of a plugin: its identity, the
permissions it asks for, and the intent patterns it can satisfy. Manifests
are immutable once loaded.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from friday.errors import InvalidConfig

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileSystem:
    paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Network:
    domains: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SystemCommands:
    commands: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AudioAccess:
    pass


@dataclass(frozen=True, slots=True)
class ConfigAccess:
    pass


@dataclass(frozen=True, slots=True)
class AllPermissions:
    pass


Permission = (
    FileSystem | Network | SystemCommands | AudioAccess | ConfigAccess | AllPermissions
)

_PERMISSION_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (FileSystem, Network, SystemCommands, AudioAccess, ConfigAccess, AllPermissions)
}


def permission_from_dict(raw: str | dict[str, Any]) -> Permission:
    """Parse ``"AudioAccess"`` or ``{"Network": {"domains": [...]}}``."""
    if isinstance(raw, str):
        name, body = raw, {}
    elif isinstance(raw, dict) and len(raw) == 1:
        name, body = next(iter(raw.items()))
        body = body or {}
    else:
        raise InvalidConfig(f"Malformed permission entry: {raw!r}")
    cls = _PERMISSION_TYPES.get(name)
    if cls is None:
        raise InvalidConfig(f"Unknown permission: {name}")
    return cls(**{k: tuple(v) for k, v in body.items()})


# ---------------------------------------------------------------------------
# Intent patterns
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParameterDef:
    name: str
    param_type: Literal["string", "number"] = "string"
    required: bool = False
    description: str = ""


@dataclass(frozen=True, slots=True)
class IntentPattern:
    """Regex patterns (tried in order) that route text to one plugin intent."""

    name: str
    patterns: tuple[str, ...]
    confidence: float = 0.5
    parameters: tuple[ParameterDef, ...] = ()


@dataclass(frozen=True, slots=True)
class PluginManifest:
    """Declarative description of a plugin.

    Attributes:
        name: Unique key in the runtime; must be non-empty.
        version: Free-form version string; must be non-empty.
        entry_point: ``"module:attr"`` factory used by directory discovery.
        permissions: Capabilities the plugin requests.
        intent_patterns: Ordered; earlier patterns are tried first.
        config_schema: Optional JSON-schema-like hint for plugin config.
    """

    name: str
    version: str
    description: str = ""
    author: str = ""
    entry_point: str = ""
    permissions: tuple[Permission, ...] = ()
    dependencies: tuple[str, ...] = ()
    intent_patterns: tuple[IntentPattern, ...] = ()
    config_schema: dict[str, Any] | None = None

    def validate(self) -> None:
        if not self.name.strip():
            raise InvalidConfig("Plugin name cannot be empty")
        if not self.version.strip():
            raise InvalidConfig("Plugin version cannot be empty")
        for pattern in self.intent_patterns:
            if not pattern.patterns:
                raise InvalidConfig(f"Intent pattern '{pattern.name}' has no patterns")

    def describe(self) -> str:
        return f"{self.name} v{self.version} - {self.description}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PluginManifest:
        if not isinstance(data, dict):
            raise InvalidConfig("Plugin manifest must be a JSON object")
        try:
            patterns = tuple(
                IntentPattern(
                    name=str(p["name"]),
                    patterns=tuple(str(s) for s in p.get("patterns", [])),
                    confidence=float(p.get("confidence", 0.5)),
                    parameters=tuple(
                        ParameterDef(
                            name=str(d["name"]),
                            param_type=d.get("param_type", "string"),
                            required=bool(d.get("required", False)),
                            description=str(d.get("description", "")),
                        )
                        for d in p.get("parameters", [])
                    ),
                )
                for p in data.get("intent_patterns", [])
            )
            return cls(
                name=str(data.get("name", "")),
                version=str(data.get("version", "")),
                description=str(data.get("description", "")),
                author=str(data.get("author", "")),
                entry_point=str(data.get("entry_point", "")),
                permissions=tuple(
                    permission_from_dict(p) for p in data.get("permissions", [])
                ),
                dependencies=tuple(str(d) for d in data.get("dependencies", [])),
                intent_patterns=patterns,
                config_schema=data.get("config_schema"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidConfig(f"Malformed plugin manifest: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | Path) -> PluginManifest:
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)


# ---------------------------------------------------------------------------
# Runtime values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PluginContext:
    """What a plugin receives at initialization."""

    plugin_name: str
    config: dict[str, Any] = field(default_factory=dict)
    permissions: tuple[Permission, ...] = ()
    data_dir: Path = Path(".")


@dataclass(frozen=True, slots=True)
class PluginLog:
    level: str
    message: str


@dataclass(frozen=True, slots=True)
class PluginNotification:
    title: str
    body: str


@dataclass(frozen=True, slots=True)
class StateChange:
    key: str
    value: Any


@dataclass(frozen=True, slots=True)
class CustomEvent:
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)


PluginEvent = PluginLog | PluginNotification | StateChange | CustomEvent


@dataclass(frozen=True, slots=True)
class PluginResult:
    success: bool
    message: str
    data: dict[str, Any] | None = None
    events: tuple[PluginEvent, ...] = ()


@dataclass(frozen=True, slots=True)
class PluginMatch:
    """Outcome of routing free text to a plugin intent."""

    plugin_name: str
    intent_name: str
    parameters: dict[str, Any]
    confidence: float = 0.0
