"""Plugin subpackage: manifests, runtime, executor and built-in plugins.

Only the manifest types are re-exported here so that ``friday.protocols``
can import them without pulling in the runtime.
"""

from friday.plugins.manifest import (
    PluginContext,
    PluginManifest,
    PluginMatch,
    PluginResult,
)

__all__ = ["PluginContext", "PluginManifest", "PluginMatch", "PluginResult"]
