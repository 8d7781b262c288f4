from .manifest import (
    BlueprintInfo,
    ContentService,
    Manifest,
    MetaEntry,
    PluginRequirement,
    PostRecord,
    Services,
    TermRecord,
)

__all__ = [
    "BlueprintInfo",
    "ContentService",
    "Manifest",
    "MetaEntry",
    "PluginRequirement",
    "PostRecord",
    "Services",
    "TermRecord",
]
