"""
Identity remapping between a blueprint and the site it is imported into.

Every entity in a blueprint carries the ID it had on the source site.  The
target site may assign a different ID, so each creation step records the
pair and later steps resolve references through :class:`RemapTable`.  Only
IDs that changed are stored: an absent entry means the ID was kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from blueprints.utils.errors import BlueprintError


class EntityKind(str, Enum):
    POST = "post"
    TERM = "term"
    MEDIA = "media"


class RemapTable:
    def __init__(self) -> None:
        self._maps: Dict[EntityKind, Dict[int, int]] = {kind: {} for kind in EntityKind}

    def record(self, kind: EntityKind, original_id: int, new_id: int) -> None:
        original_id, new_id = int(original_id), int(new_id)
        if original_id == new_id:
            return
        self._maps[EntityKind(kind)][original_id] = new_id

    def resolve(self, kind: EntityKind, original_id: int) -> int:
        """The ID to use on the target site, the literal ID when not remapped."""
        original_id = int(original_id)
        return self._maps[EntityKind(kind)].get(original_id, original_id)

    def original_of(self, kind: EntityKind, new_id: int) -> Optional[int]:
        new_id = int(new_id)
        for original_id, mapped in self._maps[EntityKind(kind)].items():
            if mapped == new_id:
                return original_id
        return None

    def size(self, kind: EntityKind) -> int:
        return len(self._maps[EntityKind(kind)])

    def __len__(self) -> int:
        return sum(len(m) for m in self._maps.values())

    def sizes(self) -> Dict[str, int]:
        return {kind.value: len(m) for kind, m in self._maps.items()}


@dataclass
class ImportContext:
    """State shared by the steps of a single import run."""

    blueprint_folder: str
    remap: RemapTable = field(default_factory=RemapTable)
    warnings: List[BlueprintError] = field(default_factory=list)
