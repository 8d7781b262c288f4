"""
Capability interface of a schema extension.

A schema extension owns custom post-type, taxonomy and field-group
definitions.  Definitions are opaque dicts in the extension's own format;
the blueprint core passes them through keyed by their identifying key.
A site without such an extension is represented by ``provider=None``
throughout the code base.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

SchemaRecord = Dict[str, Any]


class SchemaProvider(ABC):
    """A schema extension installed on the site."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Extension name as it appears in the manifest's ``plugins``."""

    @property
    @abstractmethod
    def version(self) -> str:
        ...

    # Post types
    @abstractmethod
    def get_post_types(self) -> Dict[str, SchemaRecord]:
        ...

    @abstractmethod
    def import_post_type(self, record: SchemaRecord) -> str:
        ...

    @abstractmethod
    def delete_post_type(self, key: str) -> bool:
        ...

    # Taxonomies
    @abstractmethod
    def get_taxonomies(self) -> Dict[str, SchemaRecord]:
        ...

    @abstractmethod
    def import_taxonomy(self, record: SchemaRecord) -> str:
        ...

    @abstractmethod
    def delete_taxonomy(self, key: str) -> bool:
        ...

    # Field groups
    @abstractmethod
    def get_field_groups(self) -> Dict[str, SchemaRecord]:
        ...

    @abstractmethod
    def import_field_group(self, record: SchemaRecord) -> str:
        ...

    @abstractmethod
    def delete_field_group(self, key: str) -> bool:
        ...

    @abstractmethod
    def get_fields(self, group_key: str) -> List[SchemaRecord]:
        ...

    @abstractmethod
    def get_field(self, key: str) -> Optional[SchemaRecord]:
        ...

    # Normalisation.  The defaults pass records through unchanged.
    def prepare_post_type_for_export(self, record: SchemaRecord) -> SchemaRecord:
        return copy.deepcopy(record)

    def prepare_post_type_for_import(self, record: SchemaRecord) -> SchemaRecord:
        return copy.deepcopy(record)

    def prepare_taxonomy_for_export(self, record: SchemaRecord) -> SchemaRecord:
        return copy.deepcopy(record)

    def prepare_taxonomy_for_import(self, record: SchemaRecord) -> SchemaRecord:
        return copy.deepcopy(record)

    def prepare_field_group_for_export(self, record: SchemaRecord) -> SchemaRecord:
        return copy.deepcopy(record)

    def prepare_field_group_for_import(self, record: SchemaRecord) -> SchemaRecord:
        return copy.deepcopy(record)
