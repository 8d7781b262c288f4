"""
Normalisation of "advanced-custom-fields" style schema records.

Exported records lose everything that only makes sense on the source site
(database IDs, local-json bookkeeping, validation flags).  Imported records
get those defaults back and their fields re-parented to the group key.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

_SCHEMA_EXPORT_DROP = ("ID", "local", "local_file", "_valid")
_FIELD_EXPORT_DROP = ("ID", "id", "class", "prefix", "value", "_name", "_valid", "parent")


def _without(record: Dict[str, Any], keys) -> Dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in record.items() if k not in keys}


def prepare_field_for_export(field: Dict[str, Any]) -> Dict[str, Any]:
    prepared = _without(field, _FIELD_EXPORT_DROP)
    if isinstance(prepared.get("sub_fields"), list):
        prepared["sub_fields"] = [prepare_field_for_export(f) for f in prepared["sub_fields"]]
    return prepared


def prepare_post_type_for_export(record: Dict[str, Any]) -> Dict[str, Any]:
    return _without(record, _SCHEMA_EXPORT_DROP)


def prepare_taxonomy_for_export(record: Dict[str, Any]) -> Dict[str, Any]:
    return _without(record, _SCHEMA_EXPORT_DROP)


def prepare_field_group_for_export(record: Dict[str, Any]) -> Dict[str, Any]:
    prepared = _without(record, _SCHEMA_EXPORT_DROP)
    prepared["fields"] = [prepare_field_for_export(f) for f in record.get("fields") or []]
    return prepared


def _prepare_schema_for_import(record: Dict[str, Any]) -> Dict[str, Any]:
    prepared = _without(record, ("ID",))
    prepared.setdefault("active", True)
    return prepared


def prepare_post_type_for_import(record: Dict[str, Any]) -> Dict[str, Any]:
    return _prepare_schema_for_import(record)


def prepare_taxonomy_for_import(record: Dict[str, Any]) -> Dict[str, Any]:
    return _prepare_schema_for_import(record)


def _fields_for_import(fields: List[Dict[str, Any]], parent: str) -> List[Dict[str, Any]]:
    prepared = []
    for field in fields:
        item = _without(field, ("ID",))
        item["parent"] = parent
        if isinstance(item.get("sub_fields"), list):
            item["sub_fields"] = _fields_for_import(item["sub_fields"], item.get("key", parent))
        prepared.append(item)
    return prepared


def prepare_field_group_for_import(record: Dict[str, Any]) -> Dict[str, Any]:
    prepared = _prepare_schema_for_import(record)
    prepared["fields"] = _fields_for_import(record.get("fields") or [], str(record.get("key") or ""))
    return prepared
