"""
Export and import of extension schemas.

Schemas are imported before any content: posts of a custom type and terms
of a custom taxonomy can only be created once their definitions exist.
Post types and field groups are therefore fatal on the first failure while
a taxonomy that cannot be imported only produces a warning.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from models.manifest import PluginRequirement

from blueprints.utils.errors import HostError, SchemaImportError, SchemaImportWarning
from blueprints.utils.logs import LogFn, silent_log
from blueprints.utils.results import Result

from .provider import SchemaProvider, SchemaRecord

_IMPORT_FAILURES = (HostError, KeyError, TypeError, ValueError)


def export_schemas(provider: SchemaProvider) -> Dict[str, Dict[str, SchemaRecord]]:
    """Every schema of ``provider`` prepared for export, grouped by kind."""
    return {
        "post_types": {
            key: provider.prepare_post_type_for_export(record)
            for key, record in provider.get_post_types().items()
        },
        "taxonomies": {
            key: provider.prepare_taxonomy_for_export(record)
            for key, record in provider.get_taxonomies().items()
        },
        "field_groups": {
            key: provider.prepare_field_group_for_export(record)
            for key, record in provider.get_field_groups().items()
        },
    }


def find_schema_requirement(
    plugins: Mapping[str, PluginRequirement],
    provider: Optional[SchemaProvider],
) -> Optional[PluginRequirement]:
    """The manifest entry holding schemas for ``provider``.

    Without a provider, the first entry declaring any schema is returned so
    the caller can report what cannot be imported.
    """
    if provider is not None:
        return plugins.get(provider.name)
    for requirement in plugins.values():
        if requirement.has_schemas:
            return requirement
    return None


def import_post_types(
    provider: Optional[SchemaProvider],
    records: Mapping[str, SchemaRecord],
    log: LogFn = silent_log,
) -> Result[List[str]]:
    imported: List[str] = []
    if not records:
        return Result.success(imported)
    if provider is None:
        return Result.failure(
            SchemaImportError("The blueprint declares post types but no schema extension is installed."),
            imported,
        )
    for key, record in records.items():
        try:
            imported.append(provider.import_post_type(provider.prepare_post_type_for_import(record)))
        except _IMPORT_FAILURES as e:
            return Result.failure(SchemaImportError(f"Could not import post type {key}: {e}"), imported)
        log(f"Imported post type {key}.", "DEBUG")
    return Result.success(imported)


def import_taxonomies(
    provider: Optional[SchemaProvider],
    records: Mapping[str, SchemaRecord],
    log: LogFn = silent_log,
) -> Result[List[str]]:
    result: Result[List[str]] = Result.success([])
    if not records:
        return result
    if provider is None:
        result.warn(SchemaImportWarning(
            f"Skipped taxonomies {', '.join(records)}: no schema extension is installed."
        ))
        return result
    for key, record in records.items():
        try:
            result.value.append(provider.import_taxonomy(provider.prepare_taxonomy_for_import(record)))
        except _IMPORT_FAILURES as e:
            result.warn(SchemaImportWarning(f"Could not import taxonomy {key}: {e}"))
            continue
        log(f"Imported taxonomy {key}.", "DEBUG")
    return result


def import_field_groups(
    provider: Optional[SchemaProvider],
    records: Mapping[str, SchemaRecord],
    log: LogFn = silent_log,
) -> Result[List[str]]:
    imported: List[str] = []
    if not records:
        return Result.success(imported)
    if provider is None:
        return Result.failure(
            SchemaImportError("The blueprint declares field groups but no schema extension is installed."),
            imported,
        )
    for key, record in records.items():
        try:
            imported.append(provider.import_field_group(provider.prepare_field_group_for_import(record)))
        except _IMPORT_FAILURES as e:
            return Result.failure(SchemaImportError(f"Could not import field group {key}: {e}"), imported)
        log(f"Imported field group {key}.", "DEBUG")
    return Result.success(imported)
