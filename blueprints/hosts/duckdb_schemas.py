"""
Schema extension backed by the DuckDB site database.

Stores "advanced-custom-fields" compatible post types, taxonomies and field
groups in an ``acf_schemas`` table and keeps the site's registry of post
types and taxonomies in sync with them.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from blueprints.schemas import acf
from blueprints.schemas.provider import SchemaProvider, SchemaRecord
from blueprints.utils.errors import HostError

from .duckdb_site import DuckDBSite

PROVIDER_NAME = "advanced-custom-fields"
DEFAULT_VERSION = "6.2.4"

_POST_TYPE_RE = re.compile(r"^[a-z0-9_-]{1,20}$")
_TAXONOMY_RE = re.compile(r"^[a-z0-9_-]{1,32}$")

RESERVED_POST_TYPES = {
    "action", "attachment", "author", "custom_css", "customize_changeset",
    "nav_menu_item", "oembed_cache", "order", "page", "post", "revision",
    "theme", "user_request", "wp_block", "wp_template",
}
RESERVED_TAXONOMIES = {"category", "post_tag", "nav_menu", "link_category", "post_format"}


class DuckDBSchemaProvider(SchemaProvider):
    def __init__(self, site: DuckDBSite, version: str = DEFAULT_VERSION) -> None:
        self.site = site
        self._version = version
        self.con = site.con
        self.con.execute(
            "CREATE TABLE IF NOT EXISTS acf_schemas (id BIGINT, kind VARCHAR, schema_key VARCHAR, body VARCHAR)"
        )

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def version(self) -> str:
        return self._version

    ###########################################################################
    # Storage
    ###########################################################################

    def _records(self, kind: str) -> Dict[str, SchemaRecord]:
        rows = self.con.execute(
            "SELECT id, schema_key, body FROM acf_schemas WHERE kind = ? ORDER BY id", [kind]
        ).fetchall()
        records: Dict[str, SchemaRecord] = {}
        for record_id, key, body in rows:
            record = json.loads(body)
            record["ID"] = int(record_id)
            records[key] = record
        return records

    def _stored_id(self, kind: str, key: str) -> Optional[int]:
        row = self.con.execute(
            "SELECT id FROM acf_schemas WHERE kind = ? AND schema_key = ?", [kind, key]
        ).fetchone()
        return int(row[0]) if row else None

    def _store(self, kind: str, key: str, record: SchemaRecord) -> None:
        body = json.dumps({k: v for k, v in record.items() if k != "ID"}, ensure_ascii=False)
        record_id = self._stored_id(kind, key)
        if record_id is not None:
            self.con.execute("UPDATE acf_schemas SET body = ? WHERE id = ?", [body, record_id])
            return
        row = self.con.execute("SELECT COALESCE(MAX(id), 0) + 1 FROM acf_schemas").fetchone()
        self.con.execute(
            "INSERT INTO acf_schemas VALUES (?, ?, ?, ?)", [int(row[0]), kind, key, body]
        )

    def _remove(self, kind: str, key: str) -> bool:
        if self._stored_id(kind, key) is None:
            return False
        self.con.execute("DELETE FROM acf_schemas WHERE kind = ? AND schema_key = ?", [kind, key])
        return True

    ###########################################################################
    # Post types
    ###########################################################################

    def get_post_types(self) -> Dict[str, SchemaRecord]:
        return self._records("post_type")

    def import_post_type(self, record: SchemaRecord) -> str:
        key = str(record.get("post_type") or "")
        if not _POST_TYPE_RE.match(key):
            raise HostError(
                f"The post type key {key!r} must be 1 to 20 lowercase letters, numbers, dashes or underscores."
            )
        if key in RESERVED_POST_TYPES:
            raise HostError(f"The post type key {key!r} is reserved.")
        self._store("post_type", key, record)
        self.site.register_post_type(key)
        return key

    def delete_post_type(self, key: str) -> bool:
        if not self._remove("post_type", key):
            return False
        self.site.unregister_post_type(key)
        return True

    ###########################################################################
    # Taxonomies
    ###########################################################################

    def get_taxonomies(self) -> Dict[str, SchemaRecord]:
        return self._records("taxonomy")

    def import_taxonomy(self, record: SchemaRecord) -> str:
        key = str(record.get("taxonomy") or "")
        if not _TAXONOMY_RE.match(key):
            raise HostError(
                f"The taxonomy key {key!r} must be 1 to 32 lowercase letters, numbers, dashes or underscores."
            )
        if key in RESERVED_TAXONOMIES:
            raise HostError(f"The taxonomy key {key!r} is reserved.")
        if self.site.taxonomy_exists(key) and self._stored_id("taxonomy", key) is None:
            raise HostError(f"The taxonomy {key!r} is already registered on this site.")
        object_types = record.get("object_type") or []
        if isinstance(object_types, str):
            object_types = [object_types]
        self._store("taxonomy", key, record)
        self.site.register_taxonomy(key, object_types)
        return key

    def delete_taxonomy(self, key: str) -> bool:
        if not self._remove("taxonomy", key):
            return False
        self.site.unregister_taxonomy(key)
        return True

    ###########################################################################
    # Field groups
    ###########################################################################

    def get_field_groups(self) -> Dict[str, SchemaRecord]:
        return self._records("field_group")

    def _validate_fields(self, fields: List[Dict[str, Any]]) -> None:
        for field in fields:
            missing = [k for k in ("key", "name", "type") if not field.get(k)]
            if missing:
                raise HostError(f"Field {field.get('key') or field.get('name') or '?'} is missing {', '.join(missing)}.")
            if isinstance(field.get("sub_fields"), list):
                self._validate_fields(field["sub_fields"])

    def import_field_group(self, record: SchemaRecord) -> str:
        key = str(record.get("key") or "")
        if not key.startswith("group_"):
            raise HostError(f"The field group key {key!r} must start with 'group_'.")
        if not record.get("title"):
            raise HostError(f"The field group {key} needs a title.")
        self._validate_fields(record.get("fields") or [])
        self._store("field_group", key, record)
        return key

    def delete_field_group(self, key: str) -> bool:
        return self._remove("field_group", key)

    def get_fields(self, group_key: str) -> List[SchemaRecord]:
        group = self.get_field_groups().get(group_key)
        return list(group.get("fields") or []) if group else []

    def get_field(self, key: str) -> Optional[SchemaRecord]:
        def _find(fields: List[Dict[str, Any]]) -> Optional[SchemaRecord]:
            for field in fields:
                if field.get("key") == key:
                    return field
                found = _find(field.get("sub_fields") or [])
                if found:
                    return found
            return None

        for group in self.get_field_groups().values():
            found = _find(group.get("fields") or [])
            if found:
                return found
        return None

    ###########################################################################
    # Normalisation
    ###########################################################################

    def prepare_post_type_for_export(self, record: SchemaRecord) -> SchemaRecord:
        return acf.prepare_post_type_for_export(record)

    def prepare_post_type_for_import(self, record: SchemaRecord) -> SchemaRecord:
        return acf.prepare_post_type_for_import(record)

    def prepare_taxonomy_for_export(self, record: SchemaRecord) -> SchemaRecord:
        return acf.prepare_taxonomy_for_export(record)

    def prepare_taxonomy_for_import(self, record: SchemaRecord) -> SchemaRecord:
        return acf.prepare_taxonomy_for_import(record)

    def prepare_field_group_for_export(self, record: SchemaRecord) -> SchemaRecord:
        return acf.prepare_field_group_for_export(record)

    def prepare_field_group_for_import(self, record: SchemaRecord) -> SchemaRecord:
        return acf.prepare_field_group_for_import(record)
