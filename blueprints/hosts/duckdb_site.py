"""
A content site stored in a DuckDB database.

Posts (including media attachments), post meta, terms, term relationships,
options and registered taxonomies/post types live in DuckDB tables; uploaded
media files live under ``uploads_dir``.  Meta and option values are stored
JSON encoded so arbitrary structured values round-trip.

Usage example::

    site = DuckDBSite("data/site.duckdb", uploads_dir="data/uploads")
    post_id = site.insert_post({"post_title": "Hello", "post_type": "post"})
    site.update_post_meta(post_id, "subtitle", "World")
    site.close()

``":memory:"`` keeps everything in memory, which is what the tests use.
"""

from __future__ import annotations

import json
import os
import shutil
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import duckdb
from PIL import Image, UnidentifiedImageError

from blueprints.utils.errors import HostError
from blueprints.utils.labels import label_key, slugify

from .base import Site

DEFAULT_VERSION = "6.4"
DEFAULT_THEME = "twentytwentythree"

BUILTIN_POST_TYPES = ("post", "page", "attachment")
BUILTIN_TAXONOMIES: Dict[str, List[str]] = {
    "category": ["post"],
    "post_tag": ["post"],
}

POST_COLUMNS: Tuple[str, ...] = (
    "post_type",
    "post_status",
    "post_title",
    "post_content",
    "post_excerpt",
    "post_name",
    "post_date",
    "post_modified",
    "post_parent",
    "menu_order",
    "post_author",
    "comment_status",
    "ping_status",
    "post_mime_type",
)
_INT_COLUMNS = ("post_parent", "menu_order", "post_author")

TERM_COLUMNS: Tuple[str, ...] = ("term_id", "name", "slug", "taxonomy", "description", "parent")

# Rendition sizes generated for uploaded images: name -> (max width, max height)
IMAGE_SIZES: Dict[str, Tuple[int, int]] = {
    "thumbnail": (150, 150),
    "medium": (300, 300),
    "large": (1024, 1024),
}

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS posts (
        id BIGINT,
        post_type VARCHAR,
        post_status VARCHAR,
        post_title VARCHAR,
        post_content VARCHAR,
        post_excerpt VARCHAR,
        post_name VARCHAR,
        post_date VARCHAR,
        post_modified VARCHAR,
        post_parent BIGINT,
        menu_order INTEGER,
        post_author BIGINT,
        comment_status VARCHAR,
        ping_status VARCHAR,
        post_mime_type VARCHAR,
        guid VARCHAR
    )
    """,
    "CREATE TABLE IF NOT EXISTS postmeta (meta_id BIGINT, post_id BIGINT, meta_key VARCHAR, meta_value VARCHAR)",
    """
    CREATE TABLE IF NOT EXISTS terms (
        term_id BIGINT,
        name VARCHAR,
        slug VARCHAR,
        taxonomy VARCHAR,
        description VARCHAR,
        parent BIGINT
    )
    """,
    "CREATE TABLE IF NOT EXISTS term_relationships (object_id BIGINT, term_id BIGINT, term_order INTEGER)",
    "CREATE TABLE IF NOT EXISTS options (option_name VARCHAR, option_value VARCHAR)",
    "CREATE TABLE IF NOT EXISTS taxonomies (taxonomy VARCHAR, object_types VARCHAR, builtin BOOLEAN)",
    "CREATE TABLE IF NOT EXISTS post_types (name VARCHAR, builtin BOOLEAN)",
)


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class DuckDBSite(Site):
    def __init__(
        self,
        database: str = ":memory:",
        *,
        uploads_dir: str = os.path.join("data", "uploads"),
        site_url: str = "http://localhost",
        version: Optional[str] = None,
    ) -> None:
        if database != ":memory:":
            os.makedirs(os.path.dirname(database) or ".", exist_ok=True)
        self.database = database
        self.uploads_dir = uploads_dir
        self.site_url = site_url.rstrip("/")
        self.con = duckdb.connect(database=database, read_only=False)
        for statement in _SCHEMA:
            self.con.execute(statement)
        self._seed_builtins()
        if version is not None:
            self.update_option("host_version", version)
        elif self.get_option("host_version") is None:
            self.update_option("host_version", DEFAULT_VERSION)

    def _seed_builtins(self) -> None:
        for name in BUILTIN_POST_TYPES:
            if not self.post_type_exists(name):
                self.con.execute("INSERT INTO post_types VALUES (?, ?)", [name, True])
        for taxonomy, object_types in BUILTIN_TAXONOMIES.items():
            if not self.taxonomy_exists(taxonomy):
                self.con.execute(
                    "INSERT INTO taxonomies VALUES (?, ?, ?)",
                    [taxonomy, json.dumps(object_types), True],
                )

    def close(self) -> None:
        self.con.close()

    def __enter__(self) -> "DuckDBSite":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _scalar(self, sql: str, params: Optional[List[Any]] = None) -> Any:
        row = self.con.execute(sql, params or []).fetchone()
        return row[0] if row else None

    ###########################################################################
    # Environment
    ###########################################################################

    @property
    def version(self) -> str:
        return str(self.get_option("host_version", DEFAULT_VERSION))

    def active_plugins(self) -> Dict[str, str]:
        return dict(self.get_option("active_plugins", {}) or {})

    def activate_plugin(self, name: str, version: str) -> None:
        plugins = self.active_plugins()
        plugins[name] = version
        self.update_option("active_plugins", plugins)

    def deactivate_plugin(self, name: str) -> None:
        plugins = self.active_plugins()
        plugins.pop(name, None)
        self.update_option("active_plugins", plugins)

    def theme(self) -> Dict[str, str]:
        stylesheet = self.get_option("stylesheet") or DEFAULT_THEME
        return {
            "stylesheet": stylesheet,
            "template": self.get_option("template") or stylesheet,
            "version": str(self.get_option("theme_version") or "latest"),
        }

    ###########################################################################
    # Options
    ###########################################################################

    def get_option(self, name: str, default: Any = None) -> Any:
        raw = self._scalar("SELECT option_value FROM options WHERE option_name = ?", [name])
        if raw is None:
            return default
        return json.loads(raw)

    def update_option(self, name: str, value: Any) -> None:
        if not name:
            raise HostError("Option name must not be empty.")
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise HostError(f"Option {name} cannot be stored: {e}") from e
        self.con.execute("DELETE FROM options WHERE option_name = ?", [name])
        self.con.execute("INSERT INTO options VALUES (?, ?)", [name, encoded])

    ###########################################################################
    # Posts
    ###########################################################################

    def _row_to_post(self, row: Tuple[Any, ...]) -> Dict[str, Any]:
        return dict(zip(("ID",) + POST_COLUMNS + ("guid",), row))

    def _post_id_taken(self, post_id: int) -> bool:
        return bool(self._scalar("SELECT COUNT(*) FROM posts WHERE id = ?", [post_id]))

    def _next_post_id(self) -> int:
        return int(self._scalar("SELECT COALESCE(MAX(id), 0) + 1 FROM posts"))

    def _unique_post_name(self, name: str, post_type: str, exclude_id: Optional[int] = None) -> str:
        candidate = name
        suffix = 2
        while self._scalar(
            "SELECT COUNT(*) FROM posts WHERE post_name = ? AND post_type = ? AND id <> ?",
            [candidate, post_type, exclude_id or 0],
        ):
            candidate = f"{name}-{suffix}"
            suffix += 1
        return candidate

    def get_posts(self, post_types: Optional[Iterable[str]] = None, status: Optional[str] = "publish") -> List[Dict[str, Any]]:
        columns = ", ".join(("id",) + POST_COLUMNS + ("guid",))
        params: List[Any] = []
        if post_types is None:
            sql = f"SELECT {columns} FROM posts WHERE post_type <> 'attachment'"
        else:
            types = list(post_types)
            if not types:
                return []
            sql = f"SELECT {columns} FROM posts WHERE post_type IN ({', '.join('?' for _ in types)})"
            params.extend(types)
        if status is not None:
            sql += " AND post_status = ?"
            params.append(status)
        sql += " ORDER BY id"
        return [self._row_to_post(row) for row in self.con.execute(sql, params).fetchall()]

    def get_post(self, post_id: int) -> Optional[Dict[str, Any]]:
        columns = ", ".join(("id",) + POST_COLUMNS + ("guid",))
        row = self.con.execute(f"SELECT {columns} FROM posts WHERE id = ?", [post_id]).fetchone()
        return self._row_to_post(row) if row else None

    def insert_post(self, fields: Dict[str, Any], *, import_id: Optional[int] = None) -> int:
        post_type = fields.get("post_type") or "post"
        title = fields.get("post_title") or ""
        if post_type != "attachment" and not (title or fields.get("post_content") or fields.get("post_excerpt")):
            raise HostError("Content, title, and excerpt are empty.")

        if import_id and int(import_id) > 0 and not self._post_id_taken(int(import_id)):
            post_id = int(import_id)
        else:
            post_id = self._next_post_id()

        values: Dict[str, Any] = {column: fields.get(column) for column in POST_COLUMNS}
        for column in _INT_COLUMNS:
            values[column] = int(values[column] or 0)
        values["post_type"] = post_type
        values["post_status"] = values["post_status"] or "publish"
        values["post_title"] = title
        values["post_content"] = values["post_content"] or ""
        values["post_excerpt"] = values["post_excerpt"] or ""
        values["post_date"] = values["post_date"] or _now()
        values["post_modified"] = values["post_modified"] or values["post_date"]
        values["comment_status"] = values["comment_status"] or "open"
        values["ping_status"] = values["ping_status"] or "open"
        values["post_mime_type"] = values["post_mime_type"] or ""
        base_name = values["post_name"] or slugify(title) or str(post_id)
        values["post_name"] = self._unique_post_name(base_name, post_type)
        guid = fields.get("guid") or f"{self.site_url}/?p={post_id}"

        columns = ("id",) + POST_COLUMNS + ("guid",)
        self.con.execute(
            f"INSERT INTO posts ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            [post_id] + [values[c] for c in POST_COLUMNS] + [guid],
        )
        return post_id

    def update_post(self, post_id: int, fields: Dict[str, Any]) -> None:
        if not self._post_id_taken(post_id):
            raise HostError(f"Invalid post ID {post_id}.")
        updates = {k: v for k, v in fields.items() if k in POST_COLUMNS}
        if not updates:
            return
        for column in _INT_COLUMNS:
            if column in updates:
                updates[column] = int(updates[column] or 0)
        assignments = ", ".join(f"{column} = ?" for column in updates)
        self.con.execute(
            f"UPDATE posts SET {assignments} WHERE id = ?",
            list(updates.values()) + [post_id],
        )

    def delete_post(self, post_id: int) -> bool:
        if not self._post_id_taken(post_id):
            return False
        self.con.execute("DELETE FROM postmeta WHERE post_id = ?", [post_id])
        self.con.execute("DELETE FROM term_relationships WHERE object_id = ?", [post_id])
        self.con.execute("DELETE FROM posts WHERE id = ?", [post_id])
        return True

    def post_type_exists(self, post_type: str) -> bool:
        return bool(self._scalar("SELECT COUNT(*) FROM post_types WHERE name = ?", [post_type]))

    def register_post_type(self, post_type: str) -> None:
        if not self.post_type_exists(post_type):
            self.con.execute("INSERT INTO post_types VALUES (?, ?)", [post_type, False])

    def unregister_post_type(self, post_type: str) -> bool:
        if not self._scalar(
            "SELECT COUNT(*) FROM post_types WHERE name = ? AND NOT builtin", [post_type]
        ):
            return False
        self.con.execute("DELETE FROM post_types WHERE name = ?", [post_type])
        return True

    ###########################################################################
    # Post meta
    ###########################################################################

    def get_post_meta(self, post_id: int) -> Dict[str, List[Any]]:
        rows = self.con.execute(
            "SELECT meta_key, meta_value FROM postmeta WHERE post_id = ? ORDER BY meta_id",
            [post_id],
        ).fetchall()
        meta: Dict[str, List[Any]] = {}
        for key, raw in rows:
            meta.setdefault(key, []).append(json.loads(raw))
        return meta

    def add_post_meta(self, post_id: int, key: str, value: Any) -> None:
        """Add a value to ``key`` without removing existing values."""
        if not self._post_id_taken(post_id):
            raise HostError(f"Invalid post ID {post_id}.")
        if not key:
            raise HostError("Meta key must not be empty.")
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise HostError(f"Meta {key} cannot be stored: {e}") from e
        meta_id = int(self._scalar("SELECT COALESCE(MAX(meta_id), 0) + 1 FROM postmeta"))
        self.con.execute("INSERT INTO postmeta VALUES (?, ?, ?, ?)", [meta_id, post_id, key, encoded])

    def update_post_meta(self, post_id: int, key: str, value: Any) -> None:
        if not self._post_id_taken(post_id):
            raise HostError(f"Invalid post ID {post_id}.")
        self.con.execute("DELETE FROM postmeta WHERE post_id = ? AND meta_key = ?", [post_id, key])
        self.add_post_meta(post_id, key, value)

    ###########################################################################
    # Taxonomies and terms
    ###########################################################################

    def get_object_taxonomies(self, post_type: str) -> List[str]:
        rows = self.con.execute("SELECT taxonomy, object_types FROM taxonomies ORDER BY taxonomy").fetchall()
        return [taxonomy for taxonomy, raw in rows if post_type in json.loads(raw or "[]")]

    def taxonomy_exists(self, taxonomy: str) -> bool:
        return bool(self._scalar("SELECT COUNT(*) FROM taxonomies WHERE taxonomy = ?", [taxonomy]))

    def register_taxonomy(self, taxonomy: str, object_types: Iterable[str]) -> None:
        self.con.execute("DELETE FROM taxonomies WHERE taxonomy = ? AND NOT builtin", [taxonomy])
        if not self.taxonomy_exists(taxonomy):
            self.con.execute(
                "INSERT INTO taxonomies VALUES (?, ?, ?)",
                [taxonomy, json.dumps(list(object_types)), False],
            )

    def unregister_taxonomy(self, taxonomy: str) -> bool:
        if not self._scalar(
            "SELECT COUNT(*) FROM taxonomies WHERE taxonomy = ? AND NOT builtin", [taxonomy]
        ):
            return False
        self.con.execute("DELETE FROM taxonomies WHERE taxonomy = ?", [taxonomy])
        return True

    def _row_to_term(self, row: Tuple[Any, ...]) -> Dict[str, Any]:
        return dict(zip(TERM_COLUMNS, row))

    def get_terms(self, taxonomy: str) -> List[Dict[str, Any]]:
        rows = self.con.execute(
            f"SELECT {', '.join(TERM_COLUMNS)} FROM terms WHERE taxonomy = ? ORDER BY term_id",
            [taxonomy],
        ).fetchall()
        return [self._row_to_term(row) for row in rows]

    def get_term(self, term_id: int) -> Optional[Dict[str, Any]]:
        row = self.con.execute(
            f"SELECT {', '.join(TERM_COLUMNS)} FROM terms WHERE term_id = ?", [term_id]
        ).fetchone()
        return self._row_to_term(row) if row else None

    def term_exists(self, name: str, taxonomy: str, parent: Optional[int] = None) -> Optional[int]:
        key = label_key(name)
        for term in self.get_terms(taxonomy):
            if label_key(term["name"]) != key:
                continue
            if parent is not None and int(term["parent"] or 0) != int(parent):
                continue
            return int(term["term_id"])
        return None

    def insert_term(
        self,
        name: str,
        taxonomy: str,
        *,
        slug: str = "",
        description: str = "",
        parent: int = 0,
    ) -> int:
        name = (name or "").strip()
        if not name:
            raise HostError("A name is required for this term.")
        if not self.taxonomy_exists(taxonomy):
            raise HostError(f"Invalid taxonomy {taxonomy}.")
        parent = int(parent or 0)
        if parent:
            parent_term = self.get_term(parent)
            if parent_term is None or parent_term["taxonomy"] != taxonomy:
                raise HostError(f"Parent term {parent} does not exist in {taxonomy}.")
        if self.term_exists(name, taxonomy, parent) is not None:
            raise HostError(f"A term with the name {name!r} already exists with this parent.")

        term_id = int(self._scalar("SELECT COALESCE(MAX(term_id), 0) + 1 FROM terms"))
        base_slug = slugify(slug or name) or f"term-{term_id}"
        candidate = base_slug
        suffix = 2
        while self._scalar(
            "SELECT COUNT(*) FROM terms WHERE slug = ? AND taxonomy = ?", [candidate, taxonomy]
        ):
            candidate = f"{base_slug}-{suffix}"
            suffix += 1
        self.con.execute(
            "INSERT INTO terms VALUES (?, ?, ?, ?, ?, ?)",
            [term_id, name, candidate, taxonomy, description or "", parent],
        )
        return term_id

    def delete_term(self, term_id: int, taxonomy: str) -> bool:
        term = self.get_term(term_id)
        if term is None or term["taxonomy"] != taxonomy:
            return False
        # Children move up to the deleted term's parent.
        self.con.execute(
            "UPDATE terms SET parent = ? WHERE parent = ? AND taxonomy = ?",
            [int(term["parent"] or 0), term_id, taxonomy],
        )
        self.con.execute("DELETE FROM term_relationships WHERE term_id = ?", [term_id])
        self.con.execute("DELETE FROM terms WHERE term_id = ?", [term_id])
        return True

    def get_post_terms(self, post_id: int, taxonomy: str) -> List[Dict[str, Any]]:
        columns = ", ".join(f"t.{c}" for c in TERM_COLUMNS)
        rows = self.con.execute(
            f"""
            SELECT {columns}
            FROM term_relationships r
            JOIN terms t ON t.term_id = r.term_id
            WHERE r.object_id = ? AND t.taxonomy = ?
            ORDER BY r.term_order, t.term_id
            """,
            [post_id, taxonomy],
        ).fetchall()
        return [self._row_to_term(row) for row in rows]

    def set_post_terms(self, post_id: int, term_ids: Iterable[int], taxonomy: str, *, append: bool = True) -> List[int]:
        if not self._post_id_taken(post_id):
            raise HostError(f"Invalid post ID {post_id}.")
        if not self.taxonomy_exists(taxonomy):
            raise HostError(f"Invalid taxonomy {taxonomy}.")
        ids = [int(t) for t in term_ids]
        for term_id in ids:
            term = self.get_term(term_id)
            if term is None or term["taxonomy"] != taxonomy:
                raise HostError(f"Term {term_id} does not exist in {taxonomy}.")

        if not append:
            for term in self.get_post_terms(post_id, taxonomy):
                self.con.execute(
                    "DELETE FROM term_relationships WHERE object_id = ? AND term_id = ?",
                    [post_id, term["term_id"]],
                )
        attached = [int(t["term_id"]) for t in self.get_post_terms(post_id, taxonomy)]
        order = len(attached)
        for term_id in ids:
            if term_id in attached:
                continue
            self.con.execute("INSERT INTO term_relationships VALUES (?, ?, ?)", [post_id, term_id, order])
            attached.append(term_id)
            order += 1
        return attached

    ###########################################################################
    # Media
    ###########################################################################

    def _is_attachment(self, media_id: int) -> bool:
        return bool(self._scalar(
            "SELECT COUNT(*) FROM posts WHERE id = ? AND post_type = 'attachment'", [media_id]
        ))

    def _attached_file(self, media_id: int) -> Optional[str]:
        values = self.get_post_meta(media_id).get("_wp_attached_file") or []
        return values[0] if values else None

    def get_original_image_path(self, media_id: int) -> Optional[str]:
        try:
            media_id = int(media_id)
        except (TypeError, ValueError):
            return None
        if not self._is_attachment(media_id):
            return None
        relative = self._attached_file(media_id)
        if not relative:
            return None
        return os.path.join(self.uploads_dir, relative)

    def _unique_upload_path(self, basename: str) -> Tuple[str, str]:
        subdir = datetime.now().strftime("%Y/%m")
        stem, ext = os.path.splitext(basename)
        candidate = basename
        counter = 1
        while os.path.exists(os.path.join(self.uploads_dir, subdir, candidate)):
            candidate = f"{stem}-{counter}{ext}"
            counter += 1
        relative = f"{subdir}/{candidate}"
        return relative, os.path.join(self.uploads_dir, subdir, candidate)

    def insert_attachment(self, file_path: str, *, title: str, mime_type: str) -> int:
        if not os.path.isfile(file_path):
            raise HostError(f"Could not read media file at {file_path}.")
        relative, destination = self._unique_upload_path(os.path.basename(file_path))
        os.makedirs(os.path.dirname(destination), exist_ok=True)
        try:
            shutil.copy2(file_path, destination)
        except OSError as e:
            raise HostError(f"Could not copy {file_path} to the uploads folder: {e}") from e

        media_id = self.insert_post(
            {
                "post_type": "attachment",
                "post_status": "inherit",
                "post_title": title,
                "post_mime_type": mime_type or "application/octet-stream",
                "guid": f"{self.site_url}/uploads/{relative}",
            }
        )
        self.update_post_meta(media_id, "_wp_attached_file", relative)
        return media_id

    def generate_attachment_metadata(self, media_id: int, file_path: str) -> Dict[str, Any]:
        source = self.get_original_image_path(media_id) or file_path
        relative = self._attached_file(media_id) or os.path.basename(file_path)
        metadata: Dict[str, Any] = {"file": relative}
        try:
            with Image.open(source) as img:
                img.load()
                fmt = img.format
                width, height = img.size
                metadata.update({"width": width, "height": height, "sizes": {}})
                stem, ext = os.path.splitext(os.path.basename(source))
                for size_name, (max_w, max_h) in IMAGE_SIZES.items():
                    if width <= max_w and height <= max_h:
                        continue
                    rendition = img.copy()
                    rendition.thumbnail((max_w, max_h))
                    if fmt == "JPEG" and rendition.mode not in ("RGB", "L"):
                        rendition = rendition.convert("RGB")
                    r_w, r_h = rendition.size
                    name = f"{stem}-{r_w}x{r_h}{ext}"
                    rendition.save(os.path.join(os.path.dirname(source), name), format=fmt)
                    metadata["sizes"][size_name] = {
                        "file": name,
                        "width": r_w,
                        "height": r_h,
                        "mime-type": Image.MIME.get(fmt or "", ""),
                    }
        except (UnidentifiedImageError, OSError):
            # Not an image: the original file is the only rendition.
            pass
        return metadata

    def update_attachment_metadata(self, media_id: int, metadata: Dict[str, Any]) -> None:
        self.update_post_meta(media_id, "_wp_attachment_metadata", metadata)

    def get_attachment_ids(self) -> List[int]:
        rows = self.con.execute("SELECT id FROM posts WHERE post_type = 'attachment' ORDER BY id").fetchall()
        return [int(row[0]) for row in rows]

    def delete_attachment(self, media_id: int) -> bool:
        if not self._is_attachment(media_id):
            return False
        original = self.get_original_image_path(media_id)
        metadata = (self.get_post_meta(media_id).get("_wp_attachment_metadata") or [{}])[0] or {}
        if original:
            folder = os.path.dirname(original)
            files = [original] + [
                os.path.join(folder, size["file"])
                for size in (metadata.get("sizes") or {}).values()
                if size.get("file")
            ]
            for path in files:
                if os.path.isfile(path):
                    os.remove(path)

        rows = self.con.execute(
            "SELECT meta_id, meta_value FROM postmeta WHERE meta_key = '_thumbnail_id'"
        ).fetchall()
        for meta_id, raw in rows:
            if str(json.loads(raw)) == str(media_id):
                self.con.execute("DELETE FROM postmeta WHERE meta_id = ?", [meta_id])
        return self.delete_post(media_id)
