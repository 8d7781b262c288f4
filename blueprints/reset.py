"""
Teardown of the content a blueprint import created.

:class:`BlueprintReset` removes everything the schema extension manages:
posts of its post types together with their media, the terms of its
taxonomies, and the post type, taxonomy and field group definitions
themselves.  With ``delete_all`` every post and every media file of the
site is removed as well.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from blueprints.hosts.base import Site
from blueprints.schemas.provider import SchemaProvider
from blueprints.utils.logs import LogFn, silent_log

THUMBNAIL_META_KEY = "_thumbnail_id"

# Stat key -> (singular, plural).  Order breaks ties in format_stats.
STAT_NOUNS: Dict[str, tuple] = {
    "taxonomy_terms": ("term", "terms"),
    "taxonomies": ("taxonomy", "taxonomies"),
    "posts": ("post", "posts"),
    "media": ("media", "media"),
    "post_types": ("post type", "post types"),
    "field_groups": ("field group", "field groups"),
}


def _is_field_key(value) -> bool:
    return isinstance(value, str) and value.startswith("field_")


class BlueprintReset:
    """
    Deletes schema-managed content from ``site``.

    Post and media IDs are captured when the object is created, before any
    definition is removed, so posts of a custom type can still be found
    after their type is gone.
    """

    def __init__(self, site: Site, provider: Optional[SchemaProvider] = None, *, log: LogFn = silent_log) -> None:
        self.site = site
        self.provider = provider
        self.log = log
        self.post_ids: Dict[str, List[int]] = self._get_post_ids()
        self.media_ids: List[int] = self._get_media_ids()
        self.stats: Dict[str, int] = {key: 0 for key in STAT_NOUNS}

    def _get_post_ids(self) -> Dict[str, List[int]]:
        if self.provider is None:
            return {}
        return {
            post_type: [int(p["ID"]) for p in self.site.get_posts([post_type], status=None)]
            for post_type in self.provider.get_post_types()
        }

    def _get_media_ids(self) -> List[int]:
        """Featured media and image field values of the managed posts."""
        if self.provider is None:
            return []
        media_ids: List[int] = []
        for post_ids in self.post_ids.values():
            for post_id in post_ids:
                meta = self.site.get_post_meta(post_id)
                candidates = list(meta.get(THUMBNAIL_META_KEY) or [])[:1]
                for values in meta.values():
                    if not values or not _is_field_key(values[0]):
                        continue
                    field = self.provider.get_field(values[0])
                    if field and field.get("type") == "image":
                        candidates.extend((meta.get(field.get("name", "")) or [])[:1])
                for value in candidates:
                    try:
                        media_id = int(value)
                    except (TypeError, ValueError):
                        continue
                    if media_id and media_id not in media_ids:
                        media_ids.append(media_id)
        return media_ids

    ###########################################################################
    # Steps
    ###########################################################################

    def delete_taxonomy_terms(self) -> None:
        if self.provider is None:
            return
        for taxonomy in self.provider.get_taxonomies():
            for term in self.site.get_terms(taxonomy):
                if self.site.delete_term(int(term["term_id"]), taxonomy):
                    self.stats["taxonomy_terms"] += 1

    def delete_taxonomies(self) -> None:
        if self.provider is None:
            return
        for key in list(self.provider.get_taxonomies()):
            if self.provider.delete_taxonomy(key):
                self.stats["taxonomies"] += 1

    def delete_posts(self, delete_all: bool = False) -> None:
        if delete_all:
            for post in self.site.get_posts(None, status=None):
                if self.site.delete_post(int(post["ID"])):
                    self.stats["posts"] += 1
        for post_ids in self.post_ids.values():
            for post_id in post_ids:
                if self.site.delete_post(post_id):
                    self.stats["posts"] += 1

    def delete_media(self, delete_all: bool = False) -> None:
        media_ids = self.site.get_attachment_ids() if delete_all else self.media_ids
        for media_id in media_ids:
            if self.site.delete_attachment(media_id):
                self.stats["media"] += 1

    def delete_custom_post_types(self) -> None:
        if self.provider is None:
            return
        for key in list(self.provider.get_post_types()):
            if self.provider.delete_post_type(key):
                self.stats["post_types"] += 1

    def delete_field_groups(self) -> None:
        if self.provider is None:
            return
        for key in list(self.provider.get_field_groups()):
            if self.provider.delete_field_group(key):
                self.stats["field_groups"] += 1

    def run(self, delete_all: bool = False) -> Dict[str, int]:
        self.log("Deleting taxonomy terms.")
        self.delete_taxonomy_terms()
        self.log("Deleting taxonomies.")
        self.delete_taxonomies()
        self.log("Deleting posts.")
        self.delete_posts(delete_all)
        self.log("Deleting media.")
        self.delete_media(delete_all)
        self.log("Deleting custom post types.")
        self.delete_custom_post_types()
        self.log("Deleting field groups.")
        self.delete_field_groups()
        self.log(self.format_stats())
        return dict(self.stats)

    def format_stats(self) -> str:
        """``"Deleted: 9 posts, 2 terms, 0 media, ..."`` with the highest counts first."""
        ordered = sorted(self.stats.items(), key=lambda item: -item[1])
        parts = []
        for key, count in ordered:
            singular, plural = STAT_NOUNS[key]
            parts.append(f"{count} {singular if count == 1 else plural}")
        return "Deleted: " + ", ".join(parts) + "."
