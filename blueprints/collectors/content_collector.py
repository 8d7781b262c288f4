"""
Export pipeline: read the site's content into a blueprint manifest.

The collectors run in a fixed order because later steps consume what earlier
ones produced: terms and meta are read for the collected posts, and media is
located through the collected ``_thumbnail_id`` meta.  A step whose input is
empty is skipped.

:func:`export_blueprint` runs the whole pipeline and packs the result::

    zip_path = export_blueprint(site, provider, {"name": "Starter"})
"""

from __future__ import annotations

import os
import shutil
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.manifest import (
    MEDIA_ROOT,
    SCHEMA_VERSION,
    BlueprintInfo,
    ContentService,
    Manifest,
    MetaEntry,
    PluginRequirement,
    PostRecord,
    Services,
    TermRecord,
)

from blueprints.archive.codec import (
    delete_folder,
    get_blueprint_temp_dir,
    pack_blueprint,
    write_manifest,
)
from blueprints.hosts.base import Site
from blueprints.schemas.provider import SchemaProvider
from blueprints.schemas.transfer import export_schemas
from blueprints.utils.errors import MediaCollectionError
from blueprints.utils.labels import merge_unique, slugify
from blueprints.utils.logs import LogFn, silent_log

DEFAULT_BLUEPRINT_NAME = "Content Blueprint"
DEFAULT_POST_TYPES = ("post", "page")
THUMBNAIL_META_KEY = "_thumbnail_id"
# Bookkeeping meta the host regenerates on its own
EXCLUDED_META_KEYS = ("_edit_last", "_edit_lock", "_encloseme", "_pingme")


def default_option_names(site: Site) -> List[str]:
    stylesheet = site.theme()["stylesheet"]
    return ["stylesheet", "template", "current_theme", f"theme_mods_{stylesheet}"]


def default_post_types(provider: Optional[SchemaProvider]) -> List[str]:
    custom = list(provider.get_post_types()) if provider is not None else []
    return merge_unique(DEFAULT_POST_TYPES, custom)


def generate_meta(
    site: Site,
    provider: Optional[SchemaProvider] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Manifest:
    """
    Build the manifest skeleton describing the source site.

    ``overrides`` accepts ``name``, ``description``, ``version``,
    ``min_version``, ``theme``, ``theme_version`` and ``min_plugins`` (a
    mapping of extension name to minimum version).
    """
    overrides = overrides or {}
    theme = site.theme()
    stylesheet = overrides.get("theme") or theme["stylesheet"]
    theme_version = overrides.get("theme_version") or theme["version"]

    plugins: Dict[str, PluginRequirement] = {
        name: PluginRequirement(version=version or "latest")
        for name, version in site.active_plugins().items()
    }
    if provider is not None and provider.name not in plugins:
        plugins[provider.name] = PluginRequirement(version=provider.version)
    for name, version in (overrides.get("min_plugins") or {}).items():
        current = plugins.get(name) or PluginRequirement()
        plugins[name] = current.model_copy(update={"version": str(version)})

    return Manifest(
        schema_version=SCHEMA_VERSION,
        blueprint=BlueprintInfo(
            version=str(overrides.get("version") or "1.0"),
            name=overrides.get("name") or DEFAULT_BLUEPRINT_NAME,
            description=overrides.get("description") or "",
        ),
        services=Services(
            content=ContentService(
                version=str(overrides.get("min_version") or site.version),
                theme={stylesheet: {"version": theme_version}},
                plugins=plugins,
            )
        ),
    )


###############################################################################
# Collectors
###############################################################################

def collect_posts(site: Site, post_types: Iterable[str]) -> Dict[int, PostRecord]:
    """Published posts of ``post_types`` keyed by their ID."""
    return {
        int(post["ID"]): PostRecord.model_validate(post)
        for post in site.get_posts(list(post_types), status="publish")
    }


def collect_post_terms(site: Site, posts: Mapping[int, PostRecord]) -> Dict[int, List[TermRecord]]:
    post_terms: Dict[int, List[TermRecord]] = {}
    for post_id, post in posts.items():
        terms: List[TermRecord] = []
        for taxonomy in site.get_object_taxonomies(post.post_type):
            terms.extend(TermRecord.model_validate(term) for term in site.get_post_terms(post_id, taxonomy))
        if terms:
            post_terms[post_id] = terms
    return post_terms


def collect_post_meta(site: Site, posts: Mapping[int, PostRecord]) -> Dict[int, List[MetaEntry]]:
    post_meta: Dict[int, List[MetaEntry]] = {}
    for post_id in posts:
        entries = [
            # Multi-valued keys keep their first value only.
            MetaEntry(key=key, value=values[0])
            for key, values in site.get_post_meta(post_id).items()
            if key not in EXCLUDED_META_KEYS and values
        ]
        if entries:
            post_meta[post_id] = entries
    return post_meta


def collect_media(
    site: Site,
    post_meta: Mapping[int, List[MetaEntry]],
    path: str,
    log: LogFn = silent_log,
) -> Dict[int, str]:
    """
    Copy the featured media of the collected posts into ``<path>/media``.

    Each file lands in ``media/<media id>/<file name>`` so two uploads with
    the same file name never collide.  A file referenced by several media
    IDs is copied once.

    :raises MediaCollectionError: when a file cannot be copied.
    """
    media: Dict[int, str] = {}
    copied: Dict[str, str] = {}
    for post_id, entries in post_meta.items():
        for entry in entries:
            if entry.key != THUMBNAIL_META_KEY:
                continue
            try:
                media_id = int(entry.value)
            except (TypeError, ValueError):
                log(f"Post {post_id} has a non numeric {THUMBNAIL_META_KEY} {entry.value!r}.", "DEBUG")
                continue
            if media_id in media:
                continue

            source = site.get_original_image_path(media_id)
            if not source:
                log(f"Media {media_id} of post {post_id} no longer exists; skipping.", "DEBUG")
                continue
            if source in copied:
                media[media_id] = copied[source]
                continue

            basename = os.path.basename(source)
            target = os.path.join(path, MEDIA_ROOT, str(media_id), basename)
            try:
                os.makedirs(os.path.dirname(target), exist_ok=True)
                shutil.copy2(source, target)
            except OSError as e:
                raise MediaCollectionError(path=target) from e
            copied[source] = media[media_id] = f"{MEDIA_ROOT}/{media_id}/{basename}"
            log(f"Copied media {media_id} ({basename}).", "DEBUG")
    return media


def collect_options(site: Site, names: Iterable[str], log: LogFn = silent_log) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for name in names:
        value = site.get_option(name)
        if value is None:
            log(f"Option {name} is not set; skipping.", "DEBUG")
            continue
        options[name] = value
    return options


def collect_schemas(provider: SchemaProvider, version: Optional[str] = None) -> PluginRequirement:
    schemas = export_schemas(provider)
    return PluginRequirement(
        version=version or provider.version,
        post_types=schemas["post_types"],
        taxonomies=schemas["taxonomies"],
        field_groups=schemas["field_groups"],
    )


###############################################################################
# Pipeline
###############################################################################

def collect_content(
    site: Site,
    provider: Optional[SchemaProvider],
    manifest: Manifest,
    path: str,
    *,
    post_types: Optional[Iterable[str]] = None,
    option_names: Optional[Iterable[str]] = None,
    log: LogFn = silent_log,
) -> Manifest:
    """Fill ``manifest`` with the site's content, copying media into ``path``."""
    content = manifest.content
    types = list(post_types) if post_types else default_post_types(provider)

    log(f"Collecting posts of type {', '.join(types)}.")
    content.posts = collect_posts(site, types)

    if content.posts:
        log("Collecting post terms.")
        content.post_terms = collect_post_terms(site, content.posts)
        log("Collecting post meta.")
        content.post_meta = collect_post_meta(site, content.posts)

    if content.post_meta:
        log("Collecting media.")
        content.media = collect_media(site, content.post_meta, path, log)

    log("Collecting options.")
    names = merge_unique(default_option_names(site), option_names or [])
    content.options = collect_options(site, names, log)

    if provider is not None:
        log("Collecting schemas.")
        declared = content.plugins.get(provider.name)
        content.plugins[provider.name] = collect_schemas(provider, declared.version if declared else None)

    log(
        f"Collected {len(content.posts)} posts, {len(content.term_records())} post terms, "
        f"{len(content.media)} media files and {len(content.options)} options."
    )
    return manifest


def export_blueprint(
    site: Site,
    provider: Optional[SchemaProvider] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    temp_root: Optional[str] = None,
    post_types: Optional[Iterable[str]] = None,
    option_names: Optional[Iterable[str]] = None,
    log: LogFn = silent_log,
) -> str:
    """
    Export the site into a blueprint zip and return the zip path.

    The working directory ``<temp_root>/blueprints/<slug>`` is cleared first
    so files from an earlier export never leak into the archive.
    """
    manifest = generate_meta(site, provider, overrides)
    path = get_blueprint_temp_dir(manifest, temp_root)
    delete_folder(path)
    os.makedirs(path, exist_ok=True)

    collect_content(site, provider, manifest, path, post_types=post_types, option_names=option_names, log=log)
    write_manifest(manifest, path)
    zip_path = pack_blueprint(path, slugify(manifest.blueprint.name))
    log(f"Blueprint written to {zip_path}.", "SUCCESS")
    return zip_path
