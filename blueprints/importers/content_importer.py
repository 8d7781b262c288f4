"""
Import pipeline: replay a blueprint manifest onto a site.

Steps run in a fixed order, each one returning a
:class:`blueprints.utils.results.Result`:

1. schemas (post types, taxonomies, field groups)
2. posts
3. terms
4. term assignment
5. media
6. post meta
7. options

The pipeline raises the first error of a fatal result.  Warnings of a
non-fatal result are logged, reported and kept on the import context, and
the run continues.  IDs assigned by the site are recorded in the context's
:class:`RemapTable` so later steps point at the right entities.
"""

from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.manifest import Manifest, MetaEntry, PostRecord, TermRecord

from blueprints.archive.codec import read_manifest
from blueprints.hosts.base import Site
from blueprints.schemas.provider import SchemaProvider
from blueprints.schemas.transfer import (
    find_schema_requirement,
    import_field_groups,
    import_post_types,
    import_taxonomies,
)
from blueprints.utils.errors import (
    BlueprintError,
    HostError,
    MediaImportError,
    MetaWriteWarning,
    OptionWriteError,
    PostImportWarning,
    TagAssignmentWarning,
    TermImportWarning,
    report_error,
    report_ok,
)
from blueprints.utils.logs import LogFn, silent_log
from blueprints.utils.results import Result
from blueprints.utils.version_checks import check_versions

from .remap import EntityKind, ImportContext

THUMBNAIL_META_KEY = "_thumbnail_id"


@dataclass
class ImportReport:
    posts: int = 0
    terms: int = 0
    tags: int = 0
    media: int = 0
    meta: int = 0
    options: int = 0
    schemas: Dict[str, List[str]] = field(default_factory=dict)
    remapped: Dict[str, int] = field(default_factory=dict)
    warnings: List[BlueprintError] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Imported {self.posts} posts, {self.terms} terms, {self.tags} term assignments, "
            f"{self.media} media files, {self.meta} meta values and {self.options} options "
            f"with {len(self.warnings)} warnings."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "posts": self.posts,
            "terms": self.terms,
            "tags": self.tags,
            "media": self.media,
            "meta": self.meta,
            "options": self.options,
            "schemas": self.schemas,
            "remapped": self.remapped,
            "warnings": [str(w) for w in self.warnings],
        }


def _parents_first(terms: Iterable[TermRecord]) -> List[TermRecord]:
    """Order terms so every parent included in ``terms`` precedes its children."""
    pending = list(terms)
    present = {t.term_id for t in pending}
    done: set = set()
    ordered: List[TermRecord] = []
    while pending:
        ready = [t for t in pending if not t.parent or t.parent not in present or t.parent in done]
        if not ready:
            # Parent cycle: keep manifest order for the rest.
            ordered.extend(pending)
            break
        for term in ready:
            ordered.append(term)
            done.add(term.term_id)
        pending = [t for t in pending if t.term_id not in done]
    return ordered


class ContentImporter:
    """
    Runs the import steps against ``site`` within one :class:`ImportContext`.

    Usage example::

        context = ImportContext(blueprint_folder="/tmp/starter")
        report = ContentImporter(site, provider, context).run(manifest)
    """

    def __init__(
        self,
        site: Site,
        provider: Optional[SchemaProvider],
        context: ImportContext,
        *,
        log: LogFn = silent_log,
        report_dir: Optional[str] = None,
    ) -> None:
        self.site = site
        self.provider = provider
        self.context = context
        self.log = log
        self.report_dir = report_dir

    @property
    def remap(self):
        return self.context.remap

    def _finish(self, step: str, result: Result) -> Any:
        """Raise a fatal result, record the warnings of any other."""
        if result.fatal:
            error = result.errors[0]
            report_error(error.code, {"step": step}, error, report_dir=self.report_dir)
            raise error
        for warning in result.warnings:
            self.log(str(warning), "WARNING")
            report_error(warning.code, {"step": step}, warning, report_dir=self.report_dir)
            self.context.warnings.append(warning)
        return result.value

    ###########################################################################
    # Steps
    ###########################################################################

    def import_posts(self, posts: Mapping[int, PostRecord]) -> Result[int]:
        result: Result[int] = Result.success(0)
        created: Dict[int, int] = {}
        for original_id, record in posts.items():
            fields = record.fields_for_insert()
            fields.pop("guid", None)
            try:
                new_id = self.site.insert_post(fields, import_id=original_id)
            except HostError as e:
                result.warn(PostImportWarning(f"Could not import post {original_id} ({record.post_title!r}): {e}"))
                continue
            self.remap.record(EntityKind.POST, original_id, new_id)
            created[original_id] = new_id
            result.value += 1
            self.log(f"Post {original_id} imported as {new_id}.", "DEBUG")

        # Parents may have been created after their children.
        for original_id, new_id in created.items():
            parent = posts[original_id].post_parent
            if not parent:
                continue
            resolved = self.remap.resolve(EntityKind.POST, parent)
            if resolved == parent:
                continue
            try:
                self.site.update_post(new_id, {"post_parent": resolved})
            except HostError as e:
                result.warn(PostImportWarning(f"Could not set the parent of post {new_id}: {e}"))
        return result

    def import_terms(self, post_terms: Mapping[int, List[TermRecord]]) -> Result[int]:
        result: Result[int] = Result.success(0)
        distinct: Dict[int, TermRecord] = {}
        for post_id, terms in post_terms.items():
            for term in terms:
                if not term.is_complete:
                    result.warn(TermImportWarning(
                        f"Term {term.term_id or '?'} of post {post_id} is missing its termId, name or taxonomy."
                    ))
                    continue
                distinct.setdefault(int(term.term_id), term)

        failed: set = set()
        for term in _parents_first(distinct.values()):
            if term.parent and term.parent in failed:
                failed.add(term.term_id)
                result.warn(TermImportWarning(
                    f"Term {term.name!r} was skipped because its parent {term.parent} could not be imported."
                ))
                continue
            # A parent that is not in the blueprint has no identity on this
            # site, so the term goes to the top level.
            parent = 0
            if term.parent and int(term.parent) in distinct:
                parent = self.remap.resolve(EntityKind.TERM, term.parent)

            existing = self.site.term_exists(term.name, term.taxonomy, parent)
            if existing is not None:
                self.remap.record(EntityKind.TERM, term.term_id, existing)
                self.log(f"Term {term.name!r} already exists in {term.taxonomy} as {existing}.", "DEBUG")
                continue
            try:
                new_id = self.site.insert_term(
                    term.name,
                    term.taxonomy,
                    slug=term.slug,
                    description=term.description,
                    parent=parent,
                )
            except HostError as e:
                failed.add(term.term_id)
                result.warn(TermImportWarning(f"Could not import term {term.name!r} into {term.taxonomy}: {e}"))
                continue
            self.remap.record(EntityKind.TERM, term.term_id, new_id)
            result.value += 1
        return result

    def assign_terms(self, post_terms: Mapping[int, List[TermRecord]]) -> Result[int]:
        result: Result[int] = Result.success(0)
        for post_id, terms in post_terms.items():
            target_post = self.remap.resolve(EntityKind.POST, post_id)
            for term in terms:
                if not term.is_complete:
                    continue
                term_id = self.remap.resolve(EntityKind.TERM, term.term_id)
                try:
                    self.site.set_post_terms(target_post, [term_id], term.taxonomy, append=True)
                except HostError as e:
                    result.warn(TagAssignmentWarning(
                        f"Could not assign term {term.name!r} to post {target_post}: {e}"
                    ))
                    continue
                result.value += 1
        return result

    def import_media(self, media: Mapping[int, str]) -> Result[int]:
        folder = os.path.realpath(self.context.blueprint_folder)
        imported: Dict[str, int] = {}
        count = 0
        for media_id, relative in media.items():
            full_path = os.path.realpath(os.path.join(folder, *PurePosixPath(relative).parts))
            if os.path.commonpath([folder, full_path]) != folder:
                return Result.failure(
                    MediaImportError(f"Media path {relative} points outside the blueprint folder.", path=full_path),
                    count,
                )
            if full_path in imported:
                self.remap.record(EntityKind.MEDIA, media_id, imported[full_path])
                continue
            if not os.path.isfile(full_path) or not os.access(full_path, os.R_OK):
                return Result.failure(MediaImportError(path=full_path), count)

            mime_type, _ = mimetypes.guess_type(full_path)
            title = os.path.splitext(os.path.basename(full_path))[0]
            try:
                new_id = self.site.insert_attachment(
                    full_path, title=title, mime_type=mime_type or "application/octet-stream"
                )
                metadata = self.site.generate_attachment_metadata(new_id, full_path)
                self.site.update_attachment_metadata(new_id, metadata)
            except HostError as e:
                return Result.failure(
                    MediaImportError(f"Could not import media {media_id} from {relative}: {e}", path=full_path),
                    count,
                )
            imported[full_path] = new_id
            self.remap.record(EntityKind.MEDIA, media_id, new_id)
            count += 1
            self.log(f"Media {media_id} imported as {new_id}.", "DEBUG")
        return Result.success(count)

    def _remap_thumbnail(self, value: Any) -> Any:
        try:
            media_id = int(value)
        except (TypeError, ValueError):
            return value
        new_id = self.remap.resolve(EntityKind.MEDIA, media_id)
        return str(new_id) if isinstance(value, str) else new_id

    def import_post_meta(self, post_meta: Mapping[int, List[MetaEntry]]) -> Result[int]:
        result: Result[int] = Result.success(0)
        for post_id, entries in post_meta.items():
            target_post = self.remap.resolve(EntityKind.POST, post_id)
            for entry in entries:
                value = entry.value
                if entry.key == THUMBNAIL_META_KEY:
                    value = self._remap_thumbnail(value)
                try:
                    self.site.update_post_meta(target_post, entry.key, value)
                except HostError as e:
                    result.warn(MetaWriteWarning(f"Could not write {entry.key} on post {target_post}: {e}"))
                    continue
                result.value += 1
        return result

    def import_options(self, options: Mapping[str, Any]) -> Result[int]:
        result: Result[int] = Result.success(0)
        for name, value in options.items():
            try:
                self.site.update_option(name, value)
            except HostError as e:
                result.warn(OptionWriteError(f"Could not write option {name}: {e}"))
                continue
            result.value += 1
        return result

    ###########################################################################
    # Pipeline
    ###########################################################################

    def run(self, manifest: Manifest) -> ImportReport:
        content = manifest.content
        report = ImportReport()

        requirement = find_schema_requirement(content.plugins, self.provider)
        if requirement is not None and requirement.has_schemas:
            self.log("Importing schemas.")
            report.schemas["post_types"] = self._finish(
                "post types", import_post_types(self.provider, requirement.post_types, self.log)
            )
            report.schemas["taxonomies"] = self._finish(
                "taxonomies", import_taxonomies(self.provider, requirement.taxonomies, self.log)
            )
            report.schemas["field_groups"] = self._finish(
                "field groups", import_field_groups(self.provider, requirement.field_groups, self.log)
            )

        if content.posts:
            self.log("Importing posts.")
            report.posts = self._finish("posts", self.import_posts(content.posts))

        if content.post_terms:
            self.log("Importing terms.")
            report.terms = self._finish("terms", self.import_terms(content.post_terms))
            self.log("Assigning terms to posts.")
            report.tags = self._finish("term assignment", self.assign_terms(content.post_terms))

        if content.media:
            self.log("Importing media.")
            report.media = self._finish("media", self.import_media(content.media))

        if content.post_meta:
            self.log("Importing post meta.")
            report.meta = self._finish("post meta", self.import_post_meta(content.post_meta))

        if content.options:
            self.log("Importing options.")
            report.options = self._finish("options", self.import_options(content.options))

        report.remapped = self.remap.sizes()
        report.warnings = list(self.context.warnings)
        return report


def import_blueprint(
    site: Site,
    provider: Optional[SchemaProvider],
    folder: str,
    *,
    log: LogFn = silent_log,
    report_dir: Optional[str] = None,
) -> ImportReport:
    """
    Import the unpacked blueprint in ``folder`` into ``site``.

    The manifest is read and checked against the site's versions before
    anything is written.

    :raises ManifestNotFound, ManifestParseError, CompatibilityError: before
        any change is made.
    :raises SchemaImportError, MediaImportError: when a fatal step fails.
    """
    manifest = read_manifest(folder)
    check_versions(manifest, site.version, site.active_plugins())
    log(f"Importing blueprint {manifest.blueprint.name!r} version {manifest.blueprint.version}.")

    context = ImportContext(blueprint_folder=folder)
    report = ContentImporter(site, provider, context, log=log, report_dir=report_dir).run(manifest)
    report_ok(
        "IMPORT_COMPLETE",
        {"blueprint": manifest.blueprint.name, "folder": folder},
        report.to_dict(),
        report_dir=report_dir,
    )
    log(report.summary(), "SUCCESS")
    return report
