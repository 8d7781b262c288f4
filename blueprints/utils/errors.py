"""
Error kinds and structured reporting for blueprint exports and imports.

Two concerns live in this module:

* The exception hierarchy.  Every failure raised by the archive codec, the
  compatibility gate, the collectors and the importers derives from
  :class:`BlueprintError`.  Each subclass carries a stable ``code`` used in
  log and report entries.  Fatal kinds are raised; warning kinds are
  collected in :class:`blueprints.utils.results.Result` objects and reported
  once the step finishes.

* Report files.  :func:`report_error` and :func:`report_ok` append JSON Lines
  entries under ``reports/blueprints`` so the outcome of a run can be
  reviewed or parsed afterwards.

The ``ERRORS`` dictionary maps codes to human readable messages.  Codes not
present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional


ERRORS: Dict[str, str] = {
    "PACKAGING": "Could not package the blueprint",
    "UNPACK": "Could not unpack the blueprint",
    "FETCH": "Could not download the blueprint",
    "MANIFEST_NOT_FOUND": "Could not read a main.json file in the blueprint folder",
    "MANIFEST_PARSE": "The main.json manifest is not valid",
    "COMPATIBILITY": "The site does not meet the blueprint requirements",
    "MEDIA_COLLECTION": "Could not copy media into the blueprint",
    "MEDIA_IMPORT": "Could not import media from the blueprint",
    "SCHEMA_IMPORT": "Could not import schemas",
    "SCHEMA_IMPORT_WARNING": "Schema skipped during import",
    "POST_IMPORT_WARNING": "Post skipped during import",
    "TERM_IMPORT_WARNING": "Term skipped during import",
    "TAG_ASSIGNMENT_WARNING": "Term could not be assigned to post",
    "META_WRITE_WARNING": "Post meta could not be written",
    "OPTION_WRITE": "Option could not be written",
    "HOST": "The site rejected the operation",
    "EXPORT_COMPLETE": "Blueprint exported",
    "IMPORT_COMPLETE": "Blueprint imported",
    "RESET_COMPLETE": "Site reset",
}

_REPORT_DIR = os.path.join("reports", "blueprints")
_ERROR_LOG = "errors.jsonl"
_OK_LOG = "success.jsonl"


###############################################################################
# Exceptions
###############################################################################

class BlueprintError(Exception):
    """Base class for every blueprint failure."""

    code = "BLUEPRINT"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERRORS.get(self.code, self.code))

    @property
    def message(self) -> str:
        return str(self)


class PackagingError(BlueprintError):
    code = "PACKAGING"


class UnpackError(BlueprintError):
    code = "UNPACK"


class FetchError(UnpackError):
    code = "FETCH"


class ManifestNotFound(BlueprintError):
    code = "MANIFEST_NOT_FOUND"


class ManifestParseError(BlueprintError):
    code = "MANIFEST_PARSE"


class CompatibilityError(BlueprintError):
    code = "COMPATIBILITY"


class MediaCollectionError(BlueprintError):
    """A media file could not be copied into the export working directory."""

    code = "MEDIA_COLLECTION"

    def __init__(self, message: str = "", *, path: str = "") -> None:
        super().__init__(message or f"Error saving temporary file to {path}")
        self.path = path


class MediaImportError(BlueprintError):
    """A media file listed in the manifest could not be imported."""

    code = "MEDIA_IMPORT"

    def __init__(self, message: str = "", *, path: str = "") -> None:
        super().__init__(message or f"Could not read media file at {path}.")
        self.path = path


class SchemaImportError(BlueprintError):
    code = "SCHEMA_IMPORT"


class SchemaImportWarning(BlueprintError):
    code = "SCHEMA_IMPORT_WARNING"


class PostImportWarning(BlueprintError):
    code = "POST_IMPORT_WARNING"


class TermImportWarning(BlueprintError):
    code = "TERM_IMPORT_WARNING"


class TagAssignmentWarning(BlueprintError):
    code = "TAG_ASSIGNMENT_WARNING"


class MetaWriteWarning(BlueprintError):
    code = "META_WRITE_WARNING"


class OptionWriteError(BlueprintError):
    code = "OPTION_WRITE"


class HostError(BlueprintError):
    """Raised by site and schema provider implementations when they refuse a write."""

    code = "HOST"


###############################################################################
# Report files
###############################################################################

def _write_jsonl(path: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``path``."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, default=str)
        f.write("\n")


def report_error(
    code: str,
    subject: Dict[str, Any],
    exc: Optional[Exception] = None,
    *,
    report_dir: Optional[str] = None,
) -> None:
    """Log an error or warning event.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`ERRORS` its value will be used as the message.
    subject:
        Describes what the event is about, e.g. ``{"kind": "term",
        "id": 12}``.  The keys are copied into the entry.
    exc:
        Optional exception instance that triggered the error.  Its string
        representation is included in the log entry.
    report_dir:
        Directory holding the report files.  Defaults to
        ``reports/blueprints``.
    """
    entry: Dict[str, Any] = {"code": code, "message": ERRORS.get(code, code)}
    entry.update(subject)
    if exc is not None:
        entry["error"] = str(exc)
    _write_jsonl(os.path.join(report_dir or _REPORT_DIR, _ERROR_LOG), entry)


def report_ok(
    code: str,
    subject: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    *,
    report_dir: Optional[str] = None,
) -> None:
    """Log a successful event.

    Parameters
    ----------
    code:
        A key identifying the type of event.
    subject:
        Describes what the event is about.
    extra:
        Optional dictionary of additional fields to merge into the entry.
    report_dir:
        Directory holding the report files.
    """
    entry: Dict[str, Any] = {"code": code, "message": ERRORS.get(code, code)}
    entry.update(subject)
    if extra:
        entry.update(extra)
    _write_jsonl(os.path.join(report_dir or _REPORT_DIR, _OK_LOG), entry)
