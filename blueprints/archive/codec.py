"""
Blueprint archives on disk.

A blueprint archive is a zip with a single top-level folder::

    <slug>/main.json
    <slug>/media/<media id>/<file name>

Exports build that folder in a temporary working directory and zip it;
imports unzip an archive and read its manifest back.  Every failure is
raised as one of the :mod:`blueprints.utils.errors` kinds.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import zipfile
from pathlib import PurePosixPath
from typing import Optional

from pydantic import ValidationError

from models.manifest import MEDIA_ROOT, Manifest

from blueprints.utils.errors import (
    ManifestNotFound,
    ManifestParseError,
    PackagingError,
    UnpackError,
)
from blueprints.utils.labels import slugify

MANIFEST_FILE = "main.json"


def get_blueprint_temp_dir(manifest: Manifest, root: Optional[str] = None) -> str:
    """
    Working directory used while exporting ``manifest``.

    :param manifest: Manifest whose blueprint name gives the folder name.
    :param root: Parent of the ``blueprints`` folder, the system temp
        directory by default.
    :raises PackagingError: when the name is empty or has no usable
        characters.
    """
    name = (manifest.blueprint.name or "").strip()
    if not name:
        raise PackagingError("The blueprint needs a name before it can be packaged.")
    slug = slugify(name)
    if not slug:
        raise PackagingError(f"The blueprint name {name!r} does not produce a usable folder name.")
    return os.path.join(root or tempfile.gettempdir(), "blueprints", slug)


def delete_folder(path: str) -> None:
    if os.path.isdir(path):
        shutil.rmtree(path)
    elif os.path.exists(path):
        os.remove(path)


def write_manifest(manifest: Manifest, path: str) -> str:
    target = os.path.join(path, MANIFEST_FILE)
    try:
        os.makedirs(path, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            f.write(manifest.to_json())
    except OSError as e:
        raise PackagingError(f"Could not write {MANIFEST_FILE} to {path}: {e}") from e
    return target


def pack_blueprint(path: str, zip_name: str) -> str:
    """
    Zip the manifest and media of ``path`` into ``<path>/<zip_name>.zip``.

    Entries are stored under a ``<zip_name>/`` folder.  Returns the path of
    the zip file.
    """
    manifest_path = os.path.join(path, MANIFEST_FILE)
    if not os.path.isfile(manifest_path):
        raise PackagingError(f"No {MANIFEST_FILE} found in {path}.")

    zip_path = os.path.join(path, f"{zip_name}.zip")
    try:
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.write(manifest_path, f"{zip_name}/{MANIFEST_FILE}")
            for dirpath, dirnames, filenames in os.walk(os.path.join(path, MEDIA_ROOT)):
                dirnames.sort()
                for filename in sorted(filenames):
                    full_path = os.path.join(dirpath, filename)
                    relative = os.path.relpath(full_path, path).replace(os.sep, "/")
                    zf.write(full_path, f"{zip_name}/{relative}")
    except (OSError, zipfile.BadZipFile) as e:
        raise PackagingError(f"Could not create {zip_path}: {e}") from e
    return zip_path


def _is_unsafe_entry(name: str, output_root: str) -> bool:
    entry = PurePosixPath(name.replace("\\", "/"))
    if entry.is_absolute() or ".." in entry.parts:
        return True
    root = os.path.realpath(output_root)
    target = os.path.realpath(os.path.join(output_root, *entry.parts))
    return os.path.commonpath([root, target]) != root


def unpack_blueprint(zip_path: str, output_root: str) -> str:
    """
    Extract ``zip_path`` below ``output_root``.

    The blueprint folder is taken from the first entry of the archive, so an
    archive whose inner folder does not match its file name still resolves.
    An archive whose first entry is a plain file is treated as unpacked
    directly into ``output_root``.
    """
    if not os.path.isfile(zip_path):
        raise UnpackError(f"Could not read the blueprint archive {zip_path}.")
    try:
        with zipfile.ZipFile(zip_path) as zf:
            names = zf.namelist()
            if not names:
                raise UnpackError(f"The blueprint archive {zip_path} is empty.")
            for name in names:
                if _is_unsafe_entry(name, output_root):
                    raise UnpackError(f"Archive entry {name} points outside the extraction folder.")
            os.makedirs(output_root, exist_ok=True)
            zf.extractall(output_root)
    except zipfile.BadZipFile as e:
        raise UnpackError(f"{zip_path} is not a valid zip archive: {e}") from e
    except OSError as e:
        raise UnpackError(f"Could not extract {zip_path}: {e}") from e

    first = names[0].replace("\\", "/").lstrip("/")
    if "/" not in first:
        return output_root
    return os.path.join(output_root, first.split("/", 1)[0])


def read_manifest(folder: str) -> Manifest:
    path = os.path.join(folder, MANIFEST_FILE)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise ManifestNotFound(f"Could not read a {MANIFEST_FILE} file in {folder}.") from e
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"{MANIFEST_FILE} is not UTF-8 encoded: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"Could not parse {MANIFEST_FILE}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestParseError(f"{MANIFEST_FILE} must contain a JSON object.")

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(f"{MANIFEST_FILE} has an invalid structure: {e}") from e


def save_blueprint_to_upload_dir(source: str, name: str, upload_dir: str) -> str:
    """
    Copy a local blueprint zip or folder into the import working area.

    :return: Path of the copy, ``<upload_dir>/<name>``.
    """
    if not os.path.exists(source):
        raise UnpackError(f"The blueprint {source} does not exist.")
    destination = os.path.join(upload_dir, name)
    if os.path.abspath(source) == os.path.abspath(destination):
        return destination
    try:
        os.makedirs(upload_dir, exist_ok=True)
        delete_folder(destination)
        if os.path.isdir(source):
            shutil.copytree(source, destination)
        else:
            shutil.copy2(source, destination)
    except OSError as e:
        raise UnpackError(f"Could not copy {source} to {upload_dir}: {e}") from e
    return destination
