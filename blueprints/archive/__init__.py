"""
Packing and unpacking of blueprint archives.
"""

from .codec import (
    MANIFEST_FILE,
    delete_folder,
    get_blueprint_temp_dir,
    pack_blueprint,
    read_manifest,
    save_blueprint_to_upload_dir,
    unpack_blueprint,
    write_manifest,
)

__all__ = [
    "MANIFEST_FILE",
    "delete_folder",
    "get_blueprint_temp_dir",
    "pack_blueprint",
    "read_manifest",
    "save_blueprint_to_upload_dir",
    "unpack_blueprint",
    "write_manifest",
]
