"""
Importers that replay a blueprint onto a site.
"""

from .content_importer import ContentImporter, ImportReport, import_blueprint
from .remap import EntityKind, ImportContext, RemapTable

__all__ = [
    "ContentImporter",
    "ImportReport",
    "import_blueprint",
    "EntityKind",
    "ImportContext",
    "RemapTable",
]
