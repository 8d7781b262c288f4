"""
Custom schema definitions carried inside blueprints.

:mod:`blueprints.schemas.provider` defines the capability interface of a
schema extension, :mod:`blueprints.schemas.acf` normalises records in the
"advanced-custom-fields" format and :mod:`blueprints.schemas.transfer`
exports and imports them.
"""

from .provider import SchemaProvider
from .transfer import (
    export_schemas,
    find_schema_requirement,
    import_field_groups,
    import_post_types,
    import_taxonomies,
)

__all__ = [
    "SchemaProvider",
    "export_schemas",
    "find_schema_requirement",
    "import_field_groups",
    "import_post_types",
    "import_taxonomies",
]
