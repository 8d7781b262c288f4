"""
Sites that blueprints are exported from and imported into.

:class:`Site` is the interface the pipelines use; :class:`DuckDBSite` and
:class:`DuckDBSchemaProvider` implement it on top of a DuckDB database.
"""

from .base import Site
from .duckdb_schemas import DuckDBSchemaProvider
from .duckdb_site import DuckDBSite

__all__ = ["Site", "DuckDBSite", "DuckDBSchemaProvider"]
