"""
Top-level package for the content blueprint tool.

A blueprint is a zip archive holding a site's posts, terms, post meta,
options, media files and custom schemas, together with the minimum host and
extension versions needed to import it.  Modules are split into
subpackages:

* :mod:`blueprints.collectors` – read a site into a manifest and pack it
* :mod:`blueprints.importers` – replay a manifest onto a site, remapping IDs
* :mod:`blueprints.archive` – zip packing, unpacking and manifest reading
* :mod:`blueprints.schemas` – schema extension interface and transfer
* :mod:`blueprints.hosts` – the site interface and its DuckDB implementation
* :mod:`blueprints.utils` – errors, reports, logging and version checks

Orchestration (configuration, logging, reports) lives in
:mod:`blueprints.blueprint_tool`.
"""
