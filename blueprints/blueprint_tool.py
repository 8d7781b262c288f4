"""
High-level orchestration of blueprint exports, imports and resets.

This module defines a :class:`BlueprintTool` class that ties together the
site, the schema extension, the collectors, the importers and the archive
codec.  It reads configuration, writes log files and records the outcome of
each run in the JSON Lines reports.

Configuration is supplied via a JSON file path or directly as a
dictionary.  The ``site`` section locates the DuckDB database and the
uploads folder; ``export``, ``import`` and ``reports`` hold optional
settings for each command.  Environment variables ``BLUEPRINT_SITE_DB`` and
``BLUEPRINT_UPLOADS_DIR`` take precedence over the file.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
import tempfile
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from blueprints.archive.codec import save_blueprint_to_upload_dir, unpack_blueprint
from blueprints.collectors.content_collector import export_blueprint
from blueprints.hosts.duckdb_schemas import DuckDBSchemaProvider
from blueprints.hosts.duckdb_site import DuckDBSite
from blueprints.importers.content_importer import ImportReport, import_blueprint
from blueprints.reset import BlueprintReset
from blueprints.utils.errors import BlueprintError, report_error, report_ok
from blueprints.utils.logs import log_message
from services.blueprint_fetch import download_blueprint, is_remote

DEFAULT_CONFIG_FILE = os.path.join("config", "blueprint_config.json")


class BlueprintTool:
    """
    Encapsulates the configuration and the site connection used by the
    ``export``, ``import`` and ``reset`` commands.  Detailed success and
    failure information is recorded using the
    :mod:`blueprints.utils.errors` module.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        verbose: bool = False,
    ) -> None:
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        elif config is None:
            config = {}

        # Ensure essential keys exist to prevent KeyErrors
        site = config.setdefault("site", {})
        site["database"] = os.getenv("BLUEPRINT_SITE_DB") or site.get("database") or os.path.join("data", "site.duckdb")
        site["uploads_dir"] = (
            os.getenv("BLUEPRINT_UPLOADS_DIR") or site.get("uploads_dir") or os.path.join("data", "uploads")
        )
        site.setdefault("url", "http://localhost")
        site.setdefault("schema_provider", True)

        export = config.setdefault("export", {})
        export.setdefault("temp_root", tempfile.gettempdir())
        export.setdefault("output_dir", "")
        export.setdefault("options", [])
        export.setdefault("post_types", [])

        imports = config.setdefault("import", {})
        imports.setdefault("upload_dir", os.path.join(site["uploads_dir"], "blueprints"))
        imports.setdefault("timeout", 60)

        config.setdefault("reports", {})
        config["reports"].setdefault("dir", os.path.join("reports", "blueprints"))

        self.config = config
        self.verbose = verbose
        self.report_dir: str = config["reports"]["dir"]
        self.log_file = os.path.join(self.report_dir, "blueprint.log")

    def log_message(self, message: str, level: str = "INFO") -> None:
        log_message(message, level, log_file=self.log_file, verbose=self.verbose)

    def open_site(self) -> Tuple[DuckDBSite, Optional[DuckDBSchemaProvider]]:
        """Connect to the configured site and its schema extension, if enabled."""
        cfg = self.config["site"]
        site = DuckDBSite(cfg["database"], uploads_dir=cfg["uploads_dir"], site_url=cfg["url"])
        provider = None
        if cfg.get("schema_provider"):
            provider = DuckDBSchemaProvider(site)
            if provider.name not in site.active_plugins():
                site.activate_plugin(provider.name, provider.version)
        self.log_message(f"Using site database {cfg['database']}.", "DEBUG")
        return site, provider

    ###########################################################################
    # Commands
    ###########################################################################

    def export(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        *,
        post_types: Optional[Iterable[str]] = None,
        option_names: Optional[Iterable[str]] = None,
        output_dir: Optional[str] = None,
        open_folder: bool = False,
    ) -> str:
        """
        Export the site to a blueprint zip.

        :param overrides: Manifest overrides, see
            :func:`blueprints.collectors.content_collector.generate_meta`.
        :param post_types: Post types to export instead of the defaults.
        :param option_names: Options exported in addition to the theme options.
        :param output_dir: Folder the zip is copied to.
        :param open_folder: Open the working folder in the file manager.
        :return: Path of the zip file.
        """
        cfg = self.config["export"]
        self.log_message("Collecting blueprint data.")
        site, provider = self.open_site()
        try:
            zip_path = export_blueprint(
                site,
                provider,
                overrides,
                temp_root=cfg["temp_root"],
                post_types=list(post_types or cfg["post_types"]) or None,
                option_names=list(option_names or cfg["options"]),
                log=self.log_message,
            )
        except BlueprintError as e:
            report_error(e.code, {"command": "export"}, e, report_dir=self.report_dir)
            raise
        finally:
            site.close()

        destination = output_dir or cfg["output_dir"]
        if destination and os.path.abspath(destination) != os.path.abspath(os.path.dirname(zip_path)):
            os.makedirs(destination, exist_ok=True)
            zip_path = shutil.copy2(zip_path, os.path.join(destination, os.path.basename(zip_path)))
            self.log_message(f"Blueprint copied to {zip_path}.")

        report_ok("EXPORT_COMPLETE", {"command": "export", "zip": zip_path}, report_dir=self.report_dir)
        if open_folder:
            self._open_folder(os.path.dirname(zip_path))
        return zip_path

    def _open_folder(self, path: str) -> None:
        self.log_message(f"Opening {path}.")
        try:
            if sys.platform == "darwin":
                subprocess.run(["open", path], check=False)
            elif sys.platform.startswith("win"):
                os.startfile(path)  # type: ignore[attr-defined]
            else:
                subprocess.run(["xdg-open", path], check=False)
        except OSError as e:
            self.log_message(f"Could not open {path}: {e}", "WARNING")

    def prepare_source(self, source: str) -> str:
        """
        Bring a blueprint into the import working area.

        URLs are downloaded, paths with an extension are treated as zip
        archives and anything else as an unpacked blueprint folder.

        :return: The unpacked blueprint folder.
        """
        upload_dir = self.config["import"]["upload_dir"]
        if is_remote(source):
            self.log_message("Fetching blueprint.")
            zip_path = download_blueprint(source, upload_dir, timeout=self.config["import"]["timeout"])
        elif os.path.splitext(source.rstrip("/\\"))[1]:
            zip_path = save_blueprint_to_upload_dir(source, os.path.basename(source), upload_dir)
        else:
            return save_blueprint_to_upload_dir(source, os.path.basename(source.rstrip("/\\")), upload_dir)

        self.log_message("Unzipping.")
        return unpack_blueprint(zip_path, upload_dir)

    def import_blueprint(self, source: str) -> ImportReport:
        try:
            folder = self.prepare_source(source)
        except BlueprintError as e:
            report_error(e.code, {"command": "import", "source": source}, e, report_dir=self.report_dir)
            raise

        site, provider = self.open_site()
        try:
            return import_blueprint(site, provider, folder, log=self.log_message, report_dir=self.report_dir)
        except BlueprintError as e:
            report_error(e.code, {"command": "import", "source": source}, e, report_dir=self.report_dir)
            raise
        finally:
            site.close()

    def reset(self, delete_all: bool = False) -> Dict[str, int]:
        site, provider = self.open_site()
        try:
            reset = BlueprintReset(site, provider, log=self.log_message)
            stats = reset.run(delete_all)
        finally:
            site.close()
        report_ok("RESET_COMPLETE", {"command": "reset", "all": delete_all}, stats, report_dir=self.report_dir)
        return stats
