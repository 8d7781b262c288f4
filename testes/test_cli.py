import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import json
import zipfile

import pytest

from blueprints.hosts.duckdb_site import DuckDBSite
from main import main, parse_min_plugins


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("BLUEPRINT_SITE_DB", raising=False)
    monkeypatch.delenv("BLUEPRINT_UPLOADS_DIR", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "site": {"database": "site.duckdb", "uploads_dir": "uploads"},
        "export": {"temp_root": "tmp", "output_dir": "dist"},
        "reports": {"dir": "reports"},
    }))
    with DuckDBSite("site.duckdb", uploads_dir="uploads") as site:
        site.insert_post({"post_title": "Hello", "post_content": "Welcome"})
        site.update_option("stylesheet", "twentytwentythree")
    return str(path)


def read_jsonl(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_parse_min_plugins():
    assert parse_min_plugins(["seo=1.2", " forms = 3 "]) == {"seo": "1.2", "forms": "3"}
    assert parse_min_plugins(None) == {}


def test_export_then_import_into_another_site(config_file):
    assert main(["--config", config_file, "export", "--name", "Starter", "--min-plugin", "seo=1.0"]) == 0
    assert zipfile.is_zipfile(os.path.join("dist", "starter.zip"))
    assert read_jsonl(os.path.join("reports", "success.jsonl"))[-1]["code"] == "EXPORT_COMPLETE"

    # The seo requirement is not met on the target.
    assert main(["--config", config_file, "--site", "target.duckdb", "import", "dist/starter.zip"]) == 1
    assert read_jsonl(os.path.join("reports", "errors.jsonl"))[-1]["code"] == "COMPATIBILITY"

    assert main(["--config", config_file, "export", "--name", "Starter"]) == 0
    assert main(["--config", config_file, "--site", "target.duckdb", "import", "dist/starter.zip"]) == 0
    with DuckDBSite("target.duckdb", uploads_dir="uploads") as target:
        assert [p["post_title"] for p in target.get_posts(["post"])] == ["Hello"]
        assert target.get_option("stylesheet") == "twentytwentythree"
    assert os.path.isfile(os.path.join("reports", "blueprint.log"))


def test_import_missing_zip_fails(config_file):
    assert main(["--config", config_file, "import", "missing.zip"]) == 1


def test_bad_min_plugin_argument(config_file):
    with pytest.raises(SystemExit):
        main(["--config", config_file, "export", "--min-plugin", "seo"])


def test_reset_asks_for_confirmation(config_file, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    assert main(["--config", config_file, "reset", "--all"]) == 0
    with DuckDBSite("site.duckdb", uploads_dir="uploads") as site:
        assert len(site.get_posts(["post"])) == 1

    assert main(["--config", config_file, "reset", "--yes", "--all"]) == 0
    with DuckDBSite("site.duckdb", uploads_dir="uploads") as site:
        assert site.get_posts(["post"]) == []
    assert read_jsonl(os.path.join("reports", "success.jsonl"))[-1]["posts"] == 1
