import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from blueprints.schemas import acf
from blueprints.schemas.transfer import (
    export_schemas,
    find_schema_requirement,
    import_field_groups,
    import_post_types,
    import_taxonomies,
)
from blueprints.utils.errors import SchemaImportError, SchemaImportWarning
from models.manifest import PluginRequirement


def test_export_strips_site_specific_keys(provider):
    provider.import_post_type({"post_type": "book", "local": "json", "_valid": True})
    provider.import_field_group({
        "key": "group_book",
        "title": "Book",
        "fields": [{
            "key": "field_authors", "name": "authors", "type": "repeater", "ID": 4, "value": None,
            "sub_fields": [{"key": "field_author", "name": "author", "type": "text", "_name": "author", "parent": 4}],
        }],
    })
    schemas = export_schemas(provider)
    assert schemas["post_types"] == {"book": {"post_type": "book"}}
    group = schemas["field_groups"]["group_book"]
    assert "ID" not in group
    field = group["fields"][0]
    assert "ID" not in field and "value" not in field
    assert field["sub_fields"] == [{"key": "field_author", "name": "author", "type": "text"}]


def test_prepare_field_group_for_import_sets_parents():
    prepared = acf.prepare_field_group_for_import({
        "key": "group_a",
        "ID": 12,
        "fields": [{"key": "field_list", "name": "list", "type": "repeater",
                    "sub_fields": [{"key": "field_item", "name": "item", "type": "text"}]}],
    })
    assert "ID" not in prepared
    assert prepared["active"] is True
    assert prepared["fields"][0]["parent"] == "group_a"
    assert prepared["fields"][0]["sub_fields"][0]["parent"] == "field_list"


def test_post_types_imported_and_registered(target, target_provider):
    result = import_post_types(target_provider, {"book": {"post_type": "book"}, "movie": {"post_type": "movie"}})
    assert result.ok and result.value == ["book", "movie"]
    assert target.post_type_exists("book")


def test_post_type_failure_is_fatal_and_stops(target, target_provider):
    result = import_post_types(target_provider, {
        "post": {"post_type": "post"},
        "book": {"post_type": "book"},
    })
    assert result.fatal
    assert isinstance(result.errors[0], SchemaImportError)
    assert "post" in str(result.errors[0])
    assert not target.post_type_exists("book")


def test_taxonomy_failures_are_warnings(target, target_provider):
    result = import_taxonomies(target_provider, {
        "category": {"taxonomy": "category"},
        "genre": {"taxonomy": "genre", "object_type": ["book"]},
        "Bad Key": {"taxonomy": "Bad Key"},
    })
    assert not result.fatal
    assert result.value == ["genre"]
    assert len(result.warnings) == 2
    assert all(isinstance(w, SchemaImportWarning) for w in result.warnings)
    assert target.get_object_taxonomies("book") == ["genre"]


def test_field_group_failure_is_fatal(target_provider):
    result = import_field_groups(target_provider, {
        "group_ok": {"key": "group_ok", "title": "OK", "fields": []},
        "group_bad": {"key": "group_bad", "title": "Bad", "fields": [{"key": "field_x", "name": "x"}]},
    })
    assert result.fatal
    assert result.value == ["group_ok"]
    assert "group_bad" in str(result.errors[0])


def test_without_provider(target):
    assert import_post_types(None, {}).ok
    assert import_post_types(None, {"book": {"post_type": "book"}}).fatal
    assert import_field_groups(None, {"group_a": {"key": "group_a"}}).fatal
    taxonomies = import_taxonomies(None, {"genre": {"taxonomy": "genre"}})
    assert not taxonomies.fatal and len(taxonomies.warnings) == 1


def test_find_schema_requirement(target_provider):
    plugins = {
        "seo": PluginRequirement(version="1.0"),
        "advanced-custom-fields": PluginRequirement(taxonomies={"genre": {"taxonomy": "genre"}}),
    }
    assert find_schema_requirement(plugins, target_provider) is plugins["advanced-custom-fields"]
    assert find_schema_requirement(plugins, None) is plugins["advanced-custom-fields"]
    assert find_schema_requirement({"seo": PluginRequirement()}, None) is None
