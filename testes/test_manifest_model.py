import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from pydantic import ValidationError

from models.manifest import Manifest, PostRecord, TermRecord


def test_canonical_keys_on_output():
    manifest = Manifest.model_validate({
        "schema": "2.0",
        "blueprint": {"name": "Starter"},
        "services": {"content": {
            "version": "6.4",
            "options": {"blogname": "Hi"},
            "plugins": {"advanced-custom-fields": {"version": "6.2", "postTypes": {"book": {"post_type": "book"}}}},
            "posts": {"1": {"ID": 1, "post_title": "Hello"}},
            "postTerms": {"1": [{"termId": 3, "name": "News", "taxonomy": "category"}]},
            "postMeta": {"1": [{"key": "_thumbnail_id", "value": "7"}]},
            "media": {"7": "media/7/photo.jpg"},
        }},
    })
    data = manifest.to_dict()
    content = data["services"]["content"]
    assert data["schema"] == "2.0"
    assert set(content) >= {"postTerms", "postMeta", "options", "plugins", "posts", "media"}
    assert content["posts"]["1"]["ID"] == 1
    assert content["postTerms"]["1"][0]["termId"] == 3
    assert content["plugins"]["advanced-custom-fields"]["postTypes"] == {"book": {"post_type": "book"}}


def test_legacy_spellings_are_accepted():
    manifest = Manifest.model_validate({
        "schema": 2,
        "services": {"wordpress": {
            "version": 6.1,
            "wp-options": {"blogname": "Legacy"},
            "plugins": {"advanced-custom-fields": {"post-types": [], "field-groups": {"group_a": {"key": "group_a"}}}},
            "post_terms": {"4": [{"term_id": 2, "name": "News", "taxonomy": "category"}]},
            "post_meta": {"4": [{"meta_key": "color", "meta_value": "blue"}]},
        }},
    })
    content = manifest.services.content
    assert manifest.schema_version == "2"
    assert content.version == "6.1"
    assert content.options == {"blogname": "Legacy"}
    assert content.plugins["advanced-custom-fields"].post_types == {}
    assert "group_a" in content.plugins["advanced-custom-fields"].field_groups
    assert content.post_terms[4][0].term_id == 2
    assert content.post_meta[4][0].key == "color"
    assert content.post_meta[4][0].value == "blue"


def test_empty_lists_become_empty_mappings():
    manifest = Manifest.model_validate({"services": {"content": {"version": "6.0", "posts": [], "media": []}}})
    assert manifest.content.posts == {}
    assert manifest.content.media == {}


@pytest.mark.parametrize("path", ["/etc/passwd", "media/../main.json", "photos/1/a.jpg", "media\\1\\a.jpg", "media"])
def test_invalid_media_paths_rejected(path):
    with pytest.raises(ValidationError):
        Manifest.model_validate({"services": {"content": {"media": {"1": path}}}})


def test_post_record_drops_guid_and_keeps_extra_fields():
    record = PostRecord.model_validate({
        "ID": 3,
        "post_title": "Hi",
        "guid": "http://old.example/?p=3",
        "post_author": 2,
    })
    fields = record.fields_for_insert()
    assert "guid" not in fields
    assert "id" not in fields and "ID" not in fields
    assert fields["post_author"] == 2
    assert fields["post_title"] == "Hi"


def test_term_record_completeness():
    assert TermRecord.model_validate({"termId": 1, "name": "News", "taxonomy": "category"}).is_complete
    assert not TermRecord.model_validate({"termId": 1, "taxonomy": "category"}).is_complete
    assert not TermRecord.model_validate({"termId": 1, "name": "  ", "taxonomy": "category"}).is_complete
    assert not TermRecord.model_validate({"name": "News", "taxonomy": "category"}).is_complete


def test_content_property_creates_missing_service():
    manifest = Manifest()
    assert manifest.services.content is None
    manifest.content.options["a"] = 1
    assert manifest.services.content.options == {"a": 1}


def test_theme_string_becomes_mapping():
    manifest = Manifest.model_validate({"services": {"content": {"theme": "twentytwentyfour"}}})
    assert manifest.content.theme == {"twentytwentyfour": {"version": "latest"}}
