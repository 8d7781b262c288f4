import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from blueprints.utils.labels import label_key, merge_unique, normalize_label, parse_list_field, slugify


def test_normalize_label_html_entities_and_whitespace():
    assert normalize_label("  finanças &amp;   gestão ") == "finanças & gestão"
    assert normalize_label("") == ""


def test_label_key_is_case_insensitive():
    assert label_key("Marketing") == label_key(" MARKETING ") == "marketing"


def test_slugify():
    assert slugify("My Starter Kit!") == "my-starter-kit"
    assert slugify("Café & Crème") == "cafe-creme"
    assert slugify("!!!") == ""
    assert slugify("a" * 300, max_length=10) == "a" * 10


def test_parse_list_field_trims_and_deduplicates():
    assert parse_list_field(" post, page,,post , book ") == ["post", "page", "book"]
    assert parse_list_field("") == []


def test_merge_unique_keeps_first_seen_order():
    assert merge_unique(["stylesheet", "template"], ["blogname", "template"]) == ["stylesheet", "template", "blogname"]
