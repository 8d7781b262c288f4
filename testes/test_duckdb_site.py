import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from blueprints.hosts.duckdb_site import DuckDBSite
from blueprints.utils.errors import HostError


def test_import_id_reused_only_when_free(site):
    assert site.insert_post({"post_title": "A"}, import_id=10) == 10
    assert site.insert_post({"post_title": "B"}, import_id=10) == 11
    assert site.insert_post({"post_title": "C"}) == 12


def test_post_requires_some_content(site):
    with pytest.raises(HostError, match="empty"):
        site.insert_post({"post_type": "post"})


def test_post_names_are_unique_per_type(site):
    first = site.insert_post({"post_title": "Hello World"})
    second = site.insert_post({"post_title": "Hello World"})
    page = site.insert_post({"post_title": "Hello World", "post_type": "page"})
    assert site.get_post(first)["post_name"] == "hello-world"
    assert site.get_post(second)["post_name"] == "hello-world-2"
    assert site.get_post(page)["post_name"] == "hello-world"


def test_get_posts_filters_type_and_status(site):
    published = site.insert_post({"post_title": "Live"})
    site.insert_post({"post_title": "Draft", "post_status": "draft"})
    site.insert_post({"post_title": "Page", "post_type": "page"})
    assert [p["ID"] for p in site.get_posts(["post"])] == [published]
    assert len(site.get_posts(["post"], status=None)) == 2
    assert len(site.get_posts(None, status=None)) == 3
    assert site.get_posts([]) == []


def test_meta_values_keep_their_json_type(site):
    post = site.insert_post({"post_title": "A"})
    site.update_post_meta(post, "count", 3)
    site.update_post_meta(post, "label", "3")
    site.add_post_meta(post, "tag", "x")
    site.add_post_meta(post, "tag", "y")
    meta = site.get_post_meta(post)
    assert meta["count"] == [3]
    assert meta["label"] == ["3"]
    assert meta["tag"] == ["x", "y"]
    with pytest.raises(HostError):
        site.update_post_meta(999, "x", 1)


def test_options_round_trip(site):
    site.update_option("theme_mods_demo", {"colors": ["red"]})
    assert site.get_option("theme_mods_demo") == {"colors": ["red"]}
    assert site.get_option("missing", "fallback") == "fallback"
    with pytest.raises(HostError):
        site.update_option("", 1)


def test_terms_slug_uniqueness_and_lookup(site):
    news = site.insert_term("News", "category")
    other = site.insert_term("news!", "category", parent=news)
    assert site.get_term(news)["slug"] == "news"
    assert site.get_term(other)["slug"] == "news-2"
    assert site.term_exists("NEWS", "category") == news
    assert site.term_exists("News", "category", parent=news) is None
    assert site.term_exists("news!", "category", parent=news) == other


def test_term_creation_errors(site):
    with pytest.raises(HostError, match="name"):
        site.insert_term("  ", "category")
    with pytest.raises(HostError, match="taxonomy"):
        site.insert_term("A", "unknown")
    with pytest.raises(HostError, match="Parent"):
        site.insert_term("A", "category", parent=99)
    site.insert_term("A", "category")
    with pytest.raises(HostError, match="already exists"):
        site.insert_term("a", "category")


def test_set_post_terms_appends_and_validates(site):
    post = site.insert_post({"post_title": "A"})
    one = site.insert_term("One", "category")
    two = site.insert_term("Two", "category")
    tag = site.insert_term("Tag", "post_tag")
    assert site.set_post_terms(post, [one], "category") == [one]
    assert site.set_post_terms(post, [two, one], "category") == [one, two]
    assert site.set_post_terms(post, [two], "category", append=False) == [two]
    with pytest.raises(HostError):
        site.set_post_terms(post, [tag], "category")
    with pytest.raises(HostError):
        site.set_post_terms(999, [one], "category")


def test_delete_term_reparents_children(site):
    parent = site.insert_term("Parent", "category")
    child = site.insert_term("Child", "category", parent=parent)
    assert site.delete_term(parent, "category")
    assert site.get_term(child)["parent"] == 0
    assert not site.delete_term(parent, "category")


def test_attachment_renditions(site, make_image):
    media = site.insert_attachment(make_image("wide.png", size=(2000, 1000)), title="wide", mime_type="image/png")
    path = site.get_original_image_path(media)
    assert os.path.isfile(path)
    assert path.startswith(site.uploads_dir)

    metadata = site.generate_attachment_metadata(media, path)
    assert metadata["width"] == 2000 and metadata["height"] == 1000
    assert metadata["sizes"]["thumbnail"]["width"] == 150
    assert metadata["sizes"]["thumbnail"]["height"] == 75
    assert metadata["sizes"]["large"]["width"] == 1024
    for size in metadata["sizes"].values():
        assert os.path.isfile(os.path.join(os.path.dirname(path), size["file"]))


def test_small_images_and_other_files_get_no_renditions(site, make_image, tmp_path):
    small = site.insert_attachment(make_image("icon.png", size=(100, 100)), title="icon", mime_type="image/png")
    assert site.generate_attachment_metadata(small, "")["sizes"] == {}

    doc = tmp_path / "notes.txt"
    doc.write_text("hello")
    media = site.insert_attachment(str(doc), title="notes", mime_type="text/plain")
    metadata = site.generate_attachment_metadata(media, str(doc))
    assert "sizes" not in metadata
    assert metadata["file"].endswith("notes.txt")


def test_uploads_with_same_name_do_not_overwrite(site, make_image):
    first = site.insert_attachment(make_image("photo.jpg", folder="a"), title="a", mime_type="image/jpeg")
    second = site.insert_attachment(make_image("photo.jpg", folder="b"), title="b", mime_type="image/jpeg")
    assert site.get_original_image_path(first) != site.get_original_image_path(second)


def test_delete_attachment_removes_files_and_thumbnail_links(site, make_image):
    media = site.insert_attachment(make_image("photo.jpg", size=(800, 600)), title="p", mime_type="image/jpeg")
    path = site.get_original_image_path(media)
    site.update_attachment_metadata(media, site.generate_attachment_metadata(media, path))
    post = site.insert_post({"post_title": "A"})
    site.update_post_meta(post, "_thumbnail_id", str(media))

    assert site.delete_attachment(media)
    assert not os.path.exists(path)
    assert os.listdir(os.path.dirname(path)) == []
    assert "_thumbnail_id" not in site.get_post_meta(post)
    assert site.get_attachment_ids() == []
    assert not site.delete_attachment(post)


def test_database_file_persists(tmp_path):
    db = str(tmp_path / "data" / "site.duckdb")
    with DuckDBSite(db, uploads_dir=str(tmp_path / "uploads"), version="6.5") as site:
        site.insert_post({"post_title": "Kept"})
        site.activate_plugin("seo", "1.2")
    with DuckDBSite(db, uploads_dir=str(tmp_path / "uploads")) as site:
        assert site.version == "6.5"
        assert site.active_plugins() == {"seo": "1.2"}
        assert [p["post_title"] for p in site.get_posts(["post"])] == ["Kept"]
