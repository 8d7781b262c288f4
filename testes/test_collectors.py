import os
import sys
import zipfile

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from blueprints.collectors.content_collector import (
    collect_media,
    collect_options,
    collect_post_meta,
    collect_post_terms,
    collect_posts,
    collect_schemas,
    export_blueprint,
    generate_meta,
)
from blueprints.utils.errors import MediaCollectionError
from models.manifest import MetaEntry


def test_generate_meta_defaults(site, provider):
    manifest = generate_meta(site, provider)
    content = manifest.content
    assert manifest.schema_version == "2.0"
    assert manifest.blueprint.name == "Content Blueprint"
    assert manifest.blueprint.version == "1.0"
    assert content.version == site.version
    assert content.theme == {"twentytwentythree": {"version": "latest"}}
    assert content.plugins["advanced-custom-fields"].version == "6.2.4"


def test_generate_meta_overrides(site):
    site.activate_plugin("seo", "3.1")
    manifest = generate_meta(site, None, {
        "name": "Starter",
        "description": "Demo",
        "version": "2.0",
        "min_version": "6.0",
        "theme": "custom",
        "theme_version": "1.5",
        "min_plugins": {"seo": "3.0", "forms": "1.0"},
    })
    content = manifest.content
    assert manifest.blueprint.name == "Starter"
    assert manifest.blueprint.description == "Demo"
    assert content.version == "6.0"
    assert content.theme == {"custom": {"version": "1.5"}}
    assert content.plugins["seo"].version == "3.0"
    assert content.plugins["forms"].version == "1.0"


def test_collect_posts_published_only_without_guid(site, seeded):
    posts = collect_posts(site, ["post", "page", "book"])
    assert list(posts) == [seeded.hello, seeded.about, seeded.book]
    dumped = posts[seeded.hello].model_dump(by_alias=True)
    assert "guid" not in dumped
    assert dumped["ID"] == seeded.hello
    assert dumped["post_content"] == "Welcome"


def test_collect_post_terms(site, seeded):
    posts = collect_posts(site, ["post", "page", "book"])
    terms = collect_post_terms(site, posts)
    assert [t.name for t in terms[seeded.hello]] == ["News", "Local"]
    assert terms[seeded.hello][1].parent == seeded.news
    assert [t.taxonomy for t in terms[seeded.book]] == ["genre"]
    assert seeded.about not in terms


def test_collect_post_meta_skips_bookkeeping_keys(site, seeded):
    site.add_post_meta(seeded.about, "colors", "red")
    site.add_post_meta(seeded.about, "colors", "blue")
    posts = collect_posts(site, ["post", "page", "book"])
    meta = collect_post_meta(site, posts)
    keys = [entry.key for entry in meta[seeded.hello]]
    assert keys == ["_thumbnail_id"]
    assert meta[seeded.about] == [MetaEntry(key="colors", value="red")]


def test_collect_media_disambiguates_same_file_names(site, tmp_path):
    for media_id, month in ((10, "01"), (20, "02")):
        site.insert_post(
            {"post_type": "attachment", "post_status": "inherit", "post_title": "photo"},
            import_id=media_id,
        )
        site.update_post_meta(media_id, "_wp_attached_file", f"2024/{month}/photo.jpg")
        folder = os.path.join(site.uploads_dir, "2024", month)
        os.makedirs(folder)
        with open(os.path.join(folder, "photo.jpg"), "w") as f:
            f.write(month)

    post_meta = {
        1: [MetaEntry(key="_thumbnail_id", value="10")],
        2: [MetaEntry(key="_thumbnail_id", value=20), MetaEntry(key="other", value="x")],
        3: [MetaEntry(key="_thumbnail_id", value="999")],
    }
    work = tmp_path / "work"
    media = collect_media(site, post_meta, str(work))
    assert media == {10: "media/10/photo.jpg", 20: "media/20/photo.jpg"}
    assert (work / "media" / "10" / "photo.jpg").read_text() == "01"
    assert (work / "media" / "20" / "photo.jpg").read_text() == "02"


def test_collect_media_copy_failure(site, tmp_path):
    site.insert_post({"post_type": "attachment", "post_status": "inherit", "post_title": "gone"}, import_id=5)
    site.update_post_meta(5, "_wp_attached_file", "2024/01/gone.jpg")
    with pytest.raises(MediaCollectionError) as exc:
        collect_media(site, {1: [MetaEntry(key="_thumbnail_id", value=5)]}, str(tmp_path / "work"))
    assert exc.value.path.endswith(os.path.join("media", "5", "gone.jpg"))


def test_collect_options_skips_unset(site):
    site.update_option("blogname", "Demo")
    assert collect_options(site, ["blogname", "missing"]) == {"blogname": "Demo"}


def test_collect_schemas(provider, seeded):
    requirement = collect_schemas(provider)
    assert requirement.version == provider.version
    assert list(requirement.post_types) == ["book"]
    assert list(requirement.taxonomies) == ["genre"]
    assert list(requirement.field_groups) == ["group_book"]


def test_export_blueprint_archive(site, provider, seeded, tmp_path):
    zip_path = export_blueprint(
        site, provider, {"name": "Starter Kit"},
        temp_root=str(tmp_path / "tmp"), option_names=["blogname"],
    )
    assert zip_path == os.path.join(str(tmp_path / "tmp"), "blueprints", "starter-kit", "starter-kit.zip")
    with zipfile.ZipFile(zip_path) as zf:
        names = zf.namelist()
    assert names[0] == "starter-kit/main.json"
    assert f"starter-kit/media/{seeded.media}/photo.jpg" in names


def test_export_clears_previous_working_directory(site, seeded, tmp_path):
    stale = tmp_path / "tmp" / "blueprints" / "content-blueprint" / "media" / "77"
    stale.mkdir(parents=True)
    (stale / "old.jpg").write_text("old")
    zip_path = export_blueprint(site, None, temp_root=str(tmp_path / "tmp"))
    with zipfile.ZipFile(zip_path) as zf:
        assert not any("/77/" in name for name in zf.namelist())
    assert not stale.exists()


def test_collect_media_copies_shared_file_once(site, tmp_path):
    folder = os.path.join(site.uploads_dir, "2024", "01")
    os.makedirs(folder)
    with open(os.path.join(folder, "photo.jpg"), "w") as f:
        f.write("shared")
    for media_id in (10, 20):
        site.insert_post(
            {"post_type": "attachment", "post_status": "inherit", "post_title": "photo"},
            import_id=media_id,
        )
        site.update_post_meta(media_id, "_wp_attached_file", "2024/01/photo.jpg")

    post_meta = {
        1: [MetaEntry(key="_thumbnail_id", value=10)],
        2: [MetaEntry(key="_thumbnail_id", value="20")],
    }
    work = tmp_path / "work"
    media = collect_media(site, post_meta, str(work))
    assert media == {10: "media/10/photo.jpg", 20: "media/10/photo.jpg"}
    assert os.listdir(work / "media") == ["10"]
