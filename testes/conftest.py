import os
import sys
from types import SimpleNamespace

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from PIL import Image

from blueprints.hosts.duckdb_schemas import DuckDBSchemaProvider
from blueprints.hosts.duckdb_site import DuckDBSite


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    # Reports and logs are written relative to the working directory.
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def make_site(tmp_path):
    sites = []

    def _make(name="source", **kwargs):
        site = DuckDBSite(":memory:", uploads_dir=str(tmp_path / name / "uploads"), **kwargs)
        sites.append(site)
        return site

    yield _make
    for site in sites:
        site.close()


@pytest.fixture
def site(make_site):
    return make_site("source")


@pytest.fixture
def target(make_site):
    return make_site("target")


def _provider_for(site):
    provider = DuckDBSchemaProvider(site)
    site.activate_plugin(provider.name, provider.version)
    return provider


@pytest.fixture
def provider(site):
    return _provider_for(site)


@pytest.fixture
def target_provider(target):
    return _provider_for(target)


@pytest.fixture
def make_image(tmp_path):
    def _make(name="photo.jpg", size=(640, 480), color="red", folder="images"):
        path = tmp_path / folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color=color).save(path)
        return str(path)

    return _make


@pytest.fixture
def seeded(site, provider, make_image):
    """A source site with core posts, a custom post type and featured media."""
    provider.import_post_type({"post_type": "book", "labels": {"name": "Books"}})
    provider.import_taxonomy({"taxonomy": "genre", "object_type": ["book"]})
    provider.import_field_group({
        "key": "group_book",
        "title": "Book",
        "fields": [
            {"key": "field_cover", "name": "cover", "type": "image"},
            {"key": "field_isbn", "name": "isbn", "type": "text"},
        ],
    })

    media = site.insert_attachment(make_image("photo.jpg"), title="photo", mime_type="image/jpeg")
    hello = site.insert_post({"post_title": "Hello", "post_content": "Welcome"})
    about = site.insert_post({"post_title": "About", "post_type": "page"})
    book = site.insert_post({"post_title": "Dune", "post_type": "book"})
    draft = site.insert_post({"post_title": "Draft", "post_status": "draft"})

    news = site.insert_term("News", "category")
    local = site.insert_term("Local", "category", parent=news)
    scifi = site.insert_term("Science Fiction", "genre")
    site.set_post_terms(hello, [news, local], "category")
    site.set_post_terms(book, [scifi], "genre")

    site.update_post_meta(hello, "_thumbnail_id", str(media))
    site.update_post_meta(hello, "_edit_lock", "1700000000:1")
    site.update_post_meta(book, "_thumbnail_id", media)
    site.update_post_meta(book, "isbn", "978-0441013593")
    site.update_post_meta(book, "_isbn", "field_isbn")
    site.update_post_meta(book, "cover", media)
    site.update_post_meta(book, "_cover", "field_cover")

    site.update_option("blogname", "Source site")
    site.update_option("stylesheet", "twentytwentythree")
    site.update_option("theme_mods_twentytwentythree", {"custom_logo": media})

    return SimpleNamespace(
        media=media, hello=hello, about=about, book=book, draft=draft,
        news=news, local=local, scifi=scifi,
    )
