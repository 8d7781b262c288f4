"""
Collectors that read a site's content into a blueprint manifest.
"""

from .content_collector import (
    collect_content,
    collect_media,
    collect_options,
    collect_post_meta,
    collect_post_terms,
    collect_posts,
    collect_schemas,
    export_blueprint,
    generate_meta,
)

__all__ = [
    "collect_content",
    "collect_media",
    "collect_options",
    "collect_post_meta",
    "collect_post_terms",
    "collect_posts",
    "collect_schemas",
    "export_blueprint",
    "generate_meta",
]
