"""
Interface to the site that stores content entities.

Collectors read from a :class:`Site` and importers write to one.  The
interface mirrors the operations a content-management host offers for
posts, terms, post meta, media attachments and options.  Implementations
raise :class:`blueprints.utils.errors.HostError` when they refuse a write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional


class Site(ABC):
    """Entity storage of a content site."""

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------
    @property
    @abstractmethod
    def version(self) -> str:
        """Version of the running host."""

    @abstractmethod
    def active_plugins(self) -> Dict[str, str]:
        """Active extensions keyed by name, with their versions."""

    @abstractmethod
    def theme(self) -> Dict[str, str]:
        """The active theme as ``{"stylesheet", "template", "version"}``."""

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------
    @abstractmethod
    def get_option(self, name: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def update_option(self, name: str, value: Any) -> None:
        ...

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------
    @abstractmethod
    def get_posts(self, post_types: Optional[Iterable[str]] = None, status: Optional[str] = "publish") -> List[Dict[str, Any]]:
        """Posts of ``post_types`` as dicts with an ``ID`` key, ordered by ID.

        ``post_types=None`` means every type except media attachments and
        ``status=None`` returns posts of every status.
        """

    @abstractmethod
    def get_post(self, post_id: int) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def insert_post(self, fields: Dict[str, Any], *, import_id: Optional[int] = None) -> int:
        """Create a post and return its ID.

        ``import_id`` asks the host to reuse that ID; the host only honors it
        when no entity holds the ID already.  Callers must use the returned
        ID rather than assume the hint was honored.
        """

    @abstractmethod
    def update_post(self, post_id: int, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete_post(self, post_id: int) -> bool:
        ...

    @abstractmethod
    def post_type_exists(self, post_type: str) -> bool:
        ...

    @abstractmethod
    def register_post_type(self, post_type: str) -> None:
        ...

    @abstractmethod
    def unregister_post_type(self, post_type: str) -> bool:
        ...

    # ------------------------------------------------------------------
    # Post meta
    # ------------------------------------------------------------------
    @abstractmethod
    def get_post_meta(self, post_id: int) -> Dict[str, List[Any]]:
        """Every meta key of the post mapped to its list of values."""

    @abstractmethod
    def update_post_meta(self, post_id: int, key: str, value: Any) -> None:
        """Replace all values of ``key`` with ``value``."""

    # ------------------------------------------------------------------
    # Taxonomies and terms
    # ------------------------------------------------------------------
    @abstractmethod
    def get_object_taxonomies(self, post_type: str) -> List[str]:
        """Taxonomies registered for ``post_type``."""

    @abstractmethod
    def taxonomy_exists(self, taxonomy: str) -> bool:
        ...

    @abstractmethod
    def register_taxonomy(self, taxonomy: str, object_types: Iterable[str]) -> None:
        ...

    @abstractmethod
    def unregister_taxonomy(self, taxonomy: str) -> bool:
        ...

    @abstractmethod
    def get_terms(self, taxonomy: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def term_exists(self, name: str, taxonomy: str, parent: Optional[int] = None) -> Optional[int]:
        """ID of the term named ``name`` in ``taxonomy``, or ``None``.

        When ``parent`` is given only terms with that parent match.
        """

    @abstractmethod
    def insert_term(
        self,
        name: str,
        taxonomy: str,
        *,
        slug: str = "",
        description: str = "",
        parent: int = 0,
    ) -> int:
        ...

    @abstractmethod
    def delete_term(self, term_id: int, taxonomy: str) -> bool:
        ...

    @abstractmethod
    def get_post_terms(self, post_id: int, taxonomy: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def set_post_terms(self, post_id: int, term_ids: Iterable[int], taxonomy: str, *, append: bool = True) -> List[int]:
        """Attach terms to a post, returning the term IDs now attached."""

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------
    @abstractmethod
    def get_original_image_path(self, media_id: int) -> Optional[str]:
        """Absolute path of the original uploaded file, or ``None``."""

    @abstractmethod
    def insert_attachment(self, file_path: str, *, title: str, mime_type: str) -> int:
        """Copy ``file_path`` into the uploads and create a media entity."""

    @abstractmethod
    def generate_attachment_metadata(self, media_id: int, file_path: str) -> Dict[str, Any]:
        """Create derived renditions of the media file and describe them."""

    @abstractmethod
    def update_attachment_metadata(self, media_id: int, metadata: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get_attachment_ids(self) -> List[int]:
        ...

    @abstractmethod
    def delete_attachment(self, media_id: int) -> bool:
        """Delete the media entity together with its files."""
