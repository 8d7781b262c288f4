from __future__ import annotations

from html import unescape
import re
import unicodedata
from typing import Iterable, List


def _strip_accents(text: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn"
    )


def normalize_label(value: str) -> str:
    """Unescape HTML entities and collapse inner whitespace.

    Preserves original casing but trims leading/trailing spaces
    and converts sequences of whitespace to a single space.
    """
    if not value:
        return ""
    text = unescape(value).strip()
    text = re.sub(r"\s+", " ", text)
    return text


def label_key(value: str) -> str:
    """Comparison key for term names: normalized and case-insensitive."""
    return normalize_label(value).lower()


def slugify(value: str, *, max_length: int = 200) -> str:
    """Turn a display name into a dash separated slug.

    Accents are stripped, anything that is not ASCII alphanumeric becomes a
    single dash, and leading/trailing dashes are removed.  The result can be
    empty when ``value`` has no alphanumeric characters.
    """
    text = _strip_accents(normalize_label(value)).lower()
    out = []
    prev_dash = False
    for ch in text:
        if ch.isascii() and ch.isalnum():
            out.append(ch)
            prev_dash = False
        else:
            if not prev_dash:
                out.append("-")
            prev_dash = True
    slug = "".join(out).strip("-")
    return slug[:max_length]


def parse_list_field(field: str) -> List[str]:
    """
    Parse a comma separated command line value such as ``post,page``.

    - Trims spaces around each item
    - Drops empty items
    - Deduplicates while preserving first-seen order
    """
    if not field:
        return []
    seen = set()
    result: List[str] = []
    for part in field.split(","):
        item = part.strip()
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def merge_unique(*groups: Iterable[str]) -> List[str]:
    """Concatenate ``groups`` keeping the first occurrence of each item."""
    seen = set()
    result: List[str] = []
    for group in groups:
        for item in group:
            if item not in seen:
                seen.add(item)
                result.append(item)
    return result
