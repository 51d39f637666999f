"""Slug generation utilities for podcast and episode URLs."""

import re
from collections.abc import Collection
from urllib.parse import quote

_TRANSLITERATIONS = (
    ("ä", "ae"),
    ("ö", "oe"),
    ("ü", "ue"),
    ("ß", "ss"),
)

_DISALLOWED = re.compile(r"[^a-zA-Z0-9 ]")
_SPACES = re.compile(r" +")
_HYPHEN_RUNS = re.compile(r"-{2,10}")

COLLISION_SUFFIX = "x"


def slugify(title: str) -> str:
    """Convert a podcast or episode title to a URL-safe slug.

    Args:
        title: The title to convert (e.g., "Die Brücke")

    Returns:
        URL-safe slug (e.g., "die-bruecke"). Empty or all-punctuation
        titles yield an empty string.
    """
    if not title:
        return ""

    lower = title.lower()

    for source, replacement in _TRANSLITERATIONS:
        lower = lower.replace(source, replacement)

    cleaned = _DISALLOWED.sub("", lower)
    hyphenated = _SPACES.sub("-", cleaned)
    collapsed = _HYPHEN_RUNS.sub("-", hyphenated)

    return quote(collapsed, safe="")


def unique_slug(title: str, used_slugs: Collection[str]) -> str:
    """Generate a slug not present in ``used_slugs``.

    Each collision appends ``x`` and re-slugifies, so repeated calls against
    a growing set yield "news", "newsx", "newsxx", ... Re-slugifying drops
    the hyphens of the first candidate ("my-show" collides to "myshowx").

    Args:
        title: The title to convert
        used_slugs: Slugs already taken in the relevant scope

    Returns:
        Unique slug
    """
    candidate = slugify(title)

    while candidate in used_slugs:
        candidate = slugify(candidate + COLLISION_SUFFIX)

    return candidate
