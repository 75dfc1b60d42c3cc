"""
URL slug generation for articles and categories.
"""
import re
import unicodedata
from typing import Awaitable, Callable, Optional

FALLBACK_SLUG = "article"

_WHITESPACE = re.compile(r"\s")
_NON_SLUG_CHARS = re.compile(r"[^\w-]", re.ASCII)
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def slugify(text: Optional[str], fallback: str = FALLBACK_SLUG) -> str:
    """
    Convert text into a lowercase, hyphen-separated ASCII slug.

    >>> slugify("Breakthrough in Quantum Computing!")
    'breakthrough-in-quantum-computing'
    >>> slugify("Café Société")
    'cafe-societe'
    """
    if not text:
        return fallback

    slug = _WHITESPACE.sub("-", text)
    # Decompose accented characters, then drop the combining marks
    slug = unicodedata.normalize("NFKD", slug)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = slug.lower()
    slug = _REPEATED_HYPHENS.sub("-", slug).strip("-")

    return slug or fallback


def numbered_slug(base: str, attempt: int) -> str:
    """Return the base slug for attempt 0, else ``base-<attempt>``."""
    if attempt == 0:
        return base
    return f"{base}-{attempt}"


async def unique_slug(
    text: Optional[str],
    exists: Callable[[str], Awaitable[bool]],
) -> str:
    """
    Find the first free slug among ``base``, ``base-1``, ``base-2``, ...

    Args:
        text: Text to derive the base slug from
        exists: Async predicate telling whether a slug is already used

    Returns:
        A slug for which ``exists`` returned False
    """
    base = slugify(text)
    attempt = 0
    candidate = base

    while await exists(candidate):
        attempt += 1
        candidate = numbered_slug(base, attempt)

    return candidate


def category_slug(name: str) -> str:
    """Slug used for category rows."""
    return slugify(name, fallback="category")
