# ============================================================================
# Slug & Name Normalisation Helpers
# ============================================================================
import re
from typing import Awaitable, Callable, Optional

SLUG_MAX_LENGTH = 100
SLUG_SEPARATOR = "-"

_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_LOWERCASE_WORDS = {"and", "of", "or", "in"}

def create_slug(text: Optional[str]) -> str:
    """Build a URL slug: lowercase, hyphen separated, ASCII word characters only."""
    if not text:
        return ""
    slug = str(text).strip().lower()
    slug = re.sub(r"\s+", SLUG_SEPARATOR, slug)
    slug = re.sub(r"[^\w\-]+", "", slug, flags=re.ASCII)
    slug = re.sub(r"--+", SLUG_SEPARATOR, slug)
    slug = slug.strip(SLUG_SEPARATOR)
    return slug[:SLUG_MAX_LENGTH]

def is_valid_slug(slug: Optional[str]) -> bool:
    if not slug or len(slug) > SLUG_MAX_LENGTH:
        return False
    return bool(_SLUG_PATTERN.match(slug))

async def unique_slug(base: str, exists: Callable[[str], Awaitable[bool]]) -> str:
    """
    Return ``base`` or the first ``base-N`` (N = 1, 2, ...) that is free.

    ``exists`` is an async predicate, usually a query scoped to the parent
    of the node being saved.
    """
    candidate = base
    counter = 1
    while await exists(candidate):
        candidate = f"{base}{SLUG_SEPARATOR}{counter}"
        counter += 1
    return candidate

def to_title_case(text: Optional[str]) -> str:
    if not text or not isinstance(text, str):
        return ""
    words = text.strip().split()
    result = []
    for index, word in enumerate(words):
        lowered = word.lower()
        if index > 0 and lowered in _LOWERCASE_WORDS:
            result.append(lowered)
        else:
            result.append(word[:1].upper() + word[1:].lower())
    return " ".join(result)
