"""Slug helpers shared by placeholders and the persistence layer."""

from __future__ import annotations

import re

from gallery_sync.core.time_utils import epoch_millis

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w-]+")
_DASH_RUN_RE = re.compile(r"-{2,}")


def slugify(title: str) -> str:
    """Turn a title into a URL slug.

    Lowercases, replaces whitespace runs with a dash, drops everything that is
    not a word character or dash and collapses repeated dashes.
    """
    slug = _WHITESPACE_RE.sub("-", title.lower().strip())
    slug = _NON_WORD_RE.sub("", slug)
    return _DASH_RUN_RE.sub("-", slug)


def temp_slug(title: str, *, millis: int | None = None) -> str:
    """Slug for an optimistic placeholder that has no server slug yet."""
    stamp = epoch_millis() if millis is None else millis
    return f"temp-{slugify(title)}-{stamp}"


def unique_slug(base: str, taken: set[str]) -> str:
    """Return ``base`` or the first free ``base-2``, ``base-3``, ... variant."""
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate
