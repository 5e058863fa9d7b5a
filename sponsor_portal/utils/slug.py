"""Slug helpers for sponsor and blog URLs."""

from __future__ import annotations

import re
import unicodedata
from typing import Optional


def generate_slug(value: Optional[str]) -> str:
    """Convert a display name to a URL-safe slug ("Bike Shop & Co." -> "bike-shop-co")."""
    if not value:
        return ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^\w\s-]", "", ascii_value.lower().strip())
    cleaned = re.sub(r"[\s_-]+", "-", cleaned)
    return cleaned.strip("-")


def generate_unique_slug(name: str, existing_slugs: set[str], fallback: str = "sponsor") -> str:
    """Generate a slug not present in ``existing_slugs``, appending -2, -3... on collision."""
    base = generate_slug(name) or fallback
    if base not in existing_slugs:
        return base
    suffix = 2
    while f"{base}-{suffix}" in existing_slugs:
        suffix += 1
    return f"{base}-{suffix}"
