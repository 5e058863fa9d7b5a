"""Utility helpers to sanitize user-provided text before it leaves the portal."""

from __future__ import annotations

import bleach


def sanitize_plain_text(value: str | None) -> str:
    """Remove HTML tags from simple text fields such as titles and names."""
    if not value:
        return ''
    return bleach.clean(value, tags=[], attributes={}, strip=True)


def truncate_plain_text(value: str | None, limit: int) -> str:
    """Strip markup and cut to ``limit`` characters, adding an ellipsis when cut."""
    cleaned = sanitize_plain_text(value).strip()
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[:limit].rstrip() + '...'


__all__ = ["sanitize_plain_text", "truncate_plain_text"]
