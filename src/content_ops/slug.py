"""Slug helpers shared by article proposals and field edits."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from .models import Article

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Lower-case, turn every run of non-alphanumerics into one hyphen, trim hyphens.

    "Best CRM  Tools (2025)!" -> "best-crm-tools-2025"
    """
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def is_slug_taken(
    slug: str, articles: Iterable[Article], exclude_id: Optional[str] = None
) -> bool:
    return any(a.slug == slug and a.id != exclude_id for a in articles)
