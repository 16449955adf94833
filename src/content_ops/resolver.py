"""Fuzzy resolution of a free-text article reference against the catalog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Optional, Tuple, Union

from .intents import clean_reference
from .models import Article, as_utc
from .slug import slugify


class MatchStrength(IntEnum):
    SUBSTRING = 1
    PREFIX = 2
    EXACT = 3


@dataclass(frozen=True)
class Resolved:
    article: Article
    strength: MatchStrength


@dataclass(frozen=True)
class Ambiguous:
    """Several articles matched equally well; carries them for a clarification."""

    candidates: Tuple[Article, ...]


@dataclass(frozen=True)
class NotFound:
    pass


Resolution = Union[Resolved, Ambiguous, NotFound]


def normalize_reference(ref: str) -> str:
    return clean_reference(ref).casefold()


def match_strength(needle: str, haystack: str) -> Optional[MatchStrength]:
    """Compare two already-normalized strings."""
    if not needle or not haystack:
        return None
    if haystack == needle:
        return MatchStrength.EXACT
    if haystack.startswith(needle):
        return MatchStrength.PREFIX
    if needle in haystack:
        return MatchStrength.SUBSTRING
    return None


def _best_strength(needle: str, needle_slug: str, article: Article) -> Optional[MatchStrength]:
    candidates = [
        match_strength(needle, article.title.casefold()),
        match_strength(needle, article.keyword.casefold()),
        match_strength(needle, article.slug.casefold()),
        # "best crm" should find slug "best-crm" as well.
        match_strength(needle_slug, article.slug.casefold()),
    ]
    found = [c for c in candidates if c is not None]
    return max(found) if found else None


def resolve_article(ref: str, catalog: Iterable[Article]) -> Resolution:
    """
    Find the article a user is talking about.

    Each article scores the best of exact > prefix > substring over its title,
    keyword and slug. The strongest score wins; ties go to the most recently
    updated article. Articles that tie on both are reported as Ambiguous.
    """
    needle = normalize_reference(ref)
    if not needle:
        return NotFound()
    needle_slug = slugify(needle)

    scored: List[Tuple[MatchStrength, Article]] = []
    for article in catalog:
        strength = _best_strength(needle, needle_slug, article)
        if strength is not None:
            scored.append((strength, article))
    if not scored:
        return NotFound()

    scored.sort(key=lambda pair: (pair[0], as_utc(pair[1].updated_at)), reverse=True)
    best_strength, best = scored[0]
    best_updated = as_utc(best.updated_at)
    tied = tuple(
        article
        for strength, article in scored
        if strength == best_strength and as_utc(article.updated_at) == best_updated
    )
    if len({a.id for a in tied}) > 1:
        return Ambiguous(candidates=tied)
    return Resolved(article=best, strength=best_strength)
