"""Snippet library filtering for the library page and the composer picker."""

from __future__ import annotations

from typing import Iterable, Optional

from snippet_composer.models import Language, Snippet, SnippetFilter, SnippetStatus

ALL = "all"


def _matches_search(snippet: Snippet, query: str) -> bool:
    query = query.lower()
    return query in snippet.title.lower() or query in snippet.content.lower()


def filter_snippets(
    snippets: Iterable[Snippet],
    criteria: SnippetFilter,
    favorite_ids: Optional[set[str]] = None
) -> list[Snippet]:
    """
    Apply library filters.

    Category, tag and case selections each match when the snippet carries
    any of the selected ids. All active filters must match.
    """
    result = list(snippets)

    if criteria.language != ALL:
        result = [s for s in result if s.language.value == criteria.language]
    if criteria.status != ALL:
        result = [s for s in result if s.status.value == criteria.status]
    if criteria.categories:
        wanted = set(criteria.categories)
        result = [s for s in result if wanted.intersection(s.categories)]
    if criteria.tags:
        wanted = set(criteria.tags)
        result = [s for s in result if wanted.intersection(s.tags)]
    if criteria.cases:
        wanted = set(criteria.cases)
        result = [s for s in result if wanted.intersection(s.cases)]
    if criteria.favorites_only:
        favorites = favorite_ids or set()
        result = [s for s in result if s.id in favorites]
    if criteria.search.strip():
        result = [s for s in result if _matches_search(s, criteria.search.strip())]

    return result


def picker_snippets(
    snippets: Iterable[Snippet],
    language: Language,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: str = ""
) -> list[Snippet]:
    """Published snippets in the draft's language, as offered by the composer picker."""
    result = [
        s for s in snippets
        if s.status == SnippetStatus.PUBLISHED and s.language == language
    ]
    if category:
        result = [s for s in result if category in s.categories]
    if tag:
        result = [s for s in result if tag in s.tags]
    if search.strip():
        result = [s for s in result if _matches_search(s, search.strip())]
    return result
