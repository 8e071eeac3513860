"""Fuzzy filtering for dependency and feature lists."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

_WORD_SEPARATORS = "-_ ."

MATCH_SCORE = 1
CONSECUTIVE_BONUS = 5
WORD_START_BONUS = 8
GAP_PENALTY = 1


@dataclass(frozen=True)
class SearchMatch:
    """A name that matched the query, with the matched character positions."""

    name: str
    highlighted: tuple[int, ...] = ()
    score: int = 0


def _score(text: str, positions: list[int]) -> int:
    score = 0
    previous = -1
    for position in positions:
        score += MATCH_SCORE
        if position == previous + 1 and previous >= 0:
            score += CONSECUTIVE_BONUS
        if position == 0 or text[position - 1] in _WORD_SEPARATORS:
            score += WORD_START_BONUS
        if previous >= 0:
            score -= GAP_PENALTY * (position - previous - 1)
        previous = position
    return score


def _positions_from(text: str, query: str, start: int) -> list[int] | None:
    positions = [start]
    cursor = start + 1
    for char in query[1:]:
        found = text.find(char, cursor)
        if found < 0:
            return None
        positions.append(found)
        cursor = found + 1
    return positions


def fuzzy_match(query: str, text: str) -> SearchMatch | None:
    """Match ``query`` as a case-insensitive subsequence of ``text``.

    Every occurrence of the first query character is tried as an anchor and
    the best scoring alignment wins. Returns None when ``text`` doesn't
    contain the query as a subsequence.
    """
    if not query:
        return SearchMatch(name=text)

    lowered_text = text.lower()
    lowered_query = query.lower()

    best: tuple[int, list[int]] | None = None
    start = lowered_text.find(lowered_query[0])
    while start >= 0:
        positions = _positions_from(lowered_text, lowered_query, start)
        if positions is None:
            break
        score = _score(lowered_text, positions)
        if best is None or score > best[0]:
            best = (score, positions)
        start = lowered_text.find(lowered_query[0], start + 1)

    if best is None:
        return None
    return SearchMatch(name=text, highlighted=tuple(best[1]), score=best[0])


def filter_names(names: Iterable[str], query: str) -> list[SearchMatch]:
    """Filter and rank ``names`` against ``query``.

    An empty query keeps every name in its original order. Otherwise
    non-matching names are dropped and the rest are sorted by score; ties keep
    the original order.
    """
    if not query:
        return [SearchMatch(name=name) for name in names]

    matches = [match for match in (fuzzy_match(query, name) for name in names) if match is not None]
    return sorted(matches, key=lambda match: -match.score)


__all__ = ["SearchMatch", "fuzzy_match", "filter_names"]
