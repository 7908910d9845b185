"""
Lexical relevance scoring.

Scores are additive:
    exact query phrase found in the text      +PHRASE_MATCH_WEIGHT
    each distinct query term (len > 2) found  +TERM_MATCH_WEIGHT
    each semantic expansion term found        +SEMANTIC_MATCH_WEIGHT

A chunk counts as relevant at RELEVANCE_THRESHOLD or above; a document
scores the sum of its relevant chunks.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from docsearch.core.config import settings
from docsearch.services.indexing.chunking import DocumentChunk
from docsearch.services.indexing.document_store import DocumentIndex

PHRASE_MATCH_WEIGHT = 20
TERM_MATCH_WEIGHT = 3
SEMANTIC_MATCH_WEIGHT = 2
RELEVANCE_THRESHOLD = 2
MIN_TERM_LENGTH = 2  # terms must be longer than this

# query lead-word -> related terms worth a smaller bonus
SEMANTIC_EXPANSIONS: dict[str, tuple[str, ...]] = {
    "what": ("information", "details", "explanation"),
    "how": ("method", "process", "steps"),
    "why": ("reason", "cause", "because"),
    "when": ("date", "period", "timeline"),
    "where": ("location", "place", "region"),
    "who": ("person", "author", "people"),
    "mount": ("mountain", "peak", "hill"),
    "mountain": ("mount", "peak", "hill"),
    "history": ("historical", "ancient", "origin"),
    "temple": ("religious", "sacred", "pilgrimage"),
    "research": ("study", "analysis", "findings"),
    "data": ("statistics", "figures", "numbers"),
    "summary": ("overview", "conclusion", "findings"),
    "trend": ("trends", "patterns", "insights"),
}


@dataclass(frozen=True)
class ScoreBreakdown:
    score: int
    matches: tuple[str, ...]
    phrase_match: bool

    @property
    def is_relevant(self) -> bool:
        return self.score >= RELEVANCE_THRESHOLD


@dataclass(frozen=True)
class SearchResult:
    document_id: str
    document_name: str
    total_relevance_score: float
    chunks: list[DocumentChunk]
    indexed_at: datetime | None = None


def _normalize(s: str) -> str:
    return " ".join((s or "").lower().split())


def query_terms(query: str) -> list[str]:
    """
    Distinct lower-cased query words longer than MIN_TERM_LENGTH, punctuation stripped.
    """
    terms: list[str] = []
    for raw in _normalize(query).split():
        word = raw.strip(string.punctuation)
        if len(word) > MIN_TERM_LENGTH and word not in terms:
            terms.append(word)

    return terms


def expansion_terms(query: str) -> list[str]:
    expanded: list[str] = []
    for raw in _normalize(query).split():
        for term in SEMANTIC_EXPANSIONS.get(raw.strip(string.punctuation), ()):
            if term not in expanded:
                expanded.append(term)

    return expanded


def score_text(text: str, query: str) -> ScoreBreakdown:
    haystack = _normalize(text)
    phrase = _normalize(query)

    score = 0
    matches: list[str] = []

    phrase_match = bool(phrase) and phrase in haystack
    if phrase_match:
        score += PHRASE_MATCH_WEIGHT

    for term in query_terms(query):
        if term in haystack:
            score += TERM_MATCH_WEIGHT
            matches.append(term)

    for term in expansion_terms(query):
        if term in haystack:
            score += SEMANTIC_MATCH_WEIGHT
            if term not in matches:
                matches.append(term)

    return ScoreBreakdown(score=score, matches=tuple(matches), phrase_match=phrase_match)


def score_chunk(chunk: DocumentChunk, query: str) -> DocumentChunk:
    """
    Scored copy of the chunk; the indexed chunk is left untouched.
    """
    breakdown = score_text(chunk.content, query)
    return replace(chunk, relevance_score=float(breakdown.score), matches=breakdown.matches)


def build_result(
    index: DocumentIndex,
    scored_chunks: Iterable[DocumentChunk],
    top_n: int | None = None,
) -> SearchResult | None:
    top_n = top_n or settings.MAX_CHUNKS_PER_RESULT

    relevant = [c for c in scored_chunks if c.relevance_score >= RELEVANCE_THRESHOLD]
    if not relevant:
        return None

    # source order breaks ties
    top = sorted(relevant, key=lambda c: (-c.relevance_score, c.chunk_index))[:top_n]

    return SearchResult(
        document_id=index.document_id,
        document_name=index.document_name,
        total_relevance_score=sum(c.relevance_score for c in relevant),
        chunks=top,
        indexed_at=index.indexed_at,
    )


def score_document(
    index: DocumentIndex,
    query: str,
    top_n: int | None = None,
) -> SearchResult | None:
    return build_result(index, (score_chunk(c, query) for c in index.chunks), top_n)


def rank_results(results: Iterable[SearchResult], limit: int | None = None) -> list[SearchResult]:
    """
    Highest total score first; ties go to the most recently indexed
    document, then to the smaller document id.
    """
    limit = limit or settings.MAX_SEARCH_RESULTS

    ordered = sorted(results, key=lambda r: r.document_id)
    ordered.sort(
        key=lambda r: (
            r.total_relevance_score,
            r.indexed_at.timestamp() if r.indexed_at else float("-inf"),
        ),
        reverse=True,
    )

    return ordered[:limit]
