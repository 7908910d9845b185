from __future__ import annotations

import hashlib
import logging
import re
from bisect import bisect_right
from dataclasses import dataclass

from docsearch.core.config import settings

logger = logging.getLogger(__name__)

# a word closing a sentence, optionally followed by closing quotes/brackets
SENTENCE_END_RE = re.compile(r"[.!?]+[\"')\]]*$")

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class DocumentChunk:
    id: str
    content: str
    word_count: int
    chunk_index: int
    start_word: int
    end_word: int
    page_num: int | None = None
    # per-query values, only set on scored copies
    relevance_score: float = 0.0
    matches: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChunkingResult:
    chunks: list[DocumentChunk]
    total_words: int
    truncated: bool


def count_words(text: str) -> int:
    return len(text.split())


def estimate_tokens(text: str) -> float:
    return len(text) / CHARS_PER_TOKEN


def _stable_chunk_id(document_id: str, window_index: int, sub_index: int, text: str) -> str:
    h = hashlib.sha256()
    h.update(f"{document_id}:{window_index}:{sub_index}:".encode("utf-8"))
    h.update(text[:200].encode("utf-8", errors="ignore"))

    return h.hexdigest()[:24]


def _sentence_spans(words: list[str]) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    begin = 0
    for i, word in enumerate(words):
        if SENTENCE_END_RE.search(word):
            spans.append((begin, i + 1))
            begin = i + 1

    if begin < len(words):
        spans.append((begin, len(words)))

    return spans


def _hard_split(words: list[str], start: int, end: int, max_chars: int) -> list[tuple[int, int]]:
    """
    Word-level split for a single sentence that alone exceeds the budget.
    """
    pieces: list[tuple[int, int]] = []
    piece_start = start
    length = 0

    for i in range(start, end):
        added = len(words[i]) if i == piece_start else length + 1 + len(words[i])
        if added > max_chars and i > piece_start:
            pieces.append((piece_start, i))
            piece_start = i
            length = len(words[i])
        else:
            length = added

    pieces.append((piece_start, end))
    return pieces


def _split_by_sentences(words: list[str], max_chars: int) -> list[tuple[int, int]]:
    """
    Pack whole sentences into pieces of at most max_chars characters.
    Returns word spans relative to `words`.
    """
    pieces: list[tuple[int, int]] = []
    cur_start: int | None = None
    cur_end = 0
    cur_len = 0

    for s, e in _sentence_spans(words):
        sent_len = len(" ".join(words[s:e]))

        if sent_len > max_chars:
            if cur_start is not None:
                pieces.append((cur_start, cur_end))
                cur_start = None
            pieces.extend(_hard_split(words, s, e, max_chars))
            continue

        if cur_start is None:
            cur_start, cur_len = s, sent_len
        elif cur_len + 1 + sent_len > max_chars:
            pieces.append((cur_start, cur_end))
            cur_start, cur_len = s, sent_len
        else:
            cur_len += 1 + sent_len
        cur_end = e

    if cur_start is not None:
        pieces.append((cur_start, cur_end))

    return pieces


def _page_for(
    start_word: int,
    window_index: int,
    page_word_offsets: tuple[int, ...] | None,
    chunks_per_page: int,
) -> int:
    if page_word_offsets:
        return max(1, bisect_right(page_word_offsets, start_word))

    return window_index // max(1, chunks_per_page) + 1


def chunk_text(
    text: str,
    *,
    document_id: str,
    chunk_size: int | None = None,
    overlap_size: int | None = None,
    max_tokens_per_chunk: int | None = None,
    max_chunks: int | None = None,
    page_word_offsets: tuple[int, ...] | None = None,
    chunks_per_page: int | None = None,
) -> ChunkingResult:
    """
    Split normalized text into overlapping word windows.

    Windows start every (chunk_size - overlap_size) words. A window whose
    estimated token count is over budget is split at sentence boundaries.
    Output is capped at max_chunks; when the cap cuts content off the
    result is flagged as truncated.
    """
    if chunk_size is None:
        chunk_size = settings.CHUNK_SIZE_WORDS
    if overlap_size is None:
        overlap_size = settings.CHUNK_OVERLAP_WORDS
    max_tokens = max_tokens_per_chunk or settings.MAX_TOKENS_PER_CHUNK
    max_chunks = max_chunks or settings.MAX_CHUNKS_PER_DOCUMENT
    chunks_per_page = chunks_per_page or settings.CHUNKS_PER_PAGE

    if chunk_size <= 0 or overlap_size < 0 or overlap_size >= chunk_size:
        raise ValueError("INVALID_CHUNK_SETTINGS")

    words = text.split()
    step = chunk_size - overlap_size
    max_chars = max_tokens * CHARS_PER_TOKEN

    chunks: list[DocumentChunk] = []
    truncated = False

    for window_index, window_start in enumerate(range(0, len(words), step)):
        window = words[window_start : window_start + chunk_size]
        content = " ".join(window).strip()
        if not content:
            continue

        if estimate_tokens(content) > max_tokens:
            spans = _split_by_sentences(window, max_chars)
        else:
            spans = [(0, len(window))]

        for sub_index, (s, e) in enumerate(spans):
            piece = " ".join(window[s:e])
            if not piece:
                continue
            if len(chunks) >= max_chunks:
                truncated = True
                break

            start_word = window_start + s
            chunks.append(
                DocumentChunk(
                    id=_stable_chunk_id(document_id, window_index, sub_index, piece),
                    content=piece,
                    word_count=e - s,
                    chunk_index=len(chunks),
                    start_word=start_word,
                    end_word=window_start + e,
                    page_num=_page_for(
                        start_word, window_index, page_word_offsets, chunks_per_page
                    ),
                )
            )

        if truncated:
            break

    if truncated:
        logger.warning(
            "Document %s truncated at %d chunks (%d words total)",
            document_id,
            max_chunks,
            len(words),
        )

    return ChunkingResult(chunks=chunks, total_words=len(words), truncated=truncated)
