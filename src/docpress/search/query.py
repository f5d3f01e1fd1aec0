"""Client-side query engine over a loaded :class:`SearchIndex`."""

from __future__ import annotations

import math
from html import escape
from typing import Dict, List, Optional, Sequence

from docpress.models import SearchResult
from docpress.search.index import FIELD_CODES, Posting, SearchIndex
from docpress.search.tokenizer import MIN_PREFIX_LENGTH, query_terms

BODY = FIELD_CODES["body"]
TITLE = FIELD_CODES["title"]
HEADING_BONUS = 0.5


def matching_terms(index: SearchIndex, term: str) -> List[str]:
    """Index terms matched by one normalized query term.

    The ``match`` preset only accepts equal terms. The ``default`` preset also
    accepts every indexed term the query term is a prefix of.
    Terms shorter than the prefix table's keys are looked up by scanning.
    """
    found = [term] if term in index.terms else []
    if index.options.preset == "default":
        if len(term) < MIN_PREFIX_LENGTH:
            longer = sorted(t for t in index.terms if t.startswith(term) and t != term)
        else:
            longer = [t for t in index.prefixes.get(term, ()) if t != term]
        found.extend(longer)
    return found


def make_preview(text: str, offset: int, length: int, preview_length: int) -> str:
    """Window of ``text`` around ``text[offset:offset + length]``, term in ``<mark>``.

    The window is ``preview_length`` characters centred on the term, then
    trimmed inwards to word boundaries.
    """
    size = len(text)
    start = max(0, offset - max(preview_length - length, 0) // 2)
    end = min(size, start + preview_length)
    start = max(0, min(start, end - preview_length))
    start = min(start, offset)
    end = max(end, offset + length)

    if 0 < start and not text[start - 1].isspace() and not text[start].isspace():
        cut = text.find(" ", start, offset)
        start = cut + 1 if cut != -1 else offset
    if end < size and not text[end - 1].isspace() and not text[end].isspace():
        cut = text.rfind(" ", offset + length, end)
        end = cut if cut != -1 else offset + length

    before = text[start:offset].lstrip()
    match = text[offset : offset + length]
    after = text[offset + length : end].rstrip()
    return f"{escape(before)}<mark>{escape(match)}</mark>{escape(after)}"


def _preview(index: SearchIndex, doc: int, postings: Sequence[Posting]) -> str:
    entry = index.entries[doc]
    body = [p for p in postings if p[1] == BODY]
    if body:
        _, _, _, offset, length = min(body, key=lambda p: p[3])
        return make_preview(entry.body_text, offset, length, entry.preview_length)
    _, code, heading, offset, length = min(postings, key=lambda p: (p[1], p[2], p[3]))
    text = entry.title if code == TITLE else entry.headings[heading]
    return make_preview(text, offset, length, entry.preview_length)


def query(index: SearchIndex, text: str, *, limit: Optional[int] = None) -> List[SearchResult]:
    """Rank the documents of ``index`` against ``text``.

    Ordering: distinct query terms matched (most first), title or heading
    matches before body-only matches, earliest body match, then route.
    An empty query returns no results.
    """
    terms = query_terms(text, index.options)
    if not terms:
        return []

    matches: Dict[int, Dict[str, List[Posting]]] = {}
    for term in terms:
        for indexed in matching_terms(index, term):
            for posting in index.terms[indexed]:
                matches.setdefault(posting[0], {}).setdefault(term, []).append(posting)

    ranked = []
    for doc, by_term in matches.items():
        postings = [p for group in by_term.values() for p in group]
        prominent = any(p[1] != BODY for p in postings)
        body_offsets = [p[3] for p in postings if p[1] == BODY]
        earliest = min(body_offsets) if body_offsets else math.inf
        route = index.entries[doc].route
        ranked.append(((-len(by_term), 0 if prominent else 1, earliest, route), doc, postings))
    ranked.sort(key=lambda item: item[0])
    if limit is not None:
        ranked = ranked[: max(limit, 0)]

    results = []
    for key, doc, postings in ranked:
        entry = index.entries[doc]
        score = -key[0] + (HEADING_BONUS if key[1] == 0 else 0.0)
        results.append(
            SearchResult(
                route=entry.route,
                title=entry.title,
                preview=_preview(index, doc, postings),
                score=score,
            )
        )
    return results
