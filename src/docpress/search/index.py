"""Search index construction and serialization.

The serialized index is canonical JSON: the same page records and options
always produce the same bytes, so the artifact can be content-addressed like
any other chunk.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List

from docpress.errors import CorruptIndexError, IndexBuildError
from docpress.models import IndexEntry, PageRecord, Token
from docpress.search.tokenizer import IndexOptions, prefixes, tokenize
from docpress.utils.files import atomic_write_bytes

LOGGER = logging.getLogger(__name__)

FORMAT_VERSION = 1
FIELD_CODES = {"title": 0, "heading": 1, "body": 2}
FIELD_NAMES = {code: name for name, code in FIELD_CODES.items()}

# [document, field, heading_index, offset, length]
Posting = List[int]


@dataclass(slots=True)
class SearchIndex:
    """Immutable, queryable aggregate of all index entries of one build."""

    options: IndexOptions
    entries: List[IndexEntry]
    terms: Dict[str, List[Posting]]
    prefixes: Dict[str, List[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "options": self.options.to_dict(),
            "documents": [
                {
                    "route": entry.route,
                    "title": entry.title,
                    "headings": entry.headings,
                    "text": entry.body_text,
                }
                for entry in self.entries
            ],
            "terms": self.terms,
            "prefixes": self.prefixes,
        }

    def to_bytes(self) -> bytes:
        return json.dumps(
            self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "SearchIndex":
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptIndexError(f"Search index is not valid JSON: {exc}") from exc
        try:
            return _from_dict(raw)
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise CorruptIndexError(f"Search index failed structural check: {exc}") from exc

    @classmethod
    def load(cls, path: Path) -> "SearchIndex":
        return cls.from_bytes(Path(path).read_bytes())


def _check(condition: bool, message: str) -> None:
    if not condition:
        raise CorruptIndexError(f"Search index failed structural check: {message}")


def _from_dict(raw: Any) -> SearchIndex:
    _check(isinstance(raw, dict), "top level is not an object")
    _check(raw.get("version") == FORMAT_VERSION, f"unsupported version {raw.get('version')!r}")
    _check(isinstance(raw["options"], dict), "options is not an object")
    options = IndexOptions.from_dict(raw["options"])
    _check(isinstance(options.optimize, bool), "optimize is not a boolean")
    try:
        options.validate()
    except IndexBuildError as exc:
        raise CorruptIndexError(f"Search index failed structural check: {exc}") from exc

    documents = raw["documents"]
    _check(isinstance(documents, list), "documents is not a list")
    entries = []
    for doc in documents:
        _check(isinstance(doc, dict), "document is not an object")
        _check(all(isinstance(doc[key], str) for key in ("route", "title", "text")), "bad document")
        _check(isinstance(doc["headings"], list), "document headings is not a list")
        entries.append(
            IndexEntry(
                route=doc["route"],
                title=doc["title"],
                tokens=[],
                preview_length=options.preview_length,
                headings=[str(h) for h in doc["headings"]],
                body_text=doc["text"],
            )
        )

    terms = raw["terms"]
    _check(isinstance(terms, dict), "terms is not an object")
    for term, postings in terms.items():
        _check(isinstance(postings, list) and postings, f"term {term!r} has no postings")
        for posting in postings:
            _check(isinstance(posting, list) and len(posting) == 5, f"bad posting for {term!r}")
            _check(
                all(type(value) is int and value >= 0 for value in posting),
                f"posting for {term!r} holds a non-integer or negative value",
            )
            doc, code, heading, offset, length = posting
            _check(doc < len(entries), f"posting for {term!r} names unknown document {doc}")
            _check(code in FIELD_NAMES, f"posting for {term!r} has unknown field {code}")
            entry = entries[doc]
            if code == FIELD_CODES["heading"]:
                _check(heading < len(entry.headings), f"posting for {term!r} has bad heading")
            _check(
                offset + length <= len(_field_text(entry, code, heading)),
                f"posting for {term!r} points past the end of its text",
            )
            entry.tokens.append(
                Token(
                    term=term,
                    offset=offset,
                    length=length,
                    field=FIELD_NAMES[code],  # type: ignore[arg-type]
                    heading_index=heading,
                )
            )

    table = raw.get("prefixes", {})
    _check(isinstance(table, dict), "prefixes is not an object")
    for prefix, names in table.items():
        _check(all(name in terms for name in names), f"prefix {prefix!r} names unknown terms")
    for entry in entries:
        entry.tokens.sort(key=_token_order)
    return SearchIndex(options=options, entries=entries, terms=terms, prefixes=table)


def _field_text(entry: IndexEntry, code: int, heading: int) -> str:
    if code == FIELD_CODES["title"]:
        return entry.title
    if code == FIELD_CODES["heading"]:
        return entry.headings[heading]
    return entry.body_text


def _token_order(token: Token) -> tuple:
    return (FIELD_CODES[token.field], token.heading_index, token.offset, token.term)


def in_context(route: str, context: str | None) -> bool:
    """Whether ``route`` belongs to the section named ``context``."""
    if context is None:
        return True
    section = "/" + context.strip("/")
    return route == section or route.startswith(section + "/")


def build_entry(record: PageRecord, options: IndexOptions) -> IndexEntry:
    """Tokenize one page record: title, headings and body text."""
    tokens = tokenize(record.title, field="title", options=options)
    for position, heading in enumerate(record.headings):
        tokens.extend(tokenize(heading.text, field="heading", options=options, heading_index=position))
    tokens.extend(tokenize(record.body_text, field="body", options=options))
    tokens.sort(key=_token_order)
    return IndexEntry(
        route=record.route,
        title=record.title,
        tokens=tokens,
        preview_length=options.preview_length,
        headings=[heading.text for heading in record.headings],
        body_text=record.body_text,
    )


def build_index(page_records: Iterable[PageRecord], options: IndexOptions | None = None) -> SearchIndex:
    """Build the search index for ``page_records``.

    Options are validated before any record is looked at.
    """
    options = (options or IndexOptions()).validate()
    records = sorted(
        (record for record in page_records if in_context(record.route, options.context)),
        key=lambda record: record.route,
    )
    entries = [build_entry(record, options) for record in records]

    terms: Dict[str, List[Posting]] = {}
    for doc, entry in enumerate(entries):
        for token in entry.tokens:
            terms.setdefault(token.term, []).append(
                [doc, FIELD_CODES[token.field], token.heading_index, token.offset, token.length]
            )
    for postings in terms.values():
        postings.sort()

    table: Dict[str, List[str]] = {}
    if options.preset == "default":
        for term in sorted(terms):
            for prefix in prefixes(term):
                table.setdefault(prefix, []).append(term)

    LOGGER.info(
        "Indexed %d pages, %d terms%s",
        len(entries),
        len(terms),
        f" (context {options.context})" if options.context else "",
    )
    return SearchIndex(options=options, entries=entries, terms=terms, prefixes=table)


def write_index(path: Path, index: SearchIndex) -> bytes:
    """Serialize ``index`` to ``path``, replacing the previous file atomically."""
    data = index.to_bytes()
    atomic_write_bytes(Path(path), data)
    return data
