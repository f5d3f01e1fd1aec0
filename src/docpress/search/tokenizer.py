"""Tokenization shared by the index builder and the query engine."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterator, List

from docpress.errors import IndexBuildError
from docpress.models import Field, Token

PRESETS = ("default", "match")
MIN_TERM_LENGTH = 2
MIN_PREFIX_LENGTH = 2

# Runs of letters and digits; underscores split terms.
_TERM = re.compile(r"[^\W_]+")


@dataclass(slots=True, frozen=True)
class IndexOptions:
    preview_length: int = 60
    optimize: bool = False
    context: str | None = None
    preset: str = "default"

    def validate(self) -> "IndexOptions":
        if isinstance(self.preview_length, bool) or not isinstance(self.preview_length, int):
            raise IndexBuildError(f"previewLength must be an integer, got {self.preview_length!r}")
        if self.preview_length < 0:
            raise IndexBuildError(f"previewLength must not be negative, got {self.preview_length}")
        if self.preset not in PRESETS:
            raise IndexBuildError(f"Unknown preset {self.preset!r}; expected one of {PRESETS}")
        if self.context is not None and (not isinstance(self.context, str) or not self.context.strip("/")):
            raise IndexBuildError(f"context must be a section name, got {self.context!r}")
        return self

    def to_dict(self) -> dict:
        return {
            "previewLength": self.preview_length,
            "optimize": self.optimize,
            "context": self.context,
            "preset": self.preset,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IndexOptions":
        return cls(
            preview_length=data["previewLength"],
            optimize=data["optimize"],
            context=data.get("context"),
            preset=data["preset"],
        )


def fold(term: str) -> str:
    """Case-fold and strip diacritics: ``Café`` -> ``cafe``."""
    decomposed = unicodedata.normalize("NFKD", term.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_term(term: str, options: IndexOptions) -> str:
    if options.optimize:
        return fold(term)
    return term.lower()


def iter_terms(text: str) -> Iterator[tuple[str, int]]:
    """Yield ``(raw_term, offset)`` pairs split on non-alphanumeric boundaries."""
    for match in _TERM.finditer(text):
        yield match.group(), match.start()


def tokenize(
    text: str,
    *,
    field: Field = "body",
    options: IndexOptions = IndexOptions(),
    heading_index: int = 0,
) -> List[Token]:
    """Split ``text`` into normalized tokens.

    Body terms shorter than two characters are dropped. Title and heading
    terms are kept whatever their length.
    """
    tokens = []
    for raw, offset in iter_terms(text):
        if field == "body" and len(raw) < MIN_TERM_LENGTH:
            continue
        term = normalize_term(raw, options)
        if term:
            tokens.append(
                Token(term=term, offset=offset, length=len(raw), field=field, heading_index=heading_index)
            )
    return tokens


def query_terms(text: str, options: IndexOptions) -> List[str]:
    """Normalize a query the way index terms were normalized, without duplicates."""
    seen: List[str] = []
    for raw, _ in iter_terms(text or ""):
        term = normalize_term(raw, options)
        if term and term not in seen:
            seen.append(term)
    return seen


def prefixes(term: str) -> Iterator[str]:
    """Proper prefixes of ``term`` long enough to be worth indexing."""
    for end in range(MIN_PREFIX_LENGTH, len(term)):
        yield term[:end]
