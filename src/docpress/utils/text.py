"""Text helpers: HTML to plain text projection and anchor slugs."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List

from bs4 import BeautifulSoup, NavigableString, Tag

# Zero-width characters show up inside permalink anchors.
_WHITESPACE = re.compile(r"[\s\u200b\u200c\u200d\u2060\ufeff]+")
_SLUG_STRIP = re.compile(r"[^\w\s-]")
_SLUG_DASHES = re.compile(r"[\s_-]+")

BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "br", "caption", "dd", "details",
        "dialog", "div", "dl", "dt", "fieldset", "figcaption", "figure", "footer", "form",
        "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol",
        "p", "pre", "section", "summary", "table", "tbody", "td", "tfoot", "th",
        "thead", "tr", "ul",
    }
)
SKIP_TAGS = frozenset({"script", "style", "template", "button", "noscript"})


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into a single space and strip the ends."""
    return _WHITESPACE.sub(" ", text).strip()


def parse_fragment(fragment: str) -> BeautifulSoup:
    return BeautifulSoup(fragment, "html.parser")


def _is_permalink(tag: Tag) -> bool:
    return tag.name == "a" and "header-anchor" in (tag.get("class") or [])


def _walk(node: Tag, parts: List[str]) -> None:
    for child in node.children:
        if isinstance(child, Tag):
            if child.name in SKIP_TAGS or _is_permalink(child):
                continue
            block = child.name in BLOCK_TAGS
            if block:
                parts.append(" ")
            _walk(child, parts)
            if block:
                parts.append(" ")
        elif type(child) is NavigableString:
            parts.append(str(child))


def element_text(node: Tag) -> str:
    """Plain text of an element, block boundaries kept as single spaces."""
    parts: List[str] = []
    _walk(node, parts)
    return collapse_whitespace("".join(parts))


def html_to_text(fragment: str) -> str:
    """Project an HTML fragment to whitespace-normalized plain text.

    Every block-level boundary becomes a space so that ``<p>a</p><p>b</p>``
    yields ``"a b"`` rather than ``"ab"``.
    """
    if not fragment:
        return ""
    return element_text(parse_fragment(fragment))


def slugify(text: str) -> str:
    """Turn heading text into an anchor id."""
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    slug = _SLUG_STRIP.sub("", ascii_text.lower())
    slug = _SLUG_DASHES.sub("-", slug).strip("-")
    return slug or "section"


def unique_slugs(slugs: Iterable[str]) -> List[str]:
    """Suffix repeated slugs with ``-1``, ``-2``... keeping the first as is."""
    seen: dict[str, int] = {}
    taken: set[str] = set()
    result: List[str] = []
    for slug in slugs:
        candidate = slug
        count = seen.get(slug, 0)
        while candidate in taken:
            count += 1
            candidate = f"{slug}-{count}"
        seen[slug] = count
        taken.add(candidate)
        result.append(candidate)
    return result
