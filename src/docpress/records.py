"""Normalization of rendered documents into page records."""

from __future__ import annotations

import logging
import threading
from pathlib import PurePosixPath
from typing import Dict, List, Sequence

from docpress.errors import DuplicateRouteError
from docpress.models import Heading, PageRecord, RenderedDocument
from docpress.utils.text import (
    collapse_whitespace,
    element_text,
    html_to_text,
    parse_fragment,
    slugify,
    unique_slugs,
)

LOGGER = logging.getLogger(__name__)

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


def route_for_path(relative_path: str, *, clean_urls: bool = True) -> str:
    """Map a source path such as ``components/props.html`` to its route.

    ``index.html`` files map to their directory.
    """
    path = PurePosixPath(relative_path.replace("\\", "/"))
    parts = [part for part in path.parts if part not in ("", ".", "/")]
    if not parts:
        return "/"
    stem = PurePosixPath(parts[-1])
    if stem.suffix in (".html", ".md"):
        if stem.stem == "index":
            parts = parts[:-1]
            return "/" + "/".join(parts) + ("/" if parts else "")
        parts[-1] = stem.stem if clean_urls else stem.stem + ".html"
    return "/" + "/".join(parts)


def normalize_route(route: str) -> str:
    route = route.strip()
    if not route.startswith("/"):
        route = "/" + route
    if len(route) > 1 and route.endswith("/"):
        route = route.rstrip("/") or "/"
    return route


def extract_headings(fragment: str) -> List[Heading]:
    """Collect headings with unique anchor ids from an HTML fragment."""
    soup = parse_fragment(fragment)
    found = soup.find_all(HEADING_TAGS)
    texts = [element_text(tag) for tag in found]
    slugs = unique_slugs(tag.get("id") or slugify(text) for tag, text in zip(found, texts))
    return [
        Heading(level=int(tag.name[1]), text=text, anchor_id=slug)
        for tag, text, slug in zip(found, texts, slugs)
    ]


def _dedupe_anchors(headings: Sequence[Heading]) -> List[Heading]:
    slugs = unique_slugs(h.anchor_id or slugify(h.text) for h in headings)
    return [
        Heading(level=min(max(h.level, 1), 6), text=h.text, anchor_id=slug)
        for h, slug in zip(headings, slugs)
    ]


class RecordBuilder:
    """Builds one :class:`PageRecord` per document and owns the route registry.

    Safe to call from several worker threads at once.
    """

    def __init__(self, *, clean_urls: bool = True) -> None:
        self.clean_urls = clean_urls
        self._routes: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._routes)

    def compute_route(self, document: RenderedDocument) -> str:
        if document.route:
            return normalize_route(document.route)
        if document.relative_path:
            return normalize_route(route_for_path(document.relative_path, clean_urls=self.clean_urls))
        raise ValueError("Document has neither a route nor a relative path")

    def build(self, document: RenderedDocument) -> PageRecord:
        route = self.compute_route(document)
        fragment = document.rendered_fragment or ""
        if document.headings is not None:
            headings = _dedupe_anchors(document.headings)
        else:
            headings = extract_headings(fragment)
        if document.body_text is None:
            body_text = html_to_text(fragment)
        else:
            body_text = collapse_whitespace(document.body_text)

        title = collapse_whitespace(document.title)
        if not title:
            title = next((h.text for h in headings if h.level == 1), route)

        record = PageRecord(
            route=route,
            title=title,
            description=collapse_whitespace(document.description),
            headings=tuple(headings),
            body_text=body_text,
            rendered_fragment=fragment,
            relative_path=document.relative_path,
            last_updated=document.last_updated,
        )
        self._claim(route, document.relative_path or route)
        LOGGER.debug("Built record %s (%d headings)", route, len(headings))
        return record

    def _claim(self, route: str, source: str) -> None:
        with self._lock:
            previous = self._routes.get(route)
            if previous is not None:
                raise DuplicateRouteError(route, previous, source)
            self._routes[route] = source
