"""Navigation manifest parsing and resolution against built pages."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Set

from docpress.errors import BrokenLinkError, ManifestError
from docpress.models import ManifestNode, NavNode, PageRecord

LOGGER = logging.getLogger(__name__)

_EXTERNAL = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:)")
_LABEL_KEYS = ("label", "text")
_CHILD_KEYS = ("children", "items")


def is_external(link: str) -> bool:
    """``https://...``, ``mailto:...`` and protocol-relative links leave the site."""
    return bool(_EXTERNAL.match(link)) or link.startswith("//")


def _first(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def parse_manifest(data: Any, *, root: str = "nav") -> List[ManifestNode]:
    """Parse an authored manifest (list of mappings) into manifest nodes.

    Both ``label``/``children`` and the ``text``/``items`` spelling used by
    theme configs are accepted. YAML aliases can make a node its own
    descendant; such a node is rejected instead of recursed into.
    """
    if data is None:
        return []
    if not isinstance(data, list):
        raise ManifestError(root, "manifest must be a list of nodes")
    visited: Set[int] = set()
    return [_parse_node(item, f"{root}[{i}]", visited) for i, item in enumerate(data)]


def _parse_node(data: Any, path: str, visited: Set[int]) -> ManifestNode:
    if isinstance(data, ManifestNode):
        return data
    if not isinstance(data, Mapping):
        raise ManifestError(path, f"expected a mapping, got {type(data).__name__}")
    if id(data) in visited:
        raise ManifestError(path, "node appears more than once in the tree")
    visited.add(id(data))
    label = _first(data, _LABEL_KEYS)
    if not isinstance(label, str) or not label.strip():
        raise ManifestError(path, "node has no label")
    link = data.get("link")
    if link is not None and not isinstance(link, str):
        raise ManifestError(path, "link must be a string")
    children = _first(data, _CHILD_KEYS) or []
    if not isinstance(children, list):
        raise ManifestError(path, "children must be a list")
    return ManifestNode(
        label=label.strip(),
        link=link.strip() if link else None,
        children=[
            _parse_node(child, f"{path}.children[{i}]", visited) for i, child in enumerate(children)
        ],
    )


class NavigationResolver:
    """Checks every manifest link against the built page records."""

    def __init__(self, page_records: Iterable[PageRecord], *, base: str = "/") -> None:
        self.pages: Dict[str, PageRecord] = {record.route: record for record in page_records}
        self.base = base if base.endswith("/") else base + "/"

    def normalize_link(self, link: str) -> tuple[str, str]:
        """Split a site link into ``(route, fragment)``."""
        route, _, fragment = link.partition("#")
        route = route.split("?", 1)[0]
        if self.base != "/" and route.startswith(self.base):
            route = "/" + route[len(self.base):]
        if not route.startswith("/"):
            route = "/" + route
        for suffix in (".html", ".md"):
            if route.endswith(suffix):
                route = route[: -len(suffix)]
                break
        if route.endswith("/index"):
            route = route[: -len("index")]
        if len(route) > 1:
            route = route.rstrip("/") or "/"
        return route, fragment

    def resolve(self, manifest: Sequence[ManifestNode], *, root: str = "nav") -> List[NavNode]:
        visited: Set[int] = set()
        return [
            self._resolve_node(node, f"{root}[{i}]", visited) for i, node in enumerate(manifest)
        ]

    def _resolve_node(self, node: ManifestNode, path: str, visited: Set[int]) -> NavNode:
        if id(node) in visited:
            raise ManifestError(path, f"node {node.label!r} appears more than once in the tree")
        visited.add(id(node))

        link = node.link or None
        if link and not is_external(link):
            link = self._check_link(link, path)
        children = [
            self._resolve_node(child, f"{path}.children[{i}]", visited)
            for i, child in enumerate(node.children)
        ]
        return NavNode(label=node.label, link=link, children=children)

    def _check_link(self, link: str, path: str) -> str:
        route, fragment = self.normalize_link(link)
        if route == "/" and link.startswith("#"):
            raise BrokenLinkError(path, link, "fragment-only links have no target page")
        # Without clean URLs the routes keep their .html suffix.
        record = self.pages.get(route) or self.pages.get(route + ".html")
        if record is None:
            raise BrokenLinkError(path, link)
        route = record.route
        if fragment and fragment not in record.anchor_ids:
            raise BrokenLinkError(path, link, f"page {route} has no heading #{fragment}")
        return f"{route}#{fragment}" if fragment else route


def resolve(
    manifest: Sequence[ManifestNode] | Sequence[Mapping[str, Any]],
    page_records: Iterable[PageRecord],
    *,
    base: str = "/",
    root: str = "nav",
) -> List[NavNode]:
    """Resolve ``manifest`` against ``page_records``, keeping authored order.

    Raises :class:`BrokenLinkError` for any internal link without a page.
    """
    visited: Set[int] = set()
    nodes = [
        node if isinstance(node, ManifestNode) else _parse_node(node, f"{root}[{i}]", visited)
        for i, node in enumerate(manifest)
    ]
    return NavigationResolver(page_records, base=base).resolve(nodes, root=root)


def iter_links(nodes: Iterable[NavNode]) -> Iterator[str]:
    for node in nodes:
        if node.link:
            yield node.link
        yield from iter_links(node.children)


def orphan_routes(trees: Iterable[Sequence[NavNode]], page_records: Iterable[PageRecord]) -> List[str]:
    """Routes of pages that no navigation link reaches."""
    linked = {link.partition("#")[0] for tree in trees for link in iter_links(tree)}
    return sorted(record.route for record in page_records if record.route not in linked)
