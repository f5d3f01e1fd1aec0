"""Core docpress data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Set, Tuple

Field = Literal["title", "heading", "body"]


@dataclass(slots=True, frozen=True)
class Heading:
    """One heading of a rendered page."""

    level: int
    text: str
    anchor_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "text": self.text, "anchorId": self.anchor_id}


@dataclass(slots=True)
class RenderedDocument:
    """Output of the external renderer for one source file.

    Only ``rendered_fragment`` is required. Everything else is derived by the
    record builder when left empty.
    """

    rendered_fragment: str
    route: str = ""
    title: str = ""
    description: str = ""
    headings: Optional[List[Heading]] = None
    body_text: Optional[str] = None
    relative_path: str = ""
    last_updated: Optional[float] = None
    source: Optional[Path] = None


@dataclass(slots=True, frozen=True)
class PageRecord:
    """Canonical build-internal representation of one compiled document."""

    route: str
    title: str
    description: str
    headings: Tuple[Heading, ...]
    body_text: str
    rendered_fragment: str
    relative_path: str = ""
    last_updated: Optional[float] = None

    @property
    def anchor_ids(self) -> Set[str]:
        return {heading.anchor_id for heading in self.headings}


@dataclass(slots=True)
class Chunk:
    """Content-addressed output unit."""

    digest: str
    name: str
    payload: bytes
    referenced_by: Set[str] = field(default_factory=set)

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(slots=True)
class ManifestNode:
    """Authored navigation node, before link resolution."""

    label: str
    link: Optional[str] = None
    children: List["ManifestNode"] = field(default_factory=list)


@dataclass(slots=True)
class NavNode:
    """Resolved navigation node served to the client."""

    label: str
    link: Optional[str] = None
    children: List["NavNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label}
        if self.link:
            data["link"] = self.link
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass(slots=True, frozen=True)
class Token:
    """Normalized term with its position in the source field."""

    term: str
    offset: int
    length: int
    field: Field = "body"
    heading_index: int = 0


@dataclass(slots=True)
class IndexEntry:
    """Searchable data for one page."""

    route: str
    title: str
    tokens: List[Token]
    preview_length: int
    headings: List[str] = field(default_factory=list)
    body_text: str = ""


@dataclass(slots=True)
class SearchResult:
    route: str
    title: str
    preview: str
    score: float


@dataclass(slots=True)
class BuildStats:
    pages: int = 0
    chunks_written: int = 0
    chunks_reused: int = 0
    chunks_removed: int = 0
    index_digest: str = ""
    orphan_routes: List[str] = field(default_factory=list)
