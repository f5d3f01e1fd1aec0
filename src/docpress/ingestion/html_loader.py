"""Loading of pre-rendered HTML documents.

The markdown renderer runs outside docpress; it leaves one ``.html`` file per
source document under the source directory. This module turns those files into
:class:`RenderedDocument` values.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List

from bs4 import BeautifulSoup

from docpress.models import RenderedDocument
from docpress.utils.files import iter_html_paths
from docpress.utils.text import collapse_whitespace

LOGGER = logging.getLogger(__name__)


def iter_document_paths(src_dir: Path) -> Iterator[Path]:
    """Yield rendered documents under ``src_dir`` in a stable order."""
    yield from iter_html_paths([Path(src_dir)])


def _meta(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find("meta", attrs={"name": name})
    if tag is None:
        return ""
    return collapse_whitespace(str(tag.get("content") or ""))


def load_document(path: Path, src_dir: Path) -> RenderedDocument:
    """Read one rendered file.

    ``<title>`` (or ``<meta name="title">``) gives the title,
    ``<meta name="description">`` the description and ``<meta name="route">``
    overrides the route computed from the file location. ``<meta name="source">``
    names the authored source file used for edit links. The content is taken
    from ``<main>``, falling back to ``<body>`` and then the whole file.
    """
    path = Path(path)
    html = path.read_text(encoding="utf-8")
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, "title")
    if not title and soup.title is not None:
        title = collapse_whitespace(soup.title.get_text())

    container = soup.find("main") or soup.body
    fragment = container.decode_contents() if container is not None else html
    if container is None and soup.title is not None:
        # Whole-file fallback: keep the <title> out of the indexed text.
        soup.title.decompose()
        fragment = str(soup)

    # The renderer may record the authored source (e.g. "guide/intro.md").
    relative = _meta(soup, "source") or path.relative_to(src_dir).as_posix()
    return RenderedDocument(
        rendered_fragment=fragment.strip(),
        route=_meta(soup, "route"),
        title=title,
        description=_meta(soup, "description"),
        relative_path=relative,
        last_updated=path.stat().st_mtime,
        source=path,
    )


def load_documents(src_dir: Path) -> List[RenderedDocument]:
    src_dir = Path(src_dir)
    documents = []
    for path in iter_document_paths(src_dir):
        LOGGER.debug("Loading %s", path)
        documents.append(load_document(path, src_dir))
    if not documents:
        LOGGER.warning("No rendered documents found under %s", src_dir)
    return documents
