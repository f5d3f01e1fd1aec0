"""Site build pipeline: records, chunks, navigation and search index."""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from docpress.config import AppConfig
from docpress.ingestion.html_loader import load_documents
from docpress.models import BuildStats, NavNode, PageRecord, RenderedDocument
from docpress.nav import NavigationResolver, orphan_routes, parse_manifest
from docpress.records import RecordBuilder
from docpress.search.index import SearchIndex, build_index, write_index
from docpress.search.tokenizer import IndexOptions
from docpress.store.chunks import ASSETS_DIR, ChunkStore
from docpress.store.registry import BuildRegistry
from docpress.utils.files import atomic_write_bytes

LOGGER = logging.getLogger(__name__)

SITE_DATA = "site.json"
# Latest main index under a fixed name, for tools that do not read site.json.
SEARCH_DATA = "search.json"
THEME_REFERRER = "theme"
SEARCH_REFERRER = "search"


def canonical_json(data: Any) -> bytes:
    """Serialize with sorted keys and compact separators so equal data hashes equally."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def default_workers() -> int:
    return max(os.cpu_count() or 1, 1)


@dataclass(slots=True)
class BuildResult:
    records: List[PageRecord]
    store: ChunkStore
    nav: List[NavNode]
    sidebar: List[NavNode]
    indices: Dict[str, SearchIndex]
    pages: Dict[str, str]
    theme_digest: str
    index_digests: Dict[str, str]
    stats: BuildStats = field(default_factory=BuildStats)

    def site_data(self) -> Dict[str, Any]:
        store = self.store
        return {
            "routes": {
                route: {
                    "page": store.asset_path(digest),
                    "deps": [store.asset_path(self.theme_digest)],
                }
                for route, digest in sorted(self.pages.items())
            },
            "theme": store.asset_path(self.theme_digest),
            "search": {
                name: store.asset_path(digest) for name, digest in sorted(self.index_digests.items())
            },
        }


class SiteBuilder:
    """Coordinates one build invocation.

    Every build gets its own :class:`ChunkStore`; nothing is shared between
    invocations except the files on disk and the registry database.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def page_payload(self, record: PageRecord) -> bytes:
        data: Dict[str, Any] = {
            "route": record.route,
            "title": record.title,
            "description": record.description,
            "headers": [heading.to_dict() for heading in record.headings],
            "relativePath": record.relative_path,
            "html": record.rendered_fragment,
        }
        if self.config.last_updated and record.last_updated is not None:
            data["lastUpdated"] = int(record.last_updated * 1000)
        edit_link = self.config.edit_link(record)
        if edit_link:
            data["editLink"] = edit_link
        return canonical_json(data)

    def theme_payload(self, nav: Sequence[NavNode], sidebar: Sequence[NavNode]) -> bytes:
        config = self.config
        return canonical_json(
            {
                "title": config.title,
                "description": config.description,
                "base": config.base,
                "cleanUrls": config.clean_urls,
                "nav": [node.to_dict() for node in nav],
                "sidebar": [node.to_dict() for node in sidebar],
                "socialLinks": config.social_links,
            }
        )

    def compile_records(self, documents: Sequence[RenderedDocument]) -> List[PageRecord]:
        """Build page records on a worker pool; all results are collected first."""
        builder = RecordBuilder(clean_urls=self.config.clean_urls)
        workers = min(self.config.workers or default_workers(), max(len(documents), 1))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docpress") as pool:
            records = list(pool.map(builder.build, documents))
        return sorted(records, key=lambda record: record.route)

    def index_options(self, context: Optional[str] = None) -> IndexOptions:
        search = self.config.search
        return IndexOptions(
            preview_length=search.preview_length,
            optimize=search.optimize,
            context=context,
            preset=search.preset,
        ).validate()

    def build(self, documents: Optional[Sequence[RenderedDocument]] = None) -> BuildResult:
        """Run the build in memory. Raises on the first fatal error."""
        config = self.config
        # Reject bad search options before compiling anything.
        options = self.index_options()
        context_options = {name: self.index_options(name) for name in config.search.contexts}

        if documents is None:
            documents = load_documents(config.src_dir)
        records = self.compile_records(documents)
        LOGGER.info("Compiled %d pages", len(records))

        store = ChunkStore(hash_length=config.hash_length)
        pages = {
            record.route: store.store(self.page_payload(record), name=record.route, referrer=record.route)
            for record in records
        }

        resolver = NavigationResolver(records, base=config.base)
        nav = resolver.resolve(parse_manifest(config.nav, root="nav"), root="nav")
        sidebar = resolver.resolve(parse_manifest(config.sidebar, root="sidebar"), root="sidebar")

        theme_digest = store.store(self.theme_payload(nav, sidebar), name="theme", referrer=THEME_REFERRER)
        for route in pages:
            store.retain(theme_digest, route)

        indices = {"main": build_index(records, options)}
        for name, context in context_options.items():
            indices[name] = build_index(records, context)
        index_digests = {
            name: store.store(index.to_bytes(), name=f"search.{name}", referrer=SEARCH_REFERRER)
            for name, index in indices.items()
        }

        orphans = orphan_routes([nav, sidebar], records)
        for route in orphans:
            LOGGER.warning("Page %s is not linked from the navigation", route)

        stats = BuildStats(pages=len(records), index_digest=index_digests["main"], orphan_routes=orphans)
        return BuildResult(
            records=records,
            store=store,
            nav=nav,
            sidebar=sidebar,
            indices=indices,
            pages=pages,
            theme_digest=theme_digest,
            index_digests=index_digests,
            stats=stats,
        )

    def write(self, result: BuildResult, out_dir: Optional[Path] = None) -> BuildStats:
        """Write chunks and ``site.json`` and drop assets of the previous build."""
        out_dir = Path(out_dir or self.config.out_dir)
        store = result.store
        store.collect()
        written, reused = store.write(out_dir)

        site = {
            "title": self.config.title,
            "description": self.config.description,
            "base": self.config.base,
            **result.site_data(),
        }
        atomic_write_bytes(out_dir / SITE_DATA, canonical_json(site))
        write_index(out_dir / SEARCH_DATA, result.indices["main"])

        db_path = self.config.resolve_db_path(out_dir)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        with BuildRegistry(db_path) as registry:
            _, expired = registry.record_build(
                [(chunk, store.file_name(chunk.digest)) for chunk in store.chunks()],
                index_digest=result.index_digests["main"],
            )
            LOGGER.debug(
                "Registry holds %(chunk_count)d chunks (%(total_size_bytes)d bytes) from %(build_count)d builds",
                registry.get_stats(),
            )
        removed = 0
        for file_name in expired:
            stale = out_dir / ASSETS_DIR / file_name
            if stale.exists():
                stale.unlink()
                removed += 1
                LOGGER.debug("Removed stale asset %s", file_name)

        stats = result.stats
        stats.chunks_written = written
        stats.chunks_reused = reused
        stats.chunks_removed = removed
        LOGGER.info(
            "Wrote %d chunks (%d reused, %d removed) to %s", written, reused, removed, out_dir
        )
        return stats

    def run(self, documents: Optional[Sequence[RenderedDocument]] = None) -> BuildStats:
        return self.write(self.build(documents))
