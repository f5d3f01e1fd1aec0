"""Application configuration defaults and site config loading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from docpress.errors import ConfigError
from docpress.models import PageRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "docpress.yml"
DEFAULT_PREVIEW_LENGTH = 60


@dataclass(slots=True)
class SearchConfig:
    preview_length: int = DEFAULT_PREVIEW_LENGTH
    optimize: bool = False
    preset: str = "default"
    contexts: List[str] = field(default_factory=list)


@dataclass(slots=True)
class AppConfig:
    title: str = "docpress"
    description: str = ""
    base: str = "/"
    src_dir: Path = Path("src")
    out_dir: Path = Path("dist")
    clean_urls: bool = True
    last_updated: bool = False
    edit_link_pattern: str | None = None
    nav: List[Any] = field(default_factory=list)
    sidebar: List[Any] = field(default_factory=list)
    social_links: List[Dict[str, str]] = field(default_factory=list)
    search: SearchConfig = field(default_factory=SearchConfig)
    hash_length: int = 8
    workers: int | None = None
    db_path: Path | None = None

    def __post_init__(self) -> None:
        if not self.base.startswith("/"):
            self.base = "/" + self.base
        if not self.base.endswith("/"):
            self.base += "/"

    def resolve_db_path(self, out_dir: Path | None = None) -> Path:
        """Registry database lives inside the output directory unless configured."""
        if self.db_path is None:
            return Path(out_dir or self.out_dir) / ".docpress" / "registry.db"
        return Path(self.db_path)

    def edit_link(self, record: PageRecord) -> str | None:
        if not self.edit_link_pattern or not record.relative_path:
            return None
        return self.edit_link_pattern.replace(":path", record.relative_path)


_TOP_LEVEL_KEYS = {
    "title", "description", "base", "srcDir", "outDir", "cleanUrls", "lastUpdated",
    "editLink", "themeConfig", "search", "hashLength", "workers", "db",
    "nav", "sidebar", "socialLinks",
}


def _resolve(base_dir: Path, value: Any) -> Path:
    path = Path(str(value))
    return path if path.is_absolute() else base_dir / path


def _search_config(data: Any) -> SearchConfig:
    if data is None:
        return SearchConfig()
    if not isinstance(data, Mapping):
        raise ConfigError("'search' must be a mapping")
    contexts = data.get("contexts") or []
    if not isinstance(contexts, list) or not all(isinstance(c, str) for c in contexts):
        raise ConfigError("'search.contexts' must be a list of section names")
    if "main" in contexts:
        raise ConfigError("'main' is reserved for the whole-site search index")
    return SearchConfig(
        preview_length=data.get("previewLength", DEFAULT_PREVIEW_LENGTH),
        optimize=bool(data.get("optimize", False)),
        preset=data.get("preset", "default"),
        contexts=contexts,
    )


def config_from_mapping(data: Mapping[str, Any], base_dir: Path | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from a parsed site config mapping."""
    base_dir = base_dir or Path.cwd()
    for key in sorted(set(data) - _TOP_LEVEL_KEYS):
        LOGGER.debug("Ignoring unknown config key %r", key)

    theme = data.get("themeConfig") or {}
    if not isinstance(theme, Mapping):
        raise ConfigError("'themeConfig' must be a mapping")
    edit_link = data.get("editLink") or theme.get("editLink") or {}
    if not isinstance(edit_link, Mapping):
        raise ConfigError("'editLink' must be a mapping with a 'pattern' key")

    defaults = AppConfig()
    config = AppConfig(
        title=str(data.get("title", defaults.title)),
        description=str(data.get("description", defaults.description)),
        base=str(data.get("base", defaults.base)),
        src_dir=_resolve(base_dir, data.get("srcDir", defaults.src_dir)),
        out_dir=_resolve(base_dir, data.get("outDir", defaults.out_dir)),
        clean_urls=bool(data.get("cleanUrls", defaults.clean_urls)),
        last_updated=bool(data.get("lastUpdated", defaults.last_updated)),
        edit_link_pattern=edit_link.get("pattern"),
        nav=list(theme.get("nav", data.get("nav")) or []),
        sidebar=list(theme.get("sidebar", data.get("sidebar")) or []),
        social_links=list(theme.get("socialLinks", data.get("socialLinks")) or []),
        search=_search_config(data.get("search", theme.get("search"))),
        hash_length=int(data.get("hashLength", defaults.hash_length)),
        workers=data.get("workers"),
        db_path=_resolve(base_dir, data["db"]) if data.get("db") else None,
    )
    if not 4 <= config.hash_length <= 64:
        raise ConfigError(f"'hashLength' must be between 4 and 64, got {config.hash_length}")
    return config


def load_config(path: Path) -> AppConfig:
    """Read a YAML site config file."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config {path} must contain a mapping at the top level")
    return config_from_mapping(data, base_dir=path.parent.resolve())
