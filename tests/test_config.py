"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from docpress.config import AppConfig, SearchConfig, config_from_mapping, load_config
from docpress.errors import ConfigError
from docpress.models import PageRecord

SITE_YAML = """
title: The Frontend Bible
description: Best practices for building Vue.js applications.
base: /frontend-bible/
srcDir: src
cleanUrls: true
lastUpdated: true
themeConfig:
  nav:
    - text: Home
      link: /
  editLink:
    pattern: https://github.com/example/bible/blob/main/src/:path
  sidebar:
    - text: Components
      link: /components
      items:
        - text: Props
          link: /components/props
  socialLinks:
    - icon: github
      link: https://github.com/example/bible
search:
  previewLength: 80
  preset: match
  optimize: true
  contexts: [components]
"""


def _record(relative_path: str = "") -> PageRecord:
    return PageRecord(
        route="/a",
        title="A",
        description="",
        headings=(),
        body_text="",
        rendered_fragment="",
        relative_path=relative_path,
    )


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_config(self) -> None:
        """Should create config with default values."""
        config = AppConfig()

        assert config.base == "/"
        assert config.src_dir == Path("src")
        assert config.out_dir == Path("dist")
        assert config.clean_urls is True
        assert config.search == SearchConfig()
        assert config.search.preview_length == 60
        assert config.search.preset == "default"
        assert config.hash_length == 8

    def test_base_is_normalized(self) -> None:
        """Base always starts and ends with a slash."""
        assert AppConfig(base="docs").base == "/docs/"

    def test_resolve_db_path_default(self) -> None:
        """Registry lives inside the output directory by default."""
        config = AppConfig(out_dir=Path("/site/dist"))

        assert config.resolve_db_path() == Path("/site/dist/.docpress/registry.db")
        assert config.resolve_db_path(Path("/other")) == Path("/other/.docpress/registry.db")

    def test_resolve_db_path_custom(self) -> None:
        """An explicit db path wins."""
        config = AppConfig(db_path=Path("/var/registry.db"))

        assert config.resolve_db_path(Path("/other")) == Path("/var/registry.db")

    def test_edit_link(self) -> None:
        """Pattern placeholder is replaced by the relative path."""
        config = AppConfig(edit_link_pattern="https://example.com/edit/:path")

        assert config.edit_link(_record("guide/intro.md")) == "https://example.com/edit/guide/intro.md"
        assert config.edit_link(_record("")) is None
        assert AppConfig().edit_link(_record("guide/intro.md")) is None


class TestLoadConfig:
    """Test YAML config loading."""

    def test_load_site_config(self, tmp_path: Path) -> None:
        """Should map the site config keys onto AppConfig."""
        path = tmp_path / "docpress.yml"
        path.write_text(SITE_YAML, encoding="utf-8")

        config = load_config(path)

        assert config.title == "The Frontend Bible"
        assert config.base == "/frontend-bible/"
        assert config.src_dir == tmp_path.resolve() / "src"
        assert config.out_dir == tmp_path.resolve() / "dist"
        assert config.last_updated is True
        assert config.edit_link_pattern.endswith("/src/:path")
        assert config.nav == [{"text": "Home", "link": "/"}]
        assert config.sidebar[0]["items"][0]["link"] == "/components/props"
        assert config.social_links[0]["icon"] == "github"
        assert config.search == SearchConfig(
            preview_length=80, optimize=True, preset="match", contexts=["components"]
        )

    def test_missing_file(self, tmp_path: Path) -> None:
        """Unreadable files raise ConfigError."""
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Malformed YAML raises ConfigError."""
        path = tmp_path / "bad.yml"
        path.write_text("title: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        """A YAML list is not a config."""
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        """An empty file yields the defaults."""
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")

        config = load_config(path)

        assert config.title == "docpress"
        assert config.src_dir == tmp_path.resolve() / "src"


class TestConfigFromMapping:
    """Test config_from_mapping validation."""

    def test_top_level_nav(self) -> None:
        """nav and sidebar may also sit at the top level."""
        config = config_from_mapping({"nav": [{"label": "Home", "link": "/"}]}, base_dir=Path("/x"))

        assert config.nav == [{"label": "Home", "link": "/"}]

    def test_absolute_paths_kept(self) -> None:
        """Absolute paths are not re-rooted."""
        config = config_from_mapping({"outDir": "/srv/site"}, base_dir=Path("/x"))

        assert config.out_dir == Path("/srv/site")

    def test_bad_contexts(self) -> None:
        """Search contexts must be a list of names."""
        with pytest.raises(ConfigError):
            config_from_mapping({"search": {"contexts": "components"}})

    def test_reserved_context(self) -> None:
        """'main' names the whole-site index."""
        with pytest.raises(ConfigError):
            config_from_mapping({"search": {"contexts": ["main"]}})

    def test_hash_length_bounds(self) -> None:
        """hashLength outside 4..64 is rejected."""
        with pytest.raises(ConfigError):
            config_from_mapping({"hashLength": 2})
