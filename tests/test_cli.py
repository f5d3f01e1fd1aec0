"""Tests for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from docpress.cli import _render_preview, _setup_logging, app


runner = CliRunner()

SITE_YAML = """\
title: Frontend Bible
srcDir: src
outDir: dist
themeConfig:
  nav:
    - text: Tools
      link: /tools
  sidebar:
    - text: Components
      link: /components/
"""


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A config file next to a small rendered source tree."""
    src = tmp_path / "src"
    (src / "components").mkdir(parents=True)
    (src / "tools.html").write_text(
        "<title>Tools</title><main><h1>Tools</h1><p>Pick a bundler.</p></main>", encoding="utf-8"
    )
    (src / "components" / "index.html").write_text(
        "<title>Components</title><main><h1>Components</h1><p>Components take props.</p></main>",
        encoding="utf-8",
    )
    config = tmp_path / "docpress.yml"
    config.write_text(SITE_YAML, encoding="utf-8")
    return config


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("docpress.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode sets INFO level."""
        with patch("docpress.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestRenderPreview:
    """Tests for _render_preview helper."""

    def test_mark_becomes_highlight(self) -> None:
        """The mark tag turns into rich markup."""
        assert _render_preview("take <mark>props</mark>") == "take [bold yellow]props[/bold yellow]"

    def test_unescapes_html_and_escapes_markup(self) -> None:
        """Entities are decoded and brackets cannot inject rich markup."""
        rendered = _render_preview("&lt;slot&gt; [red] <mark>x</mark>")

        assert rendered.startswith("<slot> \\[red]")
        assert rendered.endswith("[bold yellow]x[/bold yellow]")


class TestBuildCommand:
    """Tests for the build command."""

    def test_build_writes_site(self, site: Path) -> None:
        """Build writes site.json and reports chunk counts."""
        result = runner.invoke(app, ["build", "--config", str(site)])

        assert result.exit_code == 0
        assert "Pages: 2, chunks written: 4, reused: 0, removed: 0" in result.stdout
        data = json.loads((site.parent / "dist" / "site.json").read_text(encoding="utf-8"))
        assert sorted(data["routes"]) == ["/components", "/tools"]

    def test_rebuild_reuses(self, site: Path) -> None:
        """A second build reuses every chunk."""
        runner.invoke(app, ["build", "-c", str(site)])
        result = runner.invoke(app, ["build", "-c", str(site)])

        assert result.exit_code == 0
        assert "chunks written: 0, reused: 4" in result.stdout

    def test_out_option_overrides_config(self, site: Path, tmp_path: Path) -> None:
        """--out replaces the configured output directory."""
        out = tmp_path / "elsewhere"

        result = runner.invoke(app, ["build", "-c", str(site), "--out", str(out)])

        assert result.exit_code == 0
        assert (out / "site.json").is_file()
        assert not (site.parent / "dist").exists()

    def test_missing_config_uses_defaults(self, site: Path, tmp_path: Path) -> None:
        """Without a config file the defaults apply and orphans are reported."""
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            ["build", "-c", str(tmp_path / "absent.yml"), "--src", str(site.parent / "src"), "--out", str(out)],
        )

        assert result.exit_code == 0
        assert "2 pages are not linked" in result.stdout
        assert (out / "site.json").is_file()

    def test_broken_link_exits_with_error(self, site: Path) -> None:
        """Fatal build errors exit with code 1."""
        site.write_text(SITE_YAML.replace("/tools", "/tooling"), encoding="utf-8")

        result = runner.invoke(app, ["build", "-c", str(site)])

        assert result.exit_code == 1
        assert "Build failed" in result.stdout
        assert not (site.parent / "dist").exists()

    def test_invalid_config_exits_with_error(self, tmp_path: Path) -> None:
        """Unreadable config files are reported, not raised."""
        config = tmp_path / "docpress.yml"
        config.write_text("- just\n- a list\n", encoding="utf-8")

        result = runner.invoke(app, ["build", "-c", str(config)])

        assert result.exit_code == 1
        assert "Build failed" in result.stdout


class TestCheckCommand:
    """Tests for the check command."""

    def test_check_ok(self, site: Path) -> None:
        """Check compiles and resolves without writing output."""
        result = runner.invoke(app, ["check", "-c", str(site)])

        assert result.exit_code == 0
        assert "2 pages" in result.stdout
        assert not (site.parent / "dist").exists()

    def test_check_broken(self, site: Path) -> None:
        """Check fails on broken navigation."""
        site.write_text(SITE_YAML.replace("/components/", "/components/emits"), encoding="utf-8")

        result = runner.invoke(app, ["check", "-c", str(site)])

        assert result.exit_code == 1


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_results(self, site: Path) -> None:
        """Results are shown in a table."""
        runner.invoke(app, ["build", "-c", str(site)])

        result = runner.invoke(app, ["search", "props", "--out", str(site.parent / "dist")])

        assert result.exit_code == 0
        assert "/components" in result.stdout
        assert "/tools" not in result.stdout

    def test_search_no_matches(self, site: Path) -> None:
        """Unmatched queries say so."""
        runner.invoke(app, ["build", "-c", str(site)])

        result = runner.invoke(app, ["search", "zzzz", "--out", str(site.parent / "dist")])

        assert result.exit_code == 0
        assert "No matches found" in result.stdout

    def test_search_falls_back_to_stable_index(self, site: Path) -> None:
        """Without site.json the fixed-name index is used."""
        runner.invoke(app, ["build", "-c", str(site)])
        (site.parent / "dist" / "site.json").unlink()

        result = runner.invoke(app, ["search", "props", "--out", str(site.parent / "dist")])

        assert result.exit_code == 0
        assert "/components" in result.stdout

    def test_search_unknown_index_name(self, site: Path) -> None:
        """Unknown index names are a usage error."""
        runner.invoke(app, ["build", "-c", str(site)])

        result = runner.invoke(
            app, ["search", "props", "--out", str(site.parent / "dist"), "--name", "guide"]
        )

        assert result.exit_code != 0

    def test_search_without_site(self, tmp_path: Path) -> None:
        """Searching an unbuilt directory is a usage error."""
        result = runner.invoke(app, ["search", "props", "--out", str(tmp_path)])

        assert result.exit_code != 0

    def test_search_damaged_site_data(self, tmp_path: Path) -> None:
        """Unparseable site.json is a usage error, not a traceback."""
        (tmp_path / "site.json").write_text("{bad", encoding="utf-8")

        result = runner.invoke(app, ["search", "props", "--out", str(tmp_path)])

        assert result.exit_code == 2

    def test_search_corrupt_index(self, tmp_path: Path) -> None:
        """A damaged index file exits with code 1."""
        index = tmp_path / "search.json"
        index.write_bytes(b"{not json")

        result = runner.invoke(app, ["search", "props", "--index", str(index)])

        assert result.exit_code == 1
        assert "Cannot load index" in result.stdout


class TestPreviewCommand:
    """Tests for the preview command."""

    def test_preview_runs_server(self, site: Path) -> None:
        """Preview hands the app to uvicorn."""
        pytest.importorskip("uvicorn")
        runner.invoke(app, ["build", "-c", str(site)])

        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(
                app, ["preview", "--out", str(site.parent / "dist"), "--port", "5000"]
            )

        assert result.exit_code == 0
        mock_run.assert_called_once()
        assert mock_run.call_args[1]["port"] == 5000
