"""Exceptions raised by the docpress build pipeline."""

from __future__ import annotations


class DocpressError(Exception):
    """Base class for all docpress errors."""


class ConfigError(DocpressError):
    """The site configuration file cannot be read or is malformed."""


class DuplicateRouteError(DocpressError):
    """Two documents claim the same route."""

    def __init__(self, route: str, first: str = "", second: str = "") -> None:
        self.route = route
        self.first = first
        self.second = second
        detail = f"Duplicate route {route!r}"
        if first or second:
            detail += f" (claimed by {first or '?'} and {second or '?'})"
        super().__init__(detail)


class ManifestError(DocpressError):
    """The navigation manifest is not a well-formed tree."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class BrokenLinkError(DocpressError):
    """A navigation link points at a route that was not built."""

    def __init__(self, path: str, link: str, reason: str = "no page with this route") -> None:
        self.path = path
        self.link = link
        super().__init__(f"Broken navigation link at {path}: {link!r} ({reason})")


class IndexBuildError(DocpressError):
    """Search index options are invalid."""


class CorruptIndexError(DocpressError):
    """A serialized search index failed its structural check."""
