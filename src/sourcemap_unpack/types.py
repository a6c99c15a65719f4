from __future__ import annotations

"""Data model for sourcemap documents and restoration results.

`SourceMap` mirrors the JSON layout of a revision 3 sourcemap, including
index maps (`sections`) and the vendor fields that hint at the toolchain
which produced it.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Protocol


class Fetcher(Protocol):
    def get_bytes(self, url: str) -> bytes: ...


class Formatter(Protocol):
    def __call__(self, content: str, filename: str) -> str: ...


@dataclass(frozen=True)
class Metadata:
    file: str
    version: int
    source_count: int
    has_sources_content: bool
    names_count: int
    has_mappings: bool
    source_root: str
    section_count: int
    toolchain_hints: tuple[str, ...]


@dataclass(frozen=True)
class SourceMap:
    sources: tuple[str, ...]
    sources_content: tuple[str, ...] = ()
    version: int = 3
    file: str = ""
    source_root: str = ""
    names: tuple[str, ...] = ()
    mappings: str = ""
    sections: tuple["SourceMap", ...] = ()
    # (line, column) of a section map inside its parent index map.
    offset: tuple[int, int] = (0, 0)

    # Vendor fields; only their presence is meaningful.
    x_facebook_sources: Any = None
    x_google_ignore_list: Any = None

    def iter_maps(self) -> Iterator["SourceMap"]:
        """Yield this map followed by every nested section map, depth first."""

        yield self
        for section in self.sections:
            yield from section.iter_maps()

    def metadata(self) -> Metadata:
        hints: list[str] = []
        if self.x_facebook_sources is not None:
            hints.append("Facebook (Metro bundler)")
        if self.x_google_ignore_list is not None:
            hints.append("Chrome DevTools")
        if self.source_root == "webpack" or self.source_root.startswith("webpack:"):
            hints.append("Webpack")
        elif any(src.startswith("webpack://") for src in self.sources):
            hints.append("Webpack")

        return Metadata(
            file=self.file,
            version=self.version,
            source_count=len(self.sources),
            has_sources_content=len(self.sources_content) > 0,
            names_count=len(self.names),
            has_mappings=len(self.mappings) > 0,
            source_root=self.source_root,
            section_count=len(self.sections),
            toolchain_hints=tuple(hints),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"version": self.version}
        if self.file:
            data["file"] = self.file
        if self.source_root:
            data["sourceRoot"] = self.source_root
        if self.sections:
            data["sections"] = [{"offset": {"line": s.offset[0], "column": s.offset[1]}, "map": s.to_dict()} for s in self.sections]
        data["sources"] = list(self.sources)
        data["sourcesContent"] = list(self.sources_content)
        data["names"] = list(self.names)
        data["mappings"] = self.mappings
        if self.x_facebook_sources is not None:
            data["x_facebook_sources"] = self.x_facebook_sources
        if self.x_google_ignore_list is not None:
            data["x_google_ignoreList"] = self.x_google_ignore_list
        return data


@dataclass
class RestoreResult:
    restored: int = 0
    skipped: int = 0
    assets_fetched: int = 0
    errors: list[Exception] = field(default_factory=list)


@dataclass
class ExtractResult:
    extracted: int = 0
    outputs: list[Path] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


@dataclass
class DownloadResult:
    downloaded: int = 0
    errors: list[Exception] = field(default_factory=list)
