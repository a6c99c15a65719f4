from __future__ import annotations

"""Run orchestration.

Each target (a host) gets its own directory under the output root:

    <output_root>/<host>-unpacked/
        downloaded_site/    scripts and .map files as fetched
        restored_sources/   reconstructed source tree
        extracted_assets/   decoded inline base64 assets

Two modes are provided:
- `run_local()`: re-process `downloaded_site` folders already on disk.
- `run_single()`: download one or more script URLs, locate their sourcemaps
  (inline or external) and restore them. Sourcemap URLs are de-duplicated
  across the whole run.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable
from urllib.parse import urljoin, urlparse

from .assets import extract_from_directory, replace_stub_assets
from .errors import DecodeError, FetchError, SourceMapUnpackError
from .fetch import Client
from .format import format_source
from .paths import domain_dirname, filename_from_url
from .restore import RestoreOptions, restore_sources
from .sourcemap import extract_inline, find_mapping_url, has_inline, parse_file
from .types import Formatter, RestoreResult, SourceMap

logger = logging.getLogger(__name__)

DOWNLOADED_SITE = "downloaded_site"
RESTORED_SOURCES = "restored_sources"
EXTRACTED_ASSETS = "extracted_assets"
INLINE_MAP_SUFFIX = ".inline.map"


@dataclass
class RunConfig:
    output_root: Path = field(default_factory=lambda: Path("."))
    client: Client | None = None
    force: bool = False
    # Resolve webpack loader stubs by downloading the real asset.
    fetch_assets: bool = True
    formatter: Formatter = format_source
    workers: int = 1


@dataclass(frozen=True)
class DomainPaths:
    base: Path
    downloaded_site: Path
    restored_sources: Path
    extracted_assets: Path

    @classmethod
    def under(cls, base: Path) -> "DomainPaths":
        return cls(
            base=base,
            downloaded_site=base / DOWNLOADED_SITE,
            restored_sources=base / RESTORED_SOURCES,
            extracted_assets=base / EXTRACTED_ASSETS,
        )

    def exists(self) -> bool:
        return self.base.exists()

    def ensure_dirs(self) -> None:
        for path in (self.downloaded_site, self.restored_sources, self.extracted_assets):
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise SourceMapUnpackError(f"Failed to create directory {path}: {e}") from e


def domain_paths(output_root: Path, host: str) -> DomainPaths:
    return DomainPaths.under(output_root / domain_dirname(host))


@dataclass
class LocalResult:
    targets_processed: int = 0
    maps_processed: int = 0
    sources_restored: int = 0
    sources_skipped: int = 0
    assets_extracted: int = 0
    errors: list[Exception] = field(default_factory=list)

    def add(self, restored: RestoreResult) -> None:
        self.maps_processed += 1
        self.sources_restored += restored.restored
        self.sources_skipped += restored.skipped
        self.errors.extend(restored.errors)


@dataclass
class SingleResult:
    urls: list[str] = field(default_factory=list)
    maps_found: int = 0
    sources_restored: int = 0
    sources_skipped: int = 0
    assets_fetched: int = 0
    assets_extracted: int = 0
    errors: list[Exception] = field(default_factory=list)

    def add(self, restored: RestoreResult) -> None:
        self.sources_restored += restored.restored
        self.sources_skipped += restored.skipped
        self.assets_fetched += restored.assets_fetched
        self.errors.extend(restored.errors)


def save_inline_map(sourcemap: SourceMap, script_path: Path) -> Path:
    """Keep a copy of an inline sourcemap next to its script."""

    map_path = script_path.with_name(script_path.name + INLINE_MAP_SUFFIX)
    map_path.write_text(json.dumps(sourcemap.to_dict(), indent=2), encoding="utf-8")
    return map_path


# ---------------------------------------------------------------------------
# local
# ---------------------------------------------------------------------------


def _process_map_file(map_path: Path, paths: DomainPaths, options: RestoreOptions, result: LocalResult) -> None:
    logger.info("Processing: %s", map_path.name)
    try:
        sourcemap = parse_file(map_path)
    except DecodeError as e:
        result.errors.append(e)
        return

    restored = restore_sources(sourcemap, paths.restored_sources, options)
    result.add(restored)
    logger.info("Restored %d source(s) from %s", restored.restored, map_path.name)


def _process_script_file(script_path: Path, paths: DomainPaths, options: RestoreOptions, result: LocalResult) -> None:
    try:
        text = script_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        result.errors.append(SourceMapUnpackError(f"Failed to read {script_path.name}: {e}"))
        return

    if not has_inline(text):
        return

    try:
        sourcemap = extract_inline(text)
    except DecodeError as e:
        result.errors.append(DecodeError(f"Failed to extract inline sourcemap from {script_path.name}: {e}"))
        return
    if sourcemap is None:
        return

    try:
        map_path = save_inline_map(sourcemap, script_path)
        logger.info("Extracted inline sourcemap: %s", map_path.name)
    except OSError as e:
        result.errors.append(SourceMapUnpackError(f"Failed to save inline map for {script_path.name}: {e}"))

    result.add(restore_sources(sourcemap, paths.restored_sources, options))


def _process_local_target(config: RunConfig, base: Path, result: LocalResult) -> None:
    paths = DomainPaths.under(base)
    if not paths.downloaded_site.is_dir():
        logger.warning("Skipping %s: no %s folder", base.name, DOWNLOADED_SITE)
        return

    paths.ensure_dirs()
    options = RestoreOptions(formatter=config.formatter)

    try:
        entries = sorted(p for p in paths.downloaded_site.iterdir() if p.is_file())
    except OSError as e:
        raise SourceMapUnpackError(f"Failed to read {paths.downloaded_site}: {e}") from e

    for entry in entries:
        if entry.name.endswith(INLINE_MAP_SUFFIX):
            # Re-extracted from its script below.
            if entry.with_name(entry.name[: -len(INLINE_MAP_SUFFIX)]).exists():
                continue
            _process_map_file(entry, paths, options, result)
        elif entry.suffix == ".map":
            _process_map_file(entry, paths, options, result)
        elif entry.suffix in (".js", ".mjs", ".cjs"):
            _process_script_file(entry, paths, options, result)

    logger.info("Scanning for embedded assets in: %s", paths.restored_sources)
    extracted = extract_from_directory(paths.restored_sources, paths.extracted_assets, workers=config.workers)
    result.assets_extracted += extracted.extracted
    result.errors.extend(extracted.errors)


def run_local(config: RunConfig, target: Path | None = None) -> LocalResult:
    """Process local `.js` and `.map` files.

    With no target, every directory under the output root is treated as a
    target directory.
    """

    result = LocalResult()

    if target is not None:
        if not target.is_dir():
            raise SourceMapUnpackError(f"Target is not a directory: {target}")
        targets = [target]
    else:
        try:
            targets = sorted(p for p in config.output_root.iterdir() if p.is_dir())
        except OSError as e:
            raise SourceMapUnpackError(f"Failed to read output directory {config.output_root}: {e}") from e

    for base in targets:
        try:
            _process_local_target(config, base, result)
        except SourceMapUnpackError as e:
            result.errors.append(e)
        result.targets_processed += 1

    return result


# ---------------------------------------------------------------------------
# single
# ---------------------------------------------------------------------------


class _SingleRun:
    def __init__(self, config: RunConfig, client: Client) -> None:
        self.config = config
        self.client = client
        self.result = SingleResult()
        # Map URLs, plus "<script url>:inline" keys, already restored in this run.
        self.processed: set[str] = set()

    def options_for(self, script_url: str) -> RestoreOptions:
        if not self.config.fetch_assets:
            return RestoreOptions(formatter=self.config.formatter)
        return RestoreOptions(base_url=script_url, fetcher=self.client, formatter=self.config.formatter)

    def restore(self, sourcemap: SourceMap, paths: DomainPaths, script_url: str) -> None:
        self.result.maps_found += 1
        restored = restore_sources(sourcemap, paths.restored_sources, self.options_for(script_url))
        self.result.add(restored)

    def process_script(self, script_url: str, paths: DomainPaths) -> None:
        script_path = paths.downloaded_site / filename_from_url(script_url)
        try:
            self.client.download(script_url, script_path)
            text = script_path.read_text(encoding="utf-8", errors="replace")
        except (FetchError, OSError) as e:
            self.result.errors.append(e)
            return
        logger.info("Downloaded: %s", script_path.name)

        if has_inline(text):
            inline_key = f"{script_url}:inline"
            if inline_key in self.processed:
                return
            try:
                sourcemap = extract_inline(text)
            except DecodeError as e:
                self.result.errors.append(e)
                return
            if sourcemap is not None:
                self.processed.add(inline_key)
                try:
                    save_inline_map(sourcemap, script_path)
                except OSError as e:
                    self.result.errors.append(e)
                self.restore(sourcemap, paths, script_url)
                return

        map_ref = find_mapping_url(text)
        if not map_ref:
            logger.warning("No sourcemap found in: %s", script_path.name)
            return

        map_url = urljoin(script_url, map_ref)
        if map_url in self.processed:
            logger.debug("Already processed: %s", map_url)
            return
        self.processed.add(map_url)
        logger.info("Found sourcemap: %s", map_url)

        map_path = paths.downloaded_site / filename_from_url(map_url, default="index.js.map")
        try:
            self.client.download(map_url, map_path)
            sourcemap = parse_file(map_path)
        except (FetchError, DecodeError, OSError) as e:
            self.result.errors.append(e)
            return

        self.restore(sourcemap, paths, script_url)

    def recover_assets(self, paths: DomainPaths, base_url: str) -> None:
        extracted = extract_from_directory(paths.restored_sources, paths.extracted_assets, workers=self.config.workers)
        self.result.assets_extracted += extracted.extracted
        self.result.errors.extend(extracted.errors)

        if not self.config.fetch_assets:
            return
        replaced = replace_stub_assets(base_url, paths.restored_sources, self.client, workers=self.config.workers)
        self.result.assets_fetched += replaced.downloaded
        self.result.errors.extend(replaced.errors)


def run_single(config: RunConfig, script_urls: Iterable[str]) -> SingleResult:
    """Download scripts, find their sourcemaps and restore sources.

    Raises SourceMapUnpackError before doing any work if a URL has no
    http(s) scheme, or if a target directory exists and `force` isn't set.
    """

    urls = list(script_urls)
    targets: dict[str, DomainPaths] = {}
    for url in urls:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise SourceMapUnpackError(f"Invalid URL: must include http:// or https:// scheme: {url}")
        if parsed.netloc not in targets:
            paths = domain_paths(config.output_root, parsed.netloc)
            if paths.exists() and not config.force:
                raise SourceMapUnpackError(f"Output directory already exists: {paths.base} (use -f to overwrite)")
            targets[parsed.netloc] = paths

    client = config.client or Client()
    run = _SingleRun(config, client)
    run.result.urls = urls

    first_url: dict[str, str] = {}
    try:
        for url in urls:
            host = urlparse(url).netloc
            paths = targets[host]
            paths.ensure_dirs()
            first_url.setdefault(host, url)
            run.process_script(url, paths)

        for host, paths in targets.items():
            run.recover_assets(paths, first_url[host])
    finally:
        if config.client is None:
            client.close()

    return run.result
