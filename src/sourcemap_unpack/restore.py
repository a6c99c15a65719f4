from __future__ import annotations

"""Source restoration.

Walks a sourcemap's `sources` / `sourcesContent` pairs and writes each
captured source under an output directory. The two arrays are paired by
index and only `min(len(sources), len(sourcesContent))` entries are
processed: maps in the wild are often missing trailing content.

A single entry failing (bad path, write error, failed asset fetch) never
stops the run; it is counted or collected in the returned `RestoreResult`.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from .assets import fetch_stub_asset, is_loader_stub
from .config import DEFAULT_ASSET_CONFIG, DEFAULT_SANITIZER_CONFIG, AssetConfig, SanitizerConfig
from .errors import RestoreWriteError, SourceMapUnpackError, UnsafePathError
from .format import format_source
from .paths import output_path_for
from .types import Fetcher, Formatter, RestoreResult, SourceMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestoreOptions:
    # Page or script URL whose origin loader-stub asset paths are resolved against.
    base_url: str = ""
    # Without a fetcher (or base_url) loader stubs are skipped.
    fetcher: Fetcher | None = None
    formatter: Formatter = format_source
    sanitizer: SanitizerConfig = DEFAULT_SANITIZER_CONFIG
    assets: AssetConfig = DEFAULT_ASSET_CONFIG


def _format(formatter: Formatter, content: str, filename: str) -> str:
    try:
        return formatter(content, filename)
    except Exception as e:
        logger.debug("Formatter failed for %s, writing original: %s", filename, e)
        return content


def _write_text(path: Path, content: str) -> None:
    # Lone surrogates from JSON escapes have no UTF-8 form; they become "?".
    data = content.encode("utf-8", errors="replace")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _restore_map(sourcemap: SourceMap, output_dir: Path, options: RestoreOptions, result: RestoreResult) -> None:
    count = min(len(sourcemap.sources), len(sourcemap.sources_content))

    for index in range(count):
        source = sourcemap.sources[index]
        content = sourcemap.sources_content[index]

        if not content:
            result.skipped += 1
            continue

        try:
            out_path = output_path_for(output_dir, source, index, config=options.sanitizer)
        except UnsafePathError as e:
            logger.debug("SKIP: %s (%s)", source, e)
            result.skipped += 1
            continue

        if is_loader_stub(out_path, content, config=options.assets):
            # Never write the stub text in place of the asset.
            if options.fetcher is not None and options.base_url:
                try:
                    written = fetch_stub_asset(content, out_path, options.base_url, options.fetcher, config=options.assets)
                except (SourceMapUnpackError, OSError) as e:
                    logger.debug("Asset fetch failed for %s: %s", source, e)
                    result.errors.append(e)
                else:
                    logger.debug("  %s (fetched asset)", written.relative_to(output_dir))
                    result.assets_fetched += 1
                    result.restored += 1
                    continue

            logger.debug("SKIP: %s (loader stub)", source)
            result.skipped += 1
            continue

        try:
            _write_text(out_path, _format(options.formatter, content, out_path.name))
        except OSError as e:
            result.errors.append(RestoreWriteError(f"Failed to restore {source}: {e}"))
            continue

        result.restored += 1
        logger.debug("  %s", out_path.relative_to(output_dir))


def restore_sources(sourcemap: SourceMap, output_dir: Path, options: RestoreOptions | None = None) -> RestoreResult:
    """Write every captured source of `sourcemap` under `output_dir`.

    Nested section maps of an index map are restored into the same directory.
    Existing files at a computed path are overwritten.
    """

    options = options or RestoreOptions()
    result = RestoreResult()

    for sm in sourcemap.iter_maps():
        _restore_map(sm, output_dir, options, result)

    return result
