from __future__ import annotations

"""Path sanitization and safe filesystem joins.

Sourcemap `sources` entries are virtual paths chosen by whatever produced the
map (e.g. `webpack:///./src/App.js`), and the map itself is fetched from
arbitrary servers. They may carry URL schemes, absolute or Windows-style
paths, `..` segments and characters no filesystem accepts.

This module provides:
- `sanitize_path()`: a pure, segment-wise cleaner that never yields an
  absolute path or a parent-traversal segment.
- `output_path_for()`: joins a sanitized path onto an output directory,
  substituting an index-based fallback name for empty or oversized paths.
"""

import logging
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from .config import DEFAULT_SANITIZER_CONFIG, SanitizerConfig
from .errors import UnsafePathError

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[/\\]")


def _strip_known_prefixes(path: str, prefixes: tuple[str, ...]) -> str:
    for prefix in prefixes:
        if path.startswith(prefix):
            return path[len(prefix) :]
    return path


def sanitize_segment(segment: str, *, config: SanitizerConfig = DEFAULT_SANITIZER_CONFIG) -> str:
    """Clean a single path segment. Returns "" if nothing usable is left."""

    try:
        segment.encode("utf-8")
    except UnicodeEncodeError:
        return ""

    clean = config.illegal_chars_re.sub("", segment)
    clean = clean.replace(" ", "_")
    clean = clean.rstrip(".")

    # "..foo" -> ".foo": keeps dot-files, defeats traversal.
    while len(clean) > 1 and clean.startswith(".."):
        clean = clean[1:]

    return clean


def sanitize_path(virtual_path: str, *, config: SanitizerConfig = DEFAULT_SANITIZER_CONFIG) -> tuple[str, ...]:
    """Turn an untrusted virtual source path into safe relative segments."""

    path = _strip_known_prefixes(virtual_path, config.scheme_prefixes)

    while path.startswith("./"):
        path = path[2:]

    parts: list[str] = []
    for part in _SEPARATORS.split(path):
        clean = sanitize_segment(part, config=config)
        if clean:
            parts.append(clean)

    return tuple(parts)


def sanitize_relative_path(virtual_path: str, *, config: SanitizerConfig = DEFAULT_SANITIZER_CONFIG) -> str:
    parts = sanitize_path(virtual_path, config=config)
    return str(PurePosixPath(*parts)) if parts else ""


def safe_join(base: Path, relative_path: str) -> Path:
    """Join a sanitized relative path to a base directory without allowing traversal."""

    joined = base.joinpath(*PurePosixPath(relative_path).parts)

    base_resolved = base.resolve(strict=False)
    joined_resolved = joined.resolve(strict=False)

    if not joined_resolved.is_relative_to(base_resolved):
        raise UnsafePathError(f"Path escapes output directory: {relative_path!r}")

    return joined


def fallback_name(index: int, *, config: SanitizerConfig = DEFAULT_SANITIZER_CONFIG) -> str:
    return config.fallback_template.format(index=index)


def output_path_for(
    output_dir: Path,
    source: str,
    index: int,
    *,
    config: SanitizerConfig = DEFAULT_SANITIZER_CONFIG,
) -> Path:
    """Compute where `sources[index]` is written under `output_dir`.

    Empty or oversized sanitized paths, and paths that would resolve outside
    `output_dir` (e.g. through an existing symlink), are replaced by
    `source_<index>.js`. Raises UnsafePathError only if the fallback itself
    can't be placed safely.
    """

    rel = sanitize_relative_path(source, config=config)
    if not rel or len(rel) > config.max_length:
        logger.debug("Using fallback name for source %d: %r", index, source[:80])
        return safe_join(output_dir, fallback_name(index, config=config))

    try:
        return safe_join(output_dir, rel)
    except UnsafePathError:
        logger.debug("Path escapes output, using fallback for source %d: %r", index, source[:80])
        return safe_join(output_dir, fallback_name(index, config=config))


def filename_from_url(url: str, default: str = "index.js") -> str:
    """Return a filesystem-safe file name for the last path component of a URL."""

    name = PurePosixPath(urlparse(url).path).name
    name = sanitize_segment(name)
    return name or default


def domain_dirname(host: str) -> str:
    """Directory name for a target host, with any port removed."""

    if host.count(":") == 1:
        host = host.split(":", 1)[0]
    return f"{sanitize_segment(host) or 'unknown'}-unpacked"
