from __future__ import annotations

"""Recovery of binary assets from restored sources.

Bundlers rarely ship images and fonts through `sourcesContent` as-is. A
restored `logo.png` is usually one of two things:

- An inline data URI module: `export default "data:image/png;base64,..."`.
  `extract_from_file()` decodes the payload into a real file.
- A loader stub: `export default __webpack_public_path__ + "static/media/logo.3f2a.png"`.
  The bytes only exist on the server, so `fetch_stub_asset()` downloads them
  from the site's origin and writes them in place of the stub.

Both strategies also come as directory walks. Files are independent of each
other; with `workers > 1` the per-file work runs on a thread pool while all
counters are updated from the calling thread only.
"""

import base64
import binascii
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePath, PurePosixPath
from typing import Callable, Iterator, TypeVar
from urllib.parse import urlparse

from .config import DEFAULT_ASSET_CONFIG, AssetConfig
from .errors import AssetExtractionError, StubResolutionError
from .types import DownloadResult, ExtractResult, Fetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Loader stubs are a single short statement; anything bigger is real content.
MAX_STUB_SIZE = 64 * 1024


def is_media_path(path: PurePath | str, *, config: AssetConfig = DEFAULT_ASSET_CONFIG) -> bool:
    return PurePosixPath(str(path).replace("\\", "/")).suffix.lower() in config.media_extensions


def looks_like_script(text: str, *, config: AssetConfig = DEFAULT_ASSET_CONFIG) -> bool:
    """Heuristic: does `text` start like JavaScript rather than asset data?"""

    trimmed = text.strip()
    if not trimmed:
        return False
    return trimmed.startswith(config.script_markers)


def is_loader_stub(path: PurePath | str, text: str, *, config: AssetConfig = DEFAULT_ASSET_CONFIG) -> bool:
    """A media-named file whose content is script glue, not the media itself.

    This is an approximation: a real asset whose first bytes happen to read
    like a script marker is misclassified.
    """

    return is_media_path(path, config=config) and looks_like_script(text, config=config)


def extension_from_mime(mime: str, *, config: AssetConfig = DEFAULT_ASSET_CONFIG) -> str:
    """Map a MIME type to a file extension (without the dot).

    Lookup order: static table, then the subtype before any `+suffix` (with a
    leading `x-` removed), then the generic binary extension.
    """

    mime = mime.strip().lower()
    ext = config.mime_to_ext.get(mime)
    if ext:
        return ext

    parts = mime.split("/")
    if len(parts) == 2 and parts[1]:
        subtype = parts[1].split("+", 1)[0]
        if subtype.startswith("x-"):
            subtype = subtype[2:]
        if subtype:
            return subtype

    return config.default_ext


def strip_all_extensions(filename: str, default: str = "asset") -> str:
    """`image.png.js` -> `image`."""

    name = filename
    while True:
        stem, ext = os.path.splitext(name)
        if not ext:
            break
        name = stem
    return name or default


def _iter_files(root: Path, errors: list[Exception]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root, onerror=errors.append):
        dirnames.sort()
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def _map_files(files: list[Path], fn: Callable[[Path], T], workers: int) -> Iterator[tuple[Path, T | Exception]]:
    """Apply `fn` to every file, yielding results in input order.

    Exceptions raised by `fn` are yielded as values so one file can't stop
    the walk.
    """

    def call(path: Path) -> T | Exception:
        try:
            return fn(path)
        except Exception as e:
            return e

    if workers <= 1:
        for path in files:
            yield path, call(path)
        return

    with ThreadPoolExecutor(max_workers=workers) as pool:
        yield from zip(files, pool.map(call, files))


def extract_from_file(
    path: Path,
    output_dir: Path,
    *,
    config: AssetConfig = DEFAULT_ASSET_CONFIG,
) -> Path | None:
    """Decode a file that is nothing but a data URI export.

    Returns the written asset path, or None if the file doesn't qualify.
    Raises AssetExtractionError for an undecodable payload and OSError on
    filesystem failures.
    """

    text = path.read_text(encoding="utf-8", errors="replace").strip()
    match = config.data_uri_export_re.match(text)
    if match is None:
        return None

    mime, payload = match.group(2), match.group(3)
    try:
        decoded = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AssetExtractionError(f"Failed to decode base64 in {path}: {e}") from e

    ext = extension_from_mime(mime, config=config)
    out_path = output_dir / f"{strip_all_extensions(path.name, config.default_basename)}.{ext}"

    output_dir.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(decoded)
    logger.debug("Extracted %s -> %s (%s, %d bytes)", path, out_path, mime, len(decoded))
    return out_path


def extract_from_directory(
    input_dir: Path,
    output_dir: Path,
    *,
    workers: int = 1,
    config: AssetConfig = DEFAULT_ASSET_CONFIG,
) -> ExtractResult:
    result = ExtractResult()
    files = list(_iter_files(input_dir, result.errors))

    for path, outcome in _map_files(files, lambda p: extract_from_file(p, output_dir, config=config), workers):
        if isinstance(outcome, Exception):
            result.errors.append(outcome)
        elif outcome is not None:
            result.extracted += 1
            result.outputs.append(outcome)

    return result


def find_stub_asset_path(text: str, *, config: AssetConfig = DEFAULT_ASSET_CONFIG) -> str:
    """Return the asset path a loader stub exports, or "" if there is none."""

    match = config.stub_export_re.search(text)
    if match is None:
        return ""
    return match.group(2)


def origin_of(base_url: str) -> str:
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        raise StubResolutionError(f"Invalid base URL: {base_url!r}")
    return f"{parsed.scheme}://{parsed.netloc}"


def resolve_asset_url(base_url: str, asset_path: str) -> str:
    """Resolve a stub's asset path against the origin of `base_url`.

    Asset paths are relative to the site root, never to the page or script
    that referenced them.
    """

    if asset_path.startswith(("http://", "https://")):
        return asset_path
    if asset_path.startswith("//"):
        return f"{urlparse(base_url).scheme or 'https'}:{asset_path}"
    return f"{origin_of(base_url)}/{asset_path.lstrip('/')}"


def corrected_asset_path(target: Path, real_ext: str, *, config: AssetConfig = DEFAULT_ASSET_CONFIG) -> Path:
    """Where the fetched asset for the stub at `target` is written.

    Only the last extension is replaced: `logo.png` -> `logo.svg`,
    `v1.2.png` -> `v1.2.svg`. A script suffix on a media name is dropped
    first, so `icon.svg.js` -> `icon.svg` (or `icon.png` for a PNG asset).
    """

    out_path = target
    if not is_media_path(target.name, config=config) and is_media_path(target.stem, config=config):
        out_path = target.with_suffix("")
    if real_ext and real_ext.lower() != out_path.suffix.lower():
        out_path = out_path.with_suffix(real_ext)
    return out_path


def fetch_stub_asset(
    text: str,
    target: Path,
    base_url: str,
    fetcher: Fetcher,
    *,
    config: AssetConfig = DEFAULT_ASSET_CONFIG,
) -> Path:
    """Replace a loader stub at `target` with the asset it points to.

    When the fetched asset's extension differs from the stub's, the asset is
    written under the corrected name and the stub file is removed. Returns
    the path written.
    """

    asset_path = find_stub_asset_path(text, config=config)
    if not asset_path:
        raise StubResolutionError(f"No asset reference in loader stub for {target.name}")

    url = resolve_asset_url(base_url, asset_path)
    data = fetcher.get_bytes(url)

    out_path = corrected_asset_path(target, PurePosixPath(urlparse(asset_path).path).suffix, config=config)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    if out_path != target:
        target.unlink(missing_ok=True)

    logger.debug("Fetched asset %s -> %s (%d bytes)", url, out_path, len(data))
    return out_path


def _is_stub_file(path: Path, text: str, config: AssetConfig) -> bool:
    match = config.stub_export_re.search(text)
    if match is None:
        return False
    if is_loader_stub(path, text, config=config):
        return True
    # Non-media file names only qualify when the whole file is the one
    # statement and it exports a media path (e.g. `logo.svg.js`).
    return (
        match.start() == 0
        and text[match.end() :].strip() in ("", ";")
        and is_media_path(urlparse(match.group(2)).path, config=config)
    )


def replace_stub_file(
    path: Path,
    base_url: str,
    fetcher: Fetcher,
    *,
    config: AssetConfig = DEFAULT_ASSET_CONFIG,
) -> Path | None:
    """Replace `path` in place if it is a loader stub. Returns the new path or None."""

    if path.stat().st_size > MAX_STUB_SIZE:
        return None

    text = path.read_text(encoding="utf-8", errors="replace").strip()
    if not _is_stub_file(path, text, config):
        return None

    return fetch_stub_asset(text, path, base_url, fetcher, config=config)


def replace_stub_assets(
    base_url: str,
    input_dir: Path,
    fetcher: Fetcher,
    *,
    workers: int = 1,
    config: AssetConfig = DEFAULT_ASSET_CONFIG,
) -> DownloadResult:
    """Walk `input_dir` and swap every loader stub for its real asset."""

    result = DownloadResult()
    try:
        origin_of(base_url)
    except StubResolutionError as e:
        result.errors.append(e)
        return result

    files = list(_iter_files(input_dir, result.errors))
    for path, outcome in _map_files(files, lambda p: replace_stub_file(p, base_url, fetcher, config=config), workers):
        if isinstance(outcome, Exception):
            result.errors.append(outcome)
        elif outcome is not None:
            result.downloaded += 1

    return result
