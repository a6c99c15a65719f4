from __future__ import annotations

"""Sourcemap decoding.

A sourcemap can reach us three ways: as a standalone `.map` file, as raw bytes
downloaded from a server, or inlined into a script as a base64 data URI in its
trailing `sourceMappingURL` comment. All three end up in `parse_bytes()`.

Decoding is non-strict: unknown fields are ignored and missing optional arrays
default to empty. Only a missing `sources` array (outside of index maps) or
invalid JSON is treated as malformed.
"""

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any

from .config import DEFAULT_DECODER_CONFIG, DecoderConfig
from .errors import MalformedSourceMapError, SourceMapReadError
from .types import SourceMap

logger = logging.getLogger(__name__)

# Servers may prefix JSON responses with this to defeat XSSI.
_XSSI_PREFIX = b")]}'"


def _str_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple("" if item is None else str(item) for item in value)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _from_object(obj: Any, offset: tuple[int, int] = (0, 0)) -> SourceMap:
    if not isinstance(obj, dict):
        raise MalformedSourceMapError(f"Sourcemap must be a JSON object, got {type(obj).__name__}")

    sections: list[SourceMap] = []
    raw_sections = obj.get("sections")
    if isinstance(raw_sections, list):
        for section in raw_sections:
            if not isinstance(section, dict) or not isinstance(section.get("map"), dict):
                # Sections that reference an external `url` can't be restored offline.
                continue
            raw_offset = section.get("offset") if isinstance(section.get("offset"), dict) else {}
            sections.append(
                _from_object(
                    section["map"],
                    (_as_int(raw_offset.get("line")), _as_int(raw_offset.get("column"))),
                )
            )

    raw_sources = obj.get("sources")
    if not isinstance(raw_sources, list) and not sections:
        raise MalformedSourceMapError("Sourcemap has no 'sources' array")

    mappings = obj.get("mappings")
    return SourceMap(
        sources=_str_list(raw_sources),
        sources_content=_str_list(obj.get("sourcesContent")),
        version=_as_int(obj.get("version")),
        file=obj.get("file") if isinstance(obj.get("file"), str) else "",
        source_root=obj.get("sourceRoot") if isinstance(obj.get("sourceRoot"), str) else "",
        names=_str_list(obj.get("names")),
        mappings=mappings if isinstance(mappings, str) else "",
        sections=tuple(sections),
        offset=offset,
        x_facebook_sources=obj.get("x_facebook_sources"),
        x_google_ignore_list=obj.get("x_google_ignoreList"),
    )


def parse_bytes(data: bytes | str) -> SourceMap:
    """Parse a JSON sourcemap document."""

    if isinstance(data, str):
        data = data.encode("utf-8")

    stripped = data.lstrip()
    if stripped.startswith(_XSSI_PREFIX):
        newline = stripped.find(b"\n")
        data = stripped[newline + 1 :] if newline != -1 else b""

    try:
        obj = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedSourceMapError(f"Failed to parse sourcemap JSON: {e}") from e

    return _from_object(obj)


def parse_file(path: Path | str) -> SourceMap:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise SourceMapReadError(f"Failed to read sourcemap file {path}: {e}") from e

    return parse_bytes(data)


def _tail_lines(script_text: str, count: int) -> list[str]:
    lines = script_text.strip().split("\n")
    return lines[-count:] if count > 0 else lines


def find_mapping_url(script_text: str, *, config: DecoderConfig = DEFAULT_DECODER_CONFIG) -> str:
    """Return the `sourceMappingURL` referenced at the end of a script.

    Returns an empty string when no comment is found in the tail window, or
    when the reference is an inline data URI (see `extract_inline()`).
    """

    for line in reversed(_tail_lines(script_text, config.tail_lines)):
        match = config.mapping_url_re.search(line)
        if match is None:
            continue
        url = match.group(1).strip()
        if url.startswith("data:"):
            return ""
        return url

    return ""


def has_inline(script_text: str, *, config: DecoderConfig = DEFAULT_DECODER_CONFIG) -> bool:
    return config.inline_marker in script_text


def _b64decode(payload: str) -> bytes:
    # Accept the URL-safe alphabet and missing padding.
    payload = payload.replace("-", "+").replace("_", "/").rstrip("=")
    payload += "=" * (-len(payload) % 4)
    return base64.b64decode(payload, validate=True)


def extract_inline(script_text: str, *, config: DecoderConfig = DEFAULT_DECODER_CONFIG) -> SourceMap | None:
    """Decode a base64 sourcemap inlined at the end of a script.

    Returns None if the script carries no inline sourcemap.
    """

    for line in reversed(_tail_lines(script_text, config.tail_lines)):
        if config.inline_marker not in line:
            continue

        match = config.inline_re.search(line)
        if match is None:
            continue

        try:
            decoded = _b64decode(match.group(1))
        except (binascii.Error, ValueError) as e:
            raise MalformedSourceMapError(f"Failed to decode base64 sourcemap: {e}") from e

        logger.debug("Found inline sourcemap (%d bytes)", len(decoded))
        return parse_bytes(decoded)

    return None
