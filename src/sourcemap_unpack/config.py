from __future__ import annotations

"""Static configuration for the decoder, sanitizer and asset recovery.

Every pattern and lookup table the core uses lives here as a frozen value.
Components take one of these as a keyword argument and default to the
module-level `DEFAULT_*` instance, so callers can swap a table without
touching global state.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

# Sourcemap reference comments are appended at end-of-file by every mainstream
# bundler; only this many trailing lines are scanned.
DEFAULT_TAIL_LINES = 10

MAX_PATH_LENGTH = 255

INLINE_MARKER = "sourceMappingURL=data:application/json"

_MIME_TO_EXT = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/svg+xml": "svg",
    "image/webp": "webp",
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "font/woff": "woff",
    "font/woff2": "woff2",
    "font/ttf": "ttf",
    "font/otf": "otf",
    "application/vnd.ms-fontobject": "eot",
    "application/font-sfnt": "sfnt",
    "application/font-woff": "woff",
    "application/font-woff2": "woff2",
    "application/x-font-ttf": "ttf",
    "application/x-font-opentype": "otf",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "application/octet-stream": "bin",
}

_MEDIA_EXTENSIONS = frozenset(
    {
        ".svg", ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".bmp", ".avif",
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        ".mp3", ".wav", ".ogg",
        ".mp4", ".webm",
    }
)

_SCRIPT_MARKERS = (
    "import ", "import{", "import(",
    "export ", "export{",
    "module.exports",
    "var ", "let ", "const ",
    "function ", "function(",
    "//", "/*",
    '"use strict"', "'use strict'",
)


@dataclass(frozen=True)
class DecoderConfig:
    tail_lines: int = DEFAULT_TAIL_LINES
    inline_marker: str = INLINE_MARKER
    # //# sourceMappingURL=... (current) or //@ sourceMappingURL=... (legacy)
    mapping_url_re: re.Pattern[str] = re.compile(r"//[#@]\s*sourceMappingURL\s*=\s*(\S+)")
    inline_re: re.Pattern[str] = re.compile(
        r"sourceMappingURL\s*=\s*data:application/json[^,]*;base64,([A-Za-z0-9+/=_-]+)"
    )


@dataclass(frozen=True)
class SanitizerConfig:
    scheme_prefixes: tuple[str, ...] = ("webpack://", "webpack-internal://", "file://", "ng://")
    illegal_chars_re: re.Pattern[str] = re.compile(r'[<>:"|?*\x00-\x1f]')
    max_length: int = MAX_PATH_LENGTH
    fallback_template: str = "source_{index}.js"


@dataclass(frozen=True)
class AssetConfig:
    media_extensions: frozenset[str] = _MEDIA_EXTENSIONS
    script_markers: tuple[str, ...] = _SCRIPT_MARKERS
    mime_to_ext: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(_MIME_TO_EXT)))
    default_ext: str = "bin"
    default_basename: str = "asset"
    # export default "data:image/png;base64,...";
    # module.exports = "data:image/png;base64,...";
    data_uri_export_re: re.Pattern[str] = re.compile(
        r"^(?:export\s+default|module\.exports\s*=)\s*"
        r"([\"'])data:([^;,\"']*)(?:;[^;,\"']+)*;base64,([A-Za-z0-9+/=\s]*)\1\s*;?$"
    )
    # export default __webpack_public_path__ + "static/media/file.hash.ext";
    # export default "static/media/file.hash.ext";
    # module.exports = __webpack_public_path__ + "static/media/file.hash.ext";
    stub_export_re: re.Pattern[str] = re.compile(
        r"(?:export\s+default|module\.exports\s*=)\s*"
        r"(?:__webpack_public_path__\s*\+\s*)?([\"'])([^\"']+)\1"
    )


DEFAULT_DECODER_CONFIG = DecoderConfig()
DEFAULT_SANITIZER_CONFIG = SanitizerConfig()
DEFAULT_ASSET_CONFIG = AssetConfig()
