from __future__ import annotations

"""Best-effort pretty-printing of restored JS/TS sources."""

import logging
from pathlib import PurePath

import jsbeautifier

logger = logging.getLogger(__name__)

JS_EXTENSIONS = frozenset({".js", ".mjs", ".cjs", ".jsx", ".ts", ".mts", ".cts", ".tsx"})


def _options() -> "jsbeautifier.BeautifierOptions":
    opts = jsbeautifier.default_options()
    opts.indent_size = 2
    opts.preserve_newlines = True
    opts.max_preserve_newlines = 2
    return opts


def format_source(content: str, filename: str) -> str:
    """Beautify JS/TS content; anything else is returned unchanged.

    Never raises: if beautification fails the original content is returned.
    """

    if PurePath(filename).suffix.lower() not in JS_EXTENSIONS:
        return content

    try:
        return jsbeautifier.beautify(content, _options())
    except Exception as e:
        logger.debug("Formatting failed for %s: %s", filename, e)
        return content


def identity(content: str, filename: str) -> str:
    return content
