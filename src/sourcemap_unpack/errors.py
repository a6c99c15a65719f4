from __future__ import annotations


class SourceMapUnpackError(Exception):
    """Base exception for sourcemap-unpack."""


class DecodeError(SourceMapUnpackError):
    """Raised when a sourcemap document can't be decoded."""


class SourceMapReadError(DecodeError):
    """Raised when a sourcemap file can't be read from disk."""


class MalformedSourceMapError(DecodeError):
    """Raised on invalid JSON, invalid base64, or a non-sourcemap document."""


class UnsafePathError(SourceMapUnpackError):
    """Raised when a source path is unsafe to write to disk."""


class FetchError(SourceMapUnpackError):
    """Raised when a remote resource can't be downloaded."""


class StubResolutionError(SourceMapUnpackError):
    """Raised when a loader stub doesn't reference a fetchable asset."""


class AssetExtractionError(SourceMapUnpackError):
    """Raised when an inline data URI asset can't be decoded."""


class RestoreWriteError(SourceMapUnpackError):
    """Raised (and collected) when a restored source can't be written."""
