#!/usr/bin/env python3
"""
Exception types for the IGC flight import toolkit

Every error raised for bad input data is a ValueError subclass so callers
processing a batch can catch them per file and keep going.
"""

from typing import Optional


class TrackImportError(ValueError):
    """Base class for input-data errors raised while importing a track file"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class FormatError(TrackImportError):
    """Malformed container: missing or bad signature, truncated header"""


class LimitExceededError(TrackImportError):
    """A configured resource ceiling was hit"""

    def __init__(self, message: str, limit: str, value: int, maximum: int, path: Optional[str] = None):
        super().__init__(message, path)
        self.limit = limit
        self.value = value
        self.maximum = maximum


class UnsupportedCompressionError(TrackImportError):
    """An archive entry uses a compression method other than stored/deflate"""

    def __init__(self, message: str, method: int, path: Optional[str] = None):
        super().__init__(message, path)
        self.method = method


class InvalidFormatError(TrackImportError):
    """Track content could not be parsed, even after the reformatting retry"""


class IgcDecodeError(TrackImportError):
    """Raised by the line decoder when content is not a usable IGC log"""
