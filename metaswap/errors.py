# metaswap/errors.py
"""
Errors raised while walking a JPEG stream or merging two of them.
Every error is fatal to the current operation; nothing is retried.
"""
from __future__ import annotations


class ScanError(Exception):
    """Base class for structural problems found while scanning a JPEG stream."""

    def __init__(self, message: str, state: str | None = None, offset: int | None = None):
        self.state = state
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class MissingStartMarker(ScanError):
    pass


class InvalidMarker(ScanError):
    pass


class UnexpectedTrailer(ScanError):
    pass


class Truncated(ScanError):
    pass


class MalformedLength(ScanError):
    pass


class MergeError(Exception):
    """A merge failed; `role` names the stream that caused it."""

    def __init__(self, role: str, cause: BaseException):
        self.role = role
        super().__init__(f"{role}: {cause}")
