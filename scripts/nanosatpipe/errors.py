"""
Exceptions raised by the NanoSatellite post-processing library.

All loaders abort on the first offending input rather than skipping it,
and every message names the file or identifier that caused the failure.
"""

from typing import Iterable, Optional


class NanoSatError(Exception):
    """Base class for all pipeline errors."""


class NotFoundError(NanoSatError, FileNotFoundError):
    """Root directory is missing or holds no matching files."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class SchemaError(NanoSatError, ValueError):
    """A table lacks a required column or its columns differ from the other tables."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        missing: Iterable[str] = (),
    ):
        super().__init__(message)
        self.path = path
        self.missing = list(missing)


class ParseError(NanoSatError, ValueError):
    """A file cannot be read as a tab-separated table with header."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class IdentifierParseError(NanoSatError, ValueError):
    """A chunk identifier does not follow <read>_<token>_<chunk>.chunk."""

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier
