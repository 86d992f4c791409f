"""Error types raised by asprpop.

Every failure is raised to the immediate caller; nothing is retried or
swallowed inside the library. Each exception carries the structured detail
(expected vs actual counts, the offending raw value, the entry name) as
attributes so callers can build their own diagnostics.
"""

from __future__ import annotations

from pathlib import Path


class AsprError(Exception):
    """Base class for all asprpop errors."""


# =============================================================================
# FIPS text
# =============================================================================

class FormatError(AsprError, ValueError):
    """Malformed FIPS or setting-id text."""


class InvalidFormatError(FormatError):
    """Text is not a recognized FIPS (or setting id) form."""

    def __init__(self, text: str, reason: str = "invalid format"):
        self.text = text
        self.reason = reason
        super().__init__(f"{reason}: {text!r}")


class InsufficientPrecisionError(FormatError):
    """A code was asked for a level finer than the one it holds."""

    def __init__(self, level, requested):
        self.level = level
        self.requested = requested
        super().__init__(
            f"code at {level.value} level cannot be rendered at {requested.value} level"
        )


# =============================================================================
# Row decoding
# =============================================================================

class DecodeError(AsprError, ValueError):
    """A raw row could not be converted to a record.

    ``entry`` and ``line_number`` are filled in by the dataset layer when the
    row came from a named entry.
    """

    entry: str | None = None
    line_number: int | None = None

    def with_context(self, entry: str, line_number: int) -> DecodeError:
        self.entry = entry
        self.line_number = line_number
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if self.entry is not None:
            return f"{self.entry}:{self.line_number}: {message}"
        return message


class FieldCountMismatchError(DecodeError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected {expected} fields, got {actual}")


class FieldTypeMismatchError(DecodeError):
    def __init__(self, field_name: str, raw_value: str):
        self.field_name = field_name
        self.raw_value = raw_value
        super().__init__(f"field {field_name!r} cannot hold {raw_value!r}")


class MissingRequiredFieldError(DecodeError):
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"required field {field_name!r} is empty")


# =============================================================================
# Sources
# =============================================================================

class SourceError(AsprError):
    """Filesystem or listing failure in a dataset source."""


class SourceNotFoundError(SourceError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"entry not found: {name}")


class SourceIOError(SourceError):
    def __init__(self, name: str, cause: BaseException | None = None):
        self.name = name
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"I/O failure reading {name}{detail}")


# =============================================================================
# Archives
# =============================================================================

class ArchiveError(AsprError):
    """Archive open, corruption or stream misuse."""

    def __init__(self, entry: str | None, message: str):
        self.entry = entry
        super().__init__(message)


class EntryNotFoundError(ArchiveError, SourceNotFoundError):
    """The archive has no member with the requested name."""

    def __init__(self, entry: str):
        # Both bases define __init__; set their attributes directly.
        self.entry = entry
        self.name = entry
        Exception.__init__(self, f"archive has no entry {entry!r}")


class CorruptArchiveError(ArchiveError):
    def __init__(self, entry: str | None, cause: BaseException | None = None):
        self.cause = cause
        where = f"entry {entry!r}" if entry is not None else "archive"
        detail = f": {cause}" if cause is not None else ""
        super().__init__(entry, f"corrupt {where}{detail}")


class StreamClosedError(ArchiveError):
    """A stream was used after it ended, was closed, or was invalidated."""

    def __init__(self, entry: str | None):
        super().__init__(entry, f"stream for {entry!r} is closed")


# =============================================================================
# Datasets
# =============================================================================

class DatasetError(AsprError):
    """A dataset root could not be opened."""

    def __init__(self, path: str | Path, message: str):
        self.path = Path(path)
        super().__init__(message)


class DatasetNotFoundError(DatasetError):
    def __init__(self, path: str | Path):
        super().__init__(path, f"dataset not found at {path}")


class UnrecognizedFormatError(DatasetError):
    def __init__(self, path: str | Path):
        super().__init__(
            path, f"{path} is neither a directory nor a zip archive"
        )
