"""Common interface of dataset sources.

A dataset source is either a directory of tabular files or a single zip
archive. Both expose the same small capability set, described structurally
by ``DatasetSource``: list entry names in a stable order, open an entry as a
line stream, and release the underlying resources.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Iterator, Protocol, runtime_checkable

from asprpop.core.fips import FipsCode
from asprpop.core.records import RecordKind
from asprpop.core.states import USState
from asprpop.errors import InvalidFormatError, StreamClosedError

# Entry suffixes treated as tabular data
TABULAR_SUFFIXES = (".csv", ".tsv", ".txt")

_LEADING_DIGITS = re.compile(r"^(\d+)")


class EntryStream:
    """Forward-only cursor over the text lines of one entry.

    ``next_line`` returns each line without its terminator and ``None`` once
    the entry is exhausted. The stream is not restartable: after the end of
    the entry, or after ``close``, any further read raises
    ``StreamClosedError``. Subclasses supply ``_read_line`` and
    ``_release``.
    """

    def __init__(self, name: str):
        self.name = name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise StreamClosedError(self.name)

    def _read_line(self) -> str:
        """Return the next raw line ('' at end of entry)."""
        raise NotImplementedError

    def _release(self) -> None:
        raise NotImplementedError

    def next_line(self) -> str | None:
        """Return the next line, or None at the end of the entry."""
        self._check_open()
        line = self._read_line()
        if not line:
            self.close()
            return None
        return line.rstrip("\r\n")

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._release()

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        line = self.next_line()
        if line is None:
            raise StopIteration
        return line

    def __enter__(self) -> EntryStream:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"{type(self).__name__}({self.name!r}, {state})"


@runtime_checkable
class DatasetSource(Protocol):
    """Capabilities every dataset source provides."""

    def list_entries(self) -> list[str]:
        """Entry names in a stable, deterministic order."""
        ...

    def open(self, name: str) -> EntryStream:
        """Open an entry as a line stream."""
        ...

    def close(self) -> None:
        ...


def entry_stem(name: str) -> str:
    """Lower-cased file name of an entry without its directory or suffixes."""
    base = PurePosixPath(name.replace("\\", "/")).name.lower()
    return base.split(".", 1)[0]


def is_tabular_entry(name: str) -> bool:
    """Whether an entry holds tabular data worth decoding.

    Hidden files and macOS resource-fork members (``__MACOSX/``) are skipped.
    """
    path = PurePosixPath(name.replace("\\", "/"))
    if any(part.startswith(".") or part == "__MACOSX" for part in path.parts):
        return False
    return path.suffix.lower() in TABULAR_SUFFIXES


def infer_record_kind(name: str) -> RecordKind:
    """Record kind implied by an entry name ("households.csv" vs "people.csv")."""
    if "household" in entry_stem(name):
        return RecordKind.HOUSEHOLD
    return RecordKind.PERSON


def entry_fips_hint(name: str) -> FipsCode | None:
    """Geography an entry is known to cover, from its name.

    Two conventions are recognized: a state postal code as the whole stem
    (``all_states/al.csv``) and a GEOID at the start of the stem
    (``06037_people.csv``). Returns None when the name says nothing.
    """
    stem = entry_stem(name)
    if len(stem) == 2 and stem.isalpha():
        state = USState.from_abbreviation(stem)
        if state is not None:
            return FipsCode.of_state(state)
        return None

    match = _LEADING_DIGITS.match(stem)
    if match is None:
        return None
    try:
        return FipsCode.parse(match.group(1))
    except InvalidFormatError:
        return None
