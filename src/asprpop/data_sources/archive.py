"""
Streaming reads of datasets packed in a zip archive.

The ownership chain is archive handle -> entry reader -> line cursor. A zip
file supports one active read position per handle here, so opening an entry
invalidates whatever stream the handle issued before it.

``ArchiveStream`` bundles the chain into one value that can be returned and
iterated like any owned iterator of lines. It does not trust a stored view
into the handle: each pull re-checks a generation token against the handle,
and a stale stream fails with ``StreamClosedError`` instead of reading from a
reader that now belongs to another entry. The handle keeps only the active
reader (never the stream), so references run one way.

Example:
    >>> handle = ArchiveHandle.open("aspr_population.zip")
    >>> with ArchiveStream.open(handle, "people.csv") as stream:
    ...     header = stream.next_line()
    ...     for line in stream:
    ...         ...
"""

from __future__ import annotations

import io
import logging
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO, Union

from asprpop.data_sources.base import EntryStream
from asprpop.errors import (
    ArchiveError,
    CorruptArchiveError,
    EntryNotFoundError,
    SourceIOError,
    SourceNotFoundError,
)

logger = logging.getLogger(__name__)

# Failures zipfile raises for damaged compressed data
_CORRUPTION_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError)

ArchiveInput = Union[str, Path, bytes, BinaryIO]


class ArchiveHandle:
    """An open zip archive that serves one entry reader at a time."""

    def __init__(self, zip_file: zipfile.ZipFile, name: str):
        self._zip = zip_file
        self.name = name
        self._generation = 0
        self._active_reader: BinaryIO | None = None
        self._closed = False

    @classmethod
    def open(cls, source: ArchiveInput) -> ArchiveHandle:
        """Open an archive from a path, raw bytes, or a binary file object.

        Raises:
            SourceNotFoundError: the path does not exist
            CorruptArchiveError: the data is not a readable zip archive
            SourceIOError: any other filesystem failure
        """
        if isinstance(source, (bytes, bytearray)):
            name = "<bytes>"
            fileobj = io.BytesIO(source)
        elif isinstance(source, (str, Path)):
            name = str(source)
            fileobj = source
        else:
            name = getattr(source, "name", "<stream>")
            fileobj = source

        try:
            zip_file = zipfile.ZipFile(fileobj, "r")
        except FileNotFoundError as e:
            raise SourceNotFoundError(name) from e
        except zipfile.BadZipFile as e:
            raise CorruptArchiveError(None, e) from e
        except OSError as e:
            raise SourceIOError(name, e) from e

        logger.debug("Opened archive %s", name)
        return cls(zip_file, name)

    @property
    def generation(self) -> int:
        """Counter bumped every time a new entry reader is issued."""
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def list_members(self) -> list[str]:
        """Member names in archive-declared order, directories excluded."""
        self._ensure_open(None)
        return [info.filename for info in self._zip.infolist() if not info.is_dir()]

    def read_member(self, name: str, encoding: str = "utf-8") -> ArchiveStream:
        """Open ``name`` as a line stream (see ``ArchiveStream.open``)."""
        return ArchiveStream.open(self, name, encoding=encoding)

    def _ensure_open(self, entry: str | None) -> None:
        if self._closed:
            raise ArchiveError(entry, f"archive {self.name} is closed")

    def _open_reader(self, entry: str) -> tuple[BinaryIO, int]:
        """Open the payload of ``entry`` and make it the only live reader."""
        self._ensure_open(entry)
        try:
            info = self._zip.getinfo(entry)
        except KeyError as e:
            raise EntryNotFoundError(entry) from e
        if info.is_dir():
            raise EntryNotFoundError(entry)

        # zipfile signals encrypted members with RuntimeError and unknown
        # compression methods with NotImplementedError
        try:
            reader = self._zip.open(info, "r")
        except (*_CORRUPTION_ERRORS, NotImplementedError, RuntimeError) as e:
            raise CorruptArchiveError(entry, e) from e

        self._release_active()
        self._active_reader = reader
        self._generation += 1
        logger.debug("Reading %s from %s (generation %d)", entry, self.name, self._generation)
        return reader, self._generation

    def _release_active(self) -> None:
        if self._active_reader is not None:
            self._active_reader.close()
            self._active_reader = None

    def close(self) -> None:
        if not self._closed:
            self._release_active()
            self._zip.close()
            self._closed = True
            logger.debug("Closed archive %s", self.name)

    def __enter__(self) -> ArchiveHandle:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ArchiveHandle({self.name!r}, {state})"


class ArchiveStream(EntryStream):
    """Decoded text lines of one archive entry, read incrementally.

    Decompression happens as lines are pulled, so damaged data surfaces as
    ``CorruptArchiveError`` at the read that hits it, not when the stream is
    opened.
    """

    def __init__(
        self,
        handle: ArchiveHandle,
        name: str,
        reader: BinaryIO,
        generation: int,
        encoding: str = "utf-8",
    ):
        super().__init__(name)
        self._handle = handle
        self._generation = generation
        self._text = io.TextIOWrapper(reader, encoding=encoding, newline="")

    @classmethod
    def open(cls, handle: ArchiveHandle, entry_name: str, encoding: str = "utf-8") -> ArchiveStream:
        """Position a new stream at the start of ``entry_name``'s payload.

        Any stream previously issued by ``handle`` becomes invalid.

        Raises:
            EntryNotFoundError: no such member
            CorruptArchiveError: the member header or compression is unreadable,
                or the member is encrypted
        """
        reader, generation = handle._open_reader(entry_name)
        return cls(handle, entry_name, reader, generation, encoding=encoding)

    @property
    def is_current(self) -> bool:
        """Whether the handle still serves this stream's reader."""
        return not self._handle.closed and self._handle.generation == self._generation

    def _check_open(self) -> None:
        if not self._closed and not self.is_current:
            logger.debug("Stream for %s was invalidated", self.name)
            self.close()
        super()._check_open()

    def _read_line(self) -> str:
        try:
            return self._text.readline()
        except (*_CORRUPTION_ERRORS, UnicodeDecodeError) as e:
            self.close()
            raise CorruptArchiveError(self.name, e) from e

    def _release(self) -> None:
        # The text wrapper closes the entry reader; a reader the handle
        # already released is left alone.
        if self.is_current:
            self._handle._release_active()
        if not self._text.closed:
            self._text.close()


class ArchiveSource:
    """Members of a zip archive, listed in archive order.

    Every source owns its own ``ArchiveHandle``, so two sources over the same
    file never interfere; two streams from one source do (see module docs).
    """

    format = "archive"

    def __init__(self, archive: Union[ArchiveInput, ArchiveHandle], encoding: str = "utf-8"):
        if isinstance(archive, ArchiveHandle):
            self.handle = archive
        else:
            self.handle = ArchiveHandle.open(archive)
        self.encoding = encoding

    @property
    def path(self) -> str:
        return self.handle.name

    def list_entries(self) -> list[str]:
        return self.handle.list_members()

    def open(self, name: str) -> ArchiveStream:
        return ArchiveStream.open(self.handle, name, encoding=self.encoding)

    def close(self) -> None:
        self.handle.close()

    def __repr__(self) -> str:
        return f"ArchiveSource({self.handle.name!r})"
