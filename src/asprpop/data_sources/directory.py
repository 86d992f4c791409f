"""Datasets stored as a plain directory of tabular files."""

from __future__ import annotations

import logging
from pathlib import Path

from asprpop.data_sources.base import EntryStream
from asprpop.errors import SourceIOError, SourceNotFoundError

logger = logging.getLogger(__name__)


class FileStream(EntryStream):
    """Line stream over a plain file."""

    def __init__(self, path: Path, name: str, encoding: str = "utf-8"):
        super().__init__(name)
        try:
            self._file = open(path, "r", encoding=encoding, newline="")
        except FileNotFoundError as e:
            raise SourceNotFoundError(name) from e
        except OSError as e:
            raise SourceIOError(name, e) from e

    def _read_line(self) -> str:
        try:
            return self._file.readline()
        except (OSError, UnicodeDecodeError) as e:
            self.close()
            raise SourceIOError(self.name, e) from e

    def _release(self) -> None:
        self._file.close()


class DirectorySource:
    """Regular files of one directory, listed in file-name order.

    Every ``open`` returns an independent ``FileStream``, so any number of
    entries can be read at the same time.
    """

    format = "directory"

    def __init__(self, path: str | Path, encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding
        if not self.path.is_dir():
            raise SourceNotFoundError(str(self.path))

    def list_entries(self) -> list[str]:
        try:
            names = [p.name for p in self.path.iterdir() if p.is_file()]
        except OSError as e:
            raise SourceIOError(str(self.path), e) from e
        return sorted(names)

    def open(self, name: str) -> FileStream:
        path = self.path / name
        # Entries are direct children; reject anything that escapes the directory.
        if path.parent != self.path or not path.is_file():
            raise SourceNotFoundError(name)
        logger.debug("Opening %s", path)
        return FileStream(path, name, encoding=self.encoding)

    def close(self) -> None:
        """Nothing to release; streams own their file handles."""

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.path)!r})"
