"""
Data sources for asprpop.

This module provides the two shapes an ASPR dataset can take on disk:
- DirectorySource: a plain directory of tabular files
- ArchiveSource: a single zip archive, streamed entry by entry
"""

from asprpop.data_sources.base import (
    TABULAR_SUFFIXES,
    DatasetSource,
    EntryStream,
    entry_fips_hint,
    entry_stem,
    infer_record_kind,
    is_tabular_entry,
)
from asprpop.data_sources.directory import DirectorySource, FileStream
from asprpop.data_sources.archive import ArchiveHandle, ArchiveSource, ArchiveStream

__all__ = [
    # Interface
    "DatasetSource",
    "EntryStream",
    # Directory
    "DirectorySource",
    "FileStream",
    # Archive
    "ArchiveHandle",
    "ArchiveSource",
    "ArchiveStream",
    # Entry naming
    "TABULAR_SUFFIXES",
    "entry_fips_hint",
    "entry_stem",
    "infer_record_kind",
    "is_tabular_entry",
]
