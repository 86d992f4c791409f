"""
Population datasets: ASPR records streamed from a directory or zip archive.

``PopulationDataset`` composes the pieces: it resolves a path to a dataset
source, walks the source's entries in their stable order, splits and decodes
each row with the schema for the entry's record kind, and filters by FIPS
prefix.

Example:
    >>> from asprpop import PopulationDataset, FipsCode
    >>> with PopulationDataset.open("aspr_population.zip") as ds:
    ...     for person in ds.records_in(FipsCode.parse("06037")):
    ...         print(person["age"], person.fips)
"""

from __future__ import annotations

import io
import logging
import zipfile
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Union

import pandas as pd
import polars as pl

from asprpop.config import all_states_path
from asprpop.core.fips import FipsCode, FipsLevel
from asprpop.core.records import (
    DEFAULT_SCHEMAS,
    PopulationRecord,
    RecordKind,
    RecordSchema,
    decode,
    split_row,
)
from asprpop.core.setting_ids import SettingId
from asprpop.data_sources.archive import ArchiveSource
from asprpop.data_sources.base import (
    DatasetSource,
    entry_fips_hint,
    infer_record_kind,
    is_tabular_entry,
)
from asprpop.data_sources.directory import DirectorySource
from asprpop.errors import DatasetNotFoundError, DecodeError, UnrecognizedFormatError
from asprpop.geography import derive_fips_columns

logger = logging.getLogger(__name__)

SchemaInput = Union[RecordSchema, Mapping[RecordKind, RecordSchema], None]

GEOGRAPHY_COLUMNS = ["state_fips", "county_fips", "tract_geoid"]
RECORD_COLUMNS = ["kind", "id", "linkage_key", "fips"]


def _resolve_schemas(schemas: SchemaInput) -> Dict[RecordKind, RecordSchema]:
    if schemas is None:
        return dict(DEFAULT_SCHEMAS)
    if isinstance(schemas, RecordSchema):
        return {schemas.kind: schemas}
    return dict(schemas)


def _frame_value(value: Any) -> Any:
    if isinstance(value, (FipsCode, SettingId)):
        return str(value)
    return value


class PopulationDataset:
    """
    Lazily decoded person and household records of one dataset source.

    Each entry is decoded with the schema registered for the record kind its
    name implies (see ``infer_record_kind``); entries whose kind has no
    schema are ignored.

    Iteration pulls rows on demand. Over an archive source only one entry
    stream is live at a time, so interleaving two record iterators from the
    same dataset invalidates the older one.

    Attributes:
        source: The DatasetSource entries are read from
        schemas: Record schema per record kind
    """

    def __init__(self, source: DatasetSource, schemas: SchemaInput = None):
        self.source = source
        self.schemas = _resolve_schemas(schemas)

    @classmethod
    def open(
        cls,
        path_or_source: Union[str, Path, bytes, DatasetSource, None] = None,
        schemas: SchemaInput = None,
    ) -> PopulationDataset:
        """
        Open a dataset, detecting directory vs archive form.

        Args:
            path_or_source: Directory, zip file path, zip bytes, or an existing
                DatasetSource. None uses the configured all-states directory.
            schemas: A schema, or a mapping of record kind to schema.
                Defaults to the built-in ASPR schemas.

        Returns:
            A new dataset with its own source (and archive handle)

        Raises:
            DatasetNotFoundError: If the path doesn't exist.
            UnrecognizedFormatError: If the path is neither a directory nor a
                zip archive.
        """
        if isinstance(path_or_source, DatasetSource):
            return cls(path_or_source, schemas)
        if isinstance(path_or_source, (bytes, bytearray)):
            return cls(ArchiveSource(path_or_source), schemas)

        path = all_states_path() if path_or_source is None else Path(path_or_source)
        if not path.exists():
            raise DatasetNotFoundError(path)

        if path.is_dir():
            source = DirectorySource(path)
        elif path.is_file() and zipfile.is_zipfile(path):
            source = ArchiveSource(path)
        else:
            raise UnrecognizedFormatError(path)

        logger.info("Opened %s dataset at %s", source.format, path)
        return cls(source, schemas)

    # Entries
    def entries(self) -> List[str]:
        """Tabular entries with a registered schema, in source order."""
        return [
            name
            for name in self.source.list_entries()
            if is_tabular_entry(name) and infer_record_kind(name) in self.schemas
        ]

    def schema_for(self, name: str) -> RecordSchema:
        kind = infer_record_kind(name)
        schema = self.schemas.get(kind)
        if schema is None:
            raise ValueError(f"No schema registered for {kind.value} entry {name!r}")
        return schema

    def entry_records(self, name: str) -> Iterator[PopulationRecord]:
        """
        Decode the records of a single entry.

        Records without an id column are identified as ``<entry name>:<line>``.
        An entry with no lines at all logs a warning and yields nothing.
        Decode errors carry the entry name and line number. A failure aborts
        only this entry; callers may move on to the next one.
        """
        schema = self.schema_for(name)

        with self.source.open(name) as stream:
            line_number = 0
            if schema.has_header:
                header = stream.next_line()
                if header is None:
                    logger.warning("Entry %s is empty", name)
                    return
                line_number = 1
                self._check_header(name, schema, header)

            for line in stream:
                line_number += 1
                if not line.strip():
                    continue
                try:
                    yield decode(
                        schema,
                        split_row(line, schema.delimiter),
                        record_id=f"{name}:{line_number}",
                    )
                except DecodeError as e:
                    e.with_context(name, line_number)
                    raise

            if line_number == 0:
                logger.warning("Entry %s is empty", name)

    @staticmethod
    def _check_header(name: str, schema: RecordSchema, header: str) -> None:
        columns = [c.strip() for c in split_row(header, schema.delimiter)]
        if columns != schema.field_names:
            logger.warning(
                "Header of %s %s does not match schema fields %s",
                name, columns, schema.field_names,
            )

    # Records
    def records(self) -> Iterator[PopulationRecord]:
        """All records of all entries. Each call starts from the beginning."""
        for name in self.entries():
            yield from self.entry_records(name)

    def records_in(self, prefix: Union[FipsCode, str]) -> Iterator[PopulationRecord]:
        """
        Records located inside ``prefix``.

        Entries whose names place them outside the prefix (``al.csv`` for a
        California prefix, say) are skipped without being opened.
        """
        if isinstance(prefix, str):
            prefix = FipsCode.parse(prefix)

        for name in self.entries():
            hint = entry_fips_hint(name)
            if hint is not None and not (hint.is_prefix_of(prefix) or prefix.is_prefix_of(hint)):
                logger.debug("Skipping %s: outside %s", name, prefix)
                continue
            for record in self.entry_records(name):
                if prefix.is_prefix_of(record.fips):
                    yield record

    def _select(self, prefix: Union[FipsCode, str, None]) -> Iterator[PopulationRecord]:
        return self.records() if prefix is None else self.records_in(prefix)

    # Aggregation
    def counts_by(
        self,
        level: FipsLevel,
        prefix: Union[FipsCode, str, None] = None,
    ) -> pd.Series:
        """
        Count records per geography at ``level``.

        Records coarser than ``level`` are counted under their own code.

        Returns:
            Series of counts indexed by GEOID string, in geographic order
        """
        counts = Counter(record.fips.truncate_to(level) for record in self._select(prefix))
        series = pd.Series(
            [counts[code] for code in sorted(counts)],
            index=pd.Index([str(code) for code in sorted(counts)], name=level.value),
            name="count",
            dtype="int64",
        )
        return series

    def to_frame(self, prefix: Union[FipsCode, str, None] = None) -> pd.DataFrame:
        """
        Materialize records as a pandas DataFrame.

        Columns: kind, id, linkage_key, fips, the schema fields (FIPS codes
        and setting ids as strings), then state_fips, county_fips, tract_geoid.
        """
        rows = []
        for record in self._select(prefix):
            row = {
                "kind": record.kind.value,
                "id": record.id,
                "linkage_key": record.linkage_key,
                "fips": str(record.fips),
            }
            for name, value in record.values.items():
                row[name] = _frame_value(value)
            rows.append(row)

        if not rows:
            return pd.DataFrame(columns=RECORD_COLUMNS + GEOGRAPHY_COLUMNS)

        frame = pd.DataFrame(rows)
        geography = derive_fips_columns(frame["fips"])
        for col in GEOGRAPHY_COLUMNS:
            frame[col] = geography[col].values
        return frame

    def read_entry_frame(self, name: str) -> pl.DataFrame:
        """
        Read one entry's raw rows into a polars DataFrame.

        Every column is read as a string so FIPS prefixes keep their leading
        zeros; nothing is decoded or validated.
        """
        schema = self.schema_for(name)
        with self.source.open(name) as stream:
            data = "\n".join(stream).encode("utf-8")

        options = {}
        if not schema.has_header:
            options["new_columns"] = schema.field_names
        return pl.read_csv(
            io.BytesIO(data),
            separator=schema.delimiter,
            has_header=schema.has_header,
            infer_schema_length=0,
            **options,
        )

    def summary(self) -> dict:
        """Return a description of the dataset's source and entries."""
        entries = self.entries()
        return {
            "source": repr(self.source),
            "format": getattr(self.source, "format", type(self.source).__name__),
            "n_entries": len(entries),
            "entries": entries,
            "record_kinds": sorted(kind.value for kind in self.schemas),
        }

    # Lifecycle
    def close(self) -> None:
        self.source.close()

    def __enter__(self) -> PopulationDataset:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"PopulationDataset({self.source!r})"


def open_dataset(
    path_or_source: Union[str, Path, bytes, DatasetSource, None] = None,
    schemas: SchemaInput = None,
) -> PopulationDataset:
    """Shorthand for ``PopulationDataset.open``."""
    return PopulationDataset.open(path_or_source, schemas)
