"""
asprpop: Streaming access to ASPR synthetic population data.

A library for reading ASPR person and household records through:
- Hierarchical FIPS codes (state, county, tract, block) with exact truncation
  and prefix queries
- Schema-driven decoding of tabular rows into typed records
- Directory and zip-archive sources read entry by entry, without unpacking
- Prefix filtering and per-geography aggregation

Example:
    >>> from asprpop import PopulationDataset, FipsCode, FipsLevel
    >>> ds = PopulationDataset.open("aspr_population.zip")
    >>> ds.counts_by(FipsLevel.COUNTY, prefix=FipsCode.parse("06"))
"""

from asprpop.errors import (
    AsprError,
    FormatError,
    InvalidFormatError,
    InsufficientPrecisionError,
    DecodeError,
    FieldCountMismatchError,
    FieldTypeMismatchError,
    MissingRequiredFieldError,
    SourceError,
    SourceNotFoundError,
    SourceIOError,
    ArchiveError,
    EntryNotFoundError,
    CorruptArchiveError,
    StreamClosedError,
    DatasetError,
    DatasetNotFoundError,
    UnrecognizedFormatError,
)
from asprpop.core import (
    USState,
    FipsCode,
    FipsLevel,
    SettingCategory,
    SettingId,
    parse_home_id,
    parse_school_id,
    parse_workplace_id,
    parse_setting_id,
    RecordKind,
    FieldType,
    FieldSpec,
    RecordSchema,
    PopulationRecord,
    decode,
    split_row,
    load_schemas,
    ASPR_PERSON_SCHEMA,
    ASPR_HOUSEHOLD_SCHEMA,
)
from asprpop.data_sources import (
    DatasetSource,
    EntryStream,
    DirectorySource,
    FileStream,
    ArchiveHandle,
    ArchiveSource,
    ArchiveStream,
)
from asprpop.dataset import PopulationDataset, open_dataset
from asprpop.geography import (
    encode_fips,
    decode_fips,
    prefix_mask,
    derive_fips_columns,
)
from asprpop.config import (
    set_aspr_data_path,
    get_aspr_data_path,
    all_states_path,
    all_states_files,
)

__version__ = "0.1.0"

__all__ = [
    # Dataset
    "PopulationDataset",
    "open_dataset",
    # FIPS
    "USState",
    "FipsCode",
    "FipsLevel",
    # Setting ids
    "SettingCategory",
    "SettingId",
    "parse_home_id",
    "parse_school_id",
    "parse_workplace_id",
    "parse_setting_id",
    # Records
    "RecordKind",
    "FieldType",
    "FieldSpec",
    "RecordSchema",
    "PopulationRecord",
    "decode",
    "split_row",
    "load_schemas",
    "ASPR_PERSON_SCHEMA",
    "ASPR_HOUSEHOLD_SCHEMA",
    # Sources
    "DatasetSource",
    "EntryStream",
    "DirectorySource",
    "FileStream",
    "ArchiveHandle",
    "ArchiveSource",
    "ArchiveStream",
    # Geography
    "encode_fips",
    "decode_fips",
    "prefix_mask",
    "derive_fips_columns",
    # Configuration
    "set_aspr_data_path",
    "get_aspr_data_path",
    "all_states_path",
    "all_states_files",
    # Errors
    "AsprError",
    "FormatError",
    "InvalidFormatError",
    "InsufficientPrecisionError",
    "DecodeError",
    "FieldCountMismatchError",
    "FieldTypeMismatchError",
    "MissingRequiredFieldError",
    "SourceError",
    "SourceNotFoundError",
    "SourceIOError",
    "ArchiveError",
    "EntryNotFoundError",
    "CorruptArchiveError",
    "StreamClosedError",
    "DatasetError",
    "DatasetNotFoundError",
    "UnrecognizedFormatError",
]
