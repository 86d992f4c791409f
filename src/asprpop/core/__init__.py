"""
Core data models for asprpop.

This module provides the foundational types for ASPR population data:
- US state table and hierarchical FIPS codes
- FIPS-prefixed setting identifiers (home, school, workplace)
- Record schemas and schema-driven row decoding
"""

from asprpop.core.states import USState
from asprpop.core.fips import (
    FipsCode,
    FipsLevel,
    STATE_LEN,
    COUNTY_LEN,
    TRACT_LEN,
    BLOCK_LEN,
    STATE_GEOID_LEN,
    COUNTY_GEOID_LEN,
    TRACT_GEOID_LEN,
    BLOCK_GEOID_LEN,
)
from asprpop.core.setting_ids import (
    SettingCategory,
    SettingId,
    parse_home_id,
    parse_school_id,
    parse_workplace_id,
    parse_setting_id,
)
from asprpop.core.records import (
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
    DEFAULT_SCHEMAS,
)

__all__ = [
    # States
    "USState",
    # FIPS
    "FipsCode",
    "FipsLevel",
    "STATE_LEN",
    "COUNTY_LEN",
    "TRACT_LEN",
    "BLOCK_LEN",
    "STATE_GEOID_LEN",
    "COUNTY_GEOID_LEN",
    "TRACT_GEOID_LEN",
    "BLOCK_GEOID_LEN",
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
    "DEFAULT_SCHEMAS",
]
