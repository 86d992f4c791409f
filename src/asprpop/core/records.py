"""Schema-driven decoding of tabular rows into population records.

ASPR dataset versions vary their columns, so the field set of a record is
configuration: a ``RecordSchema`` lists field names and types in row order,
names the field that locates the record geographically, and optionally the
identifier and linkage fields. ``decode`` is a pure function of a schema and
a sequence of raw field strings.
"""

from __future__ import annotations

import csv
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from asprpop.core.fips import FipsCode
from asprpop.core.setting_ids import SettingCategory, SettingId, parse_setting_id
from asprpop.errors import (
    FieldCountMismatchError,
    FieldTypeMismatchError,
    FormatError,
    MissingRequiredFieldError,
)


class RecordKind(Enum):
    """Population entity a row describes."""

    PERSON = "person"
    HOUSEHOLD = "household"


class FieldType(Enum):
    """Types a raw field can be converted to."""

    INTEGER = "integer"
    CATEGORICAL = "categorical"
    STRING = "string"
    FIPS = "fips"
    SETTING_ID = "setting_id"

    @property
    def is_geographic(self) -> bool:
        """Whether values of this type carry a FipsCode."""
        return self in (FieldType.FIPS, FieldType.SETTING_ID)


class FieldSpec(BaseModel):
    """One column of a record schema."""

    name: str = Field(..., min_length=1)
    dtype: FieldType
    required: bool = True
    categories: list[str] | None = Field(
        default=None,
        description="Allowed values for categorical fields",
    )
    setting: SettingCategory | None = Field(
        default=None,
        description="Setting category for setting-id fields",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_type_options(self) -> FieldSpec:
        if self.dtype == FieldType.SETTING_ID and self.setting is None:
            raise ValueError(f"Setting-id field {self.name!r} needs a setting category")
        if self.dtype == FieldType.CATEGORICAL and not self.categories:
            raise ValueError(f"Categorical field {self.name!r} needs categories")
        return self

    def convert(self, raw: str) -> Any:
        """Convert a trimmed, non-empty raw value.

        Raises:
            FieldTypeMismatchError: if the value does not fit the type.
        """
        try:
            if self.dtype == FieldType.INTEGER:
                return int(raw)
            if self.dtype == FieldType.CATEGORICAL:
                if raw not in self.categories:
                    raise ValueError(raw)
                return raw
            if self.dtype == FieldType.FIPS:
                return FipsCode.parse(raw)
            if self.dtype == FieldType.SETTING_ID:
                return parse_setting_id(raw, self.setting)
            return raw
        except (ValueError, FormatError) as e:
            raise FieldTypeMismatchError(self.name, raw) from e


class RecordSchema(BaseModel):
    """Ordered field layout of one kind of tabular entry.

    Attributes:
        kind: Person or household rows
        fields: Field specs in column order
        fips_field: Field whose value locates the record (FIPS or setting id)
        id_field: Field holding the record identifier, if the rows carry one
        linkage_field: Field linking persons and households (e.g. homeId)
        delimiter: Column separator
        has_header: Whether each entry starts with a header row
    """

    kind: RecordKind
    fields: list[FieldSpec] = Field(..., min_length=1)
    fips_field: str
    id_field: str | None = None
    linkage_field: str | None = None
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    has_header: bool = True

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_field_references(self) -> RecordSchema:
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in schema: {names}")
        by_name = {f.name: f for f in self.fields}

        fips_spec = by_name.get(self.fips_field)
        if fips_spec is None:
            raise ValueError(f"fips_field {self.fips_field!r} is not a schema field")
        if not fips_spec.dtype.is_geographic:
            raise ValueError(f"fips_field {self.fips_field!r} must be a FIPS or setting-id field")
        if not fips_spec.required:
            raise ValueError(f"fips_field {self.fips_field!r} must be required")

        for ref in (self.id_field, self.linkage_field):
            if ref is not None and ref not in by_name:
                raise ValueError(f"Field {ref!r} is not a schema field")
        return self

    @property
    def expected_field_count(self) -> int:
        return len(self.fields)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @classmethod
    def from_dict(cls, data: dict) -> RecordSchema:
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> RecordSchema:
        """Load a single schema from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)


def load_schemas(path: str | Path) -> dict[RecordKind, RecordSchema]:
    """Load one schema per record kind from a YAML mapping.

    The file maps kind names (``person``, ``household``) to schema bodies;
    the ``kind`` key inside each body is filled in from the mapping key.
    """
    with open(path) as f:
        data = yaml.safe_load(f)

    schemas = {}
    for kind_name, spec in data.items():
        kind = RecordKind(kind_name.lower())
        schemas[kind] = RecordSchema.from_dict({**spec, "kind": kind})
    return schemas


class PopulationRecord(BaseModel):
    """A decoded person or household row.

    Records are immutable: ``values`` is a read-only view over a private copy
    of the decoded fields.
    """

    kind: RecordKind
    id: str | None = None
    linkage_key: str | None = None
    fips: FipsCode
    values: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    model_config = {"frozen": True}

    @field_validator("values", mode="after")
    @classmethod
    def freeze_values(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


def split_row(line: str, delimiter: str = ",") -> list[str]:
    """Split one line into raw field strings, honoring csv quoting."""
    return next(csv.reader([line], delimiter=delimiter), [])


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def decode(
    schema: RecordSchema,
    raw_fields: Sequence[str],
    record_id: str | None = None,
) -> PopulationRecord:
    """Convert raw field strings into a PopulationRecord.

    Args:
        schema: Field layout of the row
        raw_fields: Field strings in column order
        record_id: Identifier to use when the schema has no ``id_field``

    Raises:
        FieldCountMismatchError: wrong number of fields
        MissingRequiredFieldError: a required field is empty
        FieldTypeMismatchError: a field does not convert to its type
    """
    if len(raw_fields) != schema.expected_field_count:
        raise FieldCountMismatchError(schema.expected_field_count, len(raw_fields))

    values: dict[str, Any] = {}
    for spec, raw in zip(schema.fields, raw_fields):
        text = raw.strip()
        if not text:
            if spec.required:
                raise MissingRequiredFieldError(spec.name)
            values[spec.name] = None
            continue
        values[spec.name] = spec.convert(text)

    location = values[schema.fips_field]
    fips = location.fips if isinstance(location, SettingId) else location

    if schema.id_field is not None:
        record_id = _as_text(values[schema.id_field])
    linkage_key = None
    if schema.linkage_field is not None:
        linkage_key = _as_text(values[schema.linkage_field])

    return PopulationRecord(
        kind=schema.kind,
        id=record_id,
        linkage_key=linkage_key,
        fips=fips,
        values=values,
    )


# =============================================================================
# Built-in ASPR schemas
# =============================================================================

ASPR_PERSON_SCHEMA = RecordSchema(
    kind=RecordKind.PERSON,
    fields=[
        FieldSpec(name="age", dtype=FieldType.INTEGER),
        FieldSpec(name="homeId", dtype=FieldType.SETTING_ID, setting=SettingCategory.HOME),
        FieldSpec(
            name="schoolId",
            dtype=FieldType.SETTING_ID,
            setting=SettingCategory.PUBLIC_SCHOOL,
            required=False,
        ),
        FieldSpec(
            name="workplaceId",
            dtype=FieldType.SETTING_ID,
            setting=SettingCategory.WORKPLACE,
            required=False,
        ),
    ],
    fips_field="homeId",
    linkage_field="homeId",
)

ASPR_HOUSEHOLD_SCHEMA = RecordSchema(
    kind=RecordKind.HOUSEHOLD,
    fields=[
        FieldSpec(name="homeId", dtype=FieldType.SETTING_ID, setting=SettingCategory.HOME),
        FieldSpec(name="size", dtype=FieldType.INTEGER),
    ],
    fips_field="homeId",
    id_field="homeId",
    linkage_field="homeId",
)

DEFAULT_SCHEMAS = {
    RecordKind.PERSON: ASPR_PERSON_SCHEMA,
    RecordKind.HOUSEHOLD: ASPR_HOUSEHOLD_SCHEMA,
}
