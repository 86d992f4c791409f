"""ASPR setting identifiers.

The ASPR synthetic population encodes ``homeId``, ``schoolId`` and
``workplaceId`` with a FIPS geographic prefix followed by a sequence number:

1. **Home ID** as a 15-character string:
    - 11-digit tract + 4-digit within-tract sequential id
2. **School ID** as a 14-character string:
    - Public: 11-digit tract + 3-digit within-tract sequential id
    - Private: 5-digit county + "xprvx" + 4-digit within-county sequential id
3. **Work ID** as a 16-character string:
    - 11-digit tract + 5-digit within-tract sequential id

Sequence numbers must fit the bit budget the packed representation reserves
for them (14 bits for homes and workplaces, 10 for public schools, 11 for
private schools).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from asprpop.core.fips import (
    COUNTY_GEOID_LEN,
    COUNTY_OFFSET,
    FOURTEEN_BIT_MASK,
    SIX_BIT_MASK,
    STATE_OFFSET,
    TEN_BIT_MASK,
    TRACT_GEOID_LEN,
    TRACT_OFFSET,
    TWENTY_BIT_MASK,
    UINT64_MAX,
    FipsCode,
    FipsLevel,
)
from asprpop.core.states import USState
from asprpop.errors import InvalidFormatError

PRIVATE_SCHOOL_MARKER = "xprvx"

# Packed setting id: state | county | tract | category | number | data
CATEGORY_OFFSET = 24
NUMBER_OFFSET = 10
FOUR_BIT_MASK = (1 << 4) - 1
DATA_MASK = TEN_BIT_MASK


class SettingCategory(Enum):
    """Kind of place a setting id refers to."""

    HOME = "home"
    WORKPLACE = "workplace"
    PUBLIC_SCHOOL = "public_school"
    PRIVATE_SCHOOL = "private_school"

    @property
    def digits(self) -> int:
        """Width of the sequence-number suffix."""
        return {
            SettingCategory.HOME: 4,
            SettingCategory.WORKPLACE: 5,
            SettingCategory.PUBLIC_SCHOOL: 3,
            SettingCategory.PRIVATE_SCHOOL: 4,
        }[self]

    @property
    def capacity(self) -> int:
        """Largest sequence number representable for this category."""
        bits = {
            SettingCategory.HOME: 14,
            SettingCategory.WORKPLACE: 14,
            SettingCategory.PUBLIC_SCHOOL: 10,
            SettingCategory.PRIVATE_SCHOOL: 11,
        }[self]
        return (1 << bits) - 1

    @property
    def fips_level(self) -> FipsLevel:
        if self == SettingCategory.PRIVATE_SCHOOL:
            return FipsLevel.COUNTY
        return FipsLevel.TRACT

    @property
    def code(self) -> int:
        """Tag stored in the category bits of a packed id (0 is unspecified)."""
        return _CATEGORY_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> SettingCategory | None:
        for category, value in _CATEGORY_CODES.items():
            if value == code:
                return category
        return None


_CATEGORY_CODES = {
    SettingCategory.HOME: 1,
    SettingCategory.WORKPLACE: 2,
    SettingCategory.PUBLIC_SCHOOL: 3,
    SettingCategory.PRIVATE_SCHOOL: 4,
}


class SettingId(BaseModel):
    """A home, school or workplace id split into geography and sequence.

    A setting id packs into one unsigned 64-bit integer:

    | Field    | Bits  |
    | -------- | ----- |
    | State    | 63-58 |
    | County   | 57-48 |
    | Tract    | 47-28 |
    | Category | 27-24 |
    | Number   | 23-10 |
    | Data     | 9-0   |

    The 10-bit ``data`` region is free for applications to tag a setting
    (it is zero for parsed ids); ``compare_non_data`` orders ids while
    ignoring it.
    """

    category: SettingCategory
    fips: FipsCode
    number: int = Field(..., ge=0)
    data: int = Field(default=0, ge=0, le=DATA_MASK)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_layout(self) -> SettingId:
        if self.number > self.category.capacity:
            raise ValueError(
                f"Sequence number {self.number} exceeds {self.category.value} "
                f"capacity {self.category.capacity}"
            )
        if self.fips.level != self.category.fips_level:
            raise ValueError(
                f"{self.category.value} ids need a {self.category.fips_level.value} "
                f"code, got {self.fips.level.value}"
            )
        return self

    def with_data(self, data: int) -> SettingId:
        """Copy of this id with ``data`` in the application data region."""
        return SettingId(category=self.category, fips=self.fips, number=self.number, data=data)

    # Packed form
    def encode(self) -> int:
        """Pack into an unsigned 64-bit integer."""
        return (
            int(self.fips.state) << STATE_OFFSET
            | int(self.fips.county) << COUNTY_OFFSET
            | int(self.fips.tract or 0) << TRACT_OFFSET
            | self.category.code << CATEGORY_OFFSET
            | self.number << NUMBER_OFFSET
            | self.data
        )

    @classmethod
    def decode(cls, value: int) -> SettingId:
        """Unpack a value produced by ``encode``.

        Raises:
            InvalidFormatError: if the value is not a packed setting id.
        """
        value = int(value)
        if value < 0 or value > UINT64_MAX:
            raise InvalidFormatError(str(value), "not a packed setting id")

        category = SettingCategory.from_code((value >> CATEGORY_OFFSET) & FOUR_BIT_MASK)
        if category is None:
            raise InvalidFormatError(str(value), "packed setting id has no category")
        state = (value >> STATE_OFFSET) & SIX_BIT_MASK
        county = (value >> COUNTY_OFFSET) & TEN_BIT_MASK
        tract = (value >> TRACT_OFFSET) & TWENTY_BIT_MASK
        number = (value >> NUMBER_OFFSET) & FOURTEEN_BIT_MASK
        data = value & DATA_MASK

        if USState.from_fips(state) is None:
            raise InvalidFormatError(str(value), "unknown state FIPS code")
        if county > 999 or tract > 999_999:
            raise InvalidFormatError(str(value), "packed FIPS field out of range")
        if number > category.capacity:
            raise InvalidFormatError(str(value), "sequence number exceeds capacity")

        if category.fips_level == FipsLevel.COUNTY:
            if tract:
                raise InvalidFormatError(str(value), "county-level id has tract bits")
            fips = FipsCode(state=state, county=county)
        else:
            fips = FipsCode(state=state, county=county, tract=tract)
        return cls(category=category, fips=fips, number=number, data=data)

    def compare_non_data(self, other: SettingId) -> int:
        """Compare packed values ignoring the data region: -1, 0 or 1."""
        a = self.encode() & ~DATA_MASK
        b = other.encode() & ~DATA_MASK
        return (a > b) - (a < b)

    def __str__(self) -> str:
        suffix = f"{self.number:0{self.category.digits}d}"
        if self.category == SettingCategory.PRIVATE_SCHOOL:
            return f"{self.fips}{PRIVATE_SCHOOL_MARKER}{suffix}"
        return f"{self.fips}{suffix}"

    def __repr__(self) -> str:
        if self.data:
            return f"SettingId({self.category.value}, {str(self)!r}, data={self.data})"
        return f"SettingId({self.category.value}, {str(self)!r})"


def _parse_geography(text: str, geoid: str) -> FipsCode:
    try:
        return FipsCode.parse(geoid)
    except InvalidFormatError as e:
        raise InvalidFormatError(text, f"bad geographic prefix ({e.reason})") from e


def _parse_sequence(text: str, digits: str, category: SettingCategory) -> int:
    if len(digits) != category.digits or not (digits.isascii() and digits.isdigit()):
        raise InvalidFormatError(
            text, f"{category.value} id needs a {category.digits}-digit sequence number"
        )
    number = int(digits)
    if number > category.capacity:
        raise InvalidFormatError(
            text, f"sequence number {number} exceeds capacity {category.capacity}"
        )
    return number


def _parse_tract_id(text: str, category: SettingCategory) -> SettingId:
    s = text.strip()
    expected = TRACT_GEOID_LEN + category.digits
    if len(s) != expected:
        raise InvalidFormatError(text, f"{category.value} id must have {expected} characters")
    fips = _parse_geography(text, s[:TRACT_GEOID_LEN])
    number = _parse_sequence(text, s[TRACT_GEOID_LEN:], category)
    return SettingId(category=category, fips=fips, number=number)


def parse_home_id(text: str) -> SettingId:
    """Parse a 15-character home id (tract + 4 digits)."""
    return _parse_tract_id(text, SettingCategory.HOME)


def parse_workplace_id(text: str) -> SettingId:
    """Parse a 16-character workplace id (tract + 5 digits)."""
    return _parse_tract_id(text, SettingCategory.WORKPLACE)


def parse_school_id(text: str) -> SettingId:
    """Parse a 14-character school id, public or private.

    Private school ids carry the ``xprvx`` marker after the county code;
    every other school id is a public school keyed by tract.
    """
    s = text.strip()
    if s[COUNTY_GEOID_LEN:].startswith(PRIVATE_SCHOOL_MARKER):
        category = SettingCategory.PRIVATE_SCHOOL
        fips = _parse_geography(text, s[:COUNTY_GEOID_LEN])
        digits = s[COUNTY_GEOID_LEN + len(PRIVATE_SCHOOL_MARKER):]
        number = _parse_sequence(text, digits, category)
        return SettingId(category=category, fips=fips, number=number)
    return _parse_tract_id(text, SettingCategory.PUBLIC_SCHOOL)


def parse_setting_id(text: str, category: SettingCategory) -> SettingId:
    """Parse ``text`` as a setting id of the given category.

    Either school category accepts both school forms; the text decides
    whether the result is public or private.
    """
    if category == SettingCategory.HOME:
        return parse_home_id(text)
    if category == SettingCategory.WORKPLACE:
        return parse_workplace_id(text)
    return parse_school_id(text)
