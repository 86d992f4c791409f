"""
Hierarchical FIPS geographic codes.

FIPS codes identify nested Census geographies. The hierarchical part of a
GEOID is a concatenation of fixed-width digit fields:

- State FIPS:     2 chars (positions 0-1)
- County FIPS:    3 chars (positions 2-4)
- Tract:          6 chars (positions 5-10)
- Block:          4 chars (positions 11-14)

A ``FipsCode`` holds the fields as zero-padded digit strings, so leading zeros
always survive a round trip ("01", never "1"), and packs into a single 64-bit
integer for compact storage:

| Field     | Bits  | Capacity | Max observed |
| --------- | ----- | -------- | ------------ |
| State     | 63-58 | 63       | 56           |
| County    | 57-48 | 1023     | 840          |
| Tract     | 47-28 | 1048575  | 990101       |
| Block     | 27-14 | 16383    | 9999         |
| Reserved  | 13-2  | -        | -            |
| Level tag | 1-0   | 3        | 3            |

Absent fields are stored as zero and the level tag sits in the least
significant bits, so numeric order of the packed value is the geographic
order: codes sharing a prefix compare by the prefix first, and a coarser code
sorts before every finer code it contains.

Example:
    >>> from asprpop.core.fips import FipsCode, FipsLevel
    >>> code = FipsCode.parse("06037")
    >>> code.state, code.county
    ('06', '037')
    >>> code.truncate_to(FipsLevel.STATE)
    FipsCode('06')
    >>> code.is_prefix_of(FipsCode.parse("06037207302"))
    True
"""

from __future__ import annotations

from enum import Enum
from functools import total_ordering
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from asprpop.core.states import USState
from asprpop.errors import InsufficientPrecisionError, InvalidFormatError


# GEOID structure constants
STATE_LEN = 2
COUNTY_LEN = 3  # County portion after state (total 5 chars for state+county)
TRACT_LEN = 6   # Tract portion after county (total 11 chars for tract GEOID)
BLOCK_LEN = 4   # Block portion after tract (total 15 chars for full GEOID)

STATE_GEOID_LEN = STATE_LEN  # 2
COUNTY_GEOID_LEN = STATE_LEN + COUNTY_LEN  # 5
TRACT_GEOID_LEN = STATE_LEN + COUNTY_LEN + TRACT_LEN  # 11
BLOCK_GEOID_LEN = STATE_LEN + COUNTY_LEN + TRACT_LEN + BLOCK_LEN  # 15

# Offsets of the bit fields in the packed code
STATE_OFFSET = 58
COUNTY_OFFSET = 48
TRACT_OFFSET = 28
BLOCK_OFFSET = 14

SIX_BIT_MASK = (1 << 6) - 1
TEN_BIT_MASK = (1 << 10) - 1
FOURTEEN_BIT_MASK = (1 << 14) - 1
TWENTY_BIT_MASK = (1 << 20) - 1
LEVEL_MASK = 0b11
RESERVED_MASK = ((1 << BLOCK_OFFSET) - 1) & ~LEVEL_MASK
UINT64_MAX = (1 << 64) - 1


class FipsLevel(Enum):
    """Levels of the FIPS hierarchy, coarsest first."""

    STATE = "state"
    COUNTY = "county"
    TRACT = "tract"
    BLOCK = "block"

    @property
    def depth(self) -> int:
        """Position in the hierarchy (0 = state)."""
        return _DEPTHS[self]

    @property
    def width(self) -> int:
        """Digits contributed by this level's own field."""
        return {
            FipsLevel.STATE: STATE_LEN,
            FipsLevel.COUNTY: COUNTY_LEN,
            FipsLevel.TRACT: TRACT_LEN,
            FipsLevel.BLOCK: BLOCK_LEN,
        }[self]

    @property
    def geoid_length(self) -> int:
        """Total GEOID digits for a code at this level."""
        return {
            FipsLevel.STATE: STATE_GEOID_LEN,
            FipsLevel.COUNTY: COUNTY_GEOID_LEN,
            FipsLevel.TRACT: TRACT_GEOID_LEN,
            FipsLevel.BLOCK: BLOCK_GEOID_LEN,
        }[self]

    @property
    def prefix_mask(self) -> int:
        """Bits of the packed code that hold this level and all coarser ones."""
        return _PREFIX_MASKS[self]

    @classmethod
    def from_depth(cls, depth: int) -> FipsLevel:
        return _LEVELS[depth]

    @classmethod
    def from_length(cls, length: int) -> FipsLevel | None:
        """Level whose GEOID has exactly ``length`` digits, if any."""
        for level in _LEVELS:
            if level.geoid_length == length:
                return level
        return None


_LEVELS = (FipsLevel.STATE, FipsLevel.COUNTY, FipsLevel.TRACT, FipsLevel.BLOCK)
_DEPTHS = {level: depth for depth, level in enumerate(_LEVELS)}
_PREFIX_MASKS = {
    FipsLevel.STATE: SIX_BIT_MASK << STATE_OFFSET,
    FipsLevel.COUNTY: ((1 << 16) - 1) << COUNTY_OFFSET,
    FipsLevel.TRACT: ((1 << 36) - 1) << TRACT_OFFSET,
    FipsLevel.BLOCK: ((1 << 50) - 1) << BLOCK_OFFSET,
}
_WIDTHS = {"state": STATE_LEN, "county": COUNTY_LEN, "tract": TRACT_LEN, "block": BLOCK_LEN}


@total_ordering
class FipsCode(BaseModel):
    """A state, county, tract or block FIPS code.

    Build one by parsing a GEOID string or by composing from parts; numeric
    parts are zero-padded to their field width:

        >>> FipsCode(state=6, county=37)
        FipsCode('06037')
    """

    state: str = Field(..., pattern=r"^[0-9]{2}$")
    county: str | None = Field(default=None, pattern=r"^[0-9]{3}$")
    tract: str | None = Field(default=None, pattern=r"^[0-9]{6}$")
    block: str | None = Field(default=None, pattern=r"^[0-9]{4}$")

    model_config = {"frozen": True}

    @field_validator("state", "county", "tract", "block", mode="before")
    @classmethod
    def pad_numeric_parts(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return f"{value:0{_WIDTHS[info.field_name]}d}"
        return value

    @model_validator(mode="after")
    def validate_hierarchy(self) -> FipsCode:
        """A finer field is never present without every coarser field."""
        if USState.from_fips(self.state) is None:
            raise ValueError(f"Unknown state FIPS code: {self.state}")
        if self.tract is not None and self.county is None:
            raise ValueError("Tract requires county")
        if self.block is not None and self.tract is None:
            raise ValueError("Block requires tract")
        return self

    # Constructors
    @classmethod
    def parse(cls, text: str) -> FipsCode:
        """Parse a 2, 5, 11 or 15 digit GEOID string.

        Raises:
            InvalidFormatError: wrong length, a non-digit character, or a
                state code that is not in use.
        """
        if not isinstance(text, str):
            raise InvalidFormatError(repr(text), "FIPS code must be a string")
        s = text.strip()
        if not (s.isascii() and s.isdigit()):
            raise InvalidFormatError(text, "FIPS code must contain only digits")
        level = FipsLevel.from_length(len(s))
        if level is None:
            raise InvalidFormatError(text, f"FIPS code cannot have {len(s)} digits")
        if USState.from_fips(s[:STATE_GEOID_LEN]) is None:
            raise InvalidFormatError(text, "unknown state FIPS code")
        return cls._from_digits(s, level)

    @classmethod
    def _from_digits(cls, digits: str, level: FipsLevel) -> FipsCode:
        depth = level.depth
        return cls(
            state=digits[:STATE_GEOID_LEN],
            county=digits[STATE_GEOID_LEN:COUNTY_GEOID_LEN] if depth >= 1 else None,
            tract=digits[COUNTY_GEOID_LEN:TRACT_GEOID_LEN] if depth >= 2 else None,
            block=digits[TRACT_GEOID_LEN:BLOCK_GEOID_LEN] if depth >= 3 else None,
        )

    @classmethod
    def of_state(cls, state: USState) -> FipsCode:
        return cls(state=state.fips)

    # Accessors
    @property
    def level(self) -> FipsLevel:
        """Finest level this code specifies."""
        if self.block is not None:
            return FipsLevel.BLOCK
        if self.tract is not None:
            return FipsLevel.TRACT
        if self.county is not None:
            return FipsLevel.COUNTY
        return FipsLevel.STATE

    @property
    def us_state(self) -> USState:
        return USState.from_fips(self.state)

    @property
    def county_fips(self) -> str | None:
        """5-character state+county code, if the code has a county."""
        if self.county is None:
            return None
        return self.state + self.county

    @property
    def tract_geoid(self) -> str | None:
        """11-character tract GEOID, if the code has a tract."""
        if self.tract is None:
            return None
        return self.state + self.county + self.tract

    # Hierarchy
    def to_string(self, level: FipsLevel | None = None) -> str:
        """Render the zero-padded GEOID at ``level`` (default: own level).

        Raises:
            InsufficientPrecisionError: if the code is coarser than ``level``.
        """
        if level is None:
            level = self.level
        if level.depth > self.level.depth:
            raise InsufficientPrecisionError(self.level, level)
        parts = (self.state, self.county, self.tract, self.block)
        return "".join(parts[: level.depth + 1])

    def truncate_to(self, level: FipsLevel) -> FipsCode:
        """Drop components finer than ``level``.

        Truncation only removes precision, so it never fails: asking for a
        level finer than the code's own returns the code unchanged.
        """
        if level.depth >= self.level.depth:
            return self
        return FipsCode._from_digits(self.to_string(level), level)

    def parent(self) -> FipsCode | None:
        """The next coarser code, or None for a state."""
        depth = self.level.depth
        if depth == 0:
            return None
        return self.truncate_to(FipsLevel.from_depth(depth - 1))

    def is_prefix_of(self, other: FipsCode) -> bool:
        """True if ``other`` lies inside (or is) this geography."""
        if other.level.depth < self.level.depth:
            return False
        mask = self.level.prefix_mask
        return (other.encode() & mask) == (self.encode() & mask)

    # Packed form
    def encode(self) -> int:
        """Pack into an unsigned 64-bit integer."""
        return (
            int(self.state) << STATE_OFFSET
            | int(self.county or 0) << COUNTY_OFFSET
            | int(self.tract or 0) << TRACT_OFFSET
            | int(self.block or 0) << BLOCK_OFFSET
            | self.level.depth
        )

    @classmethod
    def decode(cls, value: int) -> FipsCode:
        """Unpack a value produced by ``encode``.

        Raises:
            InvalidFormatError: if the value is not a packed FIPS code.
        """
        value = int(value)
        if value < 0 or value > UINT64_MAX or value & RESERVED_MASK:
            raise InvalidFormatError(str(value), "not a packed FIPS code")
        level = FipsLevel.from_depth(value & LEVEL_MASK)
        if value & ~(level.prefix_mask | LEVEL_MASK):
            raise InvalidFormatError(str(value), "packed FIPS code has fields below its level")

        state = (value >> STATE_OFFSET) & SIX_BIT_MASK
        county = (value >> COUNTY_OFFSET) & TEN_BIT_MASK
        tract = (value >> TRACT_OFFSET) & TWENTY_BIT_MASK
        block = (value >> BLOCK_OFFSET) & FOURTEEN_BIT_MASK
        if county > 999 or tract > 999_999 or block > 9_999:
            raise InvalidFormatError(str(value), "packed FIPS field out of range")
        if USState.from_fips(state) is None:
            raise InvalidFormatError(str(value), "unknown state FIPS code")

        digits = f"{state:02d}{county:03d}{tract:06d}{block:04d}"
        return cls._from_digits(digits[: level.geoid_length], level)

    # Comparison
    def __lt__(self, other: FipsCode) -> bool:
        if not isinstance(other, FipsCode):
            return NotImplemented
        return self.encode() < other.encode()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FipsCode):
            return False
        return (
            self.state == other.state
            and self.county == other.county
            and self.tract == other.tract
            and self.block == other.block
        )

    def __hash__(self) -> int:
        return hash((self.state, self.county, self.tract, self.block))

    # String representation
    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"FipsCode({str(self)!r})"
