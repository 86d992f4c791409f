"""US state FIPS codes.

Only the 50 states and the District of Columbia carry ASPR synthetic
population data, so valid state codes are 01-56 with the gaps the Census
Bureau reserved (03, 07, 14, 43, 52).
"""

from __future__ import annotations

from enum import Enum


class USState(Enum):
    """US states (and DC) keyed by postal abbreviation, valued by FIPS number."""

    AL = 1
    AK = 2
    AZ = 4
    AR = 5
    CA = 6
    CO = 8
    CT = 9
    DE = 10
    DC = 11
    FL = 12
    GA = 13
    HI = 15
    ID = 16
    IL = 17
    IN = 18
    IA = 19
    KS = 20
    KY = 21
    LA = 22
    ME = 23
    MD = 24
    MA = 25
    MI = 26
    MN = 27
    MS = 28
    MO = 29
    MT = 30
    NE = 31
    NV = 32
    NH = 33
    NJ = 34
    NM = 35
    NY = 36
    NC = 37
    ND = 38
    OH = 39
    OK = 40
    OR = 41
    PA = 42
    RI = 44
    SC = 45
    SD = 46
    TN = 47
    TX = 48
    UT = 49
    VT = 50
    VA = 51
    WA = 53
    WV = 54
    WI = 55
    WY = 56

    @property
    def fips(self) -> str:
        """Two-digit, zero-padded FIPS code."""
        return f"{self.value:02d}"

    @classmethod
    def from_fips(cls, code: str | int) -> USState | None:
        """Look up a state by FIPS code, returning None for unused codes."""
        try:
            return cls(int(code))
        except ValueError:
            return None

    @classmethod
    def from_abbreviation(cls, abbreviation: str) -> USState | None:
        """Look up a state by postal abbreviation (case-insensitive)."""
        return cls.__members__.get(abbreviation.strip().upper())

    def __str__(self) -> str:
        return self.name
