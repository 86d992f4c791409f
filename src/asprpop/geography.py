"""
Vectorized FIPS utilities for asprpop.

This module provides numpy/pandas helpers for working with many FIPS codes at
once: packing codes into ``uint64`` arrays, prefix filtering on the packed
form, and deriving the coarser geography columns from GEOID strings.

Census GEOID Structure (15 characters total):
- State FIPS:     2 chars (positions 0-1)
- County FIPS:    3 chars (positions 2-4)
- Tract:          6 chars (positions 5-10)
- Block:          4 chars (positions 11-14)

Example:
    >>> from asprpop.geography import encode_fips, prefix_mask
    >>> from asprpop.core.fips import FipsCode
    >>> codes = [FipsCode.parse(s) for s in ["06037207302", "06001400100", "48201"]]
    >>> prefix_mask(encode_fips(codes), FipsCode.parse("06"))
    array([ True,  True, False])
"""

from typing import Iterable, List, Union

import numpy as np
import pandas as pd

from asprpop.core.fips import (
    COUNTY_GEOID_LEN,
    LEVEL_MASK,
    STATE_GEOID_LEN,
    TRACT_GEOID_LEN,
    FipsCode,
)


def encode_fips(codes: Iterable[FipsCode]) -> np.ndarray:
    """
    Pack FIPS codes into a ``uint64`` array.

    Args:
        codes: Iterable of FipsCode

    Returns:
        1-D numpy array of packed codes (see ``FipsCode.encode``)
    """
    return np.fromiter((code.encode() for code in codes), dtype=np.uint64)


def decode_fips(encoded: np.ndarray) -> List[FipsCode]:
    """Unpack a ``uint64`` array produced by ``encode_fips``."""
    return [FipsCode.decode(int(value)) for value in encoded]


def prefix_mask(encoded: np.ndarray, prefix: FipsCode) -> np.ndarray:
    """
    Vectorized ``prefix.is_prefix_of`` over packed codes.

    Args:
        encoded: uint64 array from ``encode_fips``
        prefix: Code to test containment against

    Returns:
        Boolean array, True where the packed code lies inside ``prefix``
    """
    encoded = np.asarray(encoded, dtype=np.uint64)
    mask = np.uint64(prefix.level.prefix_mask)
    target = np.uint64(prefix.encode()) & mask
    deep_enough = (encoded & np.uint64(LEVEL_MASK)) >= np.uint64(prefix.level.depth)
    return ((encoded & mask) == target) & deep_enough


def derive_fips_columns(
    geoids: Union[List[str], np.ndarray, pd.Series],
) -> pd.DataFrame:
    """
    Derive the coarser geography columns from GEOID strings.

    Codes too coarse for a column get a null in it (a county code has no
    tract GEOID).

    Args:
        geoids: GEOID strings of any recognized width (2, 5, 11 or 15 digits)

    Returns:
        DataFrame with columns: fips, state_fips, county_fips, tract_geoid

    Example:
        >>> derive_fips_columns(["060372073021001", "06037"])
                      fips state_fips county_fips  tract_geoid
        0  060372073021001         06       06037  06037207302
        1            06037         06       06037         None
    """
    fips = pd.Series(geoids, dtype=object).astype(str).reset_index(drop=True)
    lengths = fips.str.len()

    result = pd.DataFrame({
        "fips": fips,
        "state_fips": fips.str[:STATE_GEOID_LEN],
        "county_fips": fips.str[:COUNTY_GEOID_LEN].where(lengths >= COUNTY_GEOID_LEN, None),
        "tract_geoid": fips.str[:TRACT_GEOID_LEN].where(lengths >= TRACT_GEOID_LEN, None),
    })
    return result
