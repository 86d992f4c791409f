"""Location of the ASPR synthetic population data on disk.

The data root defaults to ``$ASPR_DATA_PATH`` when set, otherwise
``~/data/ASPR_Synthetic_Population``. Per-state CSV files live in its
``all_states`` subdirectory (``al.csv``, ``ak.csv``, ...).
"""

import os
from pathlib import Path
from typing import List, Union

from asprpop.core.states import USState
from asprpop.errors import DatasetNotFoundError

DEFAULT_ASPR_DATA_PATH = Path.home() / "data" / "ASPR_Synthetic_Population"
ALL_STATES_DIR = "all_states"

_aspr_data_path = Path(os.environ.get("ASPR_DATA_PATH", DEFAULT_ASPR_DATA_PATH))


def set_aspr_data_path(path: Union[str, Path]) -> None:
    """Set the ASPR data root for this process."""
    global _aspr_data_path
    _aspr_data_path = Path(path)


def get_aspr_data_path() -> Path:
    """Current ASPR data root."""
    return _aspr_data_path


def all_states_path() -> Path:
    """Directory holding one CSV file per state."""
    return get_aspr_data_path() / ALL_STATES_DIR


def state_file_name(state: USState) -> str:
    """File name of a state's entry, e.g. ``al.csv``."""
    return f"{state.name.lower()}.csv"


def all_states_files() -> List[Path]:
    """
    Files in the all-states directory, sorted by name.

    Raises:
        DatasetNotFoundError: If the directory doesn't exist.
    """
    path = all_states_path()
    if not path.is_dir():
        raise DatasetNotFoundError(path)
    return sorted(p for p in path.iterdir() if p.is_file())
