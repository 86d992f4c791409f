"""Shared sample data for asprpop tests."""

import struct
import zipfile

import pytest


PEOPLE_HEADER = "age,homeId,schoolId,workplaceId"

# Two LA County homes, one Alameda home
CA_PEOPLE = "\n".join([
    PEOPLE_HEADER,
    "8,060372073021001,06037207302157,",
    "41,060372073021001,,0603720730200012",
    "67,060014001000002,,",
]) + "\n"

TX_PEOPLE = "\n".join([
    PEOPLE_HEADER,
    "15,481131234000007,48113xprvx0042,",
    "52,481131234000007,,4848795060000714",
]) + "\n"

HOUSEHOLDS = "\n".join([
    "homeId,size",
    "060372073021001,2",
    "060014001000002,1",
    "481131234000007,2",
]) + "\n"

SAMPLE_ENTRIES = {
    "ca.csv": CA_PEOPLE,
    "households.csv": HOUSEHOLDS,
    "tx.csv": TX_PEOPLE,
}


def write_zip(path, members, compression=zipfile.ZIP_DEFLATED):
    """Write ``members`` (name -> text) to a zip archive at ``path``."""
    with zipfile.ZipFile(path, "w", compression=compression) as zf:
        for name, text in members.items():
            zf.writestr(name, text)
    return path


def write_dir(path, members):
    """Write ``members`` (name -> text) as files under ``path``."""
    path.mkdir(parents=True, exist_ok=True)
    for name, text in members.items():
        (path / name).write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def population_dir(tmp_path):
    """Directory form of the sample dataset."""
    return write_dir(tmp_path / "population", SAMPLE_ENTRIES)


@pytest.fixture
def population_zip(tmp_path):
    """Archive form of the sample dataset."""
    return write_zip(tmp_path / "population.zip", SAMPLE_ENTRIES)


def _payload_offset(data, info):
    """Start of a member's payload, past its local file header."""
    offset = info.header_offset
    name_len, extra_len = struct.unpack("<HH", data[offset + 26:offset + 30])
    return offset + 30 + name_len + extra_len


def corrupt_member(path, name):
    """Alter one payload byte of a stored member so its CRC no longer matches."""
    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo(name)
    data = bytearray(path.read_bytes())
    # Overwrite a byte near the end with an ASCII digit so the text stays valid UTF-8
    target = _payload_offset(data, info) + info.file_size - 3
    data[target] = ord("7") if data[target] != ord("7") else ord("8")
    path.write_bytes(bytes(data))
    return path


def mark_encrypted(path, name):
    """Set the encryption flag of a member in its local and central headers."""
    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo(name)
    data = bytearray(path.read_bytes())
    data[info.header_offset + 6] |= 0x01
    central = data.find(b"PK\x01\x02")
    while central != -1:
        name_len = struct.unpack("<H", data[central + 28:central + 30])[0]
        if bytes(data[central + 46:central + 46 + name_len]) == name.encode():
            data[central + 8] |= 0x01
            break
        central = data.find(b"PK\x01\x02", central + 4)
    path.write_bytes(bytes(data))
    return path
