"""
Tests for PopulationDataset.

Runs the same scenarios over the directory and archive forms of the sample
dataset.
"""

import logging
import zipfile

import pandas as pd
import polars as pl
import pytest

from asprpop import PopulationDataset, open_dataset
from asprpop.core.fips import FipsCode, FipsLevel
from asprpop.core.records import (
    ASPR_PERSON_SCHEMA,
    FieldSpec,
    FieldType,
    RecordKind,
    RecordSchema,
)
from asprpop.data_sources import ArchiveSource, DirectorySource
from asprpop.errors import (
    CorruptArchiveError,
    DatasetNotFoundError,
    FieldCountMismatchError,
    FieldTypeMismatchError,
    StreamClosedError,
    UnrecognizedFormatError,
)

from conftest import (
    HOUSEHOLDS,
    PEOPLE_HEADER,
    SAMPLE_ENTRIES,
    corrupt_member,
    write_dir,
    write_zip,
)


@pytest.fixture(params=["directory", "archive"])
def dataset(request, population_dir, population_zip):
    """Sample dataset in each on-disk form."""
    path = population_dir if request.param == "directory" else population_zip
    ds = PopulationDataset.open(path)
    yield ds
    ds.close()


# =============================================================================
# Open Tests
# =============================================================================

class TestOpen:
    """Test format detection."""

    def test_directory(self, population_dir):
        with PopulationDataset.open(population_dir) as ds:
            assert isinstance(ds.source, DirectorySource)

    def test_archive(self, population_zip):
        with PopulationDataset.open(population_zip) as ds:
            assert isinstance(ds.source, ArchiveSource)

    def test_archive_bytes(self, population_zip):
        with PopulationDataset.open(population_zip.read_bytes()) as ds:
            assert ds.entries() == list(SAMPLE_ENTRIES)

    def test_existing_source(self, population_dir):
        source = DirectorySource(population_dir)
        with open_dataset(source) as ds:
            assert ds.source is source

    def test_missing_path(self, tmp_path):
        with pytest.raises(DatasetNotFoundError) as exc_info:
            PopulationDataset.open(tmp_path / "does-not-exist")
        assert exc_info.value.path == tmp_path / "does-not-exist"

    def test_unrecognized_file(self, tmp_path):
        path = tmp_path / "people.csv"
        path.write_text(PEOPLE_HEADER + "\n")
        with pytest.raises(UnrecognizedFormatError):
            PopulationDataset.open(path)

    def test_default_path_from_config(self, tmp_path, monkeypatch):
        from asprpop import config

        write_dir(tmp_path / "all_states", SAMPLE_ENTRIES)
        monkeypatch.setattr(config, "_aspr_data_path", tmp_path)
        with PopulationDataset.open() as ds:
            assert ds.entries() == list(SAMPLE_ENTRIES)

    def test_single_schema(self, population_dir):
        with PopulationDataset.open(population_dir, schemas=ASPR_PERSON_SCHEMA) as ds:
            assert ds.entries() == ["ca.csv", "tx.csv"]


# =============================================================================
# Record Tests
# =============================================================================

class TestRecords:
    """Test full iteration."""

    def test_all_records(self, dataset):
        records = list(dataset.records())
        kinds = [r.kind for r in records]
        assert kinds.count(RecordKind.PERSON) == 5
        assert kinds.count(RecordKind.HOUSEHOLD) == 3

    def test_entry_order(self, dataset):
        ids = [r.id for r in dataset.records()]
        assert ids[:3] == ["ca.csv:2", "ca.csv:3", "ca.csv:4"]
        assert ids[3] == "060372073021001"
        assert ids[-2:] == ["tx.csv:2", "tx.csv:3"]

    def test_linkage(self, dataset):
        households = {r.id for r in dataset.records() if r.kind == RecordKind.HOUSEHOLD}
        people = [r for r in dataset.records() if r.kind == RecordKind.PERSON]
        assert all(p.linkage_key in households for p in people)

    def test_records_restart(self, dataset):
        assert list(dataset.records()) == list(dataset.records())

    def test_two_opens_identical(self, population_zip):
        """Two datasets over the same archive yield identical sequences."""
        with PopulationDataset.open(population_zip) as a, \
                PopulationDataset.open(population_zip) as b:
            assert list(a.records()) == list(b.records())

    def test_directory_and_archive_agree(self, population_dir, population_zip):
        with PopulationDataset.open(population_dir) as a, \
                PopulationDataset.open(population_zip) as b:
            assert list(a.records()) == list(b.records())

    def test_interleaved_archive_iterators(self, population_zip):
        with PopulationDataset.open(population_zip) as ds:
            first = ds.entry_records("ca.csv")
            next(first)
            second = ds.entry_records("tx.csv")
            next(second)
            with pytest.raises(StreamClosedError):
                next(first)

    def test_decode_error_has_context(self, tmp_path):
        root = write_dir(tmp_path / "bad", {
            "ca.csv": PEOPLE_HEADER + "\n8,060372073021001,,\n9,060372073021001\n",
        })
        with PopulationDataset.open(root) as ds:
            records = ds.records()
            assert next(records)["age"] == 8
            with pytest.raises(FieldCountMismatchError) as exc_info:
                next(records)
        assert exc_info.value.entry == "ca.csv"
        assert exc_info.value.line_number == 3
        assert str(exc_info.value).startswith("ca.csv:3:")

    def test_blank_lines_skipped(self, tmp_path):
        root = write_dir(tmp_path / "blank", {
            "ca.csv": PEOPLE_HEADER + "\n\n8,060372073021001,,\n\n",
        })
        with PopulationDataset.open(root) as ds:
            records = list(ds.records())
        assert len(records) == 1
        assert records[0].id == "ca.csv:3"

    def test_header_mismatch_warns(self, tmp_path, caplog):
        root = write_dir(tmp_path / "hdr", {
            "ca.csv": "age,home,school,work\n8,060372073021001,,\n",
        })
        with caplog.at_level(logging.WARNING, logger="asprpop.dataset"):
            with PopulationDataset.open(root) as ds:
                assert len(list(ds.records())) == 1
        assert "does not match" in caplog.text

    def test_empty_entry(self, tmp_path, caplog):
        root = write_dir(tmp_path / "empty", {"ca.csv": ""})
        with caplog.at_level(logging.WARNING, logger="asprpop.dataset"):
            with PopulationDataset.open(root) as ds:
                assert list(ds.records()) == []
        assert "Entry ca.csv is empty" in caplog.text

    def test_empty_headerless_entry(self, tmp_path, caplog):
        schema = ASPR_PERSON_SCHEMA.model_copy(update={"has_header": False})
        root = write_dir(tmp_path / "empty", {"ca.csv": ""})
        with caplog.at_level(logging.WARNING, logger="asprpop.dataset"):
            with PopulationDataset.open(root, schemas=schema) as ds:
                assert list(ds.records()) == []
        assert "Entry ca.csv is empty" in caplog.text

    def test_ids_unique_across_directories(self, tmp_path):
        path = write_zip(tmp_path / "nested.zip", {
            "a/ca.csv": SAMPLE_ENTRIES["ca.csv"],
            "b/ca.csv": SAMPLE_ENTRIES["ca.csv"],
        })
        with PopulationDataset.open(path) as ds:
            ids = [r.id for r in ds.records()]
        assert len(ids) == 6
        assert len(set(ids)) == 6
        assert ids[0] == "a/ca.csv:2"
        assert ids[3] == "b/ca.csv:2"

    def test_corrupt_entry_does_not_stop_later_entries(self, tmp_path):
        path = write_zip(tmp_path / "damaged.zip", SAMPLE_ENTRIES, compression=zipfile.ZIP_STORED)
        corrupt_member(path, "ca.csv")
        with PopulationDataset.open(path) as ds:
            with pytest.raises(CorruptArchiveError) as exc_info:
                list(ds.entry_records("ca.csv"))
            assert exc_info.value.entry == "ca.csv"

            texas = list(ds.entry_records("tx.csv"))
        assert [r.id for r in texas] == ["tx.csv:2", "tx.csv:3"]
        assert all(str(r.fips).startswith("48") for r in texas)

    def test_non_tabular_entries_ignored(self, tmp_path):
        path = write_zip(tmp_path / "pop.zip", {
            "README.md": "# ASPR\n",
            "__MACOSX/._ca.csv": "junk",
            "ca.csv": SAMPLE_ENTRIES["ca.csv"],
        })
        with PopulationDataset.open(path) as ds:
            assert ds.entries() == ["ca.csv"]

    def test_headerless_tsv_schema(self, tmp_path):
        schema = RecordSchema(
            kind=RecordKind.PERSON,
            fields=[
                FieldSpec(name="pid", dtype=FieldType.STRING),
                FieldSpec(name="geoid", dtype=FieldType.FIPS),
            ],
            fips_field="geoid",
            id_field="pid",
            delimiter="\t",
            has_header=False,
        )
        root = write_dir(tmp_path / "tsv", {"people.tsv": "p1\t06037\np2\t48201\n"})
        with PopulationDataset.open(root, schemas=schema) as ds:
            records = list(ds.records())
        assert [r.id for r in records] == ["p1", "p2"]
        assert records[1].fips == FipsCode.parse("48201")


# =============================================================================
# Prefix Filter Tests
# =============================================================================

class TestRecordsIn:
    """Test FIPS prefix filtering."""

    def test_county(self, dataset):
        records = list(dataset.records_in(FipsCode.parse("06037")))
        assert len(records) == 3
        assert all(str(r.fips).startswith("06037") for r in records)

    def test_string_prefix(self, dataset):
        assert len(list(dataset.records_in("48"))) == 3

    def test_state_equals_union_of_counties(self, dataset):
        state = list(dataset.records_in("06"))
        counties = list(dataset.records_in("06037")) + list(dataset.records_in("06001"))
        assert sorted(r.id for r in state) == sorted(r.id for r in counties)

    def test_no_match(self, dataset):
        assert list(dataset.records_in("01")) == []

    def test_out_of_prefix_entries_not_opened(self, tmp_path):
        root = write_dir(tmp_path / "skip", {
            "ca.csv": SAMPLE_ENTRIES["ca.csv"],
            "tx.csv": PEOPLE_HEADER + "\nnot,a,valid,row,at,all\n",
        })
        with PopulationDataset.open(root) as ds:
            assert len(list(ds.records_in("06"))) == 3
            with pytest.raises(FieldCountMismatchError):
                list(ds.records_in("48"))

    def test_bad_prefix(self, dataset):
        with pytest.raises(ValueError):
            list(dataset.records_in("0603"))


# =============================================================================
# Aggregation Tests
# =============================================================================

class TestAggregation:
    """Test counts and frames."""

    def test_counts_by_county(self, dataset):
        counts = dataset.counts_by(FipsLevel.COUNTY)
        assert isinstance(counts, pd.Series)
        assert counts.index.name == "county"
        assert counts.to_dict() == {"06001": 2, "06037": 3, "48113": 3}

    def test_counts_by_state_with_prefix(self, dataset):
        counts = dataset.counts_by(FipsLevel.STATE, prefix="06")
        assert counts.to_dict() == {"06": 5}

    def test_counts_sum_to_total(self, dataset):
        total = sum(1 for _ in dataset.records())
        assert dataset.counts_by(FipsLevel.TRACT).sum() == total

    def test_to_frame(self, dataset):
        df = dataset.to_frame(prefix="06037")
        assert len(df) == 3
        assert list(df.columns[:4]) == ["kind", "id", "linkage_key", "fips"]
        assert set(df["county_fips"]) == {"06037"}
        assert set(df["tract_geoid"]) == {"06037207302"}
        people = df[df["kind"] == "person"]
        assert set(people["homeId"]) == {"060372073021001"}

    def test_to_frame_empty(self, dataset):
        df = dataset.to_frame(prefix="01")
        assert df.empty
        assert "fips" in df.columns

    def test_read_entry_frame(self, dataset):
        df = dataset.read_entry_frame("households.csv")
        assert isinstance(df, pl.DataFrame)
        assert df.columns == ["homeId", "size"]
        assert df["homeId"].to_list() == [line.split(",")[0] for line in HOUSEHOLDS.splitlines()[1:]]

    def test_summary(self, dataset):
        summary = dataset.summary()
        assert summary["n_entries"] == 3
        assert summary["format"] in ("directory", "archive")
        assert summary["record_kinds"] == ["household", "person"]

    def test_schema_for_unregistered_kind(self, population_dir):
        with PopulationDataset.open(population_dir, schemas=ASPR_PERSON_SCHEMA) as ds:
            with pytest.raises(ValueError):
                ds.schema_for("households.csv")


class TestTypeMismatchInDataset:
    """Test a bad value deep in an archive entry."""

    def test_bad_age(self, tmp_path):
        path = write_zip(tmp_path / "bad.zip", {
            "ca.csv": PEOPLE_HEADER + "\nold,060372073021001,,\n",
        })
        with PopulationDataset.open(path) as ds:
            with pytest.raises(FieldTypeMismatchError) as exc_info:
                list(ds.records())
        assert exc_info.value.field_name == "age"
        assert exc_info.value.entry == "ca.csv"
        assert exc_info.value.line_number == 2
