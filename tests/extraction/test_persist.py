"""Tests for CSV artifacts."""

import csv
from datetime import datetime

import pytest

from tablepull.core.errors import PersistenceError
from tablepull.core.models import TableResult
from tablepull.extraction.persist import artifact_path, ensure_directory, write_delimited


class TestArtifactPath:
    def test_plain(self, tmp_path):
        assert artifact_path(tmp_path, "LLDS_HDR") == tmp_path / "LLDS_HDR.csv"

    def test_timestamped(self, tmp_path):
        path = artifact_path(tmp_path, "LLDS_HDR", timestamp=True, now=datetime(2024, 5, 6, 7, 8, 9))
        assert path == tmp_path / "LLDS_HDR_20240506070809.csv"


class TestEnsureDirectory:
    def test_creates_nested_and_is_idempotent(self, tmp_path):
        target = tmp_path / "a" / "b" / "c"
        assert ensure_directory(target) == target
        assert ensure_directory(target) == target
        assert target.is_dir()

    def test_path_blocked_by_file(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(PersistenceError):
            ensure_directory(blocker / "sub")


class TestWriteDelimited:
    def test_header_rows_and_nulls(self, tmp_path):
        result = TableResult(
            table="LLDS_HDR",
            columns=("HDR_ID", "VESSEL", "LBS"),
            rows=[(1, "KAIMANA", 1200.5), (2, "O'HANA, JR", None)],
        )
        path = write_delimited(result, tmp_path / "out" / "LLDS_HDR.csv")

        with open(path, encoding="utf-8", newline="") as f:
            lines = list(csv.reader(f))
        assert lines == [["HDR_ID", "VESSEL", "LBS"], ["1", "KAIMANA", "1200.5"], ["2", "O'HANA, JR", ""]]

    def test_utf8(self, tmp_path):
        result = TableResult(table="T", columns=("NAME",), rows=[("Hōkūleʻa",)])
        path = write_delimited(result, tmp_path / "T.csv")
        assert "Hōkūleʻa" in path.read_text(encoding="utf-8")

    def test_overwrites(self, tmp_path):
        path = tmp_path / "T.csv"
        write_delimited(TableResult(table="T", columns=("A",), rows=[(1,), (2,)]), path)
        write_delimited(TableResult(table="T", columns=("A",), rows=[(3,)]), path)
        assert path.read_text(encoding="utf-8").splitlines() == ["A", "3"]
