"""Tests for the scan_paths.py remote script (run in-process)."""

from __future__ import annotations

import io
import json
from datetime import datetime

import pytest

from file_inventory.remote.scripts import scan_paths


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "data"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "one.txt").write_text("1")
    (root / "TWO.Txt").write_text("22")
    (root / ".hidden.txt").write_text("h")
    (root / "sub" / "three.txt").write_text("333")
    (root / "sub" / "deeper" / "four.txt").write_text("4444")
    (root / "sub" / "notes.md").write_text("#")
    (root / "archive.zip").write_bytes(b"PK")
    return root


class TestNormalizePath:
    def test_plain_path_unchanged(self):
        assert scan_paths.normalize_path("/data/a.txt") == "/data/a.txt"

    def test_long_path_prefix_stripped(self):
        assert scan_paths.normalize_path("\\\\?\\C:\\data\\a.txt") == "C:\\data\\a.txt"

    def test_unc_long_path_prefix_stripped(self):
        path = "\\\\?\\UNC\\server\\share\\a.txt"
        assert scan_paths.normalize_path(path) == "\\\\server\\share\\a.txt"


class TestScan:
    def test_matches_case_insensitively_and_recursively(self, tree):
        result = scan_paths.scan(
            [{"root": str(tree), "extensions": [".txt"]}], computer_name="srv01"
        )
        names = sorted(p["path"].rsplit("/", 1)[-1] for p in result["files"])
        assert names == [".hidden.txt", "TWO.Txt", "four.txt", "one.txt", "three.txt"]
        assert result["errors"] == []
        assert result["path_existence"] == [{"root": str(tree), "exists": True}]

    def test_file_record_fields(self, tree):
        result = scan_paths.scan(
            [{"root": str(tree / "sub" / "deeper"), "extensions": [".txt"]}],
            computer_name="srv01",
        )
        (record,) = result["files"]
        assert record["computer_name"] == "srv01"
        assert record["path"] == str(tree / "sub" / "deeper" / "four.txt")
        assert record["size_bytes"] == 4
        assert datetime.fromisoformat(record["last_write_time"]).tzinfo is not None
        datetime.fromisoformat(record["creation_time"])

    def test_discovery_order_is_deterministic(self, tree):
        filters = [{"root": str(tree), "extensions": [".txt"]}]
        first = scan_paths.scan(filters, computer_name="a")
        second = scan_paths.scan(filters, computer_name="a")
        assert [f["path"] for f in first["files"]] == [f["path"] for f in second["files"]]

    def test_missing_root_is_not_an_error(self, tmp_path):
        missing = str(tmp_path / "nope")
        result = scan_paths.scan([{"root": missing, "extensions": [".txt"]}])
        assert result["path_existence"] == [{"root": missing, "exists": False}]
        assert result["files"] == []
        assert result["errors"] == []

    def test_root_that_is_a_file_does_not_exist(self, tree):
        as_file = str(tree / "one.txt")
        result = scan_paths.scan([{"root": as_file, "extensions": [".txt"]}])
        assert result["path_existence"][0]["exists"] is False

    def test_existing_root_without_matches(self, tree):
        result = scan_paths.scan([{"root": str(tree), "extensions": [".pdf"]}])
        assert result["files"] == []
        assert result["path_existence"][0]["exists"] is True

    def test_empty_extension_list_is_noop(self, tree):
        result = scan_paths.scan([{"root": str(tree), "extensions": []}])
        assert result["files"] == []
        assert result["path_existence"][0]["exists"] is True

    def test_duplicate_extensions_are_not_deduplicated(self, tree):
        sub = str(tree / "sub")
        result = scan_paths.scan([{"root": sub, "extensions": [".md", ".MD"]}])
        assert len(result["files"]) == 2

    def test_extensions_processed_in_declared_order(self, tree):
        sub = str(tree / "sub")
        result = scan_paths.scan([{"root": sub, "extensions": [".md", ".txt"]}])
        suffixes = [f["path"].rsplit(".", 1)[-1] for f in result["files"]]
        assert suffixes[0] == "md"
        assert set(suffixes[1:]) == {"txt"}

    def test_roots_processed_in_filter_order(self, tree, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        (other / "z.txt").write_text("z")
        result = scan_paths.scan(
            [
                {"root": str(other), "extensions": [".txt"]},
                {"root": str(tree / "sub" / "deeper"), "extensions": [".txt"]},
            ]
        )
        assert [e["root"] for e in result["path_existence"]] == [
            str(other),
            str(tree / "sub" / "deeper"),
        ]
        assert result["files"][0]["path"].endswith("z.txt")

    def test_enumeration_fault_recorded_and_scan_continues(self, tree, monkeypatch):
        real_iter_files = scan_paths.iter_files
        calls = []

        def flaky(root):
            calls.append(root)
            if len(calls) == 1:
                raise PermissionError(13, "Permission denied", root)
            return real_iter_files(root)

        monkeypatch.setattr(scan_paths, "iter_files", flaky)
        result = scan_paths.scan(
            [{"root": str(tree), "extensions": [".zip", ".md"]}], computer_name="s"
        )

        assert result["path_existence"] == [{"root": str(tree), "exists": True}]
        assert len(result["errors"]) == 1
        assert result["errors"][0]["path"] == str(tree)
        assert "PermissionError" in result["errors"][0]["error"]
        # The .md attempt still ran
        assert [f["path"].rsplit("/", 1)[-1] for f in result["files"]] == ["notes.md"]

    def test_fault_discards_partial_matches_of_that_attempt(self, tree, monkeypatch):
        real_iter_files = scan_paths.iter_files

        def fails_midway(root):
            iterator = real_iter_files(root)
            yield next(iterator)
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(scan_paths, "iter_files", fails_midway)
        result = scan_paths.scan([{"root": str(tree), "extensions": [".txt"]}])
        assert result["files"] == []
        assert "OSError" in result["errors"][0]["error"]


class TestMain:
    def test_reads_stdin_writes_json(self, tree, monkeypatch, capsys):
        payload = {"filters": [{"root": str(tree / "sub"), "extensions": [".md"]}]}
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(payload)))
        scan_paths.main()
        output = json.loads(capsys.readouterr().out)
        assert output["path_existence"] == [{"root": str(tree / "sub"), "exists": True}]
        assert len(output["files"]) == 1
        assert output["computer_name"]
