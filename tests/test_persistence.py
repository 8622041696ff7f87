"""Tests for saving and loading sheets."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from sheetcore.cell import DEFAULT_BG_COLOR, ERROR_MARKER, SELF_REFERENCE_MARKER
from sheetcore.formulas.errors import CircularDependencyError, SheetFormatError
from sheetcore.persistence import CellRecord, apply_document, load_sheet, read_document, save_sheet
from sheetcore.spreadsheet import Spreadsheet


def _snapshot(sheet: Spreadsheet) -> dict[str, tuple[str, str, int]]:
    return {c.name: (c.text, c.value, c.bg_color) for c in sheet.modified_cells()}


def _write_doc(path: Path, cells: list[dict], rows: int = 10, columns: int = 5) -> Path:
    path.write_text(yaml.safe_dump({"version": 1, "rows": rows, "columns": columns, "cells": cells}))
    return path


class TestSave:
    def test_only_modified_cells_written(self, tmp_path):
        sheet = Spreadsheet(10, 5)
        sheet.set_text("A1", "5")
        sheet.set_text("B2", "=A1*2")
        sheet.set_bg_color("C3", 255)

        path = save_sheet(sheet, tmp_path / "sheet.yaml")
        raw = yaml.safe_load(path.read_text())

        assert raw["version"] == 1
        assert raw["rows"] == 10
        assert raw["columns"] == 5
        records = {(r["row"], r["column"]): r for r in raw["cells"]}
        assert set(records) == {(0, "A"), (1, "B"), (2, "C")}
        assert records[(1, "B")] == {"row": 1, "column": "B", "text": "=A1*2", "value": "10", "bg_color": DEFAULT_BG_COLOR}
        assert records[(2, "C")]["text"] == ""
        assert records[(2, "C")]["bg_color"] == 255

    def test_atomic_write_leaves_no_tmp(self, tmp_path):
        sheet = Spreadsheet(3, 3)
        sheet.set_text("A1", "1")
        save_sheet(sheet, tmp_path / "sheet.yaml")
        assert [p.name for p in tmp_path.iterdir()] == ["sheet.yaml"]

    def test_creates_parent_dirs(self, tmp_path):
        path = save_sheet(Spreadsheet(2, 2), tmp_path / "nested" / "sheet.yaml")
        assert path.exists()


class TestRoundTrip:
    def test_round_trip(self, tmp_path):
        sheet = Spreadsheet(10, 5)
        sheet.set_text("A1", "5")
        sheet.set_text("A2", "label")
        sheet.set_text("B1", "=A1+1")
        sheet.set_text("C1", "=B1*2")
        sheet.set_text("D1", "=A1+C1")
        sheet.set_bg_color("B1", 0x336699)
        sheet.set_bg_color("E5", 0)
        before = _snapshot(sheet)

        path = save_sheet(sheet, tmp_path / "sheet.yaml")
        restored = Spreadsheet(10, 5)
        restored.set_text("A3", "stale")
        load_sheet(restored, path)

        assert _snapshot(restored) == before

    def test_forward_references_resolve(self, tmp_path):
        # Formulas listed before the formulas they read.
        path = _write_doc(
            tmp_path / "sheet.yaml",
            [
                {"row": 0, "column": "D", "text": "=C1+1"},
                {"row": 0, "column": "C", "text": "=B1*2"},
                {"row": 0, "column": "B", "text": "=A1+1"},
                {"row": 0, "column": "A", "text": "5"},
            ],
        )
        sheet = Spreadsheet(10, 5)
        assert load_sheet(sheet, path) == []
        assert sheet.get_cell_by_name("B1").value == "6"
        assert sheet.get_cell_by_name("C1").value == "12"
        assert sheet.get_cell_by_name("D1").value == "13"

        # Dependencies are live after load.
        sheet.set_text("A1", "1")
        assert sheet.get_cell_by_name("D1").value == "9"

    def test_blank_reference_round_trips(self, tmp_path):
        sheet = Spreadsheet(5, 5)
        sheet.set_text("A1", "=B1+5")
        before = _snapshot(sheet)
        path = save_sheet(sheet, tmp_path / "sheet.yaml")

        restored = Spreadsheet(5, 5)
        load_sheet(restored, path)
        assert _snapshot(restored) == before
        assert restored.get_cell_by_name("A1").value == "0"


class TestLoadErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_sheet(Spreadsheet(2, 2), tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "sheet.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(SheetFormatError):
            load_sheet(Spreadsheet(2, 2), path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "sheet.yaml"
        path.write_text("rows: [1, 2\n")
        with pytest.raises(SheetFormatError):
            read_document(path)

    def test_negative_color_rejected(self, tmp_path):
        path = _write_doc(tmp_path / "sheet.yaml", [{"row": 0, "column": "A", "bg_color": -5}])
        with pytest.raises(SheetFormatError):
            read_document(path)

    def test_unsupported_version(self, tmp_path):
        path = tmp_path / "sheet.yaml"
        path.write_text(yaml.safe_dump({"version": 2, "rows": 2, "columns": 2, "cells": []}))
        with pytest.raises(SheetFormatError):
            read_document(path)

    def test_record_outside_grid(self, tmp_path):
        path = _write_doc(tmp_path / "sheet.yaml", [{"row": 40, "column": "A", "text": "1"}])
        with pytest.raises(SheetFormatError):
            load_sheet(Spreadsheet(5, 5), path)

    def test_circular_dependency(self, tmp_path):
        path = _write_doc(
            tmp_path / "sheet.yaml",
            [
                {"row": 0, "column": "A", "text": "=B1"},
                {"row": 0, "column": "B", "text": "=A1"},
                {"row": 0, "column": "C", "text": "7"},
            ],
        )
        sheet = Spreadsheet(5, 5)
        with pytest.raises(CircularDependencyError) as exc_info:
            load_sheet(sheet, path)
        assert exc_info.value.cells == ["A1", "B1"]
        assert sheet.get_cell_by_name("C1").value == "7"

    def test_self_reference_does_not_block_load(self, tmp_path):
        path = _write_doc(
            tmp_path / "sheet.yaml",
            [
                {"row": 1, "column": "B", "text": "=B2+1"},
                {"row": 0, "column": "A", "text": "3"},
            ],
        )
        sheet = Spreadsheet(5, 5)
        assert load_sheet(sheet, path) == ["B2"]
        assert sheet.get_cell_by_name("B2").value == SELF_REFERENCE_MARKER

    def test_evaluation_error_does_not_abort(self, tmp_path):
        path = _write_doc(
            tmp_path / "sheet.yaml",
            [
                {"row": 0, "column": "A", "text": "=1/0"},
                {"row": 0, "column": "B", "text": "2"},
            ],
        )
        sheet = Spreadsheet(5, 5)
        assert load_sheet(sheet, path) == ["A1"]
        assert sheet.get_cell_by_name("A1").value == ERROR_MARKER
        assert sheet.get_cell_by_name("B1").value == "2"

    def test_load_clears_previous_contents(self, tmp_path):
        path = _write_doc(tmp_path / "sheet.yaml", [{"row": 0, "column": "A", "text": "1"}])
        sheet = Spreadsheet(5, 5)
        sheet.set_text("C3", "old")
        sheet.set_bg_color("D4", 9)
        load_sheet(sheet, path)
        assert _snapshot(sheet) == {"A1": ("1", "1", DEFAULT_BG_COLOR)}

    def test_load_tells_listeners_about_emptied_cells(self, tmp_path):
        path = _write_doc(tmp_path / "sheet.yaml", [{"row": 0, "column": "A", "text": "1"}])
        sheet = Spreadsheet(5, 5)
        sheet.set_text("C3", "old")

        shown: dict[str, str] = {}
        sheet.subscribe(lambda cell, prop: shown.__setitem__(cell.name, cell.value))
        load_sheet(sheet, path)
        assert shown["C3"] == ""
        assert shown["A1"] == "1"


class TestCellRecord:
    def test_name(self):
        assert CellRecord(row=9, column="AA").name == "AA10"

    def test_defaults(self):
        record = CellRecord(row=0, column="A")
        assert record.text == ""
        assert record.bg_color == DEFAULT_BG_COLOR

    def test_apply_document_without_file(self):
        from sheetcore.persistence import SheetDocument

        doc = SheetDocument(rows=3, columns=3, cells=[CellRecord(row=0, column="B", text="=A1+1"), CellRecord(row=0, column="A", text="1")])
        sheet = Spreadsheet(3, 3)
        apply_document(sheet, doc)
        assert sheet.get_cell_by_name("B1").value == "2"
