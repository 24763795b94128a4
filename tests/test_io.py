"""Tests for gridcalc JSON persistence and XLSX/PDF export."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gridcalc import Sheet, SheetIOError, export_pdf, export_xlsx, load_json, save_json


def _sample() -> Sheet:
    sheet = Sheet()
    sheet.update_cell("A1", "2")
    sheet.update_cell("A2", "3")
    sheet.update_cell("B1", "=SUM(A1:A2)*2")
    sheet.update_cell("C1", "label")
    sheet.set_alignment("C1", "r")
    sheet.set_dimension("C1", width=12)
    sheet.lock_cell("A1")
    return sheet


class TestJson:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "sheet.json"
        sheet = _sample()
        save_json(sheet, path)
        loaded = load_json(path)
        assert loaded.to_dict() == sheet.to_dict()
        assert loaded["B1"].display == "10"
        assert loaded["A1"].locked
        assert not loaded.can_undo

    def test_document_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "sheet.json"
        save_json(_sample(), path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["max_rows"] == 10
        cells = {item["address"]: item for item in data["cells"]}
        assert cells["B1"]["raw"] == "=SUM(A1:A2)*2"
        assert cells["B1"]["formula"] == "SUM(A1:A2)*2"
        assert cells["C1"]["alignment"] == "right"
        assert cells["C1"]["width"] == 12

    def test_loaded_sheet_is_reactive(self, tmp_path: Path) -> None:
        path = tmp_path / "sheet.json"
        save_json(_sample(), path)
        loaded = load_json(path)
        loaded.update_cell("A2", "8")
        assert loaded["B1"].value == 20

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SheetIOError, match="Cannot load"):
            load_json(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SheetIOError, match="Invalid JSON"):
            load_json(path)

    def test_wrong_document_type(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(SheetIOError):
            load_json(path)

    def test_missing_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "partial.json"
        path.write_text('{"max_rows": 10}', encoding="utf-8")
        with pytest.raises(SheetIOError):
            load_json(path)

    def test_out_of_bounds_cell(self, tmp_path: Path) -> None:
        path = tmp_path / "oob.json"
        path.write_text(
            json.dumps({"max_rows": 2, "max_cols": 2, "cells": [{"address": "C1", "raw": "1"}]}),
            encoding="utf-8",
        )
        with pytest.raises(SheetIOError, match="out of bounds"):
            load_json(path)

    def test_save_to_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(SheetIOError):
            save_json(Sheet(), tmp_path / "nope" / "sheet.json")

    def test_io_error_is_os_error(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            load_json(tmp_path / "missing.json")


class TestXlsxExport:
    def test_values_and_formulas(self, tmp_path: Path) -> None:
        openpyxl = pytest.importorskip("openpyxl")
        path = tmp_path / "sheet.xlsx"
        export_xlsx(_sample(), path)

        ws = openpyxl.load_workbook(path).active
        assert ws["A1"].value == 2
        assert ws["B1"].value == "=SUM(A1:A2)*2"
        assert ws["C1"].value == "label"
        assert ws["C1"].alignment.horizontal == "right"
        assert ws.column_dimensions["C"].width == 12


class TestPdfExport:
    def test_single_page(self, tmp_path: Path) -> None:
        pytest.importorskip("reportlab")
        path = tmp_path / "sheet.pdf"
        assert export_pdf(_sample(), path) == 1
        assert path.read_bytes().startswith(b"%PDF")

    def test_pagination(self, tmp_path: Path) -> None:
        pytest.importorskip("reportlab")
        sheet = Sheet(max_rows=50, max_cols=20)
        sheet.update_cell("T50", "last")
        assert export_pdf(sheet, tmp_path / "big.pdf") == 3
