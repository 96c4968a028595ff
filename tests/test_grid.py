from __future__ import annotations

import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path

from openpyxl import Workbook as OpenpyxlWorkbook

from sov_doctor.grid import (
    WorkbookError,
    is_blank,
    load_workbook,
    load_workbook_bytes,
    row_is_blank,
    to_text,
)


class CellHelperTests(unittest.TestCase):
    def test_blank_detection(self):
        self.assertTrue(is_blank(None))
        self.assertTrue(is_blank("   "))
        self.assertFalse(is_blank(0))
        self.assertFalse(is_blank("x"))
        self.assertTrue(row_is_blank([None, "", " "]))
        self.assertTrue(row_is_blank([]))

    def test_to_text_normalizes_common_cell_types(self):
        self.assertEqual(to_text(None), "")
        self.assertEqual(to_text(12.0), "12")
        self.assertEqual(to_text(12.5), "12.5")
        self.assertEqual(to_text("  PD Value "), "PD Value")
        self.assertEqual(to_text(date(2024, 3, 1)), "2024-03-01")
        self.assertEqual(to_text(datetime(2024, 3, 1, 9, 30)), "2024-03-01 09:30:00")


class LoadWorkbookTests(unittest.TestCase):
    def test_xlsx_keeps_sheet_order_and_native_values(self):
        wb = OpenpyxlWorkbook()
        ws = wb.active
        ws.title = "Locations"
        ws.append(["Location Number", "PD Value"])
        ws.append([1, 1500000])
        ws.append([None, None])
        wb.create_sheet("Notes")

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sov.xlsx"
            wb.save(path)
            workbook = load_workbook(path)

        self.assertEqual(workbook.sheet_names, ["Locations", "Notes"])
        self.assertEqual(workbook.source, str(path))
        locations = workbook.sheet("Locations")
        self.assertEqual(locations.rows, [["Location Number", "PD Value"], [1, 1500000]])
        self.assertEqual(workbook.sheet("Notes").rows, [])

    def test_unknown_sheet_name_raises_key_error(self):
        workbook = load_workbook_bytes(b"a,b\n1,2\n", "one.csv")
        with self.assertRaises(KeyError):
            workbook.sheet("missing")

    def test_csv_is_a_single_sheet_named_after_the_file(self):
        data = "\ufeffLocation Number;Street Address\n1;1 George St\n".encode("utf-8")
        workbook = load_workbook_bytes(data, "broker_sov.csv")
        self.assertEqual(workbook.sheet_names, ["broker_sov"])
        self.assertEqual(
            workbook.sheets[0].rows,
            [["Location Number", "Street Address"], ["1", "1 George St"]],
        )

    def test_unsupported_extension_is_rejected(self):
        with self.assertRaises(WorkbookError) as ctx:
            load_workbook_bytes(b"whatever", "notes.pdf")
        self.assertIn("Unsupported file type", str(ctx.exception))

    def test_empty_upload_is_rejected(self):
        with self.assertRaises(WorkbookError):
            load_workbook_bytes(b"", "empty.xlsx")

    def test_corrupt_xlsx_is_a_workbook_error(self):
        with self.assertRaises(WorkbookError) as ctx:
            load_workbook_bytes(b"this is not a zip archive", "corrupt.xlsx")
        self.assertIn("Could not read workbook", str(ctx.exception))

    def test_missing_file_raises_file_not_found(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                load_workbook(Path(tmpdir) / "absent.xlsx")


if __name__ == "__main__":
    unittest.main()
