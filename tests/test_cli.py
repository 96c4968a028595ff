from __future__ import annotations

import csv
import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from openpyxl import Workbook, load_workbook

ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "sov_doctor.cli"]
FIXED_STAMP = "20260301T010203Z"

HEADERS = ["Location Number", "Property", "Street Address", "Country", "Occupancy", "PD Value", "BI Value", "TIV"]


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = {key: value for key, value in os.environ.items() if not key.startswith("SOV_DOCTOR_")}
    merged_env["SOV_DOCTOR_OUTPUT_STAMP"] = FIXED_STAMP
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def write_sov(path: Path, rows: list[list]) -> Path:
    wb = Workbook()
    summary = wb.active
    summary.title = "Summary"
    summary.append(["Total TIV", 1_100_000])
    summary.append(["Locations", len(rows)])
    ws = wb.create_sheet("Locations")
    ws.append(HEADERS)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


CLEAN_ROW = [1, "HQ", "1 George St", "Australia", "Office", 1_000_000, 100_000, 1_100_000]
BAD_ROW = [2, "Depot", "2 Church St", "Australia", "Warehouse", -100, 0, 0]


class SovDoctorCliTests(unittest.TestCase):
    def test_process_clean_workbook_returns_exit_0_and_writes_outputs(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW])
            out_dir = Path(tmpdir) / "out"
            proc = run_cli("process", str(source), "--out", str(out_dir), "--offline")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Summary written:", proc.stderr)

            output = out_dir / "broker-standardized.xlsx"
            wb = load_workbook(output)
            self.assertEqual(wb.sheetnames[0], "Standardized_SOV")
            self.assertEqual(wb["Standardized_SOV"]["C2"].value, "1 George St")

            summary = json.loads((out_dir / "summary.json").read_text(encoding="utf-8"))
            self.assertEqual(summary["contract"]["name"], "sov_doctor.process")
            self.assertEqual(summary["validation"]["successful_rows"], 1)
            self.assertEqual(summary["run_summary"]["output_file"], str(output))

    def test_process_with_error_rows_returns_exit_3(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW, BAD_ROW])
            proc = run_cli("process", str(source), "--out", str(Path(tmpdir) / "out"), "--offline", "--json")
            self.assertEqual(proc.returncode, 3, proc.stderr)
            payload = json.loads(proc.stdout)
            self.assertEqual(payload["validation"]["error_rows"], 1)
            self.assertEqual(payload["validation"]["issues"][0]["issue"], "PD Value is negative: -100")

    def test_process_csv_format(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW])
            output = Path(tmpdir) / "standard.csv"
            proc = run_cli("process", str(source), "--output", str(output), "--out", tmpdir, "--format", "csv", "--offline")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            with output.open(encoding="utf-8", newline="") as handle:
                rows = list(csv.reader(handle))
            self.assertEqual(rows[0][0], "Location Number")
            self.assertEqual(rows[1][0], "1")

    def test_process_dry_run_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW])
            out_dir = Path(tmpdir) / "out"
            proc = run_cli("process", str(source), "--out", str(out_dir), "--offline", "--dry-run", "--json")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIsNone(json.loads(proc.stdout)["run_summary"]["output_file"])
            self.assertFalse(out_dir.exists())

    def test_process_refuses_to_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW])
            output = Path(tmpdir) / "existing.xlsx"
            output.write_text("keep me", encoding="utf-8")
            proc = run_cli("process", str(source), "--output", str(output), "--out", tmpdir, "--offline")
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Refusing to overwrite", proc.stderr)
            self.assertEqual(output.read_text(encoding="utf-8"), "keep me")

    def test_unreadable_workbook_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            corrupt = Path(tmpdir) / "corrupt.xlsx"
            corrupt.write_bytes(b"not a workbook")
            proc = run_cli("process", str(corrupt), "--offline", "--dry-run")
            self.assertEqual(proc.returncode, 2)
            self.assertIn("Could not read workbook", proc.stderr)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("process", "does-not-exist.xlsx", "--offline")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_inspect_json_lists_every_sheet(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW])
            proc = run_cli("inspect", str(source), "--json", "--offline")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(proc.stdout)
            self.assertEqual([item["sheet_name"] for item in payload["classifications"]], ["Summary", "Locations"])
            self.assertEqual(payload["data_sheets"], ["Locations"])

    def test_inspect_text_marks_selected_sheets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_sov(Path(tmpdir) / "broker.xlsx", [CLEAN_ROW])
            proc = run_cli("inspect", str(source), "--offline")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("* Locations: data", proc.stderr)
            self.assertIn("- Summary: summary", proc.stderr)

    def test_ping_without_configuration_returns_exit_6(self):
        proc = run_cli("ping")
        self.assertEqual(proc.returncode, 6)
        self.assertIn("not configured", proc.stderr)

    def test_unknown_command_returns_exit_1(self):
        proc = run_cli("heal")
        self.assertEqual(proc.returncode, 1)

    def test_version_prints_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertRegex(proc.stdout.strip(), r"^\d+\.\d+\.\d+$")


if __name__ == "__main__":
    unittest.main()
