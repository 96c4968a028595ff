from __future__ import annotations

import re
import unittest

from sov_doctor import __version__
from sov_doctor.contracts import CONTRACT_VERSIONS, build_contract, build_run_summary, utc_now_iso, wrap_payload


class ContractTests(unittest.TestCase):
    def test_every_contract_has_a_version(self):
        for name in ("sov_doctor.process", "sov_doctor.inspect"):
            self.assertEqual(build_contract(name), {"name": name, "version": CONTRACT_VERSIONS[name]})

    def test_unknown_contract_is_a_key_error(self):
        with self.assertRaises(KeyError):
            build_contract("sov_doctor.heal")

    def test_run_summary_counts_warnings(self):
        summary = build_run_summary(
            tool="sov-doctor",
            step="process",
            input_file="book.xlsx",
            warnings=["Column mapping used the rule-based fallback"],
            metrics={"records": 3},
        )
        self.assertEqual(summary["warnings_count"], 1)
        self.assertEqual(summary["status"], "ok")
        self.assertIsNone(summary["output_file"])
        self.assertEqual(summary["metrics"], {"records": 3})
        self.assertRegex(summary["generated_at"], r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")

    def test_wrapped_payload_carries_contract_and_versions(self):
        summary = build_run_summary(tool="sov-doctor", step="inspect", input_file="book.xlsx")
        payload = wrap_payload("sov_doctor.inspect", {"file": "book.xlsx"}, summary)
        self.assertEqual(payload["contract"]["name"], "sov_doctor.inspect")
        self.assertEqual(payload["schema_version"], payload["contract"]["version"])
        self.assertEqual(payload["tool_version"], __version__)
        self.assertEqual(payload["file"], "book.xlsx")
        self.assertIs(payload["run_summary"], summary)

    def test_timestamps_are_utc_without_microseconds(self):
        self.assertIsNotNone(re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", utc_now_iso()))


if __name__ == "__main__":
    unittest.main()
