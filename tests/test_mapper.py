from __future__ import annotations

import json
import unittest

from sov_doctor.completion import ServiceError
from sov_doctor.mapper import ColumnMapper, build_mapping_prompt, fallback_mapping, fallback_target, reconcile_mapping
from sov_doctor.schema import CANONICAL_KEYS, TARGET_SCHEMA


class CannedCompletion:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class FailingCompletion:
    def complete(self, prompt: str) -> str:
        raise ServiceError("service down")


class FallbackTargetTests(unittest.TestCase):
    def test_every_display_header_maps_to_its_own_key(self):
        for display, key in TARGET_SCHEMA.items():
            with self.subTest(header=display):
                self.assertEqual(fallback_target(display), key)

    def test_common_broker_synonyms(self):
        cases = {
            "Loc Number": "locationNumber",
            "Building Name": "property",
            "Address": "streetAddress",
            "City": "suburb",
            "Province": "state",
            "ZIP": "postalZipCode",
            "Postcode": "postalZipCode",
            "PD": "pdValue",
            "BI": "biValue",
            "TIV": "totalInsurableValue",
            "Lat": "latitude",
            "Long": "longitude",
            "Deductible": "pdDeductibles",
            "Storeys": "numberOfStories",
            "Bushfire": "wildfire",
        }
        for header, expected in cases.items():
            with self.subTest(header=header):
                self.assertEqual(fallback_target(header), expected)

    def test_unmappable_headers(self):
        for header in ("", "  ", "null", "undefined", "123", "45.6", "Notes", "Broker comments"):
            with self.subTest(header=header):
                self.assertIsNone(fallback_target(header))

    def test_fallback_mapping_is_total_and_deterministic(self):
        headers = ["Location Number", "Notes", "PD Value"]
        first = fallback_mapping(headers)
        second = fallback_mapping(headers)
        self.assertEqual(first, second)
        self.assertEqual(first.headers(), headers)
        self.assertEqual(first.source, "rules")
        self.assertIsNone(first["Notes"])


class ReconcileMappingTests(unittest.TestCase):
    def test_missing_headers_take_rule_targets_and_bad_targets_are_dropped(self):
        headers = ["Loc No", "PD Value", "Comments"]
        mapping = reconcile_mapping({"Loc No": "locationNumber", "Comments": "brokerNotes", "Extra": "country"}, headers)
        self.assertEqual(
            mapping.columns,
            {"Loc No": "locationNumber", "PD Value": "pdValue", "Comments": None},
        )
        self.assertEqual(mapping.source, "ai")

    def test_non_string_targets_are_unmappable(self):
        parsed = {"Loc No": ["locationNumber"], "TIV": {"k": 1}, "Lat": 3}
        mapping = reconcile_mapping(parsed, ["Loc No", "TIV", "Lat"])
        self.assertEqual(mapping.columns, {"Loc No": None, "TIV": None, "Lat": None})

    def test_non_object_answer_is_rejected(self):
        self.assertIsNone(reconcile_mapping(["locationNumber"], ["Loc No"]))


class ColumnMapperTests(unittest.TestCase):
    def test_prompt_lists_columns_and_schema_keys(self):
        prompt = build_mapping_prompt(["Loc No", "TIV"])
        self.assertIn('DETECTED COLUMNS: ["Loc No", "TIV"]', prompt)
        self.assertIn(json.dumps(list(CANONICAL_KEYS)), prompt)

    def test_service_mapping_is_used(self):
        reply = 'Mapping:\n{"Loc No": "locationNumber", "Site": "property", "Value": "pdValue"}'
        completion = CannedCompletion(reply)
        mapping = ColumnMapper(completion).map_headers(["Loc No", "Site", "Value"])
        self.assertEqual(mapping.source, "ai")
        self.assertEqual(mapping["Site"], "property")
        self.assertEqual(len(completion.prompts), 1)

    def test_nested_json_values_do_not_abort_mapping(self):
        completion = CannedCompletion('{"Loc No": ["locationNumber"], "TIV": {"k": 1}}')
        mapping = ColumnMapper(completion).map_headers(["Loc No", "TIV"])
        self.assertEqual(mapping.source, "ai")
        self.assertEqual(mapping.columns, {"Loc No": None, "TIV": None})

    def test_service_failure_uses_rules(self):
        mapping = ColumnMapper(FailingCompletion()).map_headers(["Location Number", "Country", "Occupancy"])
        self.assertEqual(mapping.source, "rules")
        self.assertEqual(mapping.targets(), {"locationNumber", "country", "occupancy"})

    def test_unparseable_answer_uses_rules(self):
        mapping = ColumnMapper(CannedCompletion("Sorry, no idea")).map_headers(["TIV"])
        self.assertEqual(mapping.source, "rules")
        self.assertEqual(mapping["TIV"], "totalInsurableValue")

    def test_headers_are_text_and_deduplicated(self):
        mapping = ColumnMapper(FailingCompletion()).map_headers(["Address", None, 2024.0, "Address"])
        self.assertEqual(mapping.headers(), ["Address", "", "2024"])
        self.assertIsNone(mapping[""])
        self.assertIsNone(mapping["2024"])

    def test_no_headers_means_empty_mapping_without_a_service_call(self):
        completion = CannedCompletion("{}")
        mapping = ColumnMapper(completion).map_headers([])
        self.assertEqual(len(mapping), 0)
        self.assertEqual(completion.prompts, [])


if __name__ == "__main__":
    unittest.main()
