import json
import tempfile
import unittest
from pathlib import Path

from chronicle.errors import ConfigurationError
from chronicle.models import ItemDescriptor
from chronicle.spec_loader import build_spec, load_global_data, load_spec, validate_spec

GLOBAL_DATA = {
    "queryTemplates": {"birth": "{entity} p:P569 ?_prop. ?_prop psv:P569 ?_value."},
    "itemQueryTemplates": {"instancesOf": "{entity} wdt:P31 {class}."},
    "expectations": [{"duration": {"avg": "P10Y"}}],
}


class ValidationTests(unittest.TestCase):
    def test_minimal_spec_is_valid(self) -> None:
        validate_spec({"items": []})

    def test_missing_items_rejected(self) -> None:
        with self.assertRaises(ConfigurationError) as raised:
            validate_spec({"groups": []})
        self.assertEqual(raised.exception.code, "SCHEMA_VIOLATION")

    def test_bad_entity_reports_location(self) -> None:
        with self.assertRaises(ConfigurationError) as raised:
            validate_spec({"items": [{"entity": "42"}]})
        self.assertEqual(raised.exception.details["path"], ["items", 0, "entity"])

    def test_duration_needs_average(self) -> None:
        with self.assertRaises(ConfigurationError):
            validate_spec({"items": [{"expectedDuration": {"max": "P1Y"}}]})


class BuildSpecTests(unittest.TestCase):
    def test_spec_templates_override_global_ones(self) -> None:
        raw = {
            "items": [{"id": "A", "entity": "Q1", "startQuery": "#birth"}],
            "queryTemplates": {"birth": "{entity} p:P569 ?_prop. ?_prop psv:P569 ?_value. # local"},
            "groups": [{"id": "g"}],
            "options": {"stack": False},
        }
        spec = build_spec(raw, global_data=GLOBAL_DATA)
        self.assertTrue(spec.query_templates["birth"].endswith("# local"))
        self.assertIn("instancesOf", spec.item_query_templates)
        self.assertEqual(spec.items[0].start_query, "#birth")
        self.assertEqual(spec.groups, [{"id": "g"}])
        self.assertEqual(spec.options, {"stack": False})

    def test_spec_expectations_come_first(self) -> None:
        raw = {"items": [], "expectations": [{"duration": {"avg": "P1Y"}}]}
        spec = build_spec(raw, global_data=GLOBAL_DATA)
        self.assertEqual(spec.expectations.entries[0][1].avg.years, 1)
        self.assertEqual(len(spec.expectations.entries), 2)

    def test_packaged_global_data_is_usable(self) -> None:
        global_data = load_global_data()
        spec = build_spec({"items": []}, global_data=global_data)
        self.assertIn("birth", spec.query_templates)
        self.assertEqual(spec.expectations.lookup(spec_item(startQuery="#nothing")).avg.years, 10)


def spec_item(**fields):
    return ItemDescriptor.from_dict(fields)


class LoadSpecTests(unittest.TestCase):
    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigurationError) as raised:
                load_spec(Path(tmp) / "missing.json", global_data=GLOBAL_DATA)
        self.assertEqual(raised.exception.code, "INVALID_SPEC")

    def test_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "spec.json"
            path.write_text("{", encoding="utf-8")
            with self.assertRaises(ConfigurationError) as raised:
                load_spec(path, global_data=GLOBAL_DATA)
        self.assertEqual(raised.exception.code, "INVALID_SPEC")
        self.assertIn("line", raised.exception.details)

    def test_round_trip_from_disk(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "spec.json"
            path.write_text(json.dumps({"items": [{"id": "A", "entity": "Q1"}]}), encoding="utf-8")
            spec = load_spec(path, global_data=GLOBAL_DATA)
        self.assertEqual(spec.items[0].entity, "Q1")


if __name__ == "__main__":
    unittest.main()
