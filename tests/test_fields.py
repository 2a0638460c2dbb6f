import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from formkit.fields import DEFAULT_IMAGE_ACCEPTS, ImageField, UploadField, normalize_field_record, normalize_fields, parse_field


class TestFields(unittest.TestCase):
    def test_parse_field_variants(self) -> None:
        self.assertIsInstance(parse_field({"id": "logo", "type": "image"}), ImageField)
        self.assertIsInstance(parse_field({"id": "doc", "type": "file"}), UploadField)
        self.assertIsNone(parse_field("not a field"))
        plain = parse_field({"id": "name", "type": "text"})
        self.assertEqual((plain.id, plain.kind), ("name", "text"))

    def test_image_field_is_display_only(self) -> None:
        record, changed = normalize_field_record({"id": "logo", "type": "image", "required": True})
        self.assertTrue(changed)
        self.assertEqual(record["imageUrl"], "")
        self.assertTrue(record["displayOnly"])
        self.assertFalse(record["required"])

    def test_image_upload_accepts_from_string(self) -> None:
        record, _ = normalize_field_record(
            {"id": "photos", "type": "image-upload", "accepts": " image/png, ,image/gif ", "multiple": 1}
        )
        self.assertEqual(record["accepts"], ["image/png", "image/gif"])
        self.assertIs(record["multiple"], True)

    def test_image_upload_defaults_accepts(self) -> None:
        record, _ = normalize_field_record({"id": "photos", "type": "image-upload", "accepts": ""})
        self.assertEqual(record["accepts"], list(DEFAULT_IMAGE_ACCEPTS))
        self.assertIs(record["multiple"], False)

    def test_file_field_keeps_empty_accepts(self) -> None:
        record, _ = normalize_field_record({"id": "doc", "type": "file"})
        self.assertEqual(record["accepts"], [])

    def test_unknown_attributes_pass_through(self) -> None:
        raw = {
            "id": "crew",
            "type": "select",
            "label": "Crew",
            "conditionalGroups": [{"when": {"field": "company", "equals": "a"}, "options": []}],
            "x-custom": {"keep": True},
        }
        record, changed = normalize_field_record(raw)
        self.assertFalse(changed)
        self.assertEqual(record, raw)

    def test_normalize_fields_drops_non_objects(self) -> None:
        fields, changed = normalize_fields([{"id": "a", "type": "text"}, "junk", None])
        self.assertTrue(changed)
        self.assertEqual(fields, [{"id": "a", "type": "text"}])

    def test_normalize_fields_non_list(self) -> None:
        self.assertEqual(normalize_fields(None), ([], False))
        self.assertEqual(normalize_fields("nope"), ([], True))

    def test_normalize_fields_is_idempotent(self) -> None:
        first, _ = normalize_fields([{"id": "p", "type": "image-upload"}, {"id": "i", "type": "image", "required": True}])
        second, changed = normalize_fields(first)
        self.assertFalse(changed)
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
