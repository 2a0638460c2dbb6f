import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from formkit.settings import DEFAULT_SUBJECT, default_form_settings, duration_fields, merge_settings, normalize_settings


class TestSettings(unittest.TestCase):
    def test_merge_of_nothing_is_defaults(self) -> None:
        self.assertEqual(merge_settings(None), default_form_settings())
        self.assertEqual(merge_settings("junk"), default_form_settings())

    def test_notifications_forced_off_without_recipients(self) -> None:
        merged = merge_settings({"notifications": {"enabled": True, "recipients": ["", "  ", 5]}})
        self.assertEqual(merged["notifications"]["recipients"], [])
        self.assertFalse(merged["notifications"]["enabled"])

    def test_notifications_enabled_with_recipients(self) -> None:
        merged = merge_settings({"notifications": {"enabled": True, "recipients": [" ops@example.com "], "subject": "  "}})
        section = merged["notifications"]
        self.assertTrue(section["enabled"])
        self.assertEqual(section["recipients"], ["ops@example.com"])
        self.assertEqual(section["subject"], DEFAULT_SUBJECT)
        self.assertTrue(section["includeSubmission"])

    def test_duration_disabled_stays_disabled(self) -> None:
        self.assertIsNone(merge_settings({"autoCalculateDuration": None})["autoCalculateDuration"])
        self.assertIsNone(merge_settings({"autoCalculateDuration": False})["autoCalculateDuration"])

    def test_duration_partial_override(self) -> None:
        merged = merge_settings({"autoCalculateDuration": {"endField": "finish"}})
        self.assertEqual(merged["autoCalculateDuration"], {"startField": "startTime", "endField": "finish"})
        self.assertEqual(duration_fields(merged), ("startTime", "finish"))
        self.assertIsNone(duration_fields({"autoCalculateDuration": None}))

    def test_branding_and_unknown_keys(self) -> None:
        merged = merge_settings({"branding": {"logoUrl": "  /logo.png ", "accent": "#fff"}, "theme": "dark"})
        self.assertEqual(merged["branding"], {"logoUrl": "/logo.png", "accent": "#fff"})
        self.assertEqual(merged["theme"], "dark")
        self.assertTrue(merged["allowCsvExport"])

    def test_normalize_settings_reports_change(self) -> None:
        merged, changed = normalize_settings({"allowCsvExport": False})
        self.assertTrue(changed)
        self.assertFalse(merged["allowCsvExport"])
        again, changed_again = normalize_settings(merged)
        self.assertFalse(changed_again)
        self.assertEqual(again, merged)


if __name__ == "__main__":
    unittest.main()
