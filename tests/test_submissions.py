import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.submissions import DURATION_KEY, MissingFieldsError, duration_minutes, missing_required_fields, submit
from form_store import FormStore
from seed_data import SEED_FORM_ID
from snapshot_store import MemorySnapshotStore


class TestSubmissions(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FormStore(MemorySnapshotStore())
        self.form = self.store.get_form(SEED_FORM_ID)

    def _valid_payload(self) -> dict:
        return {
            "company": "green-ways",
            "crewMember": "jordan",
            "property": "prop-fairview",
            "serviceDate": "2024-05-01",
            "startTime": "08:15",
            "endTime": "09:45",
            "services": ["mowing"],
            "status": "completed",
        }

    def test_missing_required_fields(self) -> None:
        form = {"fields": [{"id": "a", "required": True}, {"id": "b", "required": True}, {"id": "c"}]}
        self.assertEqual(missing_required_fields(form, {}), ["a", "b"])
        self.assertEqual(missing_required_fields(form, {"a": "", "b": []}), ["a", "b"])
        self.assertEqual(missing_required_fields(form, {"a": 0, "b": ["x"]}), [])

    def test_duration_minutes(self) -> None:
        self.assertEqual(duration_minutes("08:00", "09:30"), 90)
        self.assertEqual(duration_minutes("8", "10"), 120)
        self.assertIsNone(duration_minutes("09:30", "08:00"))
        self.assertIsNone(duration_minutes("09:30", "09:30"))
        self.assertIsNone(duration_minutes("soon", "later"))
        self.assertEqual(duration_minutes("08:00", "10:xx"), 120)
        self.assertEqual(duration_minutes("08:", "09:15"), 75)

    def test_submit_records_duration(self) -> None:
        submission = submit(self.store, self.form, self._valid_payload())
        self.assertEqual(submission["data"][DURATION_KEY], 90)
        self.assertEqual(self.store.get_submission_count(SEED_FORM_ID), 1)

    def test_submit_without_duration_tracking(self) -> None:
        form = self.store.update_form(SEED_FORM_ID, {"settings": {"autoCalculateDuration": None}})
        submission = submit(self.store, form, self._valid_payload())
        self.assertNotIn(DURATION_KEY, submission["data"])

    def test_submit_rejects_missing_fields(self) -> None:
        payload = self._valid_payload()
        del payload["company"]
        payload["services"] = []
        with self.assertRaises(MissingFieldsError) as ctx:
            submit(self.store, self.form, payload)
        self.assertEqual(ctx.exception.fields, ["company", "services"])
        self.assertEqual(self.store.get_submission_count(SEED_FORM_ID), 0)

    def test_submit_to_deleted_form(self) -> None:
        self.store.delete_form(SEED_FORM_ID)
        self.assertIsNone(submit(self.store, self.form, self._valid_payload()))


if __name__ == "__main__":
    unittest.main()
