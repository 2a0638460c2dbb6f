import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from formkit.snapshot_codec import (
    SnapshotDecodeError,
    SnapshotEncodeError,
    canonical_dumps,
    decode_snapshot,
    encode_snapshot,
    json_differs,
    snapshot_digest,
)


class TestSnapshotCodec(unittest.TestCase):
    def test_canonical_is_order_independent(self) -> None:
        a = {"b": 1, "a": {"y": [1, 2], "x": None}}
        b = {"a": {"x": None, "y": [1, 2]}, "b": 1}
        self.assertEqual(canonical_dumps(a), '{"a":{"x":null,"y":[1,2]},"b":1}')
        self.assertEqual(snapshot_digest(a), snapshot_digest(b))
        self.assertTrue(snapshot_digest(a).startswith("sha256:"))

    def test_rejects_values_json_cannot_hold(self) -> None:
        with self.assertRaises(SnapshotEncodeError):
            canonical_dumps({"x": float("nan")})
        with self.assertRaises(SnapshotEncodeError):
            encode_snapshot({"x": {1, 2}})
        with self.assertRaises(SnapshotEncodeError):
            canonical_dumps({1: "int key"})

    def test_decode_requires_object(self) -> None:
        self.assertEqual(decode_snapshot(encode_snapshot({"forms": []})), {"forms": []})
        with self.assertRaises(SnapshotDecodeError):
            decode_snapshot("[1, 2]")
        with self.assertRaises(SnapshotDecodeError):
            decode_snapshot("{not json")

    def test_json_differs(self) -> None:
        self.assertTrue(json_differs(1, True))
        self.assertFalse(json_differs({"a": 1, "b": 2}, {"b": 2, "a": 1}))


if __name__ == "__main__":
    unittest.main()
