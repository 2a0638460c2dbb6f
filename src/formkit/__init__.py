"""Form store kernel utilities."""

from .fields import normalize_field_record, normalize_fields, parse_field
from .ids import ShareKeyExhaustedError, now_iso, random_id, slugify, unique_share_key
from .settings import default_form_settings, duration_fields, merge_settings, normalize_settings
from .snapshot_codec import SnapshotDecodeError, canonical_dumps, snapshot_digest

__all__ = [
    "ShareKeyExhaustedError",
    "SnapshotDecodeError",
    "canonical_dumps",
    "default_form_settings",
    "duration_fields",
    "merge_settings",
    "normalize_field_record",
    "normalize_fields",
    "normalize_settings",
    "now_iso",
    "parse_field",
    "random_id",
    "slugify",
    "snapshot_digest",
    "unique_share_key",
]
