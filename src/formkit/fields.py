"""Form field variants and their normalization.

A field record is a JSON object tagged by ``type``. Most types carry only the
common attributes (``id``, ``label``, ``required``, ``placeholder``,
``options``, ``conditionalGroups``) and pass through untouched. Two families
carry a payload of their own:

* ``image``: display-only artwork. Never required, always ``displayOnly``,
  ``imageUrl`` defaults to an empty string.
* ``file`` / ``image-upload``: ``accepts`` is a list of MIME patterns (a comma
  separated string is split) and ``multiple`` is a boolean. Image uploads with
  nothing accepted fall back to the common web image types.

Attributes the variant does not know about are kept as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .snapshot_codec import json_differs

FILE_FIELD_TYPES = frozenset({"file", "image-upload"})
DEFAULT_IMAGE_ACCEPTS = ("image/png", "image/jpeg", "image/webp")


@dataclass
class Field:
    attrs: dict[str, Any]

    @property
    def id(self) -> Any:
        return self.attrs.get("id")

    @property
    def kind(self) -> Any:
        return self.attrs.get("type")

    def to_record(self) -> dict:
        return dict(self.attrs)


@dataclass
class ImageField(Field):
    image_url: str = ""

    def to_record(self) -> dict:
        record = dict(self.attrs)
        record["imageUrl"] = self.image_url
        record["displayOnly"] = True
        if record.get("required"):
            record["required"] = False
        return record


@dataclass
class UploadField(Field):
    accepts: list[str] = field(default_factory=list)
    multiple: bool = False

    def to_record(self) -> dict:
        record = dict(self.attrs)
        record["accepts"] = list(self.accepts)
        record["multiple"] = self.multiple
        return record


def _coerce_accepts(value: Any, kind: str) -> list[str]:
    if isinstance(value, str):
        items: Any = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = []
    accepts = [item.strip() for item in items if isinstance(item, str) and item.strip()]
    if not accepts and kind == "image-upload":
        accepts = list(DEFAULT_IMAGE_ACCEPTS)
    return accepts


def parse_field(raw: Any) -> Field | None:
    """Build the variant for ``raw``; ``None`` when it is not an object."""
    if not isinstance(raw, dict):
        return None
    kind = raw.get("type")
    if kind == "image":
        url = raw.get("imageUrl")
        return ImageField(dict(raw), image_url=url if isinstance(url, str) else "")
    if kind in FILE_FIELD_TYPES:
        return UploadField(
            dict(raw),
            accepts=_coerce_accepts(raw.get("accepts"), kind),
            multiple=bool(raw.get("multiple")),
        )
    return Field(dict(raw))


def normalize_field_record(raw: Any) -> tuple[Any, bool]:
    parsed = parse_field(raw)
    if parsed is None:
        return raw, False
    record = parsed.to_record()
    return record, json_differs(raw, record)


def normalize_fields(raw: Any) -> tuple[list[dict], bool]:
    """Normalize a field list, dropping entries that are not objects."""
    if not isinstance(raw, list):
        return [], raw is not None
    normalized = []
    for item in raw:
        parsed = parse_field(item)
        if parsed is not None:
            normalized.append(parsed.to_record())
    return normalized, json_differs(raw, normalized)
