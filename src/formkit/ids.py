"""Identifier, slug and share-key generation."""

from __future__ import annotations

import random
import re
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

SHARE_KEY_BYTES = 6
SHARE_KEY_ATTEMPTS = 10

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
_ALPHABET = string.ascii_lowercase + string.digits
_URLSAFE_ALPHABET = string.ascii_letters + string.digits + "-_"


class ShareKeyExhaustedError(RuntimeError):
    """Raised when no unused share key could be drawn."""


def now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _uuid4() -> uuid.UUID:
    try:
        return uuid.uuid4()
    except NotImplementedError:
        # No OS entropy source; version-4 layout over the weaker PRNG.
        return uuid.UUID(int=random.getrandbits(128), version=4)


def random_id(prefix: str = "id") -> str:
    return f"{prefix}-{_uuid4()}"


def _weak_token(length: int) -> str:
    return "".join(random.choice(_ALPHABET) for _ in range(length))


def slugify(value, fallback_prefix: str = "form") -> str:
    text = "" if value is None else str(value)
    slug = _SLUG_STRIP_RE.sub("-", text.strip().lower()).strip("-")
    return slug or f"{fallback_prefix}-{_weak_token(6)}"


def generate_share_key() -> str:
    try:
        return secrets.token_urlsafe(SHARE_KEY_BYTES)
    except NotImplementedError:
        return "".join(random.choice(_URLSAFE_ALPHABET) for _ in range(8))


def unique_share_key(
    existing: Iterable[str | None],
    token_factory: Callable[[], str] | None = None,
) -> str:
    """Draw a share key that is not in ``existing``.

    Gives up after ``SHARE_KEY_ATTEMPTS`` collisions so a broken generator
    surfaces as an error instead of a hang.
    """
    taken = {key for key in existing if key}
    draw = token_factory or generate_share_key
    for _ in range(SHARE_KEY_ATTEMPTS):
        key = draw()
        if key and key not in taken:
            return key
    raise ShareKeyExhaustedError("Unable to generate unique share key")
