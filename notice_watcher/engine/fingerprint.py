"""Content fingerprints for change detection."""

from __future__ import annotations

import hashlib
from typing import Sequence

# ASCII unit separator; page titles never contain control characters after
# whitespace normalisation.
TITLE_SEPARATOR = "\x1f"


def fingerprint(titles: Sequence[str]) -> str:
    """Return the SHA-256 hex digest of the ordered titles."""

    payload = TITLE_SEPARATOR.join(titles).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def has_changed(old: str | None, new: str) -> bool:
    if old is None:
        return True
    return old != new


__all__ = ["TITLE_SEPARATOR", "fingerprint", "has_changed"]
