"""
Deterministic content hashing for subject records.

The caching assignment client keys cached variants by the content of the
subject, so two subjects with equal fields share an entry regardless of
attribute spelling or dict ordering.

Manifesto:
    - **Deterministic:** Same inputs always produce the same hash
    - **Order-independent for records:** Serialized with sorted keys
    - **Order-dependent for values:** ``compute_hash(a, b) != compute_hash(b, a)``

Examples:
    >>> from flagbridge.records import Subject
    >>> subject_cache_key(Subject(user_id="u1")) == subject_cache_key(Subject(user_id="u1"))
    True
    >>> len(compute_hash("a", "b", length=16))
    16

Tags:
    hashing, cache-key, subject, flagbridge
"""

import hashlib
import json
from typing import Any

from flagbridge.records import Subject

SUBJECT_KEY_PREFIX = "flagbridge:variants:"


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute a deterministic hash from values.

    Values are converted to strings and joined with ``|`` before SHA-256.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of the requested length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def subject_fingerprint(subject: Subject) -> str:
    """Canonical JSON text of a subject: wire names, no unset fields, sorted keys."""
    data = subject.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def subject_cache_key(subject: Subject, *, prefix: str = SUBJECT_KEY_PREFIX) -> str:
    """Cache key for the variants assigned to ``subject``."""
    return prefix + compute_hash(subject_fingerprint(subject), length=64)


__all__ = [
    "SUBJECT_KEY_PREFIX",
    "compute_hash",
    "subject_fingerprint",
    "subject_cache_key",
]
