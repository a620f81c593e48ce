"""
Assignment client boundary.

The assignment service decides which variant of each flag a subject gets.
flagbridge never talks to it directly; it talks to an ``AssignmentClient``.
Network clients for the real service implement the protocol outside this
package. This module ships the in-memory and caching implementations.

Architecture:
    ::

        ExperimentProvider
              │ evaluate(subject, [flag])
              ▼
        CachingAssignmentClient ──hit──► CacheBackend
              │ miss: evaluate(subject, [])   (all flags)
              ▼
        AssignmentClient (remote / local / StaticAssignmentClient)

Guardrails:
    ❌ DON'T: Let a cache outage fail an evaluation
    ✅ DO: Log cache errors and serve the live result

Tags:
    assignment, client, protocol, caching, flagbridge
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from flagbridge.cache import CacheBackend
from flagbridge.hashing import subject_cache_key
from flagbridge.logging import get_logger
from flagbridge.records import Occurrence, Subject, Variant

logger = get_logger(__name__)


class AssignmentClient(Protocol):
    """Contract for assignment service clients."""

    def start(self) -> None:
        """Connect, or fetch the initial flag configuration."""
        ...

    def stop(self) -> None:
        """Release connections and stop background polling."""
        ...

    def evaluate(self, subject: Subject, flag_names: Sequence[str]) -> Mapping[str, Variant]:
        """
        Return the variants assigned to ``subject``.

        An empty ``flag_names`` means every flag. Flags the subject has no
        assignment for are absent from the result.
        """
        ...


class StaticAssignmentClient:
    """
    Serves a fixed set of variants to every subject.

    Used by the CLI and tests. ``variants`` values may be :class:`Variant`
    instances or plain dicts in the service's JSON shape.
    """

    def __init__(self, variants: Mapping[str, Variant | Mapping[str, Any]]):
        self._variants = {
            flag: variant if isinstance(variant, Variant) else Variant.model_validate(variant)
            for flag, variant in variants.items()
        }
        self.started = False
        self.calls: list[tuple[Subject, tuple[str, ...]]] = []

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def evaluate(self, subject: Subject, flag_names: Sequence[str]) -> Mapping[str, Variant]:
        self.calls.append((subject, tuple(flag_names)))
        if not flag_names:
            return dict(self._variants)
        return {name: self._variants[name] for name in flag_names if name in self._variants}


class CachingAssignmentClient:
    """
    Caches every variant assigned to a subject.

    The cache key is the content hash of the subject, so a cached entry is
    reused only for a subject with exactly the same fields. On a miss all
    flags are fetched at once and stored as JSON-ready dicts.
    """

    def __init__(
        self,
        inner: AssignmentClient,
        cache: CacheBackend,
        *,
        ttl_seconds: int | None = None,
    ):
        self._inner = inner
        self._cache = cache
        self._ttl = ttl_seconds

    @property
    def inner(self) -> AssignmentClient:
        return self._inner

    def start(self) -> None:
        self._inner.start()

    def stop(self) -> None:
        self._inner.stop()

    def evaluate(self, subject: Subject, flag_names: Sequence[str]) -> Mapping[str, Variant]:
        key = subject_cache_key(subject)
        variants = self._read(key)

        if variants is None:
            variants = dict(self._inner.evaluate(subject, []))
            self._write(key, variants)

        if not flag_names:
            return variants
        return {name: variants[name] for name in flag_names if name in variants}

    def _read(self, key: str) -> dict[str, Variant] | None:
        # A corrupt entry is treated as a miss.
        try:
            cached = self._cache.get(key)
            if cached is None:
                return None
            return {flag: Variant.model_validate(data) for flag, data in cached.items()}
        except Exception as exc:
            logger.warning("variant_cache_read_failed", key=key, error=str(exc))
            return None

    def _write(self, key: str, variants: Mapping[str, Variant]) -> None:
        try:
            data = {flag: variant.model_dump(mode="json") for flag, variant in variants.items()}
            self._cache.set(key, data, ttl_seconds=self._ttl)
        except Exception as exc:
            logger.warning("variant_cache_write_failed", key=key, error=str(exc))


class Tracker(Protocol):
    """Contract for analytics transmission of tracked events."""

    def send(self, occurrence: Occurrence) -> None:
        ...


class InMemoryTracker:
    """Collects tracked events in a list."""

    def __init__(self):
        self.events: list[Occurrence] = []

    def send(self, occurrence: Occurrence) -> None:
        self.events.append(occurrence)


__all__ = [
    "AssignmentClient",
    "Tracker",
    "InMemoryTracker",
    "StaticAssignmentClient",
    "CachingAssignmentClient",
]
