"""
Context normalization and record projection.

Turns a flat, loosely typed evaluation context into a :class:`Subject` for the
assignment service or an :class:`Occurrence` for the analytics service.

Manifesto:
    Callers should not have to know the assignment service's schema. They pass
    whatever attributes they have, under whatever spelling they use, and
    normalization sorts them into semantic fields and an overflow bag.

    - **Total:** :func:`normalize` never raises, whatever the input holds
    - **Exact lookup:** Spellings are matched case-sensitively against the
      alias table; casing variants live in the table, not in the lookup
    - **Nothing dropped:** Unknown names, and canonical names the target shape
      does not accept, land in the overflow bag under the caller's spelling
    - **Late validation:** The identity check runs after overflow routing, so
      a rejected context still carries a complete record for diagnostics

Architecture:
    ::

        attributes {"deviceId": "d1", "Country": "US", "plan": "pro"}
              │
              │ normalize(attributes, alias_table, shape)
              ▼
        NormalizedRecord
          canonical {device_id: "d1", country: "US"}
          overflow  {"plan": "pro"}
              │
              │ project_subject() / project_occurrence()
              ▼
        Subject(device_id="d1", country="US", user_properties={"plan": "pro"})
              │
              │ optional hook (mutates the record)
              ▼
        assignment client

Examples:
    >>> from flagbridge.aliases import build_alias_table
    >>> table = build_alias_table()
    >>> record = normalize({"device-id": "d1", "Country": "US"}, table)
    >>> record.canonical
    {<CanonicalKey.DEVICE_ID: 'device_id'>: 'd1', <CanonicalKey.COUNTRY: 'country'>: 'US'}
    >>> record.overflow
    {}

Guardrails:
    ❌ DON'T: Match spellings case-insensitively in the normalizer
    ✅ DO: Add the spelling to the alias table via ``extra_aliases``

    ❌ DON'T: Let a hook raise arbitrary exceptions out of evaluation
    ✅ DO: Rely on build_subject() wrapping them in InvalidContextError

Tags:
    normalization, projection, context, subject, occurrence, flagbridge
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from flagbridge.aliases import AliasTable
from flagbridge.errors import InvalidContextError
from flagbridge.keys import (
    IDENTITY_KEYS,
    MAPPING_KEYS,
    TARGETING_KEY,
    CanonicalKey,
    RecordShape,
    keys_for,
    overflow_key_for,
)
from flagbridge.records import Occurrence, Subject


@dataclass
class NormalizedRecord:
    """
    Result of normalizing one context.

    Attributes:
        shape: Record shape the context was normalized for
        canonical: Values keyed by canonical key (overflow key excluded)
        overflow: Everything that did not resolve, under the caller's spelling
    """

    shape: RecordShape
    canonical: dict[CanonicalKey, Any] = field(default_factory=dict)
    overflow: dict[str, Any] = field(default_factory=dict)

    def has_identity(self) -> bool:
        """True when a subject identity key holds a non-empty value."""
        return any(self.canonical.get(key) for key in IDENTITY_KEYS)

    def merged(self, other: NormalizedRecord) -> NormalizedRecord:
        """Return a new record with ``other``'s values taking precedence."""
        return NormalizedRecord(
            shape=self.shape,
            canonical={**self.canonical, **other.canonical},
            overflow={**self.overflow, **other.overflow},
        )

    def as_fields(self) -> dict[str, Any]:
        """Canonical values keyed by their wire names."""
        return {key.value: value for key, value in self.canonical.items()}


@dataclass
class SubjectHookContext:
    """Passed to a subject hook after projection; ``subject`` may be mutated."""

    attributes: Mapping[str, Any]
    subject: Subject


@dataclass
class OccurrenceHookContext:
    """Passed to an occurrence hook after projection; ``occurrence`` may be mutated."""

    attributes: Mapping[str, Any]
    event_type: str
    value: float | None
    details: Mapping[str, Any]
    occurrence: Occurrence


SubjectHook = Callable[[SubjectHookContext], None]
OccurrenceHook = Callable[[OccurrenceHookContext], None]


def normalize(
    attributes: Mapping[Any, Any],
    alias_table: AliasTable,
    shape: RecordShape = RecordShape.SUBJECT,
) -> NormalizedRecord:
    """
    Split ``attributes`` into canonical fields and an overflow bag.

    When two spellings resolve to the same canonical key, the later one in
    iteration order wins. A mapping supplied under the shape's overflow key
    (``user_properties`` or ``event_properties``) is merged into the overflow
    bag; unmapped attributes win over its entries.
    Any other scalar supplied for a key whose field holds an object (for
    example ``"plan": "pro"`` in an occurrence) is kept in overflow under the
    caller's spelling.
    """
    accepted = keys_for(shape)
    overflow_key = overflow_key_for(shape)

    canonical: dict[CanonicalKey, Any] = {}
    loose: dict[Any, Any] = {}
    bag_name: Any = None

    for name, value in attributes.items():
        key = alias_table.get(name) if isinstance(name, str) else None
        if key is None or key not in accepted:
            loose[name] = value
            continue
        if key == overflow_key:
            bag_name = name
        elif key in MAPPING_KEYS and value is not None and not isinstance(value, Mapping):
            loose[name] = value
            continue
        canonical[key] = value

    overflow: dict[Any, Any] = {}
    if overflow_key in canonical:
        bag = canonical.pop(overflow_key)
        if isinstance(bag, Mapping):
            overflow.update(bag)
        elif bag is not None:
            overflow[bag_name] = bag
    overflow.update(loose)

    return NormalizedRecord(shape=shape, canonical=canonical, overflow=overflow)


def normalize_subject(
    attributes: Mapping[Any, Any],
    alias_table: AliasTable,
) -> NormalizedRecord:
    """
    Normalize for the subject shape and require an identity.

    Raises:
        InvalidContextError: If neither user_id nor device_id is non-empty.
            The error's ``record`` holds the normalized attributes.
    """
    record = normalize(attributes, alias_table, RecordShape.SUBJECT)
    if not record.has_identity():
        raise InvalidContextError(
            f"context must contain a {TARGETING_KEY}, "
            f"{CanonicalKey.USER_ID.value}, or {CanonicalKey.DEVICE_ID.value}",
            record=record,
        )
    return record


def project_subject(record: NormalizedRecord) -> Subject:
    """Assign a normalized record's values onto a :class:`Subject`."""
    data = record.as_fields()
    data[CanonicalKey.USER_PROPERTIES.value] = dict(record.overflow)
    try:
        return Subject.model_validate(data)
    except ValidationError as exc:
        raise InvalidContextError(
            f"context cannot be projected onto a subject: {exc.error_count()} invalid field(s)",
            record=record,
            cause=exc,
        ) from exc


def project_occurrence(record: NormalizedRecord) -> Occurrence:
    """Assign a normalized record's values onto an :class:`Occurrence`."""
    data = record.as_fields()
    data[CanonicalKey.EVENT_PROPERTIES.value] = dict(record.overflow)
    try:
        return Occurrence.model_validate(data)
    except ValidationError as exc:
        raise InvalidContextError(
            f"context cannot be projected onto an occurrence: {exc.error_count()} invalid field(s)",
            record=record,
            cause=exc,
        ) from exc


def build_subject(
    attributes: Mapping[Any, Any],
    alias_table: AliasTable,
    hook: SubjectHook | None = None,
) -> Subject:
    """
    Normalize, project and post-process a subject.

    Raises:
        InvalidContextError: On a missing identity, an invalid field value,
            or any exception raised by ``hook``.
    """
    record = normalize_subject(attributes, alias_table)
    subject = project_subject(record)

    if hook is not None:
        try:
            hook(SubjectHookContext(attributes=attributes, subject=subject))
        except Exception as exc:
            raise InvalidContextError(
                f"subject hook failed: {exc}", record=record, cause=exc
            ) from exc
        if not subject.has_identity():
            raise InvalidContextError(
                "subject hook removed the subject identity", record=record
            )

    return subject


def build_occurrence(
    event_type: str,
    attributes: Mapping[Any, Any],
    alias_table: AliasTable,
    *,
    value: float | None = None,
    details: Mapping[Any, Any] | None = None,
    hook: OccurrenceHook | None = None,
) -> Occurrence:
    """
    Build a tracked event from a context and optional tracking details.

    Context attributes and detail attributes are normalized separately and
    merged, details winning. A non-zero ``value`` becomes the event revenue.
    ``event_type`` always overrides any ``event_type`` attribute.

    Raises:
        InvalidContextError: On an invalid field value or a failing hook.
    """
    details = details or {}
    record = normalize(attributes, alias_table, RecordShape.OCCURRENCE)
    if details:
        record = record.merged(normalize(details, alias_table, RecordShape.OCCURRENCE))
    if value:
        record.canonical[CanonicalKey.REVENUE] = value
    record.canonical[CanonicalKey.EVENT_TYPE] = event_type

    occurrence = project_occurrence(record)

    if hook is not None:
        try:
            hook(
                OccurrenceHookContext(
                    attributes=attributes,
                    event_type=event_type,
                    value=value,
                    details=details,
                    occurrence=occurrence,
                )
            )
        except Exception as exc:
            raise InvalidContextError(
                f"occurrence hook failed: {exc}", record=record, cause=exc
            ) from exc

    return occurrence


__all__ = [
    "NormalizedRecord",
    "SubjectHookContext",
    "OccurrenceHookContext",
    "SubjectHook",
    "OccurrenceHook",
    "normalize",
    "normalize_subject",
    "project_subject",
    "project_occurrence",
    "build_subject",
    "build_occurrence",
]
