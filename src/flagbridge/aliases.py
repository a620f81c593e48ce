"""
Alias generation for canonical keys.

Callers spell attribute names however their codebase does: ``device_id``,
``deviceId``, ``device-id``, ``DEVICE_ID``, ``deviceID``. Rather than matching
case-insensitively at lookup time, every plausible spelling is generated up
front and stored in an immutable alias table. Lookup is then a single exact
dict access.

Manifesto:
    - **Pure:** :func:`permutations` depends only on its argument
    - **Built once:** :func:`build_alias_table` returns a read-only mapping
      that is safe to share between threads
    - **Owned, not global:** Each provider builds its own table, so two
      providers with different extra aliases never interfere
    - **Last write wins:** Colliding spellings are resolved by build order,
      without a diagnostic

Architecture:
    ::

        "device_id"
            │ permutations()
            ▼
        device_id  device_id  DEVICE_ID  Device_id    exact, lower, upper, capitalized
        deviceId   device-id  DeviceId                camel, kebab, pascal
        deviceID   device-id  deviceid         singular "_id" suffix
            │
            ▼
        AliasTable {spelling → CanonicalKey.DEVICE_ID}

Examples:
    >>> permutations("cohort_ids")
    ['cohort_ids', 'cohort_ids', 'COHORT_IDS', 'Cohort_ids', 'cohortIds', 'cohort-ids', 'CohortIds', 'cohortIDs', 'cohort-ids', 'cohortids']
    >>> table = build_alias_table()
    >>> table["deviceID"]
    <CanonicalKey.DEVICE_ID: 'device_id'>
    >>> table["targetingKey"]
    <CanonicalKey.USER_ID: 'user_id'>

Performance:
    - permutations(): at most 13 strings per key
    - build_alias_table(): ~250 entries, built once per provider

Tags:
    aliases, permutations, normalization, flagbridge
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from flagbridge.errors import InvalidConfigError
from flagbridge.keys import TARGETING_KEY, CanonicalKey

AliasTable = Mapping[str, CanonicalKey]

# Canonical names that are not snake_case in the external schema.
_SNAKE_CASE_OVERRIDES = {
    CanonicalKey.REVENUE_TYPE.value: "revenue_type",
}

_WORD_BREAK = re.compile(r"_(.)")


def permutations(name: str) -> list[str]:
    """
    Return every spelling a caller might use for ``name``.

    The list may contain duplicates. Rules, applied to the underscore form:

    1. The string itself, its lower-case, upper-case and capitalized forms.
    2. With an underscore: camelCase, kebab-case and PascalCase forms.
    3. Ending in ``_ids``: ``<stem>IDs``, ``<stem>-ids`` and ``<stem>ids``.
    4. Ending in ``_id``: ``<stem>ID``, ``<stem>-id`` and ``<stem>id``.

    The suffix forms always capitalize ``ID``.
    """
    value = _SNAKE_CASE_OVERRIDES.get(name, name)

    result = [value, value.lower(), value.upper(), value[:1].upper() + value[1:]]
    if "_" in value:
        camel = _WORD_BREAK.sub(lambda m: m.group(1).upper(), value)
        result.append(camel)
        result.append(_WORD_BREAK.sub(lambda m: "-" + m.group(1).lower(), value))
        result.append(camel[:1].upper() + camel[1:])

    if value.endswith("_ids"):
        stem = value.removesuffix("_ids")
        result.append(stem + "IDs")
        result.append((stem + "-ids").lower())
        result.append((stem + "ids").lower())
    elif value.endswith("_id"):
        stem = value.removesuffix("_id")
        result.append(stem + "ID")
        result.append((stem + "-id").lower())
        result.append((stem + "id").lower())

    return result


def _resolve_canonical(name: str | CanonicalKey) -> CanonicalKey:
    if isinstance(name, CanonicalKey):
        return name
    try:
        return CanonicalKey(name)
    except ValueError as exc:
        raise InvalidConfigError(
            f"unknown canonical key in alias configuration: {name!r}",
            cause=exc,
        ) from exc


def build_alias_table(
    extra: Mapping[str, str | CanonicalKey] | None = None,
    *,
    keys: Iterable[CanonicalKey] = CanonicalKey,
) -> AliasTable:
    """
    Build an immutable alias table.

    Args:
        extra: Additional spellings mapped to canonical key names. Registered
            last, verbatim, so they override generated aliases.
        keys: Canonical keys to generate aliases for (all by default).

    Returns:
        Read-only mapping from spelling to :class:`CanonicalKey`.

    Raises:
        InvalidConfigError: If ``extra`` names an unknown canonical key.
    """
    table: dict[str, CanonicalKey] = {}
    for key in keys:
        for alias in permutations(key.value):
            table[alias] = key

    for alias in permutations(TARGETING_KEY):
        table[alias] = CanonicalKey.USER_ID

    for alias, name in (extra or {}).items():
        table[alias] = _resolve_canonical(name)

    return MappingProxyType(table)


__all__ = [
    "AliasTable",
    "permutations",
    "build_alias_table",
]
