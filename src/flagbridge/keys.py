"""
Canonical key registry for subject and occurrence records.

The assignment service accepts a fixed set of fields on a *subject* (the user
being bucketed) and the analytics service accepts a fixed set of fields on an
*occurrence* (a tracked event). Most fields are shared. This module names
every such field once and partitions them into three disjoint sets.

Manifesto:
    The registry is the single source of truth for which attribute names are
    semantic and which belong in the overflow bag.

    - **Closed set:** Every canonical key is a :class:`CanonicalKey` member
    - **Disjoint partition:** Each key is in exactly one of SUBJECT_ONLY,
      OCCURRENCE_ONLY, SHARED
    - **Checked against the records:** A test compares the partition with the
      fields of :class:`~flagbridge.records.Subject` and
      :class:`~flagbridge.records.Occurrence`

Architecture:
    ::

        ┌──────────────────────┬──────────────────────┬──────────────────────┐
        │    SUBJECT_ONLY      │       SHARED         │   OCCURRENCE_ONLY    │
        ├──────────────────────┼──────────────────────┼──────────────────────┤
        │ version, os          │ user_id, device_id   │ time, insert_id      │
        │ cohort_ids           │ country, region, ... │ revenue, price, ...  │
        │ group_cohort_ids     │ user_properties, ... │ event_properties     │
        └──────────────────────┴──────────────────────┴──────────────────────┘
                 Subject = SUBJECT_ONLY ∪ SHARED
                 Occurrence = OCCURRENCE_ONLY ∪ SHARED

Examples:
    >>> CanonicalKey.DEVICE_ID in SHARED
    True
    >>> is_subject_key(CanonicalKey.REVENUE)
    False
    >>> CanonicalKey("productId") is CanonicalKey.PRODUCT_ID
    True

Guardrails:
    ❌ DON'T: Add a key without adding the matching record field
    ✅ DO: Run the partition test after changing either side

Tags:
    canonical-keys, registry, normalization, flagbridge
"""

from __future__ import annotations

from enum import Enum


class CanonicalKey(str, Enum):
    """A semantic field of the subject or occurrence record."""

    # ── Shared by Subject and Occurrence ─────────────────────────
    USER_ID = "user_id"
    DEVICE_ID = "device_id"
    COUNTRY = "country"
    REGION = "region"
    DMA = "dma"                                   # Nielsen Designated Market Area
    CITY = "city"
    LANGUAGE = "language"
    PLATFORM = "platform"
    DEVICE_MANUFACTURER = "device_manufacturer"
    DEVICE_BRAND = "device_brand"
    DEVICE_MODEL = "device_model"
    CARRIER = "carrier"
    LIBRARY = "library"
    USER_PROPERTIES = "user_properties"
    GROUP_PROPERTIES = "group_properties"
    GROUPS = "groups"

    # ── Subject only ─────────────────────────────────────────────
    VERSION = "version"
    OS = "os"
    COHORT_IDS = "cohort_ids"
    GROUP_COHORT_IDS = "group_cohort_ids"

    # ── Occurrence only ──────────────────────────────────────────
    TIME = "time"                                 # epoch milliseconds
    INSERT_ID = "insert_id"
    LOCATION_LAT = "location_lat"
    LOCATION_LNG = "location_lng"
    APP_VERSION = "app_version"
    VERSION_NAME = "version_name"
    OS_NAME = "os_name"
    OS_VERSION = "os_version"
    IDFA = "idfa"
    IDFV = "idfv"
    ADID = "adid"
    ANDROID_ID = "android_id"
    IP = "ip"
    PRICE = "price"
    QUANTITY = "quantity"
    REVENUE = "revenue"
    CURRENCY = "currency"
    PRODUCT_ID = "productId"
    # Not snake_case in the analytics schema; aliases are generated from
    # "revenue_type" instead.
    REVENUE_TYPE = "revenueType"
    EVENT_ID = "event_id"
    SESSION_ID = "session_id"
    PARTNER_ID = "partner_id"
    PLAN = "plan"
    INGESTION_METADATA = "ingestion_metadata"
    EVENT_PROPERTIES = "event_properties"
    EVENT_TYPE = "event_type"


class RecordShape(str, Enum):
    """The two record shapes a context can be projected onto."""

    SUBJECT = "subject"
    OCCURRENCE = "occurrence"


SHARED: frozenset[CanonicalKey] = frozenset({
    CanonicalKey.USER_ID,
    CanonicalKey.DEVICE_ID,
    CanonicalKey.COUNTRY,
    CanonicalKey.REGION,
    CanonicalKey.DMA,
    CanonicalKey.CITY,
    CanonicalKey.LANGUAGE,
    CanonicalKey.PLATFORM,
    CanonicalKey.DEVICE_MANUFACTURER,
    CanonicalKey.DEVICE_BRAND,
    CanonicalKey.DEVICE_MODEL,
    CanonicalKey.CARRIER,
    CanonicalKey.LIBRARY,
    CanonicalKey.USER_PROPERTIES,
    CanonicalKey.GROUP_PROPERTIES,
    CanonicalKey.GROUPS,
})

SUBJECT_ONLY: frozenset[CanonicalKey] = frozenset({
    CanonicalKey.VERSION,
    CanonicalKey.OS,
    CanonicalKey.COHORT_IDS,
    CanonicalKey.GROUP_COHORT_IDS,
})

OCCURRENCE_ONLY: frozenset[CanonicalKey] = frozenset(
    key for key in CanonicalKey if key not in SHARED and key not in SUBJECT_ONLY
)

SUBJECT_KEYS: frozenset[CanonicalKey] = SUBJECT_ONLY | SHARED
OCCURRENCE_KEYS: frozenset[CanonicalKey] = OCCURRENCE_ONLY | SHARED

# Keys whose record field holds a JSON object.
MAPPING_KEYS: frozenset[CanonicalKey] = frozenset({
    CanonicalKey.USER_PROPERTIES,
    CanonicalKey.GROUP_PROPERTIES,
    CanonicalKey.GROUPS,
    CanonicalKey.GROUP_COHORT_IDS,
    CanonicalKey.PLAN,
    CanonicalKey.INGESTION_METADATA,
    CanonicalKey.EVENT_PROPERTIES,
})

# Keys that identify a subject; at least one must be non-empty.
IDENTITY_KEYS: tuple[CanonicalKey, ...] = (CanonicalKey.USER_ID, CanonicalKey.DEVICE_ID)

# Input name under which callers pass the targeting key; maps to user_id.
TARGETING_KEY = "targeting_key"

_OVERFLOW_KEYS = {
    RecordShape.SUBJECT: CanonicalKey.USER_PROPERTIES,
    RecordShape.OCCURRENCE: CanonicalKey.EVENT_PROPERTIES,
}


def keys_for(shape: RecordShape) -> frozenset[CanonicalKey]:
    """Return the canonical keys accepted by a record shape."""
    if shape == RecordShape.SUBJECT:
        return SUBJECT_KEYS
    return OCCURRENCE_KEYS


def overflow_key_for(shape: RecordShape) -> CanonicalKey:
    """Return the canonical key that holds a record's custom properties."""
    return _OVERFLOW_KEYS[shape]


def is_subject_key(key: CanonicalKey) -> bool:
    return key in SUBJECT_KEYS


def is_occurrence_key(key: CanonicalKey) -> bool:
    return key in OCCURRENCE_KEYS


__all__ = [
    "CanonicalKey",
    "RecordShape",
    "SHARED",
    "SUBJECT_ONLY",
    "OCCURRENCE_ONLY",
    "SUBJECT_KEYS",
    "OCCURRENCE_KEYS",
    "MAPPING_KEYS",
    "IDENTITY_KEYS",
    "TARGETING_KEY",
    "keys_for",
    "overflow_key_for",
    "is_subject_key",
    "is_occurrence_key",
]
