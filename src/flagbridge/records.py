"""
Record types exchanged with the assignment and analytics services.

``Subject`` mirrors the assignment service's user record and ``Occurrence``
mirrors the analytics service's event record. Field names (or serialization
aliases, for the two camelCase fields) are exactly the canonical key values,
so the projector can assign fields directly from a normalized record.

``Variant`` is what the assignment service returns for one flag.

Tags:
    records, pydantic, subject, occurrence, variant, flagbridge
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Variant key the assignment service returns when the subject is not in the
# flag's rollout.
OFF_VARIANT_KEY = "off"


class Subject(BaseModel):
    """The identity and attributes sent to the assignment service."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    user_id: str | None = None
    device_id: str | None = None
    country: str | None = None
    region: str | None = None
    dma: str | None = None
    city: str | None = None
    language: str | None = None
    platform: str | None = None
    version: str | None = None
    os: str | None = None
    device_manufacturer: str | None = None
    device_brand: str | None = None
    device_model: str | None = None
    carrier: str | None = None
    library: str | None = None
    user_properties: dict[str, Any] = Field(default_factory=dict)
    group_properties: dict[str, dict[str, Any]] | None = None
    groups: dict[str, list[str]] | None = None
    cohort_ids: list[str] | None = None
    group_cohort_ids: dict[str, dict[str, list[str]]] | None = None

    def has_identity(self) -> bool:
        """True when either identifier is a non-empty string."""
        return bool(self.user_id) or bool(self.device_id)


class Occurrence(BaseModel):
    """
    A tracked event sent to the analytics service.

    ``revenue`` is populated from the tracking value; ``event_properties``
    holds every attribute that did not map to a field.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    event_type: str
    user_id: str | None = None
    device_id: str | None = None
    time: int | None = None
    insert_id: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    app_version: str | None = None
    version_name: str | None = None
    library: str | None = None
    platform: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    device_brand: str | None = None
    device_manufacturer: str | None = None
    device_model: str | None = None
    carrier: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    dma: str | None = None
    idfa: str | None = None
    idfv: str | None = None
    adid: str | None = None
    android_id: str | None = None
    language: str | None = None
    ip: str | None = None
    price: float | None = None
    quantity: int | None = None
    revenue: float | None = None
    currency: str | None = None
    product_id: str | None = Field(default=None, alias="productId")
    revenue_type: str | None = Field(default=None, alias="revenueType")
    event_id: int | None = None
    session_id: int | None = None
    partner_id: str | None = None
    plan: dict[str, Any] | None = None
    ingestion_metadata: dict[str, Any] | None = None
    event_properties: dict[str, Any] = Field(default_factory=dict)
    user_properties: dict[str, Any] | None = None
    groups: dict[str, list[str]] | None = None
    group_properties: dict[str, Any] | None = None


class Variant(BaseModel):
    """
    One flag's assignment for a subject.

    Attributes:
        key: Variant identifier; ``"off"`` means not in the rollout
        value: Human-readable variant value, if the service sends one
        payload: Decoded JSON payload, ``None`` when absent
        metadata: Service-supplied metadata
    """

    key: str
    value: str | None = None
    payload: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_off(self) -> bool:
        return self.key == OFF_VARIANT_KEY


def record_field_names(model: type[BaseModel]) -> frozenset[str]:
    """Return the wire names (alias where set) of a record model's fields."""
    return frozenset(
        field.alias or name for name, field in model.model_fields.items()
    )


__all__ = [
    "OFF_VARIANT_KEY",
    "Subject",
    "Occurrence",
    "Variant",
    "record_field_names",
]
