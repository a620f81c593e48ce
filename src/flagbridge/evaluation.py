"""
Typed evaluation of variant payloads.

Given the variant the assignment service returned for a flag and the type the
caller asked for, produce exactly one of three outcomes:

- :class:`Resolved`: the coerced value, with the variant key and metadata
- :class:`DefaultedIntentionally`: the caller's default (reason DEFAULT)
- :class:`DefaultedOnError`: the caller's default, an :class:`ErrorKind` and
  a message (reason ERROR)

Manifesto:
    Callers always get a usable value of the type they asked for. Failure
    detail travels alongside the value instead of interrupting the caller.

    - **Off means default:** The off-sentinel variant returns the default for
      every type, whatever its payload
    - **Booleans are lenient:** Any non-off variant is ``True`` unless the
      payload is itself a boolean
    - **Other types are strict:** Absent payload defaults intentionally;
      the wrong shape is a TYPE_MISMATCH error
    - **Numbers as strings:** Integers and floats accept decimal strings,
      since services encode large numbers that way to keep precision

Architecture:
    ::

        Variant ──► off? ──yes──► DefaultedIntentionally(default)
                     │no
                     ▼
              Payload.of(payload)
                     │
                     ▼
             coercer[flag_type] ──► value ─────────► Resolved(value, key, meta)
                     │          ──► USE_DEFAULT ───► DefaultedIntentionally
                     │          ──► TypeMismatchError ► DefaultedOnError

    Coercion table:

        ========  =========  ==========  =========  =========  ========  =======
        type      BOOL       NUMBER      STRING     SEQUENCE   MAPPING   ABSENT
        ========  =========  ==========  =========  =========  ========  =======
        boolean   value      True        True       True       True      True
        string    mismatch   mismatch    value      mismatch   mismatch  default
        float     mismatch   float       parsed     mismatch   mismatch  default
        integer   mismatch   truncated   parsed     mismatch   mismatch  default
        object    value      value       value      value      value     default
        ========  =========  ==========  =========  =========  ========  =======

Examples:
    >>> from flagbridge.records import Variant
    >>> evaluate_variant(FlagType.INTEGER, Variant(key="v", payload="456"), 0).value
    456
    >>> result = evaluate_variant(FlagType.STRING, Variant(key="off"), "x")
    >>> result.value, result.reason
    ('x', <Reason.DEFAULT: 'DEFAULT'>)

Tags:
    evaluation, coercion, typed-flags, tri-state-result, flagbridge
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar

from flagbridge.errors import ErrorKind, FlagBridgeError, TypeMismatchError
from flagbridge.payload import Payload, PayloadKind
from flagbridge.records import Variant

T = TypeVar("T")

_INTEGER_STRING = re.compile(r"[+-]?\d+")
_DECIMAL_STRING = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class FlagType(str, Enum):
    """Statically requested value type."""

    BOOLEAN = "boolean"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    OBJECT = "object"


class Reason(str, Enum):
    """Why a result holds the value it does."""

    RESOLVED = "RESOLVED"
    DEFAULT = "DEFAULT"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """The variant's payload, coerced to the requested type."""

    value: T
    variant: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    reason = Reason.RESOLVED
    error_kind = ErrorKind.NONE
    message = None


@dataclass(frozen=True)
class DefaultedIntentionally(Generic[T]):
    """The caller's default, returned because the flag says so."""

    value: T

    reason = Reason.DEFAULT
    error_kind = ErrorKind.NONE
    variant = None
    message = None

    @property
    def metadata(self) -> Mapping[str, Any]:
        return {}


@dataclass(frozen=True)
class DefaultedOnError(Generic[T]):
    """The caller's default, returned because evaluation failed."""

    value: T
    error_kind: ErrorKind
    message: str = ""

    reason = Reason.ERROR
    variant = None

    @property
    def metadata(self) -> Mapping[str, Any]:
        return {}


EvaluationResult = Resolved[T] | DefaultedIntentionally[T] | DefaultedOnError[T]


class _UseDefault:
    """Marker returned by a coercer when the default applies intentionally."""

    def __repr__(self) -> str:
        return "USE_DEFAULT"


USE_DEFAULT = _UseDefault()


def _mismatch(expected: str, payload: Payload) -> TypeMismatchError:
    return TypeMismatchError(
        f"expected {expected} payload, got {payload.kind.value}",
        context={"expected": expected, "payload_kind": payload.kind.value},
    )


# =============================================================================
# COERCERS
# =============================================================================


def coerce_boolean(payload: Payload) -> bool:
    """A boolean payload wins; any other payload means the flag is on."""
    match payload.kind:
        case PayloadKind.BOOL:
            return payload.value
        case _:
            return True


def coerce_string(payload: Payload) -> str | _UseDefault:
    match payload.kind:
        case PayloadKind.STRING:
            return payload.value
        case PayloadKind.ABSENT:
            return USE_DEFAULT
        case _:
            raise _mismatch("string", payload)


def _to_float(number: Any) -> float:
    try:
        return float(number)
    except OverflowError as exc:
        raise TypeMismatchError(
            "payload is out of range for a float",
            context={"expected": "float", "payload_kind": "number"},
            cause=exc,
        ) from exc


def coerce_float(payload: Payload) -> float | _UseDefault:
    match payload.kind:
        case PayloadKind.NUMBER:
            return _to_float(payload.value)
        case PayloadKind.STRING:
            text = payload.value
            if not _DECIMAL_STRING.fullmatch(text):
                raise TypeMismatchError(
                    f"payload {text!r} is not a decimal number",
                    context={"expected": "float", "payload_kind": "string"},
                )
            return float(text)
        case PayloadKind.ABSENT:
            return USE_DEFAULT
        case _:
            raise _mismatch("float", payload)


def coerce_integer(payload: Payload) -> int | _UseDefault:
    """
    Numbers are truncated toward zero, not rounded: JSON numbers decode as
    floats, so ``2.9`` means the service sent a float for an integer flag.
    """
    match payload.kind:
        case PayloadKind.NUMBER:
            number = payload.value
            if isinstance(number, int):
                return number
            if isinstance(number, float) and not math.isfinite(number):
                raise TypeMismatchError(
                    f"payload {number!r} has no integer value",
                    context={"expected": "integer", "payload_kind": "number"},
                )
            if isinstance(number, Decimal) and not number.is_finite():
                raise TypeMismatchError(
                    f"payload {number!r} has no integer value",
                    context={"expected": "integer", "payload_kind": "number"},
                )
            return math.trunc(number)
        case PayloadKind.STRING:
            text = payload.value
            if not _INTEGER_STRING.fullmatch(text):
                raise TypeMismatchError(
                    f"payload {text!r} is not a base-10 integer",
                    context={"expected": "integer", "payload_kind": "string"},
                )
            try:
                return int(text, 10)
            except ValueError as exc:
                # Longer than sys.get_int_max_str_digits().
                raise TypeMismatchError(
                    "payload is too long for an integer",
                    context={"expected": "integer", "payload_kind": "string"},
                    cause=exc,
                ) from exc
        case PayloadKind.ABSENT:
            return USE_DEFAULT
        case _:
            raise _mismatch("integer", payload)


def coerce_object(payload: Payload) -> Any:
    """Any present payload is returned verbatim, without copying; scalars included."""
    match payload.kind:
        case PayloadKind.ABSENT:
            return USE_DEFAULT
        case _:
            return payload.value


COERCERS: Mapping[FlagType, Callable[[Payload], Any]] = {
    FlagType.BOOLEAN: coerce_boolean,
    FlagType.STRING: coerce_string,
    FlagType.INTEGER: coerce_integer,
    FlagType.FLOAT: coerce_float,
    FlagType.OBJECT: coerce_object,
}


# =============================================================================
# EVALUATION
# =============================================================================


def variant_metadata(variant: Variant) -> dict[str, Any]:
    """Metadata attached to a resolved result: key, value and service metadata."""
    metadata: dict[str, Any] = {"key": variant.key}
    if variant.value is not None:
        metadata["value"] = variant.value
    for name, item in variant.metadata.items():
        if item is not None:
            metadata.setdefault(name, item)
    return metadata


def evaluate_variant(
    flag_type: FlagType,
    variant: Variant,
    default: T,
) -> EvaluationResult[T]:
    """
    Coerce ``variant`` to ``flag_type``.

    Never raises; payload problems become :class:`DefaultedOnError` with
    ``ErrorKind.TYPE_MISMATCH``.
    """
    if variant.is_off:
        return DefaultedIntentionally(default)

    try:
        value = COERCERS[flag_type](Payload.of(variant.payload))
    except FlagBridgeError as exc:
        return DefaultedOnError(default, exc.error_kind, exc.message)

    if value is USE_DEFAULT:
        return DefaultedIntentionally(default)
    return Resolved(value, variant.key, variant_metadata(variant))


__all__ = [
    "FlagType",
    "Reason",
    "Resolved",
    "DefaultedIntentionally",
    "DefaultedOnError",
    "EvaluationResult",
    "USE_DEFAULT",
    "coerce_boolean",
    "coerce_string",
    "coerce_float",
    "coerce_integer",
    "coerce_object",
    "COERCERS",
    "variant_metadata",
    "evaluate_variant",
]
