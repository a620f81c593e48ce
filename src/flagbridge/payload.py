"""
Closed classification of variant payloads.

The assignment service hands back whatever its JSON decoder produced. That
value is classified once, at the boundary, into a :class:`Payload` whose
``kind`` is one of six members. The typed coercers in
:mod:`flagbridge.evaluation` then ``match`` on the kind, so every payload
shape is handled by exactly one branch.

Tags:
    payload, tagged-union, coercion, flagbridge
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from flagbridge.errors import TypeMismatchError


class PayloadKind(str, Enum):
    """Shape of a decoded payload."""

    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    ABSENT = "absent"


@dataclass(frozen=True)
class Payload:
    """A payload value tagged with its :class:`PayloadKind`."""

    kind: PayloadKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> Payload:
        """
        Classify a decoded payload.

        ``bool`` is checked before numbers since it subclasses ``int``.
        ``Decimal`` counts as a number so decoders configured with
        ``parse_float=Decimal`` keep their precision.

        Raises:
            TypeMismatchError: For values no JSON decoder produces.
        """
        if raw is None:
            return cls(PayloadKind.ABSENT)
        if isinstance(raw, bool):
            return cls(PayloadKind.BOOL, raw)
        if isinstance(raw, int | float | Decimal):
            return cls(PayloadKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(PayloadKind.STRING, raw)
        if isinstance(raw, Mapping):
            return cls(PayloadKind.MAPPING, raw)
        if isinstance(raw, list | tuple):
            return cls(PayloadKind.SEQUENCE, raw)
        raise TypeMismatchError(
            f"unsupported payload type {type(raw).__name__}"
        )

    @property
    def is_absent(self) -> bool:
        return self.kind == PayloadKind.ABSENT


__all__ = ["PayloadKind", "Payload"]
