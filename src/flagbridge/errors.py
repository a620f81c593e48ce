"""
Structured error types for flagbridge.

Every failure inside an evaluation is raised as a :class:`FlagBridgeError`
subclass and converted into a defaulted result at the evaluation boundary.
Each subclass knows which :class:`ErrorKind` it reports, so the boundary does
not need a mapping table.

Manifesto:
    - **Typed hierarchy:** One subclass per error kind the caller can observe
    - **Never escapes evaluation:** The provider catches these and returns the
      caller's default together with the kind and message
    - **Fatal at construction:** Configuration errors are raised out of
      constructors and are never converted into results
    - **Error chaining:** The underlying exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      FlagBridgeError                            │
        │            (category, error_kind, context, cause)               │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ProviderNotReadyError   ProviderErrorStateError                │
        │  (PROVIDER_NOT_READY)    (GENERAL)                              │
        │                                                                 │
        │  AssignmentError         FlagNotFoundError                      │
        │  (GENERAL)               (FLAG_NOT_FOUND)                       │
        │                                                                 │
        │  InvalidContextError     TypeMismatchError                      │
        │  (INVALID_CONTEXT)       (TYPE_MISMATCH)                        │
        │                                                                 │
        │  ConfigError ── MissingConfigError, InvalidConfigError          │
        │  ProviderStartupError                                           │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = FlagNotFoundError("checkout-v2")
    >>> err.error_kind
    <ErrorKind.FLAG_NOT_FOUND: 'FLAG_NOT_FOUND'>
    >>> err.with_context(flag="checkout-v2").to_dict()["context"]
    {'flag': 'checkout-v2'}

Tags:
    error-handling, exception-hierarchy, flagbridge
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flagbridge.normalization import NormalizedRecord


class ErrorCategory(str, Enum):
    """Coarse classification used for log routing."""

    CONFIG = "CONFIG"             # Missing or conflicting settings
    CONTEXT = "CONTEXT"           # Caller supplied an unusable context
    ASSIGNMENT = "ASSIGNMENT"     # Assignment service or its client
    PAYLOAD = "PAYLOAD"           # Variant payload of the wrong shape
    LIFECYCLE = "LIFECYCLE"       # Provider not started or failed
    INTERNAL = "INTERNAL"


class ErrorKind(str, Enum):
    """Machine-readable error kind attached to every evaluation result."""

    NONE = "NONE"
    PROVIDER_NOT_READY = "PROVIDER_NOT_READY"
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    INVALID_CONTEXT = "INVALID_CONTEXT"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    GENERAL = "GENERAL"


class FlagBridgeError(Exception):
    """
    Base exception for all flagbridge errors.

    Subclasses set ``default_category`` and ``error_kind``. Extra metadata is
    attached with :meth:`with_context` and rendered by :meth:`to_dict` for
    structured logging.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    error_kind: ErrorKind = ErrorKind.GENERAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FlagBridgeError:
        """Add context to this error (fluent API)."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "error_kind": self.error_kind.value,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.error_kind.value})"


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class ProviderNotReadyError(FlagBridgeError):
    """Evaluation attempted before the provider was initialized."""

    default_category = ErrorCategory.LIFECYCLE
    error_kind = ErrorKind.PROVIDER_NOT_READY


class ProviderErrorStateError(FlagBridgeError):
    """Evaluation attempted while the provider is in its failed state."""

    default_category = ErrorCategory.LIFECYCLE
    error_kind = ErrorKind.GENERAL


class ProviderStartupError(FlagBridgeError):
    """The assignment client failed to start. Raised out of ``initialize``."""

    default_category = ErrorCategory.LIFECYCLE
    error_kind = ErrorKind.GENERAL


# =============================================================================
# EVALUATION ERRORS
# =============================================================================


class AssignmentError(FlagBridgeError):
    """The assignment client failed to produce variants."""

    default_category = ErrorCategory.ASSIGNMENT
    error_kind = ErrorKind.GENERAL


class FlagNotFoundError(FlagBridgeError):
    """The assignment service returned no variant for the flag."""

    default_category = ErrorCategory.ASSIGNMENT
    error_kind = ErrorKind.FLAG_NOT_FOUND

    def __init__(self, flag: str, **kwargs: Any):
        super().__init__(f"flag {flag} not found", **kwargs)
        self.flag = flag


class InvalidContextError(FlagBridgeError):
    """
    The evaluation context could not be turned into a record.

    ``record`` holds the normalized attributes when normalization got that
    far, so callers can log what was supplied.
    """

    default_category = ErrorCategory.CONTEXT
    error_kind = ErrorKind.INVALID_CONTEXT

    def __init__(
        self,
        message: str,
        *,
        record: NormalizedRecord | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.record = record


class TypeMismatchError(FlagBridgeError):
    """The variant payload cannot be coerced to the requested type."""

    default_category = ErrorCategory.PAYLOAD
    error_kind = ErrorKind.TYPE_MISMATCH


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(FlagBridgeError):
    """
    Configuration error.

    Raised from constructors only; never converted into an evaluation result.
    """

    default_category = ErrorCategory.CONFIG
    error_kind = ErrorKind.GENERAL


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    pass


class InvalidConfigError(ConfigError):
    """Configuration value is invalid or conflicts with another."""

    pass


__all__ = [
    "ErrorCategory",
    "ErrorKind",
    "FlagBridgeError",
    "ProviderNotReadyError",
    "ProviderErrorStateError",
    "ProviderStartupError",
    "AssignmentError",
    "FlagNotFoundError",
    "InvalidContextError",
    "TypeMismatchError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
]
