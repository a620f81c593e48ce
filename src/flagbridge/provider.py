"""
Experiment provider: the evaluation pipeline.

``ExperimentProvider`` owns an alias table and an assignment client, and
evaluates typed flags for loosely typed contexts. It is the surface
application code calls; :mod:`flagbridge.openfeature_provider` wraps it for
the OpenFeature SDK.

Manifesto:
    Evaluating a flag must never crash a request. Every failure along the
    pipeline is converted into the caller's default plus an error kind, and
    logged once with the flag name.

    - **Never raises:** ``evaluate_*`` return a result for any input
    - **Explicit lifecycle:** NOT_READY until ``initialize``; ERROR if the
      client failed to start; both short-circuit evaluation
    - **Owned state:** The alias table belongs to the provider instance;
      ``replace_alias_table`` publishes a new one by reference swap
    - **Fatal configuration:** Bad settings raise out of the constructor

Architecture:
    ::

        evaluate_string("checkout", "control", {"deviceId": "d1"})
              │
              │ 1. readiness ─────────── NOT_READY ─► PROVIDER_NOT_READY
              │                           ERROR ────► GENERAL
              │ 2. build_subject ─────── no identity ► INVALID_CONTEXT
              │ 3. client.evaluate ───── raises ────► GENERAL
              │ 4. variants[flag] ────── missing ───► FLAG_NOT_FOUND
              │ 5. evaluate_variant ──── off ───────► DEFAULT
              │                          bad shape ─► TYPE_MISMATCH
              ▼
        Resolved("treatment", variant="treatment", metadata={...})

Examples:
    >>> from flagbridge.client import StaticAssignmentClient
    >>> from flagbridge.settings import ProviderSettings
    >>> provider = ExperimentProvider(
    ...     ProviderSettings(deployment_key="server-abc"),
    ...     client=StaticAssignmentClient({"checkout": {"key": "on", "payload": "456"}}),
    ... )
    >>> provider.initialize()
    >>> provider.evaluate_integer("checkout", 0, {"user_id": "u1"}).value
    456

Guardrails:
    ❌ DON'T: Catch exceptions around ``evaluate_*`` calls
    ✅ DO: Inspect ``result.reason`` and ``result.error_kind``

    ❌ DON'T: Mutate the alias table returned by ``alias_table``
    ✅ DO: Build a new one and call ``replace_alias_table``

Tags:
    provider, evaluation, lifecycle, tracking, flagbridge
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, TypeVar

from flagbridge.aliases import AliasTable, build_alias_table
from flagbridge.cache import CacheBackend, InMemoryCache
from flagbridge.client import AssignmentClient, CachingAssignmentClient, Tracker
from flagbridge.errors import (
    AssignmentError,
    FlagBridgeError,
    FlagNotFoundError,
    InvalidConfigError,
    MissingConfigError,
    ProviderErrorStateError,
    ProviderNotReadyError,
    ProviderStartupError,
)
from flagbridge.evaluation import (
    DefaultedOnError,
    EvaluationResult,
    FlagType,
    evaluate_variant,
)
from flagbridge.keys import RecordShape
from flagbridge.logging import get_logger
from flagbridge.normalization import (
    NormalizedRecord,
    OccurrenceHook,
    SubjectHook,
    build_occurrence,
    build_subject,
    normalize,
)
from flagbridge.records import Occurrence, Subject, Variant
from flagbridge.settings import ProviderSettings

logger = get_logger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[ProviderSettings], AssignmentClient]

PROVIDER_NAME = "flagbridge"


class ProviderState(str, Enum):
    """Lifecycle state of a provider."""

    NOT_READY = "NOT_READY"
    READY = "READY"
    ERROR = "ERROR"


class ExperimentProvider:
    """
    Typed flag evaluation against an assignment client.

    Args:
        settings: Validated provider settings.
        client: A ready-made assignment client.
        client_factory: Builds the client from ``settings``, typically sized
            by ``settings.evaluation_options`` (poll interval or fetch
            timeout); exclusive with ``client``.
        cache: Cache backend for remote mode. Defaults to an
            :class:`InMemoryCache` sized from ``settings.remote``.
        tracker: Receives tracked events. Without one, events are logged
            at debug level and dropped.
        subject_hook: Called with every projected subject before it is sent.
        occurrence_hook: Called with every projected occurrence before it is
            tracked.

    Raises:
        MissingConfigError: Empty deployment key, or no client given.
        InvalidConfigError: Both ``client`` and ``client_factory`` given, or
            ``extra_aliases`` names an unknown canonical key.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client: AssignmentClient | None = None,
        client_factory: ClientFactory | None = None,
        cache: CacheBackend | None = None,
        tracker: Tracker | None = None,
        subject_hook: SubjectHook | None = None,
        occurrence_hook: OccurrenceHook | None = None,
    ):
        if not settings.deployment_key:
            raise MissingConfigError("deployment key must not be empty")
        if client is not None and client_factory is not None:
            raise InvalidConfigError("pass either client or client_factory, not both")
        if client is None and client_factory is None:
            raise MissingConfigError("an assignment client or client_factory is required")

        self._settings = settings
        self._alias_table = build_alias_table(settings.extra_aliases)
        self._client = self._wrap_client(
            client if client is not None else client_factory(settings),
            cache,
        )
        self._tracker = tracker
        self._subject_hook = subject_hook
        self._occurrence_hook = occurrence_hook
        self._state = ProviderState.NOT_READY
        self._lock = threading.Lock()

    def _wrap_client(
        self, client: AssignmentClient, cache: CacheBackend | None
    ) -> AssignmentClient:
        remote = self._settings.remote
        if remote is None or not remote.cache_enabled:
            return client
        if cache is None:
            cache = InMemoryCache(
                max_size=remote.cache_max_size,
                default_ttl_seconds=remote.cache_ttl_seconds,
            )
        return CachingAssignmentClient(client, cache, ttl_seconds=remote.cache_ttl_seconds)

    # ── Properties ───────────────────────────────────────────────

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def client(self) -> AssignmentClient:
        return self._client

    @property
    def alias_table(self) -> AliasTable:
        return self._alias_table

    # ── Lifecycle ────────────────────────────────────────────────

    def initialize(self) -> None:
        """
        Start the assignment client and become READY.

        Raises:
            ProviderStartupError: If the client fails to start. The provider
                is left in the ERROR state.
        """
        with self._lock:
            if self._state == ProviderState.READY:
                return
            try:
                self._client.start()
            except Exception as exc:
                self._state = ProviderState.ERROR
                logger.error("provider_start_failed", provider=self.name, error=str(exc))
                raise ProviderStartupError(
                    f"assignment client failed to start: {exc}", cause=exc
                ) from exc
            self._state = ProviderState.READY

        logger.info(
            "provider_ready",
            provider=self.name,
            mode=self._settings.evaluation_mode.value,
            options=self._settings.evaluation_options.model_dump(),
        )

    def shutdown(self) -> None:
        """Stop the assignment client. The provider returns to NOT_READY."""
        with self._lock:
            try:
                self._client.stop()
            finally:
                self._state = ProviderState.NOT_READY
        logger.info("provider_shutdown", provider=self.name)

    def __enter__(self) -> ExperimentProvider:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()

    def replace_alias_table(self, table: AliasTable) -> None:
        """Publish a new alias table; in-flight evaluations keep the old one."""
        self._alias_table = table

    # ── Evaluation ───────────────────────────────────────────────

    def evaluate_boolean(
        self, flag: str, default: bool, context: Mapping[Any, Any] | None = None
    ) -> EvaluationResult[bool]:
        return self.evaluate(FlagType.BOOLEAN, flag, default, context)

    def evaluate_string(
        self, flag: str, default: str, context: Mapping[Any, Any] | None = None
    ) -> EvaluationResult[str]:
        return self.evaluate(FlagType.STRING, flag, default, context)

    def evaluate_integer(
        self, flag: str, default: int, context: Mapping[Any, Any] | None = None
    ) -> EvaluationResult[int]:
        return self.evaluate(FlagType.INTEGER, flag, default, context)

    def evaluate_float(
        self, flag: str, default: float, context: Mapping[Any, Any] | None = None
    ) -> EvaluationResult[float]:
        return self.evaluate(FlagType.FLOAT, flag, default, context)

    def evaluate_object(
        self, flag: str, default: Any, context: Mapping[Any, Any] | None = None
    ) -> EvaluationResult[Any]:
        return self.evaluate(FlagType.OBJECT, flag, default, context)

    def evaluate(
        self,
        flag_type: FlagType,
        flag: str,
        default: T,
        context: Mapping[Any, Any] | None = None,
    ) -> EvaluationResult[T]:
        """Evaluate ``flag`` as ``flag_type``. Never raises."""
        table = self._alias_table
        try:
            self._check_ready()
            subject = build_subject(context or {}, table, self._subject_hook)
            variant = self._fetch_variant(subject, flag)
        except FlagBridgeError as exc:
            self._log_failure(flag, flag_type, exc.error_kind.value, exc.message)
            return DefaultedOnError(default, exc.error_kind, exc.message)

        result = evaluate_variant(flag_type, variant, default)
        if isinstance(result, DefaultedOnError):
            self._log_failure(flag, flag_type, result.error_kind.value, result.message)
        return result

    def _check_ready(self) -> None:
        match self._state:
            case ProviderState.READY:
                return
            case ProviderState.NOT_READY:
                raise ProviderNotReadyError("provider not ready")
            case ProviderState.ERROR:
                raise ProviderErrorStateError("provider in error state")

    def _fetch_variant(self, subject: Subject, flag: str) -> Variant:
        try:
            variants = self._client.evaluate(subject, [flag])
        except Exception as exc:
            raise AssignmentError(
                f"assignment failed: {exc}", context={"flag": flag}, cause=exc
            ) from exc

        variant = variants.get(flag)
        if variant is None:
            raise FlagNotFoundError(flag)
        return variant

    def _log_failure(
        self, flag: str, flag_type: FlagType, error_kind: str, message: str
    ) -> None:
        logger.warning(
            "flag_evaluation_failed",
            flag=flag,
            flag_type=flag_type.value,
            error_kind=error_kind,
            message=message,
        )

    # ── Normalization & tracking ─────────────────────────────────

    def normalize(
        self,
        attributes: Mapping[Any, Any],
        shape: RecordShape = RecordShape.SUBJECT,
    ) -> NormalizedRecord:
        """Normalize ``attributes`` with this provider's alias table. Never raises."""
        return normalize(attributes, self._alias_table, shape)

    def track(
        self,
        event_type: str,
        context: Mapping[Any, Any] | None = None,
        value: float | None = None,
        attributes: Mapping[Any, Any] | None = None,
    ) -> Occurrence:
        """
        Build an occurrence for ``event_type`` and hand it to the tracker.

        Raises:
            InvalidContextError: If the event cannot be built.
        """
        occurrence = build_occurrence(
            event_type,
            context or {},
            self._alias_table,
            value=value,
            details=attributes,
            hook=self._occurrence_hook,
        )
        if self._tracker is None:
            logger.debug("tracking_event_dropped", event_type=event_type)
        else:
            self._tracker.send(occurrence)
        return occurrence


__all__ = [
    "PROVIDER_NAME",
    "ProviderState",
    "ClientFactory",
    "ExperimentProvider",
]
