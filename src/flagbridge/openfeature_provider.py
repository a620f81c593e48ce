"""
OpenFeature provider backed by :class:`ExperimentProvider`.

Registers flagbridge with the OpenFeature SDK::

    from openfeature import api

    api.set_provider(OpenFeatureProvider(settings, client=my_client))
    client = api.get_client()
    client.get_string_value("checkout", "control", EvaluationContext("u1", {"plan": "pro"}))

The evaluation context is flattened into a plain mapping: its attributes plus
the targeting key under ``targetingKey``, which the alias table maps to
``user_id``. Results map onto ``FlagResolutionDetails``:

    ========================  ==========================
    flagbridge                OpenFeature
    ========================  ==========================
    Reason.RESOLVED           Reason.TARGETING_MATCH
    Reason.DEFAULT            Reason.DEFAULT
    Reason.ERROR              Reason.ERROR
    ErrorKind.*               ErrorCode.* (same name)
    ========================  ==========================

Tags:
    openfeature, provider, adapter, flagbridge
"""

from __future__ import annotations

import typing
from collections.abc import Mapping

from openfeature.evaluation_context import EvaluationContext
from openfeature.exception import ErrorCode
from openfeature.flag_evaluation import FlagResolutionDetails, Reason
from openfeature.provider import AbstractProvider, Metadata

from flagbridge.errors import ErrorKind, FlagBridgeError
from flagbridge.evaluation import EvaluationResult, FlagType
from flagbridge.evaluation import Reason as EvaluationReason
from flagbridge.logging import get_logger
from flagbridge.provider import PROVIDER_NAME, ExperimentProvider
from flagbridge.settings import ProviderSettings

logger = get_logger(__name__)

TARGETING_KEY_ATTRIBUTE = "targetingKey"

_REASONS = {
    EvaluationReason.RESOLVED: Reason.TARGETING_MATCH,
    EvaluationReason.DEFAULT: Reason.DEFAULT,
    EvaluationReason.ERROR: Reason.ERROR,
}

_ERROR_CODES = {
    ErrorKind.PROVIDER_NOT_READY: ErrorCode.PROVIDER_NOT_READY,
    ErrorKind.FLAG_NOT_FOUND: ErrorCode.FLAG_NOT_FOUND,
    ErrorKind.INVALID_CONTEXT: ErrorCode.INVALID_CONTEXT,
    ErrorKind.TYPE_MISMATCH: ErrorCode.TYPE_MISMATCH,
    ErrorKind.GENERAL: ErrorCode.GENERAL,
}


def flatten_context(evaluation_context: EvaluationContext | None) -> dict[str, typing.Any]:
    """Attributes of ``evaluation_context`` plus its targeting key, if set."""
    if evaluation_context is None:
        return {}
    flat = dict(evaluation_context.attributes or {})
    if evaluation_context.targeting_key:
        flat[TARGETING_KEY_ATTRIBUTE] = evaluation_context.targeting_key
    return flat


def to_resolution_details(result: EvaluationResult) -> FlagResolutionDetails:
    """Map an evaluation result onto OpenFeature resolution details."""
    if result.reason == EvaluationReason.ERROR:
        return FlagResolutionDetails(
            value=result.value,
            reason=Reason.ERROR,
            error_code=_ERROR_CODES[result.error_kind],
            error_message=result.message,
        )
    return FlagResolutionDetails(
        value=result.value,
        variant=result.variant,
        reason=_REASONS[result.reason],
        flag_metadata={
            name: value
            for name, value in result.metadata.items()
            if isinstance(value, bool | int | float | str)
        },
    )


class OpenFeatureProvider(AbstractProvider):
    """
    OpenFeature provider for an assignment service.

    Accepts the same arguments as :class:`ExperimentProvider`, or a ready
    ``provider`` to wrap.
    """

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        provider: ExperimentProvider | None = None,
        **kwargs: typing.Any,
    ):
        super().__init__()
        if provider is None:
            provider = ExperimentProvider(
                settings if settings is not None else ProviderSettings(), **kwargs
            )
        self._provider = provider
        self._metadata = Metadata(name=PROVIDER_NAME)

    @property
    def provider(self) -> ExperimentProvider:
        return self._provider

    def get_metadata(self) -> Metadata:
        return self._metadata

    def initialize(self, evaluation_context: EvaluationContext) -> None:
        """Start the assignment client. Failures propagate to the SDK."""
        self._provider.initialize()

    def shutdown(self) -> None:
        self._provider.shutdown()

    def resolve_boolean_details(
        self,
        flag_key: str,
        default_value: bool,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[bool]:
        return self._resolve(FlagType.BOOLEAN, flag_key, default_value, evaluation_context)

    def resolve_string_details(
        self,
        flag_key: str,
        default_value: str,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[str]:
        return self._resolve(FlagType.STRING, flag_key, default_value, evaluation_context)

    def resolve_integer_details(
        self,
        flag_key: str,
        default_value: int,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[int]:
        return self._resolve(FlagType.INTEGER, flag_key, default_value, evaluation_context)

    def resolve_float_details(
        self,
        flag_key: str,
        default_value: float,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[float]:
        return self._resolve(FlagType.FLOAT, flag_key, default_value, evaluation_context)

    def resolve_object_details(
        self,
        flag_key: str,
        default_value: typing.Union[dict, list],
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[typing.Union[dict, list]]:
        return self._resolve(FlagType.OBJECT, flag_key, default_value, evaluation_context)

    def _resolve(
        self,
        flag_type: FlagType,
        flag_key: str,
        default_value: typing.Any,
        evaluation_context: EvaluationContext | None,
    ) -> FlagResolutionDetails:
        result = self._provider.evaluate(
            flag_type, flag_key, default_value, flatten_context(evaluation_context)
        )
        return to_resolution_details(result)

    def track(
        self,
        tracking_event_name: str,
        evaluation_context: EvaluationContext | None = None,
        tracking_event_details: typing.Any = None,
    ) -> None:
        """
        Send a tracking event.

        ``tracking_event_details`` is read for ``value`` and ``attributes``.
        Tracking is fire-and-forget here; an event that cannot be built is
        logged and not sent.
        """
        value = getattr(tracking_event_details, "value", None)
        attributes = getattr(tracking_event_details, "attributes", None)
        if attributes is not None and not isinstance(attributes, Mapping):
            attributes = None

        try:
            self._provider.track(
                tracking_event_name,
                flatten_context(evaluation_context),
                value=value,
                attributes=attributes,
            )
        except FlagBridgeError as exc:
            logger.warning(
                "tracking_event_rejected",
                event_type=tracking_event_name,
                **exc.to_dict(),
            )


__all__ = [
    "TARGETING_KEY_ATTRIBUTE",
    "flatten_context",
    "to_resolution_details",
    "OpenFeatureProvider",
]
