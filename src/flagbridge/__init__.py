"""
flagbridge - Feature-flag context normalization and typed evaluation.

- flagbridge.provider: ExperimentProvider, the evaluation pipeline
- flagbridge.openfeature_provider: OpenFeature SDK provider
- flagbridge.normalization: Context normalizer and record projector
- flagbridge.evaluation: Typed payload coercion
"""

__version__ = "0.1.0"

from flagbridge.aliases import build_alias_table, permutations
from flagbridge.client import (
    CachingAssignmentClient,
    InMemoryTracker,
    StaticAssignmentClient,
)
from flagbridge.errors import ErrorKind, FlagBridgeError
from flagbridge.evaluation import (
    DefaultedIntentionally,
    DefaultedOnError,
    FlagType,
    Reason,
    Resolved,
)
from flagbridge.keys import CanonicalKey, RecordShape
from flagbridge.normalization import NormalizedRecord, normalize
from flagbridge.provider import ExperimentProvider, ProviderState
from flagbridge.records import Occurrence, Subject, Variant
from flagbridge.settings import (
    LocalEvaluationOptions,
    ProviderSettings,
    RemoteEvaluationOptions,
)

__all__ = [
    "__version__",
    "build_alias_table",
    "permutations",
    "CachingAssignmentClient",
    "InMemoryTracker",
    "StaticAssignmentClient",
    "ErrorKind",
    "FlagBridgeError",
    "DefaultedIntentionally",
    "DefaultedOnError",
    "FlagType",
    "Reason",
    "Resolved",
    "CanonicalKey",
    "RecordShape",
    "NormalizedRecord",
    "normalize",
    "ExperimentProvider",
    "ProviderState",
    "Occurrence",
    "Subject",
    "Variant",
    "LocalEvaluationOptions",
    "ProviderSettings",
    "RemoteEvaluationOptions",
]
