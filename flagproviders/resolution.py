"""Shared evaluation types: reasons, error codes, contexts and resolution details."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping

TARGETING_KEY = "targetingKey"


class Reason(str, enum.Enum):
    """Why a flag resolved to the value it did."""

    STATIC = "STATIC"
    DEFAULT = "DEFAULT"
    TARGETING_MATCH = "TARGETING_MATCH"
    SPLIT = "SPLIT"
    CACHED = "CACHED"
    DISABLED = "DISABLED"
    UNKNOWN = "UNKNOWN"
    ERROR = "ERROR"


class ErrorCode(str, enum.Enum):
    """Category of a resolution failure."""

    PROVIDER_NOT_READY = "PROVIDER_NOT_READY"
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    PARSE_ERROR = "PARSE_ERROR"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    TARGETING_KEY_MISSING = "TARGETING_KEY_MISSING"
    INVALID_CONTEXT = "INVALID_CONTEXT"
    GENERAL = "GENERAL"


class FlagType(str, enum.Enum):
    """Type of value a flag evaluation produces."""

    BOOLEAN = "boolean"
    STRING = "string"
    FLOAT = "float"
    INTEGER = "integer"
    OBJECT = "object"


class ProviderState(str, enum.Enum):
    """Lifecycle state of a provider."""

    NOT_READY = "NOT_READY"
    READY = "READY"
    ERROR = "ERROR"
    STALE = "STALE"


class ProviderEventType(str, enum.Enum):
    """Kinds of events a provider emits."""

    PROVIDER_READY = "PROVIDER_READY"
    PROVIDER_CONFIGURATION_CHANGED = "PROVIDER_CONFIGURATION_CHANGED"
    PROVIDER_STALE = "PROVIDER_STALE"
    PROVIDER_ERROR = "PROVIDER_ERROR"


@dataclass(frozen=True)
class ProviderEvent:
    """An event emitted by a provider."""

    provider_name: str
    event_type: ProviderEventType
    message: str = ""


class ResolutionError(Exception):
    """A flag resolution failure, carrying an error code and a message."""

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        super().__init__(f"{code.value}: {message}")
        self.code = code
        self.message = message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolutionError):
            return NotImplemented
        return (self.code, self.message) == (other.code, other.message)

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def __repr__(self) -> str:
        return f"ResolutionError({self.code!r}, {self.message!r})"


@dataclass
class ResolutionDetail:
    """The outcome of resolving one flag."""

    value: Any
    flag_type: FlagType
    reason: str = ""
    variant: str = ""
    error: ResolutionError | None = None
    flag_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EvaluationContext:
    """A targeting key together with arbitrary attributes."""

    targeting_key: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)

    def flatten(self) -> dict[str, Any]:
        """Return the attributes as one mapping, with the targeting key if set."""
        flat = dict(self.attributes)
        if self.targeting_key:
            flat[TARGETING_KEY] = self.targeting_key
        return flat

    def attribute(self, name: str) -> Any:
        """Return the attribute called ``name``, or None."""
        return self.attributes.get(name)


def validate_targeting_key(context: Mapping[str, Any]) -> None:
    """Raise ResolutionError unless the flattened context has a string targeting key."""
    if TARGETING_KEY not in context:
        raise ResolutionError(
            ErrorCode.TARGETING_KEY_MISSING,
            "no targetingKey provided in the evaluation context",
        )
    if not isinstance(context[TARGETING_KEY], str):
        raise ResolutionError(
            ErrorCode.TARGETING_KEY_MISSING,
            "targetingKey field MUST be a string",
        )