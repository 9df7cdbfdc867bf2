"""Flag provider that delegates evaluation to a Harness feature-flag client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

from flagproviders.resolution import (
    TARGETING_KEY,
    EvaluationContext,
    ErrorCode,
    FlagType,
    ProviderState,
    Reason,
    ResolutionDetail,
    ResolutionError,
)

PROVIDER_NOT_READY = "Provider not ready"
GENERAL_ERROR = "general error"
_NAME_ATTRIBUTE = "Name"


@dataclass
class Target:
    """The subject a Harness flag is evaluated for."""

    identifier: str = ""
    name: str = ""
    attributes: dict[str, str] | None = None


class HarnessClient(Protocol):
    """The parts of a Harness client the provider needs."""

    def bool_variation(self, flag: str, target: Target, default_value: bool) -> bool: ...

    def number_variation(self, flag: str, target: Target, default_value: float) -> float: ...

    def int_variation(self, flag: str, target: Target, default_value: int) -> int: ...

    def string_variation(self, flag: str, target: Target, default_value: str) -> str: ...

    def json_variation(self, flag: str, target: Target, default_value: dict[str, Any]) -> dict[str, Any]: ...

    def close(self) -> None: ...


@dataclass
class ProviderConfig:
    """How to build the Harness client: an SDK key, client options and a factory.

    The factory is called as ``client_factory(sdk_key, *options)`` and may raise
    if the client cannot be created.
    """

    client_factory: Callable[..., HarnessClient]
    sdk_key: str = ""
    options: list[Any] = field(default_factory=list)


def attribute_to_str(value: Any) -> str:
    """Render a context attribute as text; raise TypeError for unsupported types."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{value:.6f}"
    raise TypeError(f"cannot convert {type(value).__name__} to string")


def to_harness_target(context: Mapping[str, Any]) -> Target:
    """Build a Harness target from a flattened context; raise ValueError on bad attributes."""
    if not context:
        return Target()
    target = Target()
    custom: dict[str, str] = {}
    for key, original in context.items():
        try:
            text = attribute_to_str(original)
        except TypeError as exc:
            raise ValueError(f"key `{key}` can not be converted to string") from exc
        if key == TARGETING_KEY:
            target.identifier = text
        elif key == _NAME_ATTRIBUTE:
            target.name = text
        else:
            custom[key] = text
    target.attributes = custom
    return target


def _error_detail(default_value: Any, flag_type: FlagType, error: ResolutionError) -> ResolutionDetail:
    return ResolutionDetail(default_value, flag_type, reason=Reason.ERROR.value, error=error)


class HarnessProvider:
    """Evaluates flags with a Harness client built on initialization."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        self._client: HarnessClient | None = None
        self._status = ProviderState.NOT_READY

    def initialize(self, context: EvaluationContext | None = None) -> None:
        """Create the Harness client; on failure the provider enters the error state and the error is raised."""
        try:
            client = self._config.client_factory(self._config.sdk_key, *self._config.options)
        except Exception:
            self._status = ProviderState.ERROR
            raise
        self._client = client
        self._status = ProviderState.READY

    def status(self) -> ProviderState:
        """Return the provider's state."""
        return self._status

    def shutdown(self) -> None:
        """Close the client and mark the provider not ready."""
        if self._client is not None:
            self._client.close()
        self._status = ProviderState.NOT_READY

    def hooks(self) -> list[Any]:
        """The provider has no hooks."""
        return []

    def metadata(self) -> dict[str, str]:
        """Return the provider's name."""
        return {"name": "harness"}

    def _state_error(self) -> ResolutionError | None:
        if self._status is ProviderState.READY:
            return None
        if self._status is ProviderState.NOT_READY:
            return ResolutionError(ErrorCode.PROVIDER_NOT_READY, PROVIDER_NOT_READY)
        return ResolutionError(ErrorCode.GENERAL, GENERAL_ERROR)

    def _evaluate(
        self,
        flag: str,
        default_value: Any,
        flag_type: FlagType,
        context: Mapping[str, Any],
        variation: Callable[[HarnessClient], Callable[[str, Target, Any], Any]],
        validate_default: Callable[[Any], bool] | None = None,
    ) -> ResolutionDetail:
        state_error = self._state_error()
        if state_error is not None or self._client is None:
            return _error_detail(
                default_value,
                flag_type,
                state_error or ResolutionError(ErrorCode.PROVIDER_NOT_READY, PROVIDER_NOT_READY),
            )
        try:
            target = to_harness_target(context)
        except ValueError as exc:
            return _error_detail(default_value, flag_type, ResolutionError(ErrorCode.INVALID_CONTEXT, str(exc)))
        if validate_default is not None and not validate_default(default_value):
            return _error_detail(
                default_value,
                flag_type,
                ResolutionError(ErrorCode.INVALID_CONTEXT, "Could not get defaultValue as JSON map"),
            )
        try:
            value = variation(self._client)(flag, target, default_value)
        except Exception:  # noqa: BLE001 - the client's fallback is the default value
            value = default_value
        return ResolutionDetail(value, flag_type)

    def boolean_evaluation(self, flag: str, default_value: bool, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a boolean flag."""
        return self._evaluate(flag, default_value, FlagType.BOOLEAN, context, lambda c: c.bool_variation)

    def float_evaluation(self, flag: str, default_value: float, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a number flag."""
        return self._evaluate(flag, default_value, FlagType.FLOAT, context, lambda c: c.number_variation)

    def int_evaluation(self, flag: str, default_value: int, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate an integer flag."""
        return self._evaluate(flag, default_value, FlagType.INTEGER, context, lambda c: c.int_variation)

    def string_evaluation(self, flag: str, default_value: str, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a string flag."""
        return self._evaluate(flag, default_value, FlagType.STRING, context, lambda c: c.string_variation)

    def object_evaluation(self, flag: str, default_value: Any, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a JSON flag; the default value must be a mapping."""
        return self._evaluate(
            flag,
            default_value,
            FlagType.OBJECT,
            context,
            lambda c: c.json_variation,
            validate_default=lambda value: isinstance(value, dict),
        )