"""Flag provider that delegates evaluation to a LaunchDarkly client."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

from flagproviders.launchdarkly.ldlogger import Logger, NoOpLogger
from flagproviders.resolution import (
    TARGETING_KEY,
    ErrorCode,
    FlagType,
    Reason,
    ResolutionDetail,
    ResolutionError,
)

DEFAULT_KIND = "user"
MULTI_KIND = "multi"

REASON_OFF = "OFF"
REASON_FALLTHROUGH = "FALLTHROUGH"
REASON_TARGET_MATCH = "TARGET_MATCH"
REASON_RULE_MATCH = "RULE_MATCH"
REASON_PREREQUISITE_FAILED = "PREREQUISITE_FAILED"
REASON_ERROR = "ERROR"

ERROR_CLIENT_NOT_READY = "CLIENT_NOT_READY"
ERROR_FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
ERROR_MALFORMED_FLAG = "MALFORMED_FLAG"
ERROR_USER_NOT_SPECIFIED = "USER_NOT_SPECIFIED"
ERROR_WRONG_TYPE = "WRONG_TYPE"
ERROR_EXCEPTION = "EXCEPTION"

_KEY_MISSING_MESSAGE = "key and targetingKey attributes are missing, at least 1 required"


class KeyMissingError(ValueError):
    """Neither a targeting key nor a key attribute was found in the context."""

    def __init__(self, message: str = _KEY_MISSING_MESSAGE) -> None:
        super().__init__(message)


@dataclass
class LDContext:
    """A single-kind LaunchDarkly context."""

    kind: str
    key: str
    anonymous: bool = False
    private_attributes: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class MultiLDContext:
    """A LaunchDarkly context made of several single-kind contexts."""

    contexts: list[LDContext] = field(default_factory=list)


@dataclass(frozen=True)
class EvaluationReason:
    """Why LaunchDarkly produced a value."""

    kind: str
    error_kind: str = ""
    rule_index: int = 0
    rule_id: str = ""
    prerequisite_key: str = ""

    def __str__(self) -> str:
        if self.kind == REASON_ERROR:
            return f"{self.kind}({self.error_kind})"
        if self.kind == REASON_RULE_MATCH:
            return f"{self.kind}({self.rule_index},{self.rule_id})"
        if self.kind == REASON_PREREQUISITE_FAILED:
            return f"{self.kind}({self.prerequisite_key})"
        return self.kind


@dataclass(frozen=True)
class EvaluationDetail:
    """A value from LaunchDarkly with its variation index and reason."""

    value: Any
    variation_index: int | None
    reason: EvaluationReason


class LDClient(Protocol):
    """The parts of a LaunchDarkly client the provider needs.

    Evaluation problems are reported in the reason of the returned detail.
    """

    def bool_variation_detail(
        self, key: str, context: LDContext | MultiLDContext, default_value: bool
    ) -> EvaluationDetail: ...

    def int_variation_detail(
        self, key: str, context: LDContext | MultiLDContext, default_value: int
    ) -> EvaluationDetail: ...

    def float_variation_detail(
        self, key: str, context: LDContext | MultiLDContext, default_value: float
    ) -> EvaluationDetail: ...

    def string_variation_detail(
        self, key: str, context: LDContext | MultiLDContext, default_value: str
    ) -> EvaluationDetail: ...

    def json_variation_detail(
        self, key: str, context: LDContext | MultiLDContext, default_value: Any
    ) -> EvaluationDetail: ...


class _Cancellation(Protocol):
    def is_set(self) -> bool: ...


def _is_blank(text: str) -> bool:
    return text.strip(" ") == ""


class LaunchDarklyProvider:
    """Maps evaluation contexts and results between callers and a LaunchDarkly client."""

    def __init__(self, client: LDClient, *, logger: Logger | None = None, kind_attr: str = "kind") -> None:
        self._client = client
        self._logger: Logger = logger if logger is not None else NoOpLogger()
        self._kind_attr = kind_attr

    def metadata(self) -> dict[str, str]:
        """Return the provider's name."""
        return {"name": "LaunchDarkly"}

    def hooks(self) -> list[Any]:
        """The provider has no hooks."""
        return []

    def _to_multi_context(self, context: Mapping[str, Any]) -> MultiLDContext:
        multi = MultiLDContext()
        for key, attrs in context.items():
            if key == self._kind_attr:
                continue
            self._logger.debug("mapping %r context kind", key)
            if isinstance(attrs, Mapping):
                multi.contexts.append(self._map_context(key, attrs))
            else:
                self._logger.warn("multi-context: unexpected type in top-level attribute: %s", key)
        return multi

    def _map_context(self, kind: str, context: Mapping[str, Any]) -> LDContext:
        key = context.get(TARGETING_KEY)
        if not isinstance(key, str):
            ld_key = context.get("key")
            if not isinstance(ld_key, str) or _is_blank(ld_key):
                raise KeyMissingError()
            key = ld_key

        ld_context = LDContext(kind=kind, key=key)
        anonymous = context.get("anonymous")
        if isinstance(anonymous, bool):
            ld_context.anonymous = anonymous
        private = context.get("privateAttributes")
        if isinstance(private, (list, tuple)) and all(isinstance(item, str) for item in private):
            ld_context.private_attributes = list(private)

        skip = {TARGETING_KEY, self._kind_attr, "key", "privateAttributes", "anonymous"}
        ld_context.attributes = {
            name: copy.deepcopy(value) for name, value in context.items() if name not in skip
        }
        return ld_context

    def to_ld_context(self, context: Mapping[str, Any]) -> LDContext | MultiLDContext:
        """Build a LaunchDarkly context; raise KeyMissingError if no key can be found."""
        kind = DEFAULT_KIND
        given = context.get(self._kind_attr)
        if isinstance(given, str) and not _is_blank(given):
            kind = given
        else:
            self._logger.warn("no context kind set, setting %r by default", kind)

        if kind == MULTI_KIND:
            self._logger.debug("multi context detected")
            return self._to_multi_context(context)
        self._logger.debug("single context detected")
        return self._map_context(kind, context)

    def to_reason(self, reason_kind: str) -> str:
        """Map a LaunchDarkly reason kind to a resolution reason."""
        if reason_kind == REASON_OFF:
            return Reason.DISABLED.value
        if reason_kind == REASON_TARGET_MATCH:
            return Reason.TARGETING_MATCH.value
        if reason_kind == REASON_ERROR:
            return Reason.ERROR.value
        return reason_kind

    def to_resolution_error(self, error_kind: str, message: str) -> ResolutionError:
        """Map a LaunchDarkly error kind to a resolution error."""
        codes = {
            ERROR_CLIENT_NOT_READY: ErrorCode.PROVIDER_NOT_READY,
            ERROR_FLAG_NOT_FOUND: ErrorCode.FLAG_NOT_FOUND,
            ERROR_MALFORMED_FLAG: ErrorCode.PARSE_ERROR,
            ERROR_USER_NOT_SPECIFIED: ErrorCode.TARGETING_KEY_MISSING,
            ERROR_WRONG_TYPE: ErrorCode.TYPE_MISMATCH,
        }
        return ResolutionError(codes.get(error_kind, ErrorCode.GENERAL), message)

    def _transform_context(
        self, context: Mapping[str, Any], cancellation: _Cancellation | None
    ) -> LDContext | MultiLDContext:
        try:
            ld_context = self.to_ld_context(context)
        except KeyMissingError as err:
            raise ResolutionError(ErrorCode.TARGETING_KEY_MISSING, str(err)) from err
        except ValueError as err:
            raise ResolutionError(ErrorCode.INVALID_CONTEXT, str(err)) from err
        if cancellation is not None and cancellation.is_set():
            raise ResolutionError(ErrorCode.GENERAL, "context canceled")
        return ld_context

    def _evaluate(
        self,
        flag_type: FlagType,
        label: str,
        variation: Callable[[str, LDContext | MultiLDContext, Any], EvaluationDetail],
        flag_key: str,
        default_value: Any,
        client_default: Any,
        context: Mapping[str, Any],
        cancellation: _Cancellation | None,
        convert: Callable[[Any], Any],
    ) -> ResolutionDetail:
        try:
            ld_context = self._transform_context(context, cancellation)
        except ResolutionError as err:
            return ResolutionDetail(default_value, flag_type, reason=Reason.ERROR.value, error=err)

        try:
            detail = variation(flag_key, ld_context, client_default)
        except Exception as exc:  # noqa: BLE001 - client failures become resolution errors
            self._logger.error("%s evaluation: %s", label, exc)
            return ResolutionDetail(
                default_value,
                flag_type,
                reason=Reason.ERROR.value,
                error=ResolutionError(ErrorCode.GENERAL, str(exc)),
            )

        self._logger.debug("launchdarkly evaluation detail: %r", detail)
        result = ResolutionDetail(
            convert(detail.value) if detail.value is not None else detail.value,
            flag_type,
            reason=self.to_reason(detail.reason.kind),
        )
        if detail.reason.error_kind:
            result.error = self.to_resolution_error(
                detail.reason.error_kind, f"LaunchDarkly returned {detail.reason}"
            )
        if detail.variation_index is not None:
            result.variant = str(detail.variation_index)
        return result

    def boolean_evaluation(
        self,
        flag_key: str,
        default_value: bool,
        context: Mapping[str, Any],
        cancellation: _Cancellation | None = None,
    ) -> ResolutionDetail:
        """Evaluate a boolean flag."""
        return self._evaluate(
            FlagType.BOOLEAN, "boolean", self._client.bool_variation_detail,
            flag_key, default_value, default_value, context, cancellation, bool,
        )

    def string_evaluation(
        self,
        flag_key: str,
        default_value: str,
        context: Mapping[str, Any],
        cancellation: _Cancellation | None = None,
    ) -> ResolutionDetail:
        """Evaluate a string flag."""
        return self._evaluate(
            FlagType.STRING, "string", self._client.string_variation_detail,
            flag_key, default_value, default_value, context, cancellation, str,
        )

    def float_evaluation(
        self,
        flag_key: str,
        default_value: float,
        context: Mapping[str, Any],
        cancellation: _Cancellation | None = None,
    ) -> ResolutionDetail:
        """Evaluate a float flag."""
        return self._evaluate(
            FlagType.FLOAT, "float", self._client.float_variation_detail,
            flag_key, default_value, default_value, context, cancellation, float,
        )

    def int_evaluation(
        self,
        flag_key: str,
        default_value: int,
        context: Mapping[str, Any],
        cancellation: _Cancellation | None = None,
    ) -> ResolutionDetail:
        """Evaluate an integer flag."""
        return self._evaluate(
            FlagType.INTEGER, "int", self._client.int_variation_detail,
            flag_key, default_value, int(default_value), context, cancellation, int,
        )

    def object_evaluation(
        self,
        flag_key: str,
        default_value: Any,
        context: Mapping[str, Any],
        cancellation: _Cancellation | None = None,
    ) -> ResolutionDetail:
        """Evaluate an object flag."""
        return self._evaluate(
            FlagType.OBJECT, "object", self._client.json_variation_detail,
            flag_key, default_value, copy.deepcopy(default_value), context, cancellation,
            lambda value: value,
        )