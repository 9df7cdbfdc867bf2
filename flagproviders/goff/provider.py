"""Flag provider backed by a GO Feature Flag relay proxy."""

from __future__ import annotations

import json
import queue
import threading
from typing import Any, Mapping

import requests

from flagproviders.goff.api import (
    APPLICATION_JSON,
    AUTHORIZATION_HEADER,
    BEARER_PREFIX,
    CONTENT_TYPE_HEADER,
    REQUEST_TIMEOUT,
    ApiError,
    ConfigurationChangeStatus,
    GoFeatureFlagAPI,
    GoFeatureFlagApiOptions,
    _join_url,
)
from flagproviders.goff.cache import CacheTypeError, FlagCache
from flagproviders.goff.collector import DataCollectorManager
from flagproviders.goff.hook import DataCollectorHook
from flagproviders.goff.options import ProviderOptions
from flagproviders.resolution import (
    EvaluationContext,
    ErrorCode,
    FlagType,
    ProviderEvent,
    ProviderEventType,
    ProviderState,
    Reason,
    ResolutionDetail,
    ResolutionError,
    validate_targeting_key,
)

PROVIDER_NAME = "GO Feature Flag"
CACHEABLE_METADATA_KEY = "gofeatureflag_cacheable"
DEFAULT_POLLING_INTERVAL = 120.0


def _format_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _matches(value: Any, flag_type: FlagType) -> tuple[bool, Any]:
    if flag_type is FlagType.BOOLEAN:
        return isinstance(value, bool), value
    if flag_type is FlagType.STRING:
        return isinstance(value, str), value
    if flag_type is FlagType.FLOAT:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        return ok, float(value) if ok else value
    if flag_type is FlagType.INTEGER:
        if isinstance(value, bool):
            return False, value
        if isinstance(value, int):
            return True, value
        if isinstance(value, float) and value.is_integer():
            return True, int(value)
        return False, value
    return True, value


def _error_detail(default_value: Any, flag_type: FlagType, error: ResolutionError) -> ResolutionDetail:
    return ResolutionDetail(default_value, flag_type, reason=Reason.ERROR.value, error=error)


class RemoteEvaluator:
    """Evaluates flags through the relay proxy's remote evaluation endpoint."""

    def __init__(self, endpoint: str, session: requests.Session | None = None, api_key: str = "") -> None:
        self._endpoint = endpoint
        self._session = session or requests.Session()
        self._api_key = api_key

    def evaluate(
        self, flag: str, default_value: Any, flag_type: FlagType, context: Mapping[str, Any]
    ) -> ResolutionDetail:
        """Evaluate one flag; failures are reported in the returned detail."""
        url = _join_url(self._endpoint, "ofrep", "v1", "evaluate", "flags", flag)
        headers = {CONTENT_TYPE_HEADER: APPLICATION_JSON}
        if self._api_key:
            headers[AUTHORIZATION_HEADER] = BEARER_PREFIX + self._api_key
        body = json.dumps({"context": dict(context)}, default=str)
        try:
            response = self._session.post(url, data=body, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            return _error_detail(default_value, flag_type, ResolutionError(ErrorCode.GENERAL, str(exc)))

        status = response.status_code
        if status in (401, 403):
            return _error_detail(
                default_value, flag_type, ResolutionError(ErrorCode.GENERAL, "authentication/authorization error")
            )
        if status == 404:
            return _error_detail(
                default_value,
                flag_type,
                ResolutionError(ErrorCode.FLAG_NOT_FOUND, f"flag for key '{flag}' does not exist"),
            )
        try:
            payload = json.loads(response.text)
            if not isinstance(payload, dict):
                raise ValueError("response is not an object")
        except ValueError as exc:
            return _error_detail(
                default_value, flag_type, ResolutionError(ErrorCode.PARSE_ERROR, f"error parsing the response: {exc}")
            )
        if status != 200:
            code_text = payload.get("errorCode", ErrorCode.GENERAL.value)
            try:
                code = ErrorCode(code_text)
            except ValueError:
                code = ErrorCode.GENERAL
            details = payload.get("errorDetails", f"request failed with status {status}")
            return _error_detail(default_value, flag_type, ResolutionError(code, details))

        metadata = payload.get("metadata") or {}
        reason = payload.get("reason", "")
        variant = payload.get("variant", "")
        if "value" not in payload or payload["value"] is None:
            return ResolutionDetail(default_value, flag_type, reason=reason, variant=variant, flag_metadata=metadata)
        ok, value = _matches(payload["value"], flag_type)
        if not ok:
            return _error_detail(
                default_value,
                flag_type,
                ResolutionError(
                    ErrorCode.TYPE_MISMATCH,
                    f"resolved value {_format_value(payload['value'])} is not of {flag_type.value} type",
                ),
            )
        return ResolutionDetail(value, flag_type, reason=reason, variant=variant, flag_metadata=metadata)


class GoFeatureFlagProvider:
    """Evaluates flags remotely, caching cacheable results and collecting usage data."""

    def __init__(self, options: ProviderOptions) -> None:
        options.validate()
        self._options = options
        self._evaluator = RemoteEvaluator(options.endpoint, options.session, options.api_key)
        self._cache = FlagCache(options.flag_cache_size, options.flag_cache_ttl, options.disable_cache)
        self._api = GoFeatureFlagAPI(
            GoFeatureFlagApiOptions(endpoint=options.endpoint, session=options.session, api_key=options.api_key)
        )
        self._collector = DataCollectorManager(
            self._api, options.data_collector_max_event_stored, options.data_flush_interval
        )
        self._status = ProviderState.NOT_READY
        self._hooks: list[DataCollectorHook] = []
        self._events: queue.Queue[ProviderEvent] = queue.Queue()
        self._polling_stop: threading.Event | None = None
        self._polling_thread: threading.Thread | None = None
        self._collector_started = False

    def metadata(self) -> dict[str, str]:
        """Return the provider's name."""
        return {"name": f"{PROVIDER_NAME} Provider"}

    def _evaluate(self, flag: str, default_value: Any, flag_type: FlagType, context: Mapping[str, Any]) -> ResolutionDetail:
        try:
            validate_targeting_key(context)
        except ResolutionError as err:
            return _error_detail(default_value, flag_type, err)
        try:
            cached = self._cache.get(flag, context, flag_type)
        except CacheTypeError:
            cached = None
        if cached is not None:
            cached.reason = Reason.CACHED.value
            return cached
        result = self._evaluator.evaluate(flag, default_value, flag_type, context)
        if result.flag_metadata.get(CACHEABLE_METADATA_KEY) is True:
            self._cache.set(flag, context, result)
        return result

    def boolean_evaluation(self, flag: str, default_value: bool, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a boolean flag."""
        return self._evaluate(flag, default_value, FlagType.BOOLEAN, context)

    def string_evaluation(self, flag: str, default_value: str, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a string flag."""
        return self._evaluate(flag, default_value, FlagType.STRING, context)

    def float_evaluation(self, flag: str, default_value: float, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate a float flag."""
        return self._evaluate(flag, default_value, FlagType.FLOAT, context)

    def int_evaluation(self, flag: str, default_value: int, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate an integer flag."""
        return self._evaluate(flag, default_value, FlagType.INTEGER, context)

    def object_evaluation(self, flag: str, default_value: Any, context: Mapping[str, Any]) -> ResolutionDetail:
        """Evaluate an object flag."""
        return self._evaluate(flag, default_value, FlagType.OBJECT, context)

    def hooks(self) -> list[DataCollectorHook]:
        """Return the provider's hooks."""
        return list(self._hooks)

    def initialize(self, context: EvaluationContext | None = None) -> None:
        """Start data collection and change polling, then report readiness."""
        if not self._options.disable_data_collector:
            self._hooks = [DataCollectorHook(self._collector)]
            self._collector.start()
            self._collector_started = True
        if self._options.flag_change_polling_interval >= 0 and not self._options.disable_cache:
            self._start_polling(self._options.flag_change_polling_interval)
        self._status = ProviderState.READY
        self._events.put(ProviderEvent(PROVIDER_NAME, ProviderEventType.PROVIDER_READY, "Provider is ready"))

    def status(self) -> ProviderState:
        """Return the provider's state."""
        return self._status

    def shutdown(self) -> None:
        """Stop data collection and polling."""
        if not self._options.disable_data_collector:
            self._hooks = []
            if self._collector_started:
                self._collector.stop()
                self._collector_started = False
        self._stop_polling()

    def events(self) -> queue.Queue[ProviderEvent]:
        """Return the queue the provider's events are put on."""
        return self._events

    def _start_polling(self, interval: float) -> None:
        if interval == 0:
            interval = DEFAULT_POLLING_INTERVAL
        stop = threading.Event()
        self._polling_stop = stop

        def poll() -> None:
            while not stop.wait(interval):
                self._poll_once()

        self._polling_thread = threading.Thread(target=poll, daemon=True)
        self._polling_thread.start()

    def _poll_once(self) -> None:
        try:
            status = self._api.configuration_has_changed()
        except ApiError as err:
            self._events.put(
                ProviderEvent(
                    PROVIDER_NAME,
                    ProviderEventType.PROVIDER_STALE,
                    f"Impossible to check configuration change {err}",
                )
            )
            return
        if status is ConfigurationChangeStatus.FLAG_CONFIGURATION_UPDATED:
            self._cache.purge()
            self._events.put(
                ProviderEvent(
                    PROVIDER_NAME, ProviderEventType.PROVIDER_CONFIGURATION_CHANGED, "Configuration has changed"
                )
            )
        elif status is ConfigurationChangeStatus.ERROR_CONFIGURATION_CHANGE:
            self._events.put(
                ProviderEvent(
                    PROVIDER_NAME,
                    ProviderEventType.PROVIDER_STALE,
                    f"Impossible to check configuration change {status.value}",
                )
            )

    def _stop_polling(self) -> None:
        if self._polling_stop is not None:
            self._polling_stop.set()
        if self._polling_thread is not None:
            self._polling_thread.join()
        self._polling_stop = None
        self._polling_thread = None