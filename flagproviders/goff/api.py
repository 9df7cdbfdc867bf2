"""HTTP client for the GO Feature Flag relay proxy."""

from __future__ import annotations

import enum
import json
import posixpath
from dataclasses import dataclass
from typing import Sequence
from urllib.parse import urlsplit, urlunsplit

import requests

from flagproviders.goff.model import DataCollectorRequest, FeatureEvent

CONTENT_TYPE_HEADER = "Content-Type"
IF_NONE_MATCH_HEADER = "If-None-Match"
AUTHORIZATION_HEADER = "Authorization"
APPLICATION_JSON = "application/json"
BEARER_PREFIX = "Bearer "

REQUEST_TIMEOUT = 10.0

_COLLECTOR_META = {"provider": "python", "openfeature": "true"}


class ConfigurationChangeStatus(str, enum.Enum):
    """Result of checking the relay proxy for a configuration change."""

    FLAG_CONFIGURATION_INITIALIZED = "FLAG_CONFIGURATION_INITIALIZED"
    FLAG_CONFIGURATION_UPDATED = "FLAG_CONFIGURATION_UPDATED"
    FLAG_CONFIGURATION_NOT_CHANGED = "FLAG_CONFIGURATION_NOT_CHANGED"
    ERROR_CONFIGURATION_CHANGE = "ERROR_CONFIGURATION_CHANGE"


class ApiError(Exception):
    """A call to the relay proxy failed."""


@dataclass
class GoFeatureFlagApiOptions:
    """Where and how to reach the relay proxy."""

    endpoint: str = ""
    session: requests.Session | None = None
    api_key: str = ""


def default_session() -> requests.Session:
    """Return a fresh HTTP session; requests made through this module use a 10 s timeout."""
    return requests.Session()


def _join_url(endpoint: str, *segments: str) -> str:
    parts = urlsplit(endpoint)
    pieces = [piece for piece in parts.path.split("/") + list(segments) if piece]
    path = posixpath.normpath("/" + "/".join(pieces))
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


class GoFeatureFlagAPI:
    """Calls to the relay proxy's data-collector and flag-change endpoints."""

    def __init__(self, options: GoFeatureFlagApiOptions) -> None:
        self._options = options
        self._session = options.session or default_session()
        self._config_change_etag = ""

    def _headers(self) -> dict[str, str]:
        headers = {CONTENT_TYPE_HEADER: APPLICATION_JSON}
        if self._options.api_key:
            headers[AUTHORIZATION_HEADER] = BEARER_PREFIX + self._options.api_key
        return headers

    def collect_data(self, events: Sequence[FeatureEvent]) -> None:
        """Send events to the data collector; raise ApiError on failure."""
        url = _join_url(self._options.endpoint, "v1", "data", "collector")
        request = DataCollectorRequest(list(events), dict(_COLLECTOR_META))
        try:
            body = json.dumps(request.to_dict(), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ApiError(f"cannot encode events: {exc}") from exc
        try:
            response = self._session.post(url, data=body, headers=self._headers(), timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise ApiError(f"request failed: {exc}") from exc
        response.close()
        if response.status_code != 200:
            raise ApiError(f"request failed with status: {response.status_code} {response.reason}")

    def configuration_has_changed(self) -> ConfigurationChangeStatus:
        """Ask whether the flag configuration changed since the previous call.

        Raises ApiError when the relay proxy cannot be reached.
        """
        url = _join_url(self._options.endpoint, "v1", "flag", "change")
        headers = self._headers()
        if self._config_change_etag:
            headers[IF_NONE_MATCH_HEADER] = self._config_change_etag
        try:
            response = self._session.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise ApiError(f"request failed: {exc}") from exc
        response.close()

        if response.status_code == 200:
            first_call = not self._config_change_etag
            self._config_change_etag = response.headers.get("ETag", "")
            if first_call:
                return ConfigurationChangeStatus.FLAG_CONFIGURATION_INITIALIZED
            return ConfigurationChangeStatus.FLAG_CONFIGURATION_UPDATED
        if response.status_code == 304:
            return ConfigurationChangeStatus.FLAG_CONFIGURATION_NOT_CHANGED
        return ConfigurationChangeStatus.ERROR_CONFIGURATION_CHANGE