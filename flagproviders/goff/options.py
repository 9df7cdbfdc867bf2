"""Configuration of the GO Feature Flag provider."""

from __future__ import annotations

from dataclasses import dataclass

import requests


class InvalidOptionError(ValueError):
    """The provider options are not usable."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class ProviderOptions:
    """Options of the GO Feature Flag provider; durations are in seconds.

    endpoint: address of the relay proxy (required).
    session: HTTP session to use; a default one with a 10 s timeout otherwise.
    api_key: bearer key sent to the relay proxy, if any.
    disable_cache: evaluate every flag remotely.
    flag_cache_size: maximum cached evaluations (0 means 10000).
    flag_cache_ttl: cache lifetime (0 means 60 s, negative means forever).
    data_flush_interval: how often collected events are sent (0 means 60 s).
    data_max_event_in_memory: events kept before an early send (0 means 500).
    data_collector_max_event_stored: events kept before new ones are dropped (0 means 100000).
    disable_data_collector: do not collect evaluation events.
    flag_change_polling_interval: how often to check for configuration changes
        (0 means 120 s, negative disables polling).
    """

    endpoint: str = ""
    session: requests.Session | None = None
    api_key: str = ""
    disable_cache: bool = False
    flag_cache_size: int = 0
    flag_cache_ttl: float = 0.0
    data_flush_interval: float = 0.0
    data_max_event_in_memory: int = 0
    data_collector_max_event_stored: int = 0
    disable_data_collector: bool = False
    flag_change_polling_interval: float = 0.0

    def validate(self) -> None:
        """Raise InvalidOptionError if the options cannot be used."""
        if not self.endpoint:
            raise InvalidOptionError(f"invalid option: {self.endpoint}")