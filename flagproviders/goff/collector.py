"""Buffers feature events and sends them to the relay proxy periodically."""

from __future__ import annotations

import threading
from typing import Protocol, Sequence

from flagproviders.goff.model import FeatureEvent

DEFAULT_MAX_EVENT_STORED = 100000
DEFAULT_COLLECT_INTERVAL = 60.0


class _Collector(Protocol):
    def collect_data(self, events: Sequence[FeatureEvent]) -> None: ...


class CollectorFullError(Exception):
    """The event queue is full; the event was dropped."""


class DataCollectorManager:
    """Keeps evaluation events in memory and flushes them on a timer.

    ``max_event_stored`` of 0 or less means 100000; ``collect_interval`` (seconds)
    of 0 or less means 60 s.
    """

    def __init__(self, api: _Collector, max_event_stored: int = 0, collect_interval: float = 0.0) -> None:
        self._api = api
        self._max_event_stored = max_event_stored if max_event_stored > 0 else DEFAULT_MAX_EVENT_STORED
        self._interval = collect_interval if collect_interval > 0 else DEFAULT_COLLECT_INTERVAL
        self._lock = threading.Lock()
        self._events: list[FeatureEvent] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start flushing events in the background."""
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.send_data()
            except Exception:  # noqa: BLE001 - a failed flush is retried on the next tick
                pass

    def stop(self) -> None:
        """Stop the background flushing."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def send_data(self) -> None:
        """Send the queued events; they are kept if the call fails."""
        with self._lock:
            if not self._events:
                return
            self._api.collect_data(list(self._events))
            self._events = []

    def add_event(self, event: FeatureEvent) -> None:
        """Queue an event; raise CollectorFullError if the queue is full."""
        with self._lock:
            count = len(self._events)
            if count >= self._max_event_stored:
                raise CollectorFullError(f"too many events in the queue, this event will be skipped: {count}")
            self._events.append(event)