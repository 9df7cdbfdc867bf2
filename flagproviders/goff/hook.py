"""Hook that records cached and failed evaluations for the data collector."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from flagproviders.goff.collector import CollectorFullError, DataCollectorManager
from flagproviders.goff.model import FeatureEvent
from flagproviders.resolution import EvaluationContext, FlagType, Reason, ResolutionDetail

_SOURCE = "PROVIDER_CACHE"


@dataclass
class HookContext:
    """What a hook knows about the evaluation in progress."""

    flag_key: str
    flag_type: FlagType
    default_value: Any
    evaluation_context: EvaluationContext = field(default_factory=EvaluationContext)


class DataCollectorHook:
    """Queues an event for every evaluation served from cache or failed."""

    def __init__(self, manager: DataCollectorManager) -> None:
        self._manager = manager

    def _add(self, event: FeatureEvent) -> None:
        try:
            self._manager.add_event(event)
        except CollectorFullError:
            pass

    def before(self, hook_context: HookContext, hints: Mapping[str, Any] | None = None) -> EvaluationContext | None:
        """Leave the evaluation context unchanged."""
        return None

    def after(self, hook_context: HookContext, details: ResolutionDetail, hints: Mapping[str, Any] | None = None) -> None:
        """Record a cached evaluation; others are recorded by the relay proxy."""
        if details.reason != Reason.CACHED:
            return
        self._add(
            FeatureEvent(
                kind="feature",
                context_kind="user",
                user_key=hook_context.evaluation_context.targeting_key,
                creation_date=int(time.time()),
                key=hook_context.flag_key,
                variation=details.variant,
                value=details.value,
                default=False,
                source=_SOURCE,
            )
        )

    def error(self, hook_context: HookContext, error: Exception, hints: Mapping[str, Any] | None = None) -> None:
        """Record an evaluation that fell back to the default value."""
        self._add(
            FeatureEvent(
                kind="feature",
                context_kind="user",
                user_key=hook_context.evaluation_context.targeting_key,
                creation_date=int(time.time()),
                key=hook_context.flag_key,
                variation="SdkDefault",
                value=hook_context.default_value,
                default=True,
                source=_SOURCE,
            )
        )

    def finally_after(self, hook_context: HookContext, hints: Mapping[str, Any] | None = None) -> None:
        """Nothing to do once the evaluation is over."""