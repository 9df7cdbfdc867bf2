"""Data-collection events and the request that carries them."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

from flagproviders.resolution import EvaluationContext


@dataclass
class FeatureEvent:
    """One flag evaluation, as reported to the data collector."""

    kind: str = ""
    context_kind: str = ""
    user_key: str = ""
    creation_date: int = 0
    key: str = ""
    variation: str = ""
    value: Any = None
    default: bool = False
    version: str = ""
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the event in its JSON wire form."""
        data: dict[str, Any] = {"kind": self.kind}
        if self.context_kind:
            data["contextKind"] = self.context_kind
        data.update(
            userKey=self.user_key,
            creationDate=self.creation_date,
            key=self.key,
            variation=self.variation,
            value=self.value,
            default=self.default,
            version=self.version,
            source=self.source,
        )
        return data

    def marshal_interface(self) -> None:
        """Replace the value with its JSON encoding; raise ValueError if it cannot be encoded."""
        try:
            self.value = json.dumps(
                self.value,
                separators=(",", ":"),
                sort_keys=True,
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"cannot encode event value: {exc}") from exc


@dataclass
class DataCollectorRequest:
    """Body of a data-collector call."""

    events: list[FeatureEvent] = field(default_factory=list)
    meta: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the request in its JSON wire form."""
        return {"events": [event.to_dict() for event in self.events], "meta": dict(self.meta)}


def new_feature_event(
    context: EvaluationContext,
    flag_key: str,
    value: Any,
    variation: str,
    failed: bool,
    version: str,
    source: str,
) -> FeatureEvent:
    """Build a feature event for an evaluation made now."""
    context_kind = "anonymousUser" if context.attribute("anonymous") is True else "user"
    return FeatureEvent(
        kind="feature",
        context_kind=context_kind,
        user_key=context.targeting_key,
        creation_date=int(time.time()),
        key=flag_key,
        variation=variation,
        value=value,
        default=failed,
        version=version,
        source=source,
    )