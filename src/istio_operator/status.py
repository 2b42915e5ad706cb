"""IstioRevision status model and the condition/state derivation rules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .constants import COND_READY, COND_RECONCILED, REASON_HEALTHY, REASON_RECONCILE_ERROR

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _now() -> str:
    return datetime.now(timezone.utc).strftime(_TIME_FORMAT)


@dataclass(frozen=True)
class Condition:
    type: str
    status: str = STATUS_UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        return cls(
            type=data.get("type", ""),
            status=data.get("status", STATUS_UNKNOWN),
            reason=data.get("reason") or "",
            message=data.get("message") or "",
            last_transition_time=data.get("lastTransitionTime") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        result = {"type": self.type, "status": self.status}
        if self.reason:
            result["reason"] = self.reason
        if self.message:
            result["message"] = self.message
        if self.last_transition_time:
            result["lastTransitionTime"] = self.last_transition_time
        return result


@dataclass(frozen=True)
class RevisionStatus:
    observed_generation: int = 0
    conditions: tuple[Condition, ...] = field(default_factory=tuple)
    state: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RevisionStatus:
        data = data or {}
        return cls(
            observed_generation=int(data.get("observedGeneration") or 0),
            conditions=tuple(Condition.from_dict(c) for c in data.get("conditions") or []),
            state=data.get("state") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "observedGeneration": self.observed_generation,
            "conditions": [c.to_dict() for c in self.conditions],
            "state": self.state,
        }

    def get_condition(self, type_: str) -> Condition:
        for condition in self.conditions:
            if condition.type == type_:
                return condition
        return Condition(type=type_)

    def set_condition(self, condition: Condition, now: str | None = None) -> RevisionStatus:
        """Return a copy with ``condition`` stored under its type.

        The transition time is carried over when the status is unchanged and
        reset to ``now`` when it flips.
        """
        existing = self.get_condition(condition.type)
        if existing in self.conditions and existing.status == condition.status:
            condition = replace(condition, last_transition_time=existing.last_transition_time)
        else:
            condition = replace(condition, last_transition_time=now or _now())

        conditions = []
        replaced = False
        for c in self.conditions:
            if c.type == condition.type:
                conditions.append(condition)
                replaced = True
            else:
                conditions.append(c)
        if not replaced:
            conditions.append(condition)
        return replace(self, conditions=tuple(conditions))


def determine_reconciled_condition(error: Exception | None) -> Condition:
    if error is None:
        return Condition(type=COND_RECONCILED, status=STATUS_TRUE)
    return Condition(
        type=COND_RECONCILED,
        status=STATUS_FALSE,
        reason=REASON_RECONCILE_ERROR,
        message=f"error reconciling resource: {error}",
    )


def derive_state(reconciled: Condition, ready: Condition) -> str:
    # A reconcile error outranks any readiness gap it may have caused.
    if reconciled.status == STATUS_FALSE:
        return reconciled.reason
    if ready.status == STATUS_FALSE:
        return ready.reason
    return REASON_HEALTHY


def compute_status(
    current: RevisionStatus,
    generation: int,
    reconciled: Condition,
    ready: Condition,
    now: str | None = None,
) -> RevisionStatus:
    """Fold both conditions and the derived state into ``current``."""
    status = replace(current, observed_generation=generation)
    status = status.set_condition(reconciled, now=now)
    status = status.set_condition(ready, now=now)
    return replace(status, state=derive_state(reconciled, ready))
