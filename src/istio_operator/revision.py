"""Read-only view of an IstioRevision object as returned by the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from .constants import FINALIZER
from .status import RevisionStatus


class NamespacedName(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Revision:
    name: str
    namespace: str
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    finalizers: tuple[str, ...] = ()
    deletion_timestamp: str | None = None
    version: str = ""
    values: Any = None
    status: RevisionStatus = field(default_factory=RevisionStatus)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> Revision:
        meta = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        return cls(
            name=meta.get("name", ""),
            namespace=meta.get("namespace", ""),
            uid=meta.get("uid", ""),
            generation=int(meta.get("generation") or 0),
            resource_version=meta.get("resourceVersion", ""),
            finalizers=tuple(meta.get("finalizers") or ()),
            deletion_timestamp=meta.get("deletionTimestamp"),
            version=spec.get("version") or "",
            values=spec.get("values"),
            status=RevisionStatus.from_dict(obj.get("status")),
        )

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    @property
    def is_terminating(self) -> bool:
        return self.deletion_timestamp is not None

    @property
    def has_finalizer(self) -> bool:
        return FINALIZER in self.finalizers
