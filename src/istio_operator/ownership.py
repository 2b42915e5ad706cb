"""Ownership links between an IstioRevision and the objects installed for it.

Namespace-scoped objects carry a native owner reference, which lets the
garbage collector cascade-delete them. Cluster-scoped objects cannot
reference a namespaced owner, so they carry two annotations instead:

    operator-sdk/primary-resource:      <namespace>/<name>
    operator-sdk/primary-resource-type: <Kind>.<apiGroup>

The annotation is only a lookup key. The revision it names may be gone.
"""

from __future__ import annotations

from typing import Any

from .constants import (
    ANNOTATION_PRIMARY_RESOURCE,
    ANNOTATION_PRIMARY_RESOURCE_TYPE,
    API_GROUP,
    API_GROUP_VERSION,
    REVISION_KIND,
)
from .revision import NamespacedName, Revision


def owner_reference(revision: Revision) -> dict[str, Any]:
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": REVISION_KIND,
        "name": revision.name,
        "uid": revision.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def ownership_annotations(owner_namespace: str, owner_name: str) -> dict[str, str]:
    return {
        ANNOTATION_PRIMARY_RESOURCE: f"{owner_namespace}/{owner_name}",
        ANNOTATION_PRIMARY_RESOURCE_TYPE: f"{REVISION_KIND}.{API_GROUP}",
    }


def get_owner_from_annotations(
    annotations: dict[str, str] | None,
) -> tuple[NamespacedName | None, str, str]:
    """Decode the ownership annotations into (namespaced name, kind, api group)."""
    annotations = annotations or {}
    namespaced_name = None
    primary = annotations.get(ANNOTATION_PRIMARY_RESOURCE, "")
    if primary:
        namespace, sep, name = primary.partition("/")
        if sep and namespace and name:
            namespaced_name = NamespacedName(namespace, name)

    kind, _, api_group = annotations.get(ANNOTATION_PRIMARY_RESOURCE_TYPE, "").partition(".")
    return namespaced_name, kind, api_group


def _group_of(api_version: str) -> str:
    group, sep, _ = api_version.rpartition("/")
    return group if sep else ""


def map_owner_annotations_to_request(obj: dict[str, Any]) -> NamespacedName | None:
    """Route a cluster-scoped object to the revision named by its annotations."""
    annotations = (obj.get("metadata") or {}).get("annotations")
    if not annotations:
        return None
    namespaced_name, kind, api_group = get_owner_from_annotations(annotations)
    if namespaced_name is not None and kind == REVISION_KIND and api_group == API_GROUP:
        return namespaced_name
    return None


def map_owner_reference_to_request(obj: dict[str, Any]) -> NamespacedName | None:
    """Route a namespaced object to its controlling IstioRevision, if any."""
    meta = obj.get("metadata") or {}
    namespace = meta.get("namespace")
    if not namespace:
        return None
    for ref in meta.get("ownerReferences") or []:
        if not ref.get("controller"):
            continue
        if ref.get("kind") == REVISION_KIND and _group_of(ref.get("apiVersion", "")) == API_GROUP:
            return NamespacedName(namespace, ref["name"])
    return None
