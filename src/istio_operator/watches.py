"""Kinds installed for an IstioRevision and the event-to-revision router."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .ownership import map_owner_annotations_to_request, map_owner_reference_to_request
from .predicates import validating_webhook_config_update
from .revision import NamespacedName

UpdatePredicate = Callable[[str, dict[str, Any], dict[str, Any]], bool]


@dataclass(frozen=True)
class WatchedKind:
    group: str
    version: str
    plural: str
    kind: str
    namespaced: bool = True
    update_predicate: UpdatePredicate | None = None

    @property
    def resource(self) -> str:
        return f"{self.plural}.{self.group}" if self.group else self.plural


OWNED_NAMESPACED_KINDS = (
    WatchedKind("", "v1", "configmaps", "ConfigMap"),
    WatchedKind("apps", "v1", "deployments", "Deployment"),
    WatchedKind("apps", "v1", "daemonsets", "DaemonSet"),
    WatchedKind("", "v1", "endpoints", "Endpoints"),
    WatchedKind("", "v1", "resourcequotas", "ResourceQuota"),
    WatchedKind("", "v1", "secrets", "Secret"),
    WatchedKind("", "v1", "services", "Service"),
    WatchedKind("", "v1", "serviceaccounts", "ServiceAccount"),
    WatchedKind("rbac.authorization.k8s.io", "v1", "roles", "Role"),
    WatchedKind("rbac.authorization.k8s.io", "v1", "rolebindings", "RoleBinding"),
    WatchedKind("policy", "v1", "poddisruptionbudgets", "PodDisruptionBudget"),
    WatchedKind("autoscaling", "v2", "horizontalpodautoscalers", "HorizontalPodAutoscaler"),
    WatchedKind("networking.istio.io", "v1alpha3", "envoyfilters", "EnvoyFilter"),
)

VALIDATING_WEBHOOK_CONFIGURATION = WatchedKind(
    "admissionregistration.k8s.io",
    "v1",
    "validatingwebhookconfigurations",
    "ValidatingWebhookConfiguration",
    False,
    validating_webhook_config_update,
)

OWNED_CLUSTER_KINDS = (
    WatchedKind("rbac.authorization.k8s.io", "v1", "clusterroles", "ClusterRole", False),
    WatchedKind("rbac.authorization.k8s.io", "v1", "clusterrolebindings", "ClusterRoleBinding", False),
    WatchedKind(
        "admissionregistration.k8s.io",
        "v1",
        "mutatingwebhookconfigurations",
        "MutatingWebhookConfiguration",
        False,
    ),
    VALIDATING_WEBHOOK_CONFIGURATION,
)

OWNED_KINDS = (*OWNED_NAMESPACED_KINDS, *OWNED_CLUSTER_KINDS)


def route(kind: WatchedKind, obj: dict[str, Any]) -> NamespacedName | None:
    """Map a change on an owned object to the IstioRevision that owns it."""
    if kind.namespaced:
        return map_owner_reference_to_request(obj)
    return map_owner_annotations_to_request(obj)
