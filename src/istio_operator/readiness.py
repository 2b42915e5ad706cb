"""Readiness of the control-plane workloads installed for a revision."""

from __future__ import annotations

from kubernetes import client

from .constants import (
    CNI_DAEMONSET_NAME,
    COND_READY,
    ISTIOD_DEPLOYMENT_NAME,
    REASON_CNI_NOT_READY,
    REASON_ISTIOD_NOT_READY,
    VALUES_CNI_ENABLED,
    VALUES_REVISION,
)
from .errors import ReadinessError
from .kube import KubeClient
from .revision import NamespacedName, Revision
from .status import STATUS_FALSE, STATUS_TRUE, Condition
from .values import HelmValues


def is_cni_enabled(values: HelmValues) -> bool:
    enabled, _ = values.get_bool(VALUES_CNI_ENABLED)
    return enabled


def istiod_deployment_key(revision: Revision, values: HelmValues) -> NamespacedName:
    name = ISTIOD_DEPLOYMENT_NAME
    revision_label, _ = values.get_string(VALUES_REVISION)
    if revision_label:
        name += "-" + revision_label
    return NamespacedName(revision.namespace, name)


def cni_daemon_set_key(revision: Revision) -> NamespacedName:
    return NamespacedName(revision.namespace, CNI_DAEMONSET_NAME)


def _not_ready(reason: str, message: str) -> Condition:
    return Condition(type=COND_READY, status=STATUS_FALSE, reason=reason, message=message)


class ReadinessEvaluator:
    """Checks the istiod Deployment and, when enabled, the CNI DaemonSet.

    Checks run in a fixed order and the first failing one decides the
    condition. A missing or not-ready workload is a normal NotReady
    verdict; any other read failure raises ReadinessError.
    """

    def __init__(self, kube: KubeClient):
        self.kube = kube

    def evaluate(self, revision: Revision, values: HelmValues) -> Condition:
        istiod_key = istiod_deployment_key(revision, values)
        try:
            istiod = self.kube.get_deployment(istiod_key.namespace, istiod_key.name)
        except client.exceptions.ApiException as e:
            raise ReadinessError(f"failed to read Deployment {istiod_key}: {e.reason}") from e

        if istiod is None:
            return _not_ready(REASON_ISTIOD_NOT_READY, "control-plane deployment not found")
        status = istiod.status or client.V1DeploymentStatus()
        replicas = status.replicas or 0
        ready_replicas = status.ready_replicas or 0
        if replicas == 0:
            return _not_ready(REASON_ISTIOD_NOT_READY, "deployment is scaled to zero replicas")
        if ready_replicas < replicas:
            return _not_ready(REASON_ISTIOD_NOT_READY, "not all control-plane pods are ready")

        if is_cni_enabled(values):
            cni_key = cni_daemon_set_key(revision)
            try:
                cni = self.kube.get_daemon_set(cni_key.namespace, cni_key.name)
            except client.exceptions.ApiException as e:
                raise ReadinessError(f"failed to read DaemonSet {cni_key}: {e.reason}") from e

            if cni is None:
                return _not_ready(REASON_CNI_NOT_READY, "daemon set not found")
            cni_status = cni.status
            scheduled = (cni_status.current_number_scheduled or 0) if cni_status else 0
            number_ready = (cni_status.number_ready or 0) if cni_status else 0
            if scheduled == 0:
                return _not_ready(REASON_CNI_NOT_READY, "no pods currently scheduled")
            if number_ready < scheduled:
                return _not_ready(REASON_CNI_NOT_READY, "not all pods are ready")

        return Condition(type=COND_READY, status=STATUS_TRUE)
