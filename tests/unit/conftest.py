"""Shared fakes for the reconciler tests: an in-memory cluster and chart installer."""

from __future__ import annotations

import copy
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from kubernetes import client

from istio_operator.config import OperatorConfig
from istio_operator.constants import API_GROUP_VERSION, REVISION_KIND
from istio_operator.revision import NamespacedName, Revision
from istio_operator.values import HelmValues

NAMESPACE = "istio-system"
NAME = "test-istio"
KEY = NamespacedName(NAMESPACE, NAME)


def make_revision(
    name: str = NAME,
    namespace: str = NAMESPACE,
    version: str = "latest",
    values: Any = None,
    finalizers: list[str] | None = None,
    deletion_timestamp: str | None = None,
    generation: int = 1,
    status: dict[str, Any] | None = None,
    uid: str = "uid-123",
) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "apiVersion": API_GROUP_VERSION,
        "kind": REVISION_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid,
            "generation": generation,
            "resourceVersion": "100",
            "finalizers": list(finalizers or []),
        },
        "spec": {"version": version},
    }
    if values is not None:
        obj["spec"]["values"] = values
    if deletion_timestamp:
        obj["metadata"]["deletionTimestamp"] = deletion_timestamp
    if status is not None:
        obj["status"] = status
    return obj


def make_deployment(
    name: str = "istiod",
    namespace: str = NAMESPACE,
    replicas: int | None = 2,
    ready_replicas: int | None = 2,
    image: str = "istio/pilot:latest",
) -> client.V1Deployment:
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        spec=client.V1DeploymentSpec(
            selector=client.V1LabelSelector(match_labels={"app": "istiod"}),
            template=client.V1PodTemplateSpec(
                spec=client.V1PodSpec(
                    containers=[client.V1Container(name="discovery", image=image)]
                )
            ),
        ),
        status=client.V1DeploymentStatus(replicas=replicas, ready_replicas=ready_replicas),
    )


def make_daemon_set(
    name: str = "istio-cni-node",
    namespace: str = NAMESPACE,
    scheduled: int = 3,
    ready: int = 3,
) -> client.V1DaemonSet:
    return client.V1DaemonSet(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        status=client.V1DaemonSetStatus(
            current_number_scheduled=scheduled,
            desired_number_scheduled=scheduled,
            number_misscheduled=0,
            number_ready=ready,
        ),
    )


class FakeKube:
    """In-memory stand-in for KubeClient."""

    def __init__(self, log: list[tuple] | None = None):
        self.log = log if log is not None else []
        self.revisions: dict[NamespacedName, dict[str, Any]] = {}
        self.deployments: dict[tuple[str, str], client.V1Deployment] = {}
        self.daemon_sets: dict[tuple[str, str], client.V1DaemonSet] = {}
        self.status_patches: list[dict[str, Any]] = []
        self.events: list[tuple[str, str, str]] = []
        self.get_revision_error: Exception | None = None
        self.get_deployment_error: Exception | None = None
        self.patch_status_error: Exception | None = None
        self.touch_revision_error: Exception | None = None

    def put_revision(self, obj: dict[str, Any]) -> NamespacedName:
        key = NamespacedName(obj["metadata"]["namespace"], obj["metadata"]["name"])
        self.revisions[key] = copy.deepcopy(obj)
        return key

    def get_revision(self, namespace: str, name: str) -> Revision | None:
        if self.get_revision_error is not None:
            raise self.get_revision_error
        obj = self.revisions.get(NamespacedName(namespace, name))
        return Revision.from_dict(copy.deepcopy(obj)) if obj else None

    def patch_status(self, revision: Revision, status: dict[str, Any]) -> None:
        self.log.append(("patch_status", str(revision.key)))
        if self.patch_status_error is not None:
            raise self.patch_status_error
        self.status_patches.append(copy.deepcopy(status))
        self.revisions[revision.key]["status"] = copy.deepcopy(status)

    def touch_revision(self, key: NamespacedName) -> bool:
        self.log.append(("touch_revision", str(key)))
        if self.touch_revision_error is not None:
            raise self.touch_revision_error
        return key in self.revisions

    def get_deployment(self, namespace: str, name: str) -> client.V1Deployment | None:
        if self.get_deployment_error is not None:
            raise self.get_deployment_error
        return self.deployments.get((namespace, name))

    def get_daemon_set(self, namespace: str, name: str) -> client.V1DaemonSet | None:
        return self.daemon_sets.get((namespace, name))

    def emit_event(self, revision: Revision, reason: str, message: str, type_: str = "Normal") -> None:
        self.events.append((reason, message, type_))


class RecordingInstaller:
    """Chart installer double that records calls and can simulate the cluster."""

    def __init__(
        self,
        log: list[tuple] | None = None,
        on_install: Callable[[Sequence[str], HelmValues], None] | None = None,
    ):
        self.log = log if log is not None else []
        self.on_install = on_install
        self.install_calls: list[dict[str, Any]] = []
        self.uninstall_calls: list[list[str]] = []
        self.installed: set[str] = set()
        self.install_error: dict[str, Exception] = {}
        self.uninstall_error: dict[str, Exception] = {}

    def install_or_upgrade(
        self,
        chart_names: Sequence[str],
        values: HelmValues,
        version: str,
        owner_name: str,
        owner_namespace: str,
        owner_reference: dict[str, Any],
    ) -> None:
        self.log.append(("install", list(chart_names)))
        self.install_calls.append(
            {
                "charts": list(chart_names),
                "values": copy.deepcopy(dict(values)),
                "version": version,
                "owner_name": owner_name,
                "owner_namespace": owner_namespace,
                "owner_reference": dict(owner_reference),
            }
        )
        for chart in chart_names:
            if chart in self.install_error:
                raise self.install_error[chart]
        self.installed.update(chart_names)
        if self.on_install is not None:
            self.on_install(chart_names, values)

    def uninstall(self, chart_names: Sequence[str], owner_name: str, owner_namespace: str) -> None:
        self.log.append(("uninstall", list(chart_names)))
        self.uninstall_calls.append(list(chart_names))
        for chart in chart_names:
            if chart in self.uninstall_error:
                raise self.uninstall_error[chart]
        # Uninstalling a chart that was never installed is a no-op
        self.installed.difference_update(chart_names)


@pytest.fixture
def call_log() -> list[tuple]:
    return []


@pytest.fixture
def kube(call_log: list[tuple]) -> FakeKube:
    return FakeKube(call_log)


@pytest.fixture
def installer(call_log: list[tuple]) -> RecordingInstaller:
    return RecordingInstaller(call_log)


@pytest.fixture
def operator_config(tmp_path) -> OperatorConfig:
    return OperatorConfig(resource_directory=str(tmp_path), backoff_base_delay=0.001, backoff_max_delay=0.01)
