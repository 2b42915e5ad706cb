"""Thin wrapper over the kubernetes client for the calls the reconciler makes."""

from __future__ import annotations

import time
from typing import Any

from kubernetes import client

from . import logging as structured_logging
from .constants import (
    ANNOTATION_RECONCILE_TRIGGER,
    API_GROUP,
    API_GROUP_VERSION,
    API_VERSION,
    FIELD_MANAGER,
    REVISION_KIND,
    REVISION_PLURAL,
)
from .revision import NamespacedName, Revision


class KubeClient:
    """Cluster API access used by the reconciler and readiness evaluator."""

    def __init__(self, api_client: client.ApiClient | None = None, request_timeout: float = 30.0):
        self.custom_api = client.CustomObjectsApi(api_client)
        self.apps_api = client.AppsV1Api(api_client)
        self.core_api = client.CoreV1Api(api_client)
        self.request_timeout = request_timeout

    def get_revision(self, namespace: str, name: str) -> Revision | None:
        """Return the IstioRevision, or None when it does not exist."""
        try:
            obj = self.custom_api.get_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=REVISION_PLURAL,
                name=name,
                _request_timeout=self.request_timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise
        return Revision.from_dict(obj)

    def patch_status(self, revision: Revision, status: dict[str, Any]) -> None:
        """Merge-patch the status subresource.

        The patch carries the resourceVersion the revision was read at, so a
        concurrent write fails with 409 instead of being overwritten.
        """
        self.custom_api.patch_namespaced_custom_object_status(
            group=API_GROUP,
            version=API_VERSION,
            namespace=revision.namespace,
            plural=REVISION_PLURAL,
            name=revision.name,
            body={
                "metadata": {"resourceVersion": revision.resource_version},
                "status": status,
            },
            field_manager=FIELD_MANAGER,
            _request_timeout=self.request_timeout,
        )

    def touch_revision(self, key: NamespacedName) -> bool:
        """Bump the reconcile-trigger annotation. Returns False if the revision is gone."""
        body = {"metadata": {"annotations": {ANNOTATION_RECONCILE_TRIGGER: str(time.time())}}}
        try:
            self.custom_api.patch_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=key.namespace,
                plural=REVISION_PLURAL,
                name=key.name,
                body=body,
                field_manager=FIELD_MANAGER,
                _request_timeout=self.request_timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def get_deployment(self, namespace: str, name: str) -> client.V1Deployment | None:
        try:
            return self.apps_api.read_namespaced_deployment(
                name=name, namespace=namespace, _request_timeout=self.request_timeout
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def get_daemon_set(self, namespace: str, name: str) -> client.V1DaemonSet | None:
        try:
            return self.apps_api.read_namespaced_daemon_set(
                name=name, namespace=namespace, _request_timeout=self.request_timeout
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def emit_event(
        self,
        revision: Revision,
        reason: str,
        message: str,
        type_: str = "Normal",
    ) -> None:
        """Record a Kubernetes Event on the revision. Failures are only logged."""
        involved = client.V1ObjectReference(
            api_version=API_GROUP_VERSION,
            kind=REVISION_KIND,
            name=revision.name,
            namespace=revision.namespace,
            uid=revision.uid or None,
        )
        event = client.CoreV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{revision.name}-"),
            type=type_,
            reason=reason,
            message=message,
            involved_object=involved,
            reporting_component=FIELD_MANAGER,
        )
        try:
            self.core_api.create_namespaced_event(namespace=revision.namespace, body=event)
        except client.exceptions.ApiException as e:
            structured_logging.logger.warning(
                f"Failed to emit event: {e.reason}",
                controller=REVISION_KIND,
                resource=str(revision.key),
                event="event",
                reason=reason,
            )
