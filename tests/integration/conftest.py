"""
Pytest configuration and fixtures for integration tests.
"""

import os
import subprocess
import time

import pytest
from kubernetes import client

from istio_operator.constants import API_GROUP, API_VERSION, REVISION_KIND, REVISION_PLURAL

RESOURCE_DIR_ENV = "ISTIO_OPERATOR_RESOURCE_DIR"
VERSION_ENV = "ISTIO_OPERATOR_TEST_VERSION"


@pytest.fixture(scope="session")
def kind_available():
    """Check if kind is available."""
    try:
        subprocess.run(["kind", "version"], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        pytest.skip("kind not available")


@pytest.fixture(scope="session")
def helm_available():
    """Check if helm is available."""
    try:
        subprocess.run(["helm", "version"], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        pytest.skip("helm not available")


@pytest.fixture(scope="session")
def chart_resources():
    """Directory with ``<version>/charts/{base,istiod,cni}`` and the version to install."""
    resource_dir = os.environ.get(RESOURCE_DIR_ENV)
    version = os.environ.get(VERSION_ENV)
    if not resource_dir or not version:
        pytest.skip(f"{RESOURCE_DIR_ENV} and {VERSION_ENV} must point at unpacked Istio charts")
    return resource_dir, version


def revision_crd() -> client.V1CustomResourceDefinition:
    """Minimal IstioRevision CRD with a status subresource."""
    schema = client.V1JSONSchemaProps(
        type="object",
        properties={
            "spec": client.V1JSONSchemaProps(
                type="object",
                properties={
                    "version": client.V1JSONSchemaProps(type="string"),
                    "values": client.V1JSONSchemaProps(
                        type="object", x_kubernetes_preserve_unknown_fields=True
                    ),
                },
            ),
            "status": client.V1JSONSchemaProps(
                type="object", x_kubernetes_preserve_unknown_fields=True
            ),
        },
    )
    return client.V1CustomResourceDefinition(
        metadata=client.V1ObjectMeta(name=f"{REVISION_PLURAL}.{API_GROUP}"),
        spec=client.V1CustomResourceDefinitionSpec(
            group=API_GROUP,
            scope="Namespaced",
            names=client.V1CustomResourceDefinitionNames(
                plural=REVISION_PLURAL, singular="istiorevision", kind=REVISION_KIND
            ),
            versions=[
                client.V1CustomResourceDefinitionVersion(
                    name=API_VERSION,
                    served=True,
                    storage=True,
                    subresources=client.V1CustomResourceSubresources(status={}),
                    schema=client.V1CustomResourceValidation(open_api_v3_schema=schema),
                )
            ],
        ),
    )


def wait_for_revision_condition(
    namespace: str, name: str, condition_type: str, status: str = "True", timeout: int = 60
) -> bool:
    """Wait for an IstioRevision to report a condition with the given status."""
    custom_api = client.CustomObjectsApi()
    start_time = time.time()

    while time.time() - start_time < timeout:
        try:
            resource = custom_api.get_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=REVISION_PLURAL,
                name=name,
            )
            for condition in resource.get("status", {}).get("conditions", []):
                if condition.get("type") == condition_type and condition.get("status") == status:
                    return True
        except client.exceptions.ApiException:
            pass
        time.sleep(2)

    return False


def wait_for_deployment_ready(name: str, namespace: str, timeout: int = 300) -> bool:
    """Wait for a deployment to be ready."""
    apps_v1 = client.AppsV1Api()
    start_time = time.time()

    while time.time() - start_time < timeout:
        try:
            deployment = apps_v1.read_namespaced_deployment(name=name, namespace=namespace)
            if deployment.status.ready_replicas and deployment.status.ready_replicas >= 1:
                return True
        except client.exceptions.ApiException:
            pass
        time.sleep(2)

    return False
