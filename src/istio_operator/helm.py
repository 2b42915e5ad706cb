"""Chart installer backed by the helm CLI."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Sequence
from typing import Any, Protocol

import yaml
from kubernetes import client
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError

from . import logging as structured_logging
from . import metrics
from .config import OperatorConfig
from .errors import ChartError
from .ownership import ownership_annotations
from .values import HelmValues

MERGE_PATCH = "application/merge-patch+json"


class ChartInstaller(Protocol):
    """Renders and applies named chart sets for one IstioRevision.

    Both operations are idempotent: re-installing current state changes
    nothing and uninstalling something never installed succeeds.
    """

    def install_or_upgrade(
        self,
        chart_names: Sequence[str],
        values: HelmValues,
        version: str,
        owner_name: str,
        owner_namespace: str,
        owner_reference: dict[str, Any],
    ) -> None: ...

    def uninstall(self, chart_names: Sequence[str], owner_name: str, owner_namespace: str) -> None: ...


def release_name(owner_name: str, chart_name: str) -> str:
    return f"{owner_name}-{chart_name}"


class HelmChartInstaller:
    """Installs charts from ``<resource_directory>/<version>/charts/<chart>``.

    After each install the release manifest is read back and every object in
    it is stamped: namespaced objects get the owner reference, cluster-scoped
    objects get the ownership annotations.
    """

    def __init__(
        self,
        config: OperatorConfig,
        dynamic_client: DynamicClient | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.config = config
        self._dynamic_client = dynamic_client
        self._run = runner

    @property
    def dynamic_client(self) -> DynamicClient:
        if self._dynamic_client is None:
            self._dynamic_client = DynamicClient(client.ApiClient())
        return self._dynamic_client

    def chart_path(self, version: str, chart_name: str) -> str:
        return os.path.join(self.config.resource_directory, version, "charts", chart_name)

    def _helm(self, chart: str, operation: str, args: list[str], stdin: str | None = None):
        cmd = [self.config.helm_binary, *args]
        try:
            return self._run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.config.helm_timeout,
            )
        except FileNotFoundError as e:
            raise ChartError(chart, operation, f"helm binary not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise ChartError(chart, operation, f"helm timed out after {e.timeout}s") from e

    def install_or_upgrade(
        self,
        chart_names: Sequence[str],
        values: HelmValues,
        version: str,
        owner_name: str,
        owner_namespace: str,
        owner_reference: dict[str, Any],
    ) -> None:
        rendered_values = yaml.safe_dump(dict(values), default_flow_style=False)
        for chart in chart_names:
            path = self.chart_path(version, chart)
            if not os.path.isdir(path):
                metrics.CHART_OPERATIONS_TOTAL.labels(operation="install", result="error").inc()
                raise ChartError(chart, "install", f"chart directory {path} does not exist")

            release = release_name(owner_name, chart)
            result = self._helm(
                chart,
                "install",
                [
                    "upgrade",
                    "--install",
                    release,
                    path,
                    "--namespace",
                    owner_namespace,
                    "--values",
                    "-",
                    "--wait=false",
                    "--timeout",
                    f"{int(self.config.helm_timeout)}s",
                ],
                stdin=rendered_values,
            )
            if result.returncode != 0:
                metrics.CHART_OPERATIONS_TOTAL.labels(operation="install", result="error").inc()
                raise ChartError(chart, "install", (result.stderr or "").strip())

            structured_logging.logger.info(
                "Chart installed",
                controller="IstioRevision",
                resource=f"{owner_namespace}/{owner_name}",
                event="install",
                reason="ChartInstalled",
                chart=chart,
                release=release,
                version=version,
            )
            self._stamp_release(chart, release, owner_name, owner_namespace, owner_reference)
            metrics.CHART_OPERATIONS_TOTAL.labels(operation="install", result="success").inc()

    def _stamp_release(
        self,
        chart: str,
        release: str,
        owner_name: str,
        owner_namespace: str,
        owner_reference: dict[str, Any],
    ) -> None:
        result = self._helm(
            chart, "install", ["get", "manifest", release, "--namespace", owner_namespace]
        )
        if result.returncode != 0:
            raise ChartError(chart, "install", (result.stderr or "").strip())

        annotations = ownership_annotations(owner_namespace, owner_name)
        for obj in yaml.safe_load_all(result.stdout or ""):
            if not obj or "kind" not in obj:
                continue
            try:
                resource = self.dynamic_client.resources.get(
                    api_version=obj["apiVersion"], kind=obj["kind"]
                )
            except ResourceNotFoundError as e:
                raise ChartError(chart, "install", f"unknown kind {obj['kind']}: {e}") from e

            meta = obj.get("metadata") or {}
            if resource.namespaced:
                body = {"metadata": {"ownerReferences": [owner_reference]}}
                namespace = meta.get("namespace") or owner_namespace
            else:
                body = {"metadata": {"annotations": annotations}}
                namespace = None

            try:
                resource.patch(
                    body=body,
                    name=meta["name"],
                    namespace=namespace,
                    content_type=MERGE_PATCH,
                )
            except DynamicApiError as e:
                # Deleted between install and stamping; the next reconcile recreates it.
                if e.status == 404:
                    continue
                raise ChartError(chart, "install", f"failed to stamp {obj['kind']}/{meta['name']}: {e}") from e

    def uninstall(self, chart_names: Sequence[str], owner_name: str, owner_namespace: str) -> None:
        for chart in chart_names:
            release = release_name(owner_name, chart)
            result = self._helm(
                chart, "uninstall", ["uninstall", release, "--namespace", owner_namespace]
            )
            if result.returncode != 0:
                stderr = (result.stderr or "").strip()
                if "not found" not in stderr:
                    metrics.CHART_OPERATIONS_TOTAL.labels(operation="uninstall", result="error").inc()
                    raise ChartError(chart, "uninstall", stderr)
                structured_logging.logger.debug(
                    "Release not installed, nothing to uninstall",
                    controller="IstioRevision",
                    resource=f"{owner_namespace}/{owner_name}",
                    event="uninstall",
                    reason="ReleaseNotFound",
                    release=release,
                )
            metrics.CHART_OPERATIONS_TOTAL.labels(operation="uninstall", result="success").inc()
