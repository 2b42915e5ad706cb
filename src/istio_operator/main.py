"""kopf entrypoint: ``kopf run -m istio_operator.main --all-namespaces``."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import kopf
from kubernetes import client
from kubernetes import config as kube_config
from prometheus_client import start_http_server

from . import logging as structured_logging
from . import metrics
from .config import OperatorConfig
from .constants import API_GROUP_VERSION, FINALIZER, REVISION_KIND, REVISION_PLURAL
from .helm import HelmChartInstaller
from .kube import KubeClient
from .reconciler import RevisionReconciler
from .revision import NamespacedName
from .watches import OWNED_KINDS, VALIDATING_WEBHOOK_CONFIGURATION, WatchedKind, route


def build_reconciler(config: OperatorConfig) -> RevisionReconciler:
    kube = KubeClient(request_timeout=config.request_timeout)
    return RevisionReconciler(kube, HelmChartInstaller(config), config)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    structured_logging.setup_structured_logging()
    operator_config = OperatorConfig.from_env()

    settings.posting.level = 0
    settings.networking.request_timeout = operator_config.request_timeout
    settings.execution.max_workers = operator_config.workers
    settings.persistence.finalizer = FINALIZER

    try:
        start_http_server(operator_config.metrics_port)
    except OSError as e:
        structured_logging.logger.warning(
            f"Metrics server not started: {e}",
            event="startup",
            reason="MetricsUnavailable",
        )

    try:
        kube_config.load_incluster_config()
    except kube_config.ConfigException:
        kube_config.load_kube_config()

    memo.config = operator_config
    memo.reconciler = build_reconciler(operator_config)
    memo.kube = memo.reconciler.kube


def _run_reconcile(name: str, namespace: str, retry: int, memo: kopf.Memo) -> None:
    try:
        memo.reconciler.reconcile(NamespacedName(namespace, name))
    except Exception as e:
        delay = memo.config.backoff_delay(retry)
        structured_logging.logger.warning(
            f"Requeueing after error: {e}",
            controller=REVISION_KIND,
            resource=f"{namespace}/{name}",
            event="reconcile",
            reason="Requeued",
            retry=retry,
            delay=delay,
        )
        raise kopf.TemporaryError(str(e), delay=delay) from e


@kopf.on.create(API_GROUP_VERSION, REVISION_PLURAL)
@kopf.on.update(API_GROUP_VERSION, REVISION_PLURAL)
@kopf.on.resume(API_GROUP_VERSION, REVISION_PLURAL)
def reconcile_revision(name: str, namespace: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    _run_reconcile(name, namespace, retry, memo)


@kopf.on.delete(API_GROUP_VERSION, REVISION_PLURAL)
def delete_revision(name: str, namespace: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    """Uninstall the charts; kopf removes the finalizer once this returns."""
    _run_reconcile(name, namespace, retry, memo)


def _trigger_owner(kind: WatchedKind, obj: dict[str, Any], memo: kopf.Memo) -> NamespacedName | None:
    """Touch the IstioRevision owning ``obj`` so its update handler runs."""
    key = route(kind, obj)
    if key is None:
        return None

    metrics.RECONCILE_TRIGGERS_TOTAL.labels(kind=kind.kind).inc()
    try:
        memo.kube.touch_revision(key)
    except client.exceptions.ApiException as e:
        # Event handlers are not retried; the next change on the object tries again
        structured_logging.logger.warning(
            f"Failed to trigger reconciliation: {e.reason}",
            controller=REVISION_KIND,
            resource=str(key),
            event="watch",
            reason="TriggerFailed",
            kind=kind.kind,
        )
    return key


def _register_owned_watch(kind: WatchedKind) -> Callable[..., Any]:
    @kopf.on.event(kind.group, kind.version, kind.plural, id=f"route-{kind.resource}")
    def route_owned_event(event: dict[str, Any], memo: kopf.Memo, **_: Any) -> None:
        event_type = event.get("type")
        # None is the initial listing; resume handlers already cover it
        if event_type is None:
            return
        if event_type == "MODIFIED" and kind.update_predicate is not None:
            return
        _trigger_owner(kind, event.get("object") or {}, memo)

    return route_owned_event


OWNED_EVENT_HANDLERS: dict[str, Callable[..., Any]] = {
    kind.resource: _register_owned_watch(kind) for kind in OWNED_KINDS
}


@kopf.on.update(
    VALIDATING_WEBHOOK_CONFIGURATION.group,
    VALIDATING_WEBHOOK_CONFIGURATION.version,
    VALIDATING_WEBHOOK_CONFIGURATION.plural,
    id="route-validatingwebhookconfiguration-update",
)
def route_validating_webhook_update(
    name: str,
    old: dict[str, Any] | None,
    new: dict[str, Any] | None,
    body: kopf.Body,
    memo: kopf.Memo,
    **_: Any,
) -> None:
    kind = VALIDATING_WEBHOOK_CONFIGURATION
    if not kind.update_predicate(name, old, new):
        metrics.EVENTS_FILTERED_TOTAL.labels(kind=kind.kind).inc()
        return
    _trigger_owner(kind, dict(body), memo)
