"""IstioRevision reconcile loop and the finalizer-gated deletion protocol."""

from __future__ import annotations

from time import monotonic

from kubernetes import client

from . import logging as structured_logging
from . import metrics
from .config import OperatorConfig
from .constants import (
    CNI_CHARTS,
    REVISION_KIND,
    USER_CHARTS,
    VALUES_ISTIO_NAMESPACE,
)
from .errors import ValidationError
from .helm import ChartInstaller
from .kube import KubeClient
from .ownership import owner_reference
from .readiness import ReadinessEvaluator, is_cni_enabled
from .revision import NamespacedName, Revision
from .status import compute_status, determine_reconciled_condition
from .values import HelmValues


def apply_overrides(revision: Revision, values: HelmValues) -> HelmValues:
    """Return the effective values: the revision namespace always wins."""
    effective = values.deep_copy()
    effective.set(VALUES_ISTIO_NAMESPACE, revision.namespace)
    return effective


class RevisionReconciler:
    """Converges the cluster to one IstioRevision per call to ``reconcile``.

    Safe to call repeatedly; kopf never runs two handlers for the same
    revision at once.
    """

    def __init__(
        self,
        kube: KubeClient,
        installer: ChartInstaller,
        config: OperatorConfig,
        readiness: ReadinessEvaluator | None = None,
    ):
        self.kube = kube
        self.installer = installer
        self.config = config
        self.readiness = readiness or ReadinessEvaluator(kube)

    def reconcile(self, key: NamespacedName) -> None:
        started_at = monotonic()
        resource = str(key)
        try:
            revision = self.kube.get_revision(key.namespace, key.name)
            if revision is None:
                structured_logging.logger.debug(
                    "IstioRevision not found. Skipping reconciliation",
                    controller=REVISION_KIND,
                    resource=resource,
                    event="reconcile",
                    reason="NotFound",
                )
                metrics.RECONCILE_TOTAL.labels(result="skipped").inc()
                return

            if revision.is_terminating:
                self._finalize(revision)
            else:
                self._reconcile(revision)
            metrics.RECONCILE_TOTAL.labels(result="success").inc()
        except Exception as e:
            structured_logging.logger.error(
                f"IstioRevision reconciliation failed: {e}",
                controller=REVISION_KIND,
                resource=resource,
                event="reconcile",
                reason="ReconcileFailed",
            )
            metrics.RECONCILE_TOTAL.labels(result="error").inc()
            raise
        finally:
            metrics.RECONCILE_DURATION.observe(monotonic() - started_at)

    def _reconcile(self, revision: Revision) -> None:
        resource = str(revision.key)
        structured_logging.logger.info(
            "Starting IstioRevision reconciliation",
            controller=REVISION_KIND,
            resource=resource,
            uid=revision.uid,
            event="reconcile",
            reason="ReconcileStarted",
        )

        if not revision.version:
            # Recorded in status only; the next spec edit fires the update handler again.
            error = ValidationError("no spec.version set")
            structured_logging.logger.warning(
                "Invalid IstioRevision spec",
                controller=REVISION_KIND,
                resource=resource,
                uid=revision.uid,
                event="reconcile",
                reason="ValidateFailed",
                error=str(error),
            )
            self.kube.emit_event(revision, "ValidateFailed", str(error), type_="Warning")
            self.update_status(revision, HelmValues(), error)
            return

        install_error: Exception | None = None
        values = HelmValues()
        try:
            values = apply_overrides(revision, HelmValues.from_raw(revision.values))
            structured_logging.logger.info(
                "Installing components",
                controller=REVISION_KIND,
                resource=resource,
                uid=revision.uid,
                event="install",
                reason="InstallStarted",
                version=revision.version,
                values=dict(values),
            )
            self.install_charts(revision, values)
        except Exception as e:
            install_error = e
            self.kube.emit_event(revision, "InstallFailed", str(e), type_="Warning")

        structured_logging.logger.info(
            "Reconciliation done. Updating status.",
            controller=REVISION_KIND,
            resource=resource,
            uid=revision.uid,
            event="reconcile",
            reason="ReconcileSucceeded" if install_error is None else "InstallFailed",
        )
        self.update_status(revision, values, install_error)
        if install_error is not None:
            raise install_error

    def install_charts(self, revision: Revision, values: HelmValues) -> None:
        owner_ref = owner_reference(revision)
        if is_cni_enabled(values):
            self.installer.install_or_upgrade(
                CNI_CHARTS,
                values,
                revision.version,
                revision.name,
                revision.namespace,
                owner_ref,
            )
        self.installer.install_or_upgrade(
            USER_CHARTS,
            values,
            revision.version,
            revision.name,
            revision.namespace,
            owner_ref,
        )

    def uninstall_charts(self, revision: Revision) -> None:
        # The CNI release may never have been installed; uninstall is a no-op then.
        self.installer.uninstall(CNI_CHARTS, revision.name, revision.namespace)
        self.installer.uninstall(USER_CHARTS, revision.name, revision.namespace)

    def _finalize(self, revision: Revision) -> None:
        resource = str(revision.key)
        if not revision.has_finalizer:
            return

        structured_logging.logger.info(
            "Starting finalizer cleanup",
            controller=REVISION_KIND,
            resource=resource,
            uid=revision.uid,
            event="finalizer",
            reason="CleanupStarted",
        )
        self.uninstall_charts(revision)
        # kopf drops the finalizer once the delete handler returns
        structured_logging.logger.info(
            "Finalizer cleanup finished",
            controller=REVISION_KIND,
            resource=resource,
            uid=revision.uid,
            event="finalizer",
            reason="CleanupSucceeded",
        )

    def update_status(
        self, revision: Revision, values: HelmValues, error: Exception | None
    ) -> None:
        """Write Reconciled/Ready/state if they changed.

        Readiness read failures propagate before anything is written. A
        failed status patch is raised only when ``error`` is None, so it
        never hides the installation error.
        """
        reconciled = determine_reconciled_condition(error)
        ready = self.readiness.evaluate(revision, values)

        status = compute_status(revision.status, revision.generation, reconciled, ready)
        if status == revision.status:
            return

        try:
            self.kube.patch_status(revision, status.to_dict())
        except client.exceptions.ApiException as status_error:
            structured_logging.logger.error(
                f"Failed to patch status: {status_error.reason}",
                controller=REVISION_KIND,
                resource=str(revision.key),
                uid=revision.uid,
                event="status",
                reason="StatusPatchFailed",
            )
            if error is None:
                raise
