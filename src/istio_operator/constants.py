API_GROUP = "operator.istio.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

REVISION_KIND = "IstioRevision"
REVISION_PLURAL = "istiorevisions"

FINALIZER = f"{API_GROUP}/delete"
FIELD_MANAGER = "istio-operator"

# Touched on the IstioRevision when one of its owned objects changes
ANNOTATION_RECONCILE_TRIGGER = f"{API_GROUP}/reconcile-trigger"

# Ownership annotations for cluster-scoped objects
ANNOTATION_PRIMARY_RESOURCE = "operator-sdk/primary-resource"
ANNOTATION_PRIMARY_RESOURCE_TYPE = "operator-sdk/primary-resource-type"

# Condition types
COND_RECONCILED = "Reconciled"
COND_READY = "Ready"

# Condition reasons
REASON_RECONCILE_ERROR = "ReconcileError"
REASON_ISTIOD_NOT_READY = "IstiodNotReady"
REASON_CNI_NOT_READY = "CNINotReady"
REASON_HEALTHY = "Healthy"

# Chart sets
CNI_CHARTS = ["cni"]
USER_CHARTS = ["base", "istiod"]

ISTIOD_DEPLOYMENT_NAME = "istiod"
CNI_DAEMONSET_NAME = "istio-cni-node"

# Values paths
VALUES_ISTIO_NAMESPACE = "global.istioNamespace"
VALUES_CNI_ENABLED = "istio_cni.enabled"
VALUES_REVISION = "revision"
