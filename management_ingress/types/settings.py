import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes"}, {"False", "false", "no"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Namespace the operator runs in; hosts the cluster CA secret and the cpp config
POD_NAMESPACE = str(_getenv("POD_NAMESPACE", ""))

#: Common services version published in the cluster info config map
VERSION = str(_getenv("VERSION", "3.8.0"))

#: Cluster name published in the cluster info config map
CLUSTER_NAME = str(_getenv("CLUSTER_NAME", "mycluster"))

#: Router HTTP port published in the cluster info config map
ROUTE_HTTP_PORT = str(_getenv("ROUTE_HTTP_PORT", "80"))

#: Router HTTPS port published in the cluster info config map
ROUTE_HTTPS_PORT = str(_getenv("ROUTE_HTTPS_PORT", "443"))

#: Operand image used when the custom resource does not name one
OPERAND_IMAGE = str(_getenv("ICP_MANAGEMENT_INGRESS_IMAGE", ""))

#: Seconds to wait for a certificate secret before failing the reconcile
WAIT_TIMEOUT_SECONDS = float(_getenv("WAIT_TIMEOUT_SECONDS", 600))

#: Seconds between two polls of a certificate secret
WAIT_INTERVAL_SECONDS = float(_getenv("WAIT_INTERVAL_SECONDS", 2))

#: Seconds between two periodic reconciles of the same custom resource
RECONCILE_INTERVAL_SECONDS = float(_getenv("RECONCILE_INTERVAL_SECONDS", 300))

#: Seconds before a requested requeue runs
REQUEUE_DELAY_SECONDS = float(_getenv("REQUEUE_DELAY_SECONDS", 5))

#: Maximum number of custom resources reconciled concurrently
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 2))


class Settings:
    """Operator settings"""

    pod_namespace: str = POD_NAMESPACE
    version: str = VERSION
    cluster_name: str = CLUSTER_NAME
    route_http_port: str = ROUTE_HTTP_PORT
    route_https_port: str = ROUTE_HTTPS_PORT
    operand_image: str = OPERAND_IMAGE
    wait_timeout_seconds: float = WAIT_TIMEOUT_SECONDS
    wait_interval_seconds: float = WAIT_INTERVAL_SECONDS
    reconcile_interval_seconds: float = RECONCILE_INTERVAL_SECONDS
    requeue_delay_seconds: float = REQUEUE_DELAY_SECONDS
    worker_limit: int = WORKER_LIMIT

    def __init__(
        self,
        *args,
        pod_namespace: str = None,
        version: str = None,
        cluster_name: str = None,
        route_http_port: str = None,
        route_https_port: str = None,
        operand_image: str = None,
        wait_timeout_seconds: float = None,
        wait_interval_seconds: float = None,
        reconcile_interval_seconds: float = None,
        requeue_delay_seconds: float = None,
        worker_limit: int = None,
        **kwargs,
    ):
        if pod_namespace is not None:
            self.pod_namespace = pod_namespace

        if version is not None:
            self.version = version

        if cluster_name is not None:
            self.cluster_name = cluster_name

        if route_http_port is not None:
            self.route_http_port = route_http_port

        if route_https_port is not None:
            self.route_https_port = route_https_port

        if operand_image is not None:
            self.operand_image = operand_image

        if wait_timeout_seconds is not None:
            self.wait_timeout_seconds = wait_timeout_seconds

        if wait_interval_seconds is not None:
            self.wait_interval_seconds = wait_interval_seconds

        if reconcile_interval_seconds is not None:
            self.reconcile_interval_seconds = reconcile_interval_seconds

        if requeue_delay_seconds is not None:
            self.requeue_delay_seconds = requeue_delay_seconds

        if worker_limit is not None:
            self.worker_limit = worker_limit

    def operator_namespace(self, fallback: str) -> str:
        """Operator namespace, or ``fallback`` when POD_NAMESPACE is unset."""
        return self.pod_namespace or fallback
