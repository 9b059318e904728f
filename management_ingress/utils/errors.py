import json
import kopf
import kubernetes_asyncio

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (TypeError, ValueError):
        return ""
    return str(err.get("reason", "")).lower() if isinstance(err, dict) else ""


def already_exists_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) in (_ALREADY_EXISTS, "")


def not_found_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 404 or _reason(ex) == _NOT_FOUND


def convert_api_exception(ex: kubernetes_asyncio.client.ApiException, permanent: bool = None):
    """
    Convert kubernetes ApiException to a Kopf-friendly exception.

    Args:
        ex: The ApiException to convert
        permanent: If True, raises PermanentError (won't retry). If False, raises
                   TemporaryError (will retry). If None, decided by status code.

    Raises:
        kopf.TemporaryError or kopf.PermanentError with serializable error details
    """
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        raise ex

    error_msg = f"Kubernetes API error ({ex.status}): {ex.reason}"
    try:
        if ex.body:
            body = json.loads(ex.body)
            if "message" in body:
                error_msg = f"{error_msg} - {body['message']}"
    except (json.JSONDecodeError, TypeError, AttributeError):
        pass

    # 4xx errors (except 408, 429) are not going to fix themselves
    if permanent is None:
        is_permanent = ex.status is not None and 400 <= ex.status < 500 and ex.status not in [408, 429]
    else:
        is_permanent = permanent

    if is_permanent:
        raise kopf.PermanentError(error_msg) from ex
    raise kopf.TemporaryError(error_msg, delay=30) from ex


class ManagementIngressError(Exception):
    """Base class for reconcile failures that should be retried as a whole pass."""


class SyncError(ManagementIngressError):
    """A reconcile step failed for one resource kind."""

    def __init__(self, kind: str, owner: str, cause: Exception):
        self.kind = kind
        self.owner = owner
        self.cause = cause
        super().__init__(f'unable to create or update {kind} for "{owner}": {cause}')


class DependencyTimeoutError(ManagementIngressError):
    """A readiness waiter gave up on an object populated by another controller."""

    def __init__(self, kind: str, name: str, namespace: str, timeout: float):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        self.timeout = timeout
        super().__init__(
            f"timed out after {timeout:g}s waiting for {kind} {namespace}/{name}"
        )


class ClusterDiscoveryError(ManagementIngressError):
    """Cluster base domain, API server address or flavor could not be discovered."""


class ResourceMissingError(ManagementIngressError):
    """Create reported a conflict but the object could not be read back."""

    def __init__(self, kind: str, name: str, namespace: str):
        super().__init__(
            f"{kind} {namespace}/{name} already exists but could not be found"
        )
