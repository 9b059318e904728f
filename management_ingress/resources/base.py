import kopf
import logging
from typing import Any, Dict, Mapping, Optional
from kubernetes_asyncio.client import ApiException
from management_ingress.common.models.labels import Labels
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.utils.differ import DiffResult
from management_ingress.utils.errors import already_exists_error, ResourceMissingError
from management_ingress.resources.store import object_name

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


def owner_references(obj: Any) -> list:
    if isinstance(obj, dict):
        return (obj.get("metadata") or {}).get("ownerReferences") or []
    if obj.metadata is None:
        return []
    return obj.metadata.owner_references or []


class BaseResource:
    """Synchronizes one kind of owned object with its desired form.

    ``ensure`` creates the object first and only falls back to a diff and an
    update when the server reports that the object already exists.
    """

    KIND: str

    store: Any
    owner: Mapping[str, Any]
    namespace: str
    logger: logging.Logger

    def __init__(
        self,
        store,
        owner: Mapping[str, Any],
        namespace: str,
        logger: logging.Logger = None,
    ):
        self.store = store
        self.owner = owner
        self.namespace = namespace
        self.logger = logger or logging.getLogger(__name__)

    @property
    def owner_name(self) -> str:
        return self.owner["metadata"]["name"]

    @property
    def owner_namespace(self) -> Optional[str]:
        return self.owner["metadata"].get("namespace")

    @classmethod
    def default_labels(cls) -> Labels:
        return Labels.generate_default_labels(
            ManagementIngressResources.APP_NAME, ManagementIngressResources.SERVICE_NAME
        )

    def set_owner(self, obj: Any, namespace: str = None) -> None:
        """Make the custom resource the controller owner of ``obj``.

        Failures are logged only; the reference is attached again on the next pass.
        """
        namespace = namespace or self.namespace
        if self.owner_namespace and namespace != self.owner_namespace:
            self.logger.debug(
                f"Not setting owner on {self.KIND} {namespace}/{object_name(obj)}: "
                "owner lives in another namespace"
            )
            return
        try:
            kopf.append_owner_reference(
                obj, owner=self.owner, controller=True, block_owner_deletion=True
            )
        except (KeyError, TypeError, ValueError, AttributeError) as ex:
            self.logger.error(
                f"Error setting controller reference on {self.KIND} {object_name(obj)}: {ex}"
            )

    def adopt_orphan(self, obj: Any, namespace: str = None) -> bool:
        """Attach the owner to a live object that has no owner references yet."""
        namespace = namespace or self.namespace
        if owner_references(obj):
            return False
        if self.owner_namespace and namespace != self.owner_namespace:
            return False
        self.set_owner(obj, namespace)
        return bool(owner_references(obj))

    def diff(self, live: Any, desired: Any) -> DiffResult:
        raise NotImplementedError()

    async def fetch(self, name: str, namespace: str = None) -> Any:
        return await self.store.get(self.KIND, name, namespace or self.namespace)

    async def ensure(self, desired: Any, namespace: str = None) -> str:
        """Create ``desired`` or bring the live object in line with it.

        Returns:
            One of ``created``, ``updated`` or ``unchanged``.
        """
        namespace = namespace or self.namespace
        name = object_name(desired)
        self.set_owner(desired, namespace)
        try:
            await self.store.create(self.KIND, desired, namespace)
        except ApiException as ex:
            if not already_exists_error(ex):
                raise
        else:
            self.logger.info(f"Created {self.KIND}: {name}.")
            return CREATED

        live = await self.store.get(self.KIND, name, namespace)
        if live is None:
            raise ResourceMissingError(self.KIND, name, namespace)

        merged, changed = self.diff(live, desired)
        if self.adopt_orphan(merged, namespace):
            changed = True
        if not changed:
            self.logger.debug(f"No change found for {self.KIND}: {name}, skip updating.")
            return UNCHANGED

        self.logger.info(f"Found change for {self.KIND}: {name}, trying to update it.")
        await self.store.replace(self.KIND, merged, namespace)
        return UPDATED

    async def ensure_once(self, desired: Any, namespace: str = None) -> str:
        """Create ``desired``; an existing object is accepted as is."""
        namespace = namespace or self.namespace
        self.set_owner(desired, namespace)
        try:
            await self.store.create(self.KIND, desired, namespace)
        except ApiException as ex:
            if already_exists_error(ex):
                return UNCHANGED
            raise
        self.logger.info(f"Created {self.KIND}: {object_name(desired)}.")
        return CREATED

    def prepare_metadata(self, name: str, namespace: str = None) -> Dict[str, Any]:
        return {
            "name": name,
            "namespace": namespace or self.namespace,
            "labels": self.default_labels().as_dict(),
        }
