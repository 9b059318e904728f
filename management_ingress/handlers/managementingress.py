import asyncio
import kopf
import logging
from collections import defaultdict
from typing import Dict
from marshmallow import ValidationError
from kubernetes_asyncio.client import ApiException
from management_ingress.resources import KubeObjectStore, ManagementIngress
from management_ingress.resources.store import CUSTOM_KINDS, MANAGEMENT_INGRESS
from management_ingress.types.models import ManagementIngressSpec
from management_ingress.types.schemas import ManagementIngressSpecSchema
from management_ingress.types.settings import RECONCILE_INTERVAL_SECONDS, Settings
from management_ingress.utils.errors import ManagementIngressError, convert_api_exception
from management_ingress.utils.helpers import to_plain

KIND = MANAGEMENT_INGRESS
GROUP, VERSION, PLURAL, _ = CUSTOM_KINDS[KIND]


class TimerLogFilter(logging.Filter):
    def filter(self, record):
        """Timer logs are noisy so we filter them out."""
        return "Timer " not in record.getMessage()


kopf_logger = logging.getLogger("kopf.objects")
kopf_logger.addFilter(TimerLogFilter())

# One pass at a time per ManagementIngress, shared by the change handlers and the timer
reconciliation_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def lock_key(name: str, namespace: str) -> str:
    return f"{namespace}/{name}"


async def reconcile(body, spec, name, namespace, meta, memo, logger):
    """Bring every object owned by a ManagementIngress in line with its spec."""
    if meta.get("deletionTimestamp"):
        logger.debug(f"{KIND} {namespace}/{name} is being deleted, skipping.")
        return

    try:
        spec_model: ManagementIngressSpec = ManagementIngressSpecSchema().load(
            to_plain(spec)
        )
    except ValidationError as ex:
        raise kopf.PermanentError(f"Invalid {KIND} spec: {ex.messages}") from ex

    if not spec_model.managed:
        logger.info(f"{KIND} {namespace}/{name} is Unmanaged, skipping.")
        return

    conf: Settings = getattr(memo, "conf", None) or Settings()
    async with reconciliation_locks[lock_key(name, namespace)]:
        ingress = ManagementIngress.from_spec(
            name,
            namespace,
            spec_model,
            body,
            KubeObjectStore(memo.api_client),
            settings=conf,
            logger=logger,
        )
        try:
            result = await ingress.synchronize()
        except ManagementIngressError as ex:
            raise kopf.TemporaryError(str(ex), delay=conf.requeue_delay_seconds) from ex
        except ApiException as ex:
            convert_api_exception(ex)

    if result.requeue:
        raise kopf.TemporaryError(
            f"{KIND} {namespace}/{name} needs another pass",
            delay=conf.requeue_delay_seconds,
        )
    logger.info(f"Reconciled {KIND} {namespace}/{name}, host {result.host}.")


@kopf.on.resume(GROUP, VERSION, PLURAL)
@kopf.on.create(GROUP, VERSION, PLURAL)
@kopf.on.update(GROUP, VERSION, PLURAL, field="spec")
async def reconciliation(body, spec, name, namespace, meta, memo, logger, **kwargs):
    """Reconcile ManagementIngress resources."""
    await reconcile(body, spec, name, namespace, meta, memo, logger)


@kopf.timer(
    GROUP, VERSION, PLURAL, interval=RECONCILE_INTERVAL_SECONDS, initial_delay=30.0
)
async def periodic_reconciliation(body, spec, name, namespace, meta, memo, logger, **kwargs):
    """Full sync, repairs drift of owned objects."""
    await reconcile(body, spec, name, namespace, meta, memo, logger)


@kopf.on.delete(GROUP, VERSION, PLURAL, optional=True)
async def on_delete(name, namespace, **kwargs):
    """Owned objects are garbage collected; only drop the per-resource lock."""
    reconciliation_locks.pop(lock_key(name, namespace), None)
