"""Unit tests for the kopf reconcile handler."""

import asyncio
import kopf
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch
from kubernetes_asyncio.client import ApiException
from management_ingress.handlers.managementingress import (
    lock_key,
    on_delete,
    reconcile,
    reconciliation_locks,
)
from management_ingress.resources import ReconcileResult
from management_ingress.utils.errors import SyncError
from conftest import CR_NAME, NAMESPACE, owner_body

SYNCHRONIZE = "management_ingress.handlers.managementingress.ManagementIngress.synchronize"


@pytest.fixture(autouse=True)
def clear_locks():
    reconciliation_locks.clear()
    yield
    reconciliation_locks.clear()


@pytest.fixture
def memo(settings):
    return SimpleNamespace(conf=settings, api_client=Mock())


async def run(memo, logger, spec=None, meta=None):
    body = owner_body()
    return await reconcile(
        body, spec or {}, CR_NAME, NAMESPACE, meta or body["metadata"], memo, logger
    )


class TestReconcileHandler:
    @pytest.mark.asyncio
    async def test_success(self, memo, logger):
        with patch(SYNCHRONIZE, AsyncMock(return_value=ReconcileResult(host="h"))) as sync:
            await run(memo, logger)
        sync.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unmanaged_is_skipped(self, memo, logger):
        with patch(SYNCHRONIZE, AsyncMock()) as sync:
            await run(memo, logger, spec={"managementState": "Unmanaged"})
        sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deleting_is_skipped(self, memo, logger):
        meta = {"name": CR_NAME, "deletionTimestamp": "2024-01-01T00:00:00Z"}
        with patch(SYNCHRONIZE, AsyncMock()) as sync:
            await run(memo, logger, meta=meta)
        sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requeue_becomes_temporary_error(self, memo, logger):
        with patch(SYNCHRONIZE, AsyncMock(return_value=ReconcileResult(requeue=True))):
            with pytest.raises(kopf.TemporaryError) as excinfo:
                await run(memo, logger)
        assert excinfo.value.delay == memo.conf.requeue_delay_seconds

    @pytest.mark.asyncio
    async def test_sync_error_is_retried(self, memo, logger):
        error = SyncError("route", CR_NAME, RuntimeError("boom"))
        with patch(SYNCHRONIZE, AsyncMock(side_effect=error)):
            with pytest.raises(kopf.TemporaryError):
                await run(memo, logger)

    @pytest.mark.asyncio
    async def test_forbidden_is_permanent(self, memo, logger):
        with patch(SYNCHRONIZE, AsyncMock(side_effect=ApiException(status=403, reason="Forbidden"))):
            with pytest.raises(kopf.PermanentError):
                await run(memo, logger)

    @pytest.mark.asyncio
    async def test_invalid_spec_is_permanent(self, memo, logger):
        with pytest.raises(kopf.PermanentError):
            await run(memo, logger, spec={"managementState": "Sometimes"})

    @pytest.mark.asyncio
    async def test_passes_for_one_resource_do_not_overlap(self, memo, logger):
        active = []
        overlaps = []

        async def synchronize():
            active.append(1)
            overlaps.append(len(active))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            active.pop()
            return ReconcileResult(host="h")

        with patch(SYNCHRONIZE, AsyncMock(side_effect=synchronize)) as sync:
            await asyncio.gather(run(memo, logger), run(memo, logger))

        assert sync.await_count == 2
        assert overlaps == [1, 1]

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, memo, logger):
        error = SyncError("route", CR_NAME, RuntimeError("boom"))
        with patch(SYNCHRONIZE, AsyncMock(side_effect=error)):
            with pytest.raises(kopf.TemporaryError):
                await run(memo, logger)
        assert not reconciliation_locks[lock_key(CR_NAME, NAMESPACE)].locked()

    @pytest.mark.asyncio
    async def test_delete_drops_lock(self, memo, logger):
        with patch(SYNCHRONIZE, AsyncMock(return_value=ReconcileResult(host="h"))):
            await run(memo, logger)
        assert lock_key(CR_NAME, NAMESPACE) in reconciliation_locks

        await on_delete(name=CR_NAME, namespace=NAMESPACE)

        assert lock_key(CR_NAME, NAMESPACE) not in reconciliation_locks
