import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional
from management_ingress.utils.errors import DependencyTimeoutError

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class ReadinessWaiter:
    """Polls the object store until an object written by another controller shows up.

    The clock and sleep functions are injectable so tests can drive the loop
    without real delays.
    """

    def __init__(
        self,
        store,
        timeout: float = 600.0,
        interval: float = 2.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        logger: logging.Logger = None,
    ):
        self.store = store
        self.timeout = timeout
        self.interval = interval
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    async def wait_for(
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        timeout: float = None,
        ready: Callable[[Any], bool] = None,
    ) -> Any:
        """Return the object once it exists (and ``ready(obj)`` holds, if given).

        Raises:
            DependencyTimeoutError: The deadline passed before the object appeared.
        """
        timeout = self.timeout if timeout is None else timeout
        deadline = self.clock() + timeout
        while True:
            obj = await self.store.get(kind, name, namespace)
            if obj is not None and (ready is None or ready(obj)):
                return obj
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise DependencyTimeoutError(kind, name, namespace, timeout)
            self.logger.debug(f"Waiting for {kind} {namespace}/{name} to be available")
            await self.sleep(min(self.interval, remaining))
