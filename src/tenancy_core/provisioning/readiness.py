"""Deadline-bounded polling for cluster readiness."""

import asyncio
import time
from collections.abc import Awaitable, Callable

from tenancy_core.observability import emit_timer, get_logger
from tenancy_core.protocols.cluster import ClusterClient
from tenancy_core.utils.cancellation import CancellationToken

logger = get_logger(__name__)

Predicate = Callable[[], Awaitable[bool]]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_POLL_INTERVAL = 5.0

# Label selectors of the pods a tenant chart creates
DATABASE_SELECTOR = "cnpg.io/cluster"
API_SELECTOR = "app.kubernetes.io/component=api"
WEB_SELECTOR = "app.kubernetes.io/component=web"


class ReadinessPoller:
    """Polls a predicate at a fixed interval until it holds or a deadline passes.

    The clock and sleep functions are injectable so tests can drive the
    poller with a simulated clock. A predicate that raises is logged and
    counted as not ready; cancellation of the awaiting task propagates.
    """

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError("Poll interval must be positive")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep

    async def wait_until(
        self,
        predicate: Predicate,
        timeout: float,
        description: str = "condition",
        cancellation: CancellationToken | None = None,
    ) -> bool:
        """Wait for ``predicate`` to return True.

        Args:
            predicate: Async check of cluster state
            timeout: Seconds until the hard deadline
            description: Label used in log lines
            cancellation: Optional token checked before each attempt

        Returns:
            True once the predicate holds, False when the deadline passes

        Raises:
            OperationCancelledError: If the token is cancelled
        """
        started = self._clock()
        deadline = started + timeout
        attempts = 0

        while True:
            if cancellation is not None:
                cancellation.raise_if_cancelled()

            attempts += 1
            try:
                if await predicate():
                    logger.info(
                        "Readiness condition met",
                        context={"condition": description, "attempts": attempts},
                    )
                    emit_timer("readiness.wait", (self._clock() - started) * 1000)
                    return True
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    "Readiness check failed, will retry",
                    context={"condition": description, "attempt": attempts},
                    error=e,
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "Readiness deadline exceeded",
                    context={"condition": description, "timeout_seconds": timeout, "attempts": attempts},
                )
                return False
            await self._sleep(min(self.interval, remaining))


def pods_ready(cluster: ClusterClient, namespace: str, label_selector: str) -> Predicate:
    """Predicate: at least one pod matches and every matching pod is ready."""

    async def check() -> bool:
        pods = await cluster.list_pods(namespace, label_selector)
        return bool(pods) and all(pod.is_ready for pod in pods)

    return check
