"""Cooperative cancellation."""

import asyncio

from tenancy_core.exceptions import OperationCancelledError


class CancellationToken:
    """Flag threaded through long-running operations.

    Cancelling never interrupts an in-flight collaborator call; operations
    check the token between steps and stop there.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Operation cancelled") -> None:
        """Request cancellation."""
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation cancelled")
