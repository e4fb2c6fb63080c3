"""Per-operation deadlines."""

import asyncio
import time
from typing import Awaitable, TypeVar

from core.errors import OperationTimeoutError

T = TypeVar("T")


class Deadline:
    """A monotonic time budget shared by the steps of one operation.

    ``None`` means no deadline.
    """

    def __init__(self, timeout: float | None):
        self.expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def ensure_time_left(self, stage: str) -> None:
        """Raise before a step that must not start once time is up."""
        if self.expired:
            raise OperationTimeoutError(stage)

    async def run(self, awaitable: Awaitable[T], stage: str) -> T:
        """
        Await ``awaitable`` within the remaining budget.

        Args:
            awaitable: Step to run
            stage: Name reported if the budget runs out

        Raises:
            OperationTimeoutError: If the budget is exhausted
        """
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationTimeoutError(stage)
        try:
            return await asyncio.wait_for(awaitable, remaining)
        except asyncio.TimeoutError as exc:
            raise OperationTimeoutError(stage) from exc
