"""Cooperative cancellation for a run."""

import asyncio
from typing import List, Optional


class CancellationToken:
    """
    Shared by every step task of a run.

    Setting it stops dispatch of new steps; in-flight steps are cancelled
    by the executor and check the token before every provider attempt.
    The token holds no event loop state, so one engine can reuse it across
    several ``asyncio.run`` calls.
    """

    def __init__(self):
        self._cancelled = False
        self._waiters: List[asyncio.Future] = []
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def wait(self) -> None:
        """Return once the token is cancelled."""
        if self._cancelled:
            return
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            self._waiters.remove(waiter)
