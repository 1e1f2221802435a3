"""
Progress Poller — a caller-owned ticker that re-fetches campaign progress.

The orchestrator never polls; whoever wants live progress creates a poller, starts it,
and cancels it when done. It also stops on its own once the campaign is completed.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed",)


class ProgressPoller:
    def __init__(
        self,
        fetch: Callable[[], Awaitable[dict]],
        interval: float = 2.0,
        on_update: Optional[Callable[[dict], Any]] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch
        self.interval = interval
        self._on_update = on_update
        self._task: Optional[asyncio.Task] = None
        self.last: Optional[dict] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ProgressPoller":
        if self.running:
            raise RuntimeError("Poller already started")
        self._task = asyncio.create_task(self._run())
        return self

    async def _run(self):
        while True:
            snapshot = await self._fetch()
            self.last = snapshot
            if self._on_update:
                result = self._on_update(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            if snapshot.get("status") in TERMINAL_STATUSES:
                logger.info(f"Polling stopped: status {snapshot.get('status')}")
                return
            await asyncio.sleep(self.interval)

    async def cancel(self):
        """Stop polling and wait for the ticker to exit."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def wait(self):
        """Wait for the ticker to stop on its own."""
        if self._task is not None:
            await self._task
