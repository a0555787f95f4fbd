"""
Live count of pending admin requests.

Every change event on `admin_requests` triggers a fresh head-count query for
`status = pending`. The counter never adjusts itself arithmetically, so a
missed or reordered event cannot drift the value. Queries may overlap; an
answer older than one already applied is dropped. A failed re-query keeps the
last known count.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Set
import asyncio
import logging

from dazzle_admin.gateway.ports import BackendError, BackendGatewayProtocol

from .domain import REQUESTS_TABLE, RequestStatus


logger = logging.getLogger("dazzle.approvals")


class PendingRequestCounter:
    def __init__(self, gateway: BackendGatewayProtocol) -> None:
        self._gateway = gateway
        self._count: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], Awaitable[None]]] = None
        self._tasks: Set[asyncio.Task] = set()
        # Issue order of count queries; only the newest answer is kept.
        self._issued = 0
        self._applied = 0

    @property
    def value(self) -> int:
        return self._count or 0

    @property
    def known(self) -> bool:
        return self._count is not None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._loop = asyncio.get_running_loop()
        await self.refresh()
        try:
            self._unsubscribe = await self._gateway.subscribe(REQUESTS_TABLE, self._on_change)
        except BackendError as exc:
            logger.warning("Pending counter subscription failed: %s", exc.code)

    async def stop(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            await unsubscribe()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def refresh(self) -> int:
        self._issued += 1
        seq = self._issued
        try:
            count = await self._gateway.count(REQUESTS_TABLE, eq={"status": RequestStatus.PENDING.value})
        except BackendError as exc:
            logger.warning("Pending count refresh failed: %s", exc.code)
            return self.value
        if seq > self._applied:
            self._applied = seq
            self._count = count
        else:
            logger.debug("Dropped stale pending count (query %d)", seq)
        return self.value

    async def drain(self) -> None:
        """Wait for refreshes triggered by change events."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_change(self, payload: Dict[str, Any]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._schedule_refresh()
        else:
            loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        task = asyncio.ensure_future(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = ["PendingRequestCounter"]
