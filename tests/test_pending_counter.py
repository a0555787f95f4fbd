"""Live pending count: re-query on every change event, keep last value on error."""
from __future__ import annotations

import asyncio

import pytest

from dazzle_admin.approvals import PendingRequestCounter

from helpers import seed_request


pytestmark = pytest.mark.anyio("asyncio")


def _pending_row(user_id: str) -> dict:
    return {"user_id": user_id, "full_name": "N", "email": f"{user_id}@example.com", "status": "pending"}


@pytest.mark.anyio
async def test_start_counts_pending_rows(backend):
    seed_request(backend, full_name="A", email="a@example.com")
    seed_request(backend, full_name="B", email="b@example.com", status="approved")
    counter = PendingRequestCounter(backend)
    assert counter.known is False
    assert counter.value == 0

    await counter.start()

    assert counter.known is True
    assert counter.value == 1
    assert counter.running is True


@pytest.mark.anyio
async def test_change_events_trigger_requery(backend):
    counter = PendingRequestCounter(backend)
    await counter.start()
    assert counter.value == 0

    await backend.insert("admin_requests", _pending_row("u1"))
    await backend.insert("admin_requests", _pending_row("u2"))
    await counter.drain()
    assert counter.value == 2

    # An update flips one row out of pending; the count follows the data.
    backend._update("admin_requests", {"status": "rejected"}, eq={"user_id": "u1"})
    await counter.drain()
    assert counter.value == 1


@pytest.mark.anyio
async def test_failed_requery_keeps_last_value(backend, caplog):
    counter = PendingRequestCounter(backend)
    await backend.insert("admin_requests", _pending_row("u1"))
    await counter.start()
    assert counter.value == 1

    backend.fail("count", "admin_requests")
    await backend.insert("admin_requests", _pending_row("u2"))
    await counter.drain()
    assert counter.value == 1
    assert "Pending count refresh failed" in caplog.text

    await backend.insert("admin_requests", _pending_row("u3"))
    await counter.drain()
    assert counter.value == 3


@pytest.mark.anyio
async def test_stop_unsubscribes(backend):
    counter = PendingRequestCounter(backend)
    await counter.start()
    await counter.stop()
    assert counter.running is False

    await backend.insert("admin_requests", _pending_row("u1"))
    await counter.drain()
    assert counter.value == 0


@pytest.mark.anyio
async def test_subscription_failure_still_counts(backend, caplog):
    seed_request(backend, full_name="A", email="a@example.com")
    backend.fail("subscribe", "admin_requests")
    counter = PendingRequestCounter(backend)

    await counter.start()

    assert counter.value == 1
    assert counter.running is False
    assert "subscription failed" in caplog.text


@pytest.mark.anyio
async def test_start_is_idempotent(backend):
    counter = PendingRequestCounter(backend)
    await counter.start()
    await counter.start()
    assert len(backend._listeners["admin_requests"]) == 1


class _HeldCounts:
    """Gateway whose count queries are answered by the test, in any order."""

    def __init__(self):
        self.replies = []

    async def count(self, table, *, eq=None):
        reply = asyncio.get_running_loop().create_future()
        self.replies.append(reply)
        return await reply


@pytest.mark.anyio
async def test_older_count_answer_does_not_overwrite_newer():
    gateway = _HeldCounts()
    counter = PendingRequestCounter(gateway)
    first = asyncio.ensure_future(counter.refresh())
    second = asyncio.ensure_future(counter.refresh())
    while len(gateway.replies) < 2:
        await asyncio.sleep(0)

    gateway.replies[1].set_result(5)
    assert await second == 5
    gateway.replies[0].set_result(3)
    assert await first == 5
    assert counter.value == 5
