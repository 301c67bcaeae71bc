import asyncio

from bridge.core.queue import DeliveryQueue, MessageState
from conftest import message


class GatedHandler:
    """Handler that blocks on message 4 until released, recording order and concurrency."""

    def __init__(self, gate_id=None):
        self.order = []
        self.active = 0
        self.max_active = 0
        self.gate = asyncio.Event()
        self.gate_id = gate_id
        self.started = asyncio.Event()

    async def __call__(self, msg):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.order.append(msg.id)
            if msg.id == self.gate_id:
                self.started.set()
                await self.gate.wait()
            await asyncio.sleep(0)
        finally:
            self.active -= 1


async def test_fifo_with_single_consumer_while_busy():
    handler = GatedHandler(gate_id=4)
    queue = DeliveryQueue(handler)

    queue.push(message(4, "first"))
    task = queue.kick()
    await handler.started.wait()
    assert queue.draining
    assert queue.current.id == 4
    assert queue.states[4] == MessageState.PROCESSING

    queue.push(message(5, "msg 5"))
    assert queue.states[5] == MessageState.QUEUED
    assert queue.kick() is task

    for rowid in (6, 7):
        queue.push(message(rowid, f"msg {rowid}"))
        assert queue.kick() is task  # no second consumer

    handler.gate.set()
    await task

    assert handler.order == [4, 5, 6, 7]
    assert handler.max_active == 1
    assert not queue.draining
    assert len(queue) == 0


async def test_kick_on_empty_queue_starts_nothing():
    queue = DeliveryQueue(GatedHandler())
    assert queue.kick() is None
    assert not queue.draining


async def test_handler_error_does_not_stop_draining():
    seen = []

    async def handler(msg):
        seen.append(msg.id)
        if msg.id == 1:
            raise RuntimeError("boom")

    queue = DeliveryQueue(handler)
    queue.push(message(1, "bad"))
    queue.push(message(2, "good"))
    await queue.kick()

    assert seen == [1, 2]
    assert not queue.draining
    assert queue.states == {}
    assert list(queue.finished) == [(1, MessageState.FAILED), (2, MessageState.DELIVERED)]


async def test_finished_history_is_bounded():
    async def handler(msg):
        return MessageState.DELIVERED

    queue = DeliveryQueue(handler, history=5)
    for rowid in range(1, 1001):
        queue.push(message(rowid, f"msg {rowid}"))
    await queue.kick()

    assert queue.states == {}
    assert [rowid for rowid, _ in queue.finished] == [996, 997, 998, 999, 1000]


async def test_new_consumer_after_previous_finished():
    handler = GatedHandler()
    queue = DeliveryQueue(handler)

    queue.push(message(1, "a"))
    first = queue.kick()
    await first
    queue.push(message(2, "b"))
    second = queue.kick()
    await second

    assert second is not first
    assert handler.order == [1, 2]


async def test_join_cancel_interrupts_current_message():
    handler = GatedHandler(gate_id=1)
    queue = DeliveryQueue(handler)
    queue.push(message(1, "stuck"))
    queue.push(message(2, "never"))
    queue.kick()
    await handler.started.wait()

    assert queue.clear() == 1
    await queue.join(cancel=True)

    assert handler.order == [1]
    assert not queue.draining
    assert queue.current is None
    assert queue.states == {}
