import asyncio
from collections import deque
from enum import Enum

FINISHED_HISTORY = 100


class MessageState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    FAILED = "failed"


class DeliveryQueue:
    """FIFO of inbound messages with at most one consumer at a time.

    `draining` is checked and set with no await in between, so on the event
    loop it cannot race with the poll loop pushing new messages.

    `states` holds only messages that are queued or processing; finished ones
    move to `finished`, which keeps the most recent `history` outcomes.
    """

    def __init__(self, handler, history=FINISHED_HISTORY):
        self._handler = handler
        self._items = deque()
        self._task = None
        self.draining = False
        self.current = None
        self.states = {}
        self.finished = deque(maxlen=history)

    def __len__(self):
        return len(self._items)

    def push(self, message):
        self._items.append(message)
        self.states[message.id] = MessageState.QUEUED

    def kick(self):
        """Start a consumer task unless one is already draining."""
        if self.draining or not self._items:
            return self._task
        self.draining = True
        self._task = asyncio.create_task(self._drain())
        return self._task

    async def _drain(self):
        try:
            while self._items:
                message = self._items.popleft()
                self.current = message
                self.states[message.id] = MessageState.PROCESSING
                try:
                    result = await self._handler(message)
                    self.finished.append((message.id, result or MessageState.DELIVERED))
                except Exception as e:
                    print(f"[Queue] Error processing message {message.id}: {e}")
                    self.finished.append((message.id, MessageState.FAILED))
                finally:
                    self.states.pop(message.id, None)
                    self.current = None
        finally:
            self.draining = False

    def clear(self):
        """Drop queued messages that have not started processing."""
        dropped = len(self._items)
        for message in self._items:
            self.states.pop(message.id, None)
        self._items.clear()
        return dropped

    async def join(self, cancel=False):
        """Wait for (or cancel) the running consumer."""
        task = self._task
        if task is None or task.done():
            return
        if cancel:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
