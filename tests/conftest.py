import pytest

from bridge.ai.base import BaseAI
from bridge.core.registry import SessionRegistry
from bridge.integrations.imessage_reader import InboundMessage
from bridge.integrations.imessage_sender import IMessageSender
from bridge.memory.checkpoint import Checkpoint


class FakeAI(BaseAI):
    """Driver with the browser replaced by in-memory state."""

    response_delay = 0

    def __init__(self, name="fake", reply="hello back", logged_in=True, confirm_tier=True):
        super().__init__(name, url=f"https://{name}.test", stabilization_time=0)
        self.reply = reply
        self.logged_in = logged_in
        self.confirm_tier = confirm_tier
        self.submitted = []
        self.uploaded = []
        self.tier_requests = []
        self.new_conversations = 0
        self.cleanups = 0
        self.submit_error = None

    async def initialize(self):
        self.page = object()
        self.initialized = True

    async def cleanup(self):
        self.cleanups += 1
        self.page = None
        self.initialized = False

    async def is_logged_in(self):
        if callable(self.logged_in):
            return self.logged_in()
        return self.logged_in

    async def switch_tier(self, tier):
        self.tier_requests.append(tier)
        return self.confirm_tier

    async def attach_files(self, paths):
        self.uploaded.append(paths)

    async def submit_message(self, message):
        self.require_page()
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(message)

    async def read_last_response(self):
        return self.reply

    async def count_responses(self):
        return len(self.submitted)

    async def start_new_conversation(self):
        self.require_page()
        self.new_conversations += 1


class RecordingSender(IMessageSender):
    """Sender that records outgoing texts instead of running osascript."""

    def __init__(self, **kwargs):
        super().__init__("+15551234567", **kwargs)
        self.outbox = []

    def send(self, text):
        self._sent[text.strip()] = self._clock()
        self.outbox.append(text)
        return True


class FakeReader:
    def __init__(self, batches=(), high_water_mark=0):
        self.batches = list(batches)
        self.high_water_mark = high_water_mark
        self.calls = []

    def list_new_messages(self, since_id=0):
        self.calls.append(since_id)
        return self.batches.pop(0) if self.batches else []

    def find_high_water_mark(self):
        return self.high_water_mark


def message(rowid, text=None, attachments=(), is_from_me=False):
    return InboundMessage(id=rowid, text=text, attachments=tuple(attachments), is_from_me=is_from_me)


@pytest.fixture
def fake_ais():
    return {
        "gemini": FakeAI("gemini", reply="gemini says hi"),
        "chatgpt": FakeAI("chatgpt", reply="chatgpt says hi"),
        "grok": FakeAI("grok", reply="grok says hi"),
    }


@pytest.fixture
async def registry(fake_ais):
    registry = SessionRegistry(fake_ais)
    await registry.initialize_all()
    return registry


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def checkpoint(tmp_path):
    return Checkpoint(tmp_path / "state" / "last-message-id.txt")
