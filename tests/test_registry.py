import pytest

from bridge.ai.errors import InitializationError, TargetUnavailable
from bridge.core.registry import SessionRegistry
from bridge.core.router import ModelTier
from conftest import FakeAI


class BrokenAI(FakeAI):
    async def initialize(self):
        raise InitializationError("browser unreachable")


class TestLookup:
    async def test_get_available_session(self, registry):
        state = registry.get("chatgpt")
        assert state.name == "chatgpt"
        assert state.initialized

    async def test_unavailable_target_never_falls_back(self, registry):
        registry.mark_unavailable("grok")
        with pytest.raises(TargetUnavailable) as exc_info:
            registry.get("grok")
        assert str(exc_info.value) == "GROK is not configured. Available: gemini, chatgpt"
        assert registry.available() == ["gemini", "chatgpt"]

    async def test_unknown_target(self, registry):
        with pytest.raises(TargetUnavailable):
            registry.get("claude")


class TestPreamble:
    async def test_first_message_needs_preamble(self, registry):
        assert registry.needs_preamble("gemini")

    async def test_sent_once_per_conversation(self, registry):
        registry.record_exchange("gemini")
        assert not registry.needs_preamble("gemini")
        assert registry.needs_preamble("gemini", start_new_chat=True)

    async def test_switching_ai_needs_preamble_again(self, registry):
        registry.record_exchange("gemini")
        registry.record_exchange("chatgpt")
        assert registry.needs_preamble("gemini")
        assert not registry.needs_preamble("chatgpt")

    async def test_conversation_reset_clears_flag(self, registry):
        registry.record_exchange("grok")
        registry.record_conversation_reset("grok")
        assert registry.needs_preamble("grok")


async def test_record_exchange_marks_last_used(registry):
    registry.record_exchange("chatgpt")
    state = registry.get("chatgpt")
    assert registry.last_used == "chatgpt"
    assert state.preamble_sent
    assert state.last_used_at is not None


async def test_record_tier_change(registry):
    registry.record_tier_change("gemini", ModelTier.MAX)
    assert registry.get("gemini").tier == ModelTier.MAX


async def test_initialize_failure_only_disables_that_ai():
    ais = {"gemini": FakeAI("gemini"), "grok": BrokenAI("grok")}
    registry = SessionRegistry(ais)

    await registry.initialize_all()

    assert registry.available() == ["gemini"]
    assert ais["gemini"].initialized


async def test_reset_all_skips_unavailable_and_clears_preambles(registry, fake_ais):
    registry.record_exchange("gemini")
    registry.record_exchange("grok")
    registry.mark_unavailable("grok")

    await registry.reset_all()

    assert fake_ais["gemini"].new_conversations == 1
    assert fake_ais["chatgpt"].new_conversations == 1
    assert fake_ais["grok"].new_conversations == 0
    assert all(not state.preamble_sent for state in registry.states())


async def test_cleanup_all_closes_every_driver(registry, fake_ais):
    registry.mark_unavailable("chatgpt")
    await registry.cleanup_all()
    await registry.cleanup_all()
    assert [ai.cleanups for ai in fake_ais.values()] == [2, 2, 2]
    assert not any(ai.initialized for ai in fake_ais.values())
