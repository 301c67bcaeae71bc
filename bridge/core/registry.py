import asyncio
from dataclasses import dataclass
from datetime import datetime

from bridge.ai.errors import InitializationError, TargetUnavailable
from bridge.core.router import ModelTier


@dataclass
class SessionState:
    """Everything the orchestrator tracks about one AI session."""

    name: str
    driver: object
    available: bool = True
    tier: ModelTier = ModelTier.FAST
    preamble_sent: bool = False
    awaiting_login: bool = False
    last_used_at: datetime = None

    @property
    def initialized(self):
        return self.driver.initialized


class SessionRegistry:
    def __init__(self, drivers):
        self._sessions = {name: SessionState(name, driver) for name, driver in drivers.items()}
        self.last_used = None

    @property
    def names(self):
        return list(self._sessions)

    def available(self):
        return [name for name, state in self._sessions.items() if state.available]

    def states(self):
        return list(self._sessions.values())

    def get(self, name):
        """Return the session for `name`; never substitutes another AI."""
        state = self._sessions.get(name)
        if state is None or not state.available:
            raise TargetUnavailable(name, self.available())
        return state

    def mark_unavailable(self, name):
        self._sessions[name].available = False

    def record_tier_change(self, name, tier):
        self._sessions[name].tier = tier

    def record_conversation_reset(self, name):
        self._sessions[name].preamble_sent = False

    def record_exchange(self, name):
        state = self._sessions[name]
        state.preamble_sent = True
        state.last_used_at = datetime.now()
        self.last_used = name

    def needs_preamble(self, name, start_new_chat=False):
        """Preamble goes out on a session's first message, after a reset, and when switching AIs."""
        state = self._sessions[name]
        switched = self.last_used is not None and self.last_used != name
        return not state.preamble_sent or start_new_chat or switched

    # ─────────────────────────────────────────────
    # Fan-out over all sessions
    # ─────────────────────────────────────────────
    async def initialize_all(self):
        states = self.states()
        results = await asyncio.gather(
            *(state.driver.initialize() for state in states), return_exceptions=True
        )
        for state, result in zip(states, results):
            if isinstance(result, InitializationError):
                print(f"[{state.name}] {result}")
                state.available = False
            elif isinstance(result, BaseException):
                raise result

    async def reset_all(self):
        states = [state for state in self.states() if state.available]
        results = await asyncio.gather(
            *(state.driver.start_new_conversation() for state in states), return_exceptions=True
        )
        for state, result in zip(states, results):
            if isinstance(result, Exception):
                print(f"[{state.name}] Reset failed: {result}")
        for state in self.states():
            state.preamble_sent = False

    async def cleanup_all(self):
        states = self.states()
        results = await asyncio.gather(
            *(state.driver.cleanup() for state in states), return_exceptions=True
        )
        for state, result in zip(states, results):
            if isinstance(result, Exception):
                print(f"[{state.name}] Cleanup failed: {result}")
