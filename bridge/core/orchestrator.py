import time
import uuid
import asyncio

from bridge import config
from bridge.ai.errors import AIError, TargetUnavailable
from bridge.core.prompts import EMPTY_MESSAGE_REPLY, IMAGE_ONLY_PROMPT
from bridge.core.queue import DeliveryQueue, MessageState
from bridge.core.router import Command, ModelTier, parse_command, parse_message


class Orchestrator:
    """Polls chat.db, queues new messages and relays each one through its AI session.

    Only the queue's consumer ever touches a session driver, so exactly one
    exchange is in flight at a time across all AIs.
    """

    def __init__(
        self,
        registry,
        reader,
        sender,
        checkpoint,
        *,
        default_ai=config.DEFAULT_AI,
        message_prefix="",
        response_timeout=config.RESPONSE_TIMEOUT,
        poll_interval=config.POLL_INTERVAL,
        login_poll_interval=config.LOGIN_POLL_INTERVAL,
        cancel_on_shutdown=config.CANCEL_ON_SHUTDOWN,
    ):
        self.registry = registry
        self.reader = reader
        self.sender = sender
        self.checkpoint = checkpoint
        self.default_ai = default_ai
        self.message_prefix = message_prefix
        self.response_timeout = response_timeout
        self.poll_interval = poll_interval
        self.login_poll_interval = login_poll_interval
        self.cancel_on_shutdown = cancel_on_shutdown

        self.queue = DeliveryQueue(self.process_message)
        self.last_message_id = 0
        self._stopping = asyncio.Event()

    # ─────────────────────────────────────────────
    # Message processing (queue consumer)
    # ─────────────────────────────────────────────
    async def process_message(self, msg):
        text = msg.text or ""
        images = list(msg.attachments)
        trace_id = str(uuid.uuid4())[:8]

        image_note = f" +{len(images)} image(s)" if images else ""
        print(f"\n[{trace_id}] [Incoming] \"{text[:40] or '(image)'}...\"{image_note}")

        if text and not images:
            command = parse_command(text)
            if command is not None:
                await self.handle_command(command)
                return MessageState.DELIVERED

        parsed = parse_message(text, targets=self.registry.names, default=self.default_ai)
        if not parsed.message and not images:
            self.sender.send(EMPTY_MESSAGE_REPLY)
            return MessageState.DELIVERED

        try:
            state = self.registry.get(parsed.ai)
        except TargetUnavailable as e:
            self.sender.send(str(e))
            return MessageState.DELIVERED

        name = state.name
        driver = state.driver
        body = parsed.message or IMAGE_ONLY_PROMPT
        with_prefix = bool(self.message_prefix) and self.registry.needs_preamble(
            name, parsed.start_new_chat
        )
        final_message = self.message_prefix + body if with_prefix else body

        tier_label = f" [{parsed.tier.value}]" if parsed.tier != ModelTier.FAST else ""
        print(
            f"[{trace_id}] [Router] {name.upper()}{tier_label}"
            f"{' (new chat)' if parsed.start_new_chat else ''}"
            f"{' (with prefix)' if with_prefix else ''}"
        )

        t_start = time.time()
        try:
            if not await driver.is_logged_in():
                print(f"[{name}] Session expired. Waiting for re-login...")
                self.sender.send(f"[{name.upper()}] Session expired. Please log in again.")
                await self.wait_for_login(state)

            if parsed.start_new_chat:
                print(f"[{name}] Starting new conversation...")
                await driver.start_new_conversation()
                self.registry.record_conversation_reset(name)

            response = await driver.exchange(final_message, self.response_timeout, images, parsed.tier)
        except AIError as e:
            print(f"[{trace_id}] [{name}] Error ({e.code}): {e}")
            self.sender.send_error(e.code)
            return MessageState.FAILED
        except Exception as e:
            print(f"[{trace_id}] [{name}] Unexpected error: {e}")
            self.sender.send_error()
            return MessageState.FAILED
        finally:
            self.registry.record_tier_change(name, driver.current_tier)

        self.registry.record_exchange(name)
        ai_ms = int((time.time() - t_start) * 1000)
        print(f"[{trace_id}] {name}:{ai_ms}ms | User: {body[:50]}... | {name}: {response[:80]}...")
        self.sender.send(response)
        return MessageState.DELIVERED

    async def handle_command(self, command):
        if command == Command.RESET:
            print("[Command] Resetting all conversations...")
            await self.registry.reset_all()
            self.sender.send("All conversations have been reset.")
        elif command == Command.STATUS:
            active = ", ".join(self.registry.available())
            self.sender.send(f"Active AIs: {active}. Use . for thinking, .. for max.")

    async def wait_for_login(self, state):
        """Block until the session's login probe succeeds. No timeout: a human has to act."""
        print(f"[{state.name}] Please log in to {state.driver.url} in the browser window")
        state.awaiting_login = True
        try:
            while not await state.driver.is_logged_in():
                await asyncio.sleep(self.login_poll_interval)
        finally:
            state.awaiting_login = False
        print(f"[{state.name}] Login detected!")

    # ─────────────────────────────────────────────
    # Polling (producer)
    # ─────────────────────────────────────────────
    def start(self):
        self.last_message_id = self.checkpoint.load()
        if self.last_message_id == 0:
            self.last_message_id = self.reader.find_high_water_mark()
            self.checkpoint.save(self.last_message_id)
        print(f"[Poll] Starting from message ID: {self.last_message_id}")

    def poll_once(self):
        """Read one batch from chat.db, checkpoint it, queue what is not ours. Returns queued count."""
        batch = self.reader.list_new_messages(self.last_message_id)
        if not batch:
            return 0

        self.last_message_id = batch[-1].id
        self.checkpoint.save(self.last_message_id)

        queued = 0
        for msg in batch:
            if msg.is_from_me or self.sender.was_sent_by_us(msg.text):
                continue
            self.queue.push(msg)
            queued += 1

        self.queue.kick()
        return queued

    async def run(self):
        self.start()
        print("[Poll] Listening for new messages...\n")
        while not self._stopping.is_set():
            try:
                self.poll_once()
            except Exception as e:
                print(f"[Poll] Error: {e}")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    def stop(self):
        self._stopping.set()

    async def shutdown(self):
        """Stop polling, settle the in-flight message, then close every browser."""
        print("\n[Shutdown] Cleaning up...")
        self.stop()
        dropped = self.queue.clear()
        if dropped:
            print(f"[Shutdown] Dropped {dropped} queued message(s)")

        waiting_for_login = any(state.awaiting_login for state in self.registry.states())
        await self.queue.join(cancel=self.cancel_on_shutdown or waiting_for_login)
        await self.registry.cleanup_all()
        print("[Shutdown] Done.")
