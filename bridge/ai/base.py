import random
import asyncio
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from playwright.async_api import async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from bridge import config
from bridge.ai.errors import (
    AIError,
    InitializationError,
    InputNotFound,
    NotInitialized,
    ResponseFailed,
)
from bridge.ai.stabilization import wait_for_stabilization
from bridge.core.router import ModelTier

BLOCKING_SELECTOR = '[role="dialog"], [role="alertdialog"], .modal, mat-dialog-container'
DISMISS_SELECTORS = [
    'button:has-text("Got it")',
    'button:has-text("OK")',
    'button:has-text("Close")',
    'button:has-text("Skip")',
    'button:has-text("No thanks")',
    'button:has-text("Continue")',
    'button[aria-label="Close"]',
    '[role="dialog"] button',
]


class BaseAI(ABC):
    """One persistent browser session with a hosted chat AI.

    Subclasses supply the page-specific pieces (selectors, login probe, tier
    switch, upload, response probe). The submit/observe protocol and the
    error policy live here so every AI behaves the same to the orchestrator.
    """

    #: Composer the message is typed into.
    input_selector = "textarea"
    #: Send control; Enter is pressed when it is missing or disabled.
    send_selector = 'button[aria-label*="Send"]'
    #: Seconds to wait after submitting before reading the response.
    response_delay = 1.0

    def __init__(
        self,
        name,
        url=None,
        profile_dir=None,
        *,
        executable_path=config.CHROME_PATH,
        headless=config.HEADLESS,
        init_timeout=config.INIT_TIMEOUT,
        input_timeout=config.INPUT_TIMEOUT,
        stabilization_time=config.STABILIZATION_TIME,
    ):
        self.name = name
        self.url = url or config.AI_URLS[name]
        self.profile_dir = Path(profile_dir or config.BROWSER_DATA_DIR / name)
        self.executable_path = executable_path
        self.headless = headless
        self.init_timeout = init_timeout
        self.input_timeout = input_timeout
        self.stabilization_time = stabilization_time

        self._playwright = None
        self.context = None
        self.page = None
        self.initialized = False
        self.current_tier = ModelTier.FAST

    # ─────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────
    async def initialize(self):
        if self.initialized:
            return

        print(f"[{self.name}] Launching browser...")
        timeout_ms = self.init_timeout * 1000
        try:
            self.profile_dir.mkdir(parents=True, exist_ok=True)
            self._playwright = await async_playwright().start()
            self.context = await self._playwright.chromium.launch_persistent_context(
                str(self.profile_dir),
                headless=self.headless,
                executable_path=self.executable_path,
                args=["--no-first-run", "--no-default-browser-check"],
                no_viewport=True,
                timeout=timeout_ms,
            )
            pages = self.context.pages
            self.page = pages[0] if pages else await self.context.new_page()
            await self.page.goto(self.url, wait_until="domcontentloaded", timeout=timeout_ms)
        except (PlaywrightError, OSError) as e:
            await self.cleanup()
            raise InitializationError(f"[{self.name}] Could not open {self.url}: {e}") from e

        await asyncio.sleep(2)
        await self.dismiss_popups()

        self.initialized = True
        print(f"[{self.name}] Browser initialized")

    async def cleanup(self):
        """Close the browser. Safe to call repeatedly or before initialize()."""
        if self.context is not None:
            try:
                await self.context.close()
            except PlaywrightError as e:
                print(f"[{self.name}] Error closing browser: {e}")
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                print(f"[{self.name}] Error stopping playwright: {e}")
        was_open = self.context is not None
        self._playwright = None
        self.context = None
        self.page = None
        self.initialized = False
        if was_open:
            print(f"[{self.name}] Browser closed")

    def require_page(self):
        if self.page is None:
            raise NotInitialized(f"[{self.name}] Browser not initialized")
        return self.page

    # ─────────────────────────────────────────────
    # Contract
    # ─────────────────────────────────────────────
    @abstractmethod
    async def is_logged_in(self):
        """Best-effort probe; must not raise."""

    @abstractmethod
    async def switch_tier(self, tier):
        """Drive the page's model picker. Return True once the switch is confirmed."""

    @abstractmethod
    async def attach_files(self, paths):
        """Put the files into the composer."""

    @abstractmethod
    async def read_last_response(self):
        """Current text of the newest assistant reply, '' when there is none."""

    async def count_responses(self):
        """Number of assistant replies on the page, or None when the page can't tell."""
        return None

    async def is_generating(self):
        """True while the page shows a reply is still being written."""
        return False

    async def start_new_conversation(self):
        page = self.require_page()
        await page.goto(self.url, wait_until="domcontentloaded", timeout=30_000)
        await asyncio.sleep(2)

    async def select_tier(self, tier):
        if self.page is None:
            return False
        try:
            return await self.switch_tier(tier)
        except Exception as e:
            print(f"[{self.name}] Could not change model: {e}")
            return False

    async def upload_attachments(self, paths):
        if self.page is None or not paths:
            return
        try:
            await self.attach_files(list(paths))
        except Exception as e:
            print(f"[{self.name}] Image upload failed: {e}")

    async def submit_message(self, message):
        page = self.require_page()
        try:
            composer = await page.wait_for_selector(
                self.input_selector, state="visible", timeout=self.input_timeout * 1000
            )
        except PlaywrightTimeoutError as e:
            raise InputNotFound(f"[{self.name}] Could not find input field") from e
        if composer is None:
            raise InputNotFound(f"[{self.name}] Could not find input field")

        await self.type_message(composer, message)
        await self.press_send()

    async def type_message(self, composer, message):
        await composer.click()
        await self.page.keyboard.type(message, delay=10)

    async def press_send(self):
        await asyncio.sleep(0.3)
        try:
            button = await self.page.query_selector(self.send_selector)
            if button is not None and await button.is_enabled():
                await button.click()
                return
        except PlaywrightError:
            pass
        await self.page.keyboard.press("Enter")

    async def snapshot_responses(self):
        """(reply count, last reply text) before a submit, to tell the new reply from the old."""
        return await self.count_responses(), await self.read_last_response()

    async def read_new_response(self, before):
        """Text of a reply that arrived after `before` was taken, '' until there is one."""
        if await self.is_generating():
            return ""
        count_before, text_before = before
        text = await self.read_last_response()
        if count_before is not None:
            count = await self.count_responses()
            if count is not None:
                return text if count > count_before else ""
        return "" if text == text_before else text

    async def await_completion(self, timeout, before=(None, "")):
        self.require_page()
        await asyncio.sleep(self.response_delay)
        return await wait_for_stabilization(
            lambda: self.read_new_response(before),
            timeout,
            stabilization_time=self.stabilization_time,
        )

    async def exchange(self, message, timeout=config.RESPONSE_TIMEOUT, attachments=(), tier=ModelTier.FAST):
        """Send one message (with optional images and tier) and return the reply text."""
        self.require_page()
        try:
            if tier != self.current_tier:
                if await self.select_tier(tier):
                    self.current_tier = tier

            if attachments:
                await self.upload_attachments(attachments)

            before = await self.snapshot_responses()
            await self.submit_message(message)
            return await self.await_completion(timeout, before)
        except AIError:
            raise
        except Exception as e:
            raise ResponseFailed(f"Failed to get response: {e}") from e

    # ─────────────────────────────────────────────
    # Page helpers
    # ─────────────────────────────────────────────
    async def dismiss_popups(self):
        if self.page is None:
            return
        try:
            blocking = await self.page.query_selector(BLOCKING_SELECTOR)
            if blocking is None or not await blocking.is_visible():
                await self.page.keyboard.press("Escape")
                return

            print(f"[{self.name}] Popup detected, dismissing...")
            for selector in DISMISS_SELECTORS:
                button = await self.page.query_selector(selector)
                if button is not None and await button.is_visible():
                    print(f"[{self.name}] Clicking: {selector}")
                    await button.click()
                    await asyncio.sleep(0.3)
                    return

            await self.page.keyboard.press("Escape")
        except PlaywrightError as e:
            print(f"[{self.name}] Popup dismissal failed: {e}")

    async def count_matching(self, selectors):
        """Element count for the first of `selectors` that matches anything; 0 if none do."""
        for selector in selectors:
            try:
                elements = await self.page.query_selector_all(selector)
            except PlaywrightError:
                continue
            if elements:
                return len(elements)
        return 0

    async def last_text(self, selector, inner=None):
        """Trimmed text of the last element matching `selector` (or its `inner` child)."""
        elements = await self.page.query_selector_all(selector)
        if not elements:
            return ""
        target = elements[-1]
        if inner:
            target = await target.query_selector(inner) or target
        text = await target.text_content()
        return (text or "").strip()

    async def paste_image_from_clipboard(self, image_path):
        """Copy an image to the macOS clipboard with osascript and paste it into the page."""
        escaped = str(image_path).replace("\\", "\\\\").replace('"', '\\"')
        script = (
            f'set theFile to POSIX file "{escaped}"\n'
            "set theImage to read theFile as TIFF picture\n"
            "set the clipboard to theImage"
        )
        try:
            subprocess.run(["osascript", "-e", script], check=True, capture_output=True, timeout=10)
            await asyncio.sleep(0.2)
            await self.page.keyboard.press("Meta+V")
            await asyncio.sleep(1)
        except (subprocess.SubprocessError, OSError, PlaywrightError) as e:
            print(f"[{self.name}] Clipboard paste failed: {e}")
            return False
        print(f"[{self.name}] Image pasted from clipboard")
        return True

    async def human_type(self, text):
        for char in text:
            await self.page.keyboard.type(char)
            await asyncio.sleep(random.uniform(0.03, 0.12))
