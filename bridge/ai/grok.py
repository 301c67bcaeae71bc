import random
import asyncio

from playwright.async_api import Error as PlaywrightError

from bridge.ai.base import BaseAI
from bridge.core.router import ModelTier

THINK_TOGGLE = 'button:has-text("Think")'
RESPONSE_SELECTORS = [
    'div[class*="r-1wbh5a2"][class*="r-bnwqim"]',
    'div[class*="r-rjixqe"]',
    "div.message-bubble",
]


class GrokAI(BaseAI):
    input_selector = "textarea"
    send_selector = 'button[aria-label*="Send"], button[type="submit"]'
    response_delay = 2.0

    def __init__(self, **kwargs):
        super().__init__("grok", **kwargs)

    async def is_logged_in(self):
        if self.page is None:
            return False
        try:
            return await self.page.query_selector("textarea") is not None
        except PlaywrightError:
            return False

    async def switch_tier(self, tier):
        # Grok has a single "Think" toggle: on for thinking/max, off for fast
        want_on = tier != ModelTier.FAST
        is_on = self.current_tier != ModelTier.FAST
        if want_on == is_on:
            return True

        toggle = await self.page.query_selector(THINK_TOGGLE)
        if toggle is None:
            print("[grok] Think toggle not found")
            return False
        await toggle.click()
        await asyncio.sleep(0.5)
        print(f"[grok] Thinking mode {'enabled' if want_on else 'disabled'}")
        return True

    async def attach_files(self, paths):
        print(f"[grok] Uploading {len(paths)} image(s) via clipboard paste")
        composer = await self.page.query_selector("textarea")
        if composer is not None:
            await composer.click()
            await asyncio.sleep(0.2)

        for path in paths:
            if await self.paste_image_from_clipboard(path):
                await asyncio.sleep(1.5)

    async def type_message(self, composer, message):
        await composer.click()
        await asyncio.sleep(random.uniform(0.1, 0.3))
        await self.human_type(message)

    async def press_send(self):
        await asyncio.sleep(random.uniform(0.2, 0.5))
        await super().press_send()

    async def read_last_response(self):
        for selector in RESPONSE_SELECTORS:
            try:
                text = await self.last_text(selector)
            except PlaywrightError:
                continue
            if text:
                return text
        return ""
