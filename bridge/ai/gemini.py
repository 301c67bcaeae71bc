import asyncio

from playwright.async_api import Error as PlaywrightError

from bridge.ai.base import BaseAI
from bridge.core.router import ModelTier

RESPONSE_FALLBACK = 'div[class*="markdown"]'


class GeminiAI(BaseAI):
    input_selector = 'div.ql-editor[contenteditable="true"]'
    send_selector = 'button[aria-label*="Send"]'

    tier_models = {
        ModelTier.FAST: "flash",
        ModelTier.THINKING: "pro",
        ModelTier.MAX: "ultra",
    }

    def __init__(self, **kwargs):
        super().__init__("gemini", **kwargs)

    async def is_logged_in(self):
        if self.page is None:
            return False
        try:
            await asyncio.sleep(1)
            return await self.page.query_selector(self.input_selector) is not None
        except PlaywrightError:
            return False

    async def switch_tier(self, tier):
        selector = await self.page.query_selector(
            'button[aria-label*="model"], div[class*="model-selector"], button[class*="model"]'
        )
        if selector is None:
            print("[gemini] Model selector not found, using default")
            return False

        await selector.click()
        await asyncio.sleep(0.5)

        name = self.tier_models[tier]
        option = await self.page.query_selector(
            f'button:has-text("{name}"), [role="menuitem"]:has-text("{name}")'
        )
        if option is None:
            await self.page.keyboard.press("Escape")
            return False
        await option.click()
        await asyncio.sleep(0.5)
        print(f"[gemini] Selected {tier.value} model")
        return True

    async def attach_files(self, paths):
        file_input = await self.page.query_selector('input[type="file"]')
        if file_input is None:
            attach_button = await self.page.query_selector(
                'button[aria-label*="Add"], button[aria-label*="attach"], button[aria-label*="image"]'
            )
            if attach_button is None:
                print("[gemini] No upload control found")
                return
            await attach_button.click()
            await asyncio.sleep(0.3)
            file_input = await self.page.query_selector('input[type="file"]')
            if file_input is None:
                print("[gemini] File input not found")
                return

        await file_input.set_input_files(paths)
        await asyncio.sleep(1)
        print(f"[gemini] Uploaded {len(paths)} image(s)")

    async def type_message(self, composer, message):
        # Close any menu left open by the tier switch before focusing the editor
        await self.page.keyboard.press("Escape")
        await asyncio.sleep(0.3)
        await composer.click(force=True)
        await self.page.keyboard.type(message, delay=10)

    async def count_responses(self):
        return await self.count_matching(["message-content", RESPONSE_FALLBACK])

    async def read_last_response(self):
        try:
            text = await self.last_text("message-content", inner='div[class*="markdown"]')
            if text:
                return text
        except PlaywrightError:
            pass
        try:
            return await self.last_text(RESPONSE_FALLBACK)
        except PlaywrightError:
            return ""
