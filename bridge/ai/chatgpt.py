import asyncio

from playwright.async_api import Error as PlaywrightError

from bridge.ai.base import BaseAI
from bridge.core.router import ModelTier

STOP_BUTTON = 'button[aria-label="Stop generating"], button[data-testid="stop-button"]'
RESPONSE_SELECTORS = [
    'div[data-message-author-role="assistant"]',
    "div.agent-turn div.markdown",
]


class ChatGPTAI(BaseAI):
    input_selector = "#prompt-textarea"
    send_selector = 'button[data-testid="send-button"], button[aria-label="Send prompt"]'

    # Substring of the model name picked for each tier
    tier_models = {
        ModelTier.FAST: "mini",
        ModelTier.THINKING: "4o",
        ModelTier.MAX: "gpt-4",
    }

    def __init__(self, **kwargs):
        super().__init__("chatgpt", **kwargs)

    async def is_logged_in(self):
        if self.page is None:
            return False
        try:
            composer = await self.page.query_selector(
                '#prompt-textarea, div.ProseMirror[contenteditable="true"]'
            )
            return composer is not None
        except PlaywrightError:
            return False

    async def switch_tier(self, tier):
        model_button = await self.page.query_selector(
            'button[aria-label*="Model"], button[data-testid="model-selector"], div[class*="model-selector"]'
        )
        if model_button is None:
            print("[chatgpt] Model selector not found")
            return False

        await model_button.click()
        await asyncio.sleep(0.5)

        pattern = self.tier_models[tier]
        options = await self.page.query_selector_all(
            'div[role="option"], [role="menuitem"], div[class*="model-option"]'
        )
        for option in options:
            text = (await option.text_content() or "").lower()
            if pattern in text:
                await option.click()
                await asyncio.sleep(0.5)
                print(f"[chatgpt] Selected {tier.value} model")
                return True

        await self.page.keyboard.press("Escape")
        return False

    async def attach_files(self, paths):
        attach_button = await self.page.query_selector(
            'button[aria-label*="Attach"], button[aria-label*="Upload"], button[data-testid="attach-button"]'
        )
        if attach_button is not None:
            await attach_button.click()
            await asyncio.sleep(0.3)

        file_input = await self.page.query_selector('input[type="file"]')
        if file_input is None:
            print("[chatgpt] File input not found")
            return
        await file_input.set_input_files(paths)
        await asyncio.sleep(2)
        print(f"[chatgpt] Uploaded {len(paths)} image(s)")

    async def count_responses(self):
        return await self.count_matching(RESPONSE_SELECTORS)

    async def is_generating(self):
        try:
            return await self.page.query_selector(STOP_BUTTON) is not None
        except PlaywrightError:
            return False

    async def read_last_response(self):
        for selector in RESPONSE_SELECTORS:
            try:
                text = await self.last_text(selector, inner=".markdown, .prose")
            except PlaywrightError:
                continue
            if text:
                return text
        return ""

    async def start_new_conversation(self):
        page = self.require_page()
        try:
            new_chat = await page.query_selector('a[href="/"], button[aria-label="New chat"]')
            if new_chat is not None:
                await new_chat.click()
                await asyncio.sleep(2)
                return
        except PlaywrightError as e:
            print(f"[chatgpt] New chat button failed, reloading: {e}")
        await super().start_new_conversation()
