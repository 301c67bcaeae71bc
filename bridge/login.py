"""Interactive login handling.

Run directly (`python -m bridge.login`) to open every enabled AI and wait
until each one is logged in, without starting the bridge.
"""

import sys
import signal
import asyncio
import threading

from bridge import config
from bridge.ai.factory import create_ais


def start_stdin_reader(loop=None):
    """Feed stdin lines into an asyncio.Queue from a daemon thread."""
    loop = loop or asyncio.get_running_loop()
    lines = asyncio.Queue()

    def _read():
        for line in sys.stdin:
            loop.call_soon_threadsafe(lines.put_nowait, line)

    threading.Thread(target=_read, daemon=True).start()
    return lines


async def wait_for_login_or_skip(ai, lines, interval=config.LOGIN_POLL_INTERVAL):
    """Wait until `ai` is logged in (True) or the operator types 's' to skip it (False)."""
    print(f"[{ai.name}] Not logged in. Please log in via the browser window.")
    print(f"[{ai.name}] Press 's' + Enter to skip this AI\n")

    while True:
        if await ai.is_logged_in():
            print(f"[{ai.name}] Login detected!")
            return True
        try:
            line = await asyncio.wait_for(lines.get(), timeout=interval)
        except asyncio.TimeoutError:
            continue
        if line.strip().lower() == "s":
            print(f"[{ai.name}] Skipped - this AI will not be available\n")
            return False


async def check_logins(registry, lines, settle=2, interval=config.LOGIN_POLL_INTERVAL):
    """Startup login pass: each logged-out AI is waited for or skipped by the operator."""
    print("\n=== Checking Login Status ===\n")
    for state in registry.states():
        if not state.available:
            continue
        await asyncio.sleep(settle)
        if await state.driver.is_logged_in():
            print(f"[{state.name}] Already logged in!")
            continue
        if not await wait_for_login_or_skip(state.driver, lines, interval):
            registry.mark_unavailable(state.name)
            await state.driver.cleanup()


async def wait_until_logged_in(ai, interval=config.LOGIN_POLL_INTERVAL):
    while not await ai.is_logged_in():
        await asyncio.sleep(interval)
    print(f"✓ {ai.name} - logged in!")


async def login_all(ais):
    print("Opening all browsers...\n")
    await asyncio.gather(*(ai.initialize() for ai in ais.values()))

    print("\n=== All browsers open! Log in to each one. ===\n")
    await asyncio.gather(*(wait_until_logged_in(ai) for ai in ais.values()))

    print("\n=== ALL LOGINS COMPLETE! ===")
    print("Sessions saved. You can now close this and run: imessage-ai-bridge\n")
    print("Press Ctrl+C to exit...\n")


async def _login_main():
    ais = create_ais()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    login = asyncio.create_task(login_all(ais))
    try:
        await stop.wait()
    finally:
        login.cancel()
        await asyncio.gather(login, return_exceptions=True)
        await asyncio.gather(*(ai.cleanup() for ai in ais.values()), return_exceptions=True)


def main():
    print("╔════════════════════════════════════════╗")
    print("║         LOGIN TO ALL AI SERVICES       ║")
    print("║  Take your time - no rush!             ║")
    print("╚════════════════════════════════════════╝\n")
    asyncio.run(_login_main())


if __name__ == "__main__":
    main()
