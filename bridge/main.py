import sys
import signal
import asyncio
import argparse

from bridge import config
from bridge.ai.factory import create_ais
from bridge.core.orchestrator import Orchestrator
from bridge.core.prompts import get_message_prefix
from bridge.core.registry import SessionRegistry
from bridge.integrations.imessage_reader import IMessageReader
from bridge.integrations.imessage_sender import IMessageSender
from bridge.login import check_logins, start_stdin_reader
from bridge.memory.checkpoint import Checkpoint


def run_setup():
    print("\n╔════════════════════════════════════════╗")
    print("║          FIRST TIME SETUP              ║")
    print("╚════════════════════════════════════════╝\n")
    phone = input("Enter your phone number or email for iMessage:\n> ").strip()
    config.save_user_config(phone)
    print("\nSetup complete! Restart the app to begin.\n")


async def run_bridge(user_config):
    registry = SessionRegistry(create_ais())
    orchestrator = None
    try:
        print("\n=== Initializing AI Browsers ===\n")
        await registry.initialize_all()
        await check_logins(registry, start_stdin_reader())

        active = registry.available()
        if not active:
            print("\n[Error] No AIs configured! At least one AI must be logged in.\n")
            return 1
        if config.DEFAULT_AI not in active:
            print(f"[Warning] Default AI '{config.DEFAULT_AI}' is not available; "
                  f"unprefixed messages will get a 'not configured' reply.")
        print(f"\n=== Ready! Active AIs: {', '.join(active)} ===\n")

        orchestrator = Orchestrator(
            registry,
            IMessageReader(user_config["targetPhone"]),
            IMessageSender(user_config["targetPhoneFull"]),
            Checkpoint(),
            message_prefix=get_message_prefix(user_config),
        )
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, orchestrator.stop)

        await orchestrator.run()
        return 0
    finally:
        if orchestrator is not None:
            await orchestrator.shutdown()
        else:
            await registry.cleanup_all()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Relay iMessages to Gemini, ChatGPT and Grok.")
    parser.add_argument("--setup", action="store_true", help="re-run first time setup")
    args = parser.parse_args(argv)

    print("╔════════════════════════════════════════╗")
    print("║          iMessage AI Bridge            ║")
    print(f"║  Default: {config.DEFAULT_AI:<29}║")
    print("║  Prefixes: . = thinking, .. = max      ║")
    print("╚════════════════════════════════════════╝\n")

    if config.DEFAULT_AI not in config.ENABLED_AIS:
        print(f"ERROR: DEFAULT_AI '{config.DEFAULT_AI}' is not in ENABLED_AIS {config.ENABLED_AIS}")
        return 1

    user_config = config.load_user_config()
    if args.setup or config.needs_setup(user_config):
        run_setup()
        return 0

    print(f"Target: {user_config['targetPhoneFull']}")
    print(f"AIs: {', '.join(config.ENABLED_AIS)}")
    print(f"Database: {config.CHAT_DB_PATH}")

    try:
        return asyncio.run(run_bridge(user_config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
