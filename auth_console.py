import asyncio
import sys

from dotenv import load_dotenv

from admin_console.config import dlog, load_console_config
from admin_console.context import create_console
from admin_console.notifications import NotificationItem


load_dotenv()


def print_notification(item: NotificationItem) -> None:
    print(f"[{item.level.value}] {item.message}")


async def main(transport=None) -> int:
    """Probe the admin session once and report it. Exit code 0 means signed in."""
    console = create_console(load_console_config(), transport=transport)
    unsubscribe = console.bus.subscribe(print_notification)
    try:
        session = await console.start()
        if session is None:
            print(f"Not signed in at {console.config.base_url}")
            return 1
        print(f"Signed in as {session.identity}")
        return 0
    finally:
        unsubscribe()
        await console.close()


if __name__ == "__main__":
    # Convenience for local runs: python auth_console.py --console-debug
    dlog("console_argv", sys.argv[1:])
    sys.exit(asyncio.run(main()))
