"""Main entry point for the Live Preview CLI."""
from __future__ import annotations

import asyncio
import logging
import sys
import threading
import uuid
from pathlib import Path

from engine.kernel.messages import MessageBus, parse_message
from engine.kernel.types import ErrorKind
from preview_cli import __version__
from preview_cli.client import PreviewClient, TransportError
from preview_cli.config import Config
from preview_cli.controller import PreviewController, PreviewState
from preview_cli.surface import BrowserSurface

logger = logging.getLogger(__name__)

# File polling interval for `watch`
POLL_SECONDS = 0.25

# Wait before reconnecting the lifecycle relay
RELAY_RETRY_SECONDS = 2.0

OVERLAY_FLAGS = {
    "--debug": "debug",
    "--performance": "performance",
    "--accessibility": "accessibility",
    "--info": "info",
}


def print_help():
    """Print help message."""
    print(f"""
Live Preview CLI v{__version__}

Usage:
  preview [options] <command> FILE

Commands:
  watch FILE        Preview FILE and re-render on every save
  render FILE       Build one preview, wait for the sandbox verdict, exit

Options:
  --api-url URL     Override API endpoint (default: http://localhost:8000)
  --session ID      Reuse a preview session (default: new session)
  --no-browser      Do not open the host page
  --debug           Show the debug overlay in the preview
  --performance     Show the render time monitor
  --accessibility   Show the accessibility checker
  --info            Show the component info header
  -h, --help        Show this help
  -v, --version     Show version

Environment:
  PREVIEW_API_URL             Override API endpoint (same as --api-url)
  PREVIEW_DEBOUNCE_MS         Quiet period after a save before re-rendering
  PREVIEW_MAX_RENDER_TIME_MS  Render without Ready/Error for this long is an error

Watch Commands (type and press Enter):
  r                 Refresh now
  f                 Open fullscreen
  q                 Quit
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (watch, render)
        path: str | None
        api_url: str | None
        session_id: str | None
        open_browser: bool
        options: dict of overlay switches
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "path": None,
        "api_url": None,
        "session_id": None,
        "open_browser": True,
        "options": {},
        "show_help": False,
        "show_version": False,
    }

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in ("watch", "render") and result["command"] is None:
            result["command"] = arg
        elif arg == "--api-url":
            if i + 1 < len(args):
                result["api_url"] = args[i + 1]
                i += 1
            else:
                print("Error: --api-url requires a URL")
                sys.exit(1)
        elif arg == "--session":
            if i + 1 < len(args):
                result["session_id"] = args[i + 1]
                i += 1
            else:
                print("Error: --session requires an ID")
                sys.exit(1)
        elif arg == "--no-browser":
            result["open_browser"] = False
        elif arg in OVERLAY_FLAGS:
            result["options"][OVERLAY_FLAGS[arg]] = True
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            print("Run 'preview --help' for usage.")
            sys.exit(1)
        elif result["command"] is not None and result["path"] is None:
            result["path"] = arg
        else:
            print(f"Unknown command: {arg}")
            print("Run 'preview --help' for usage.")
            sys.exit(1)

        i += 1

    return result


def report_state(controller: PreviewController) -> None:
    """Print one line per state change."""
    state = controller.state
    prefix = f"  v{controller.version}"

    if state == PreviewState.REQUESTING:
        print(f"{prefix} requesting...")
    elif state == PreviewState.RENDERING:
        stubs = controller.metadata.get("stubs") or []
        names = ", ".join(s.get("name", "?") for s in stubs if s.get("origin") != "library")
        print(f"{prefix} rendering" + (f" (placeholders: {names})" if names else ""))
        for warning in controller.metadata.get("warnings") or []:
            print(f"    warning: {warning}")
    elif state == PreviewState.READY:
        print(f"{prefix} ready")
    elif state == PreviewState.ERRORED and controller.failure is not None:
        failure = controller.failure
        print(f"{prefix} {failure.kind.value}: {failure.message}")
        for suggestion in failure.suggestions:
            print(f"    suggestion: {suggestion}")
        if failure.kind == ErrorKind.TRANSPORT:
            print("    type 'r' and Enter to retry")


async def pump_relay(client: PreviewClient, session_id: str, bus: MessageBus) -> None:
    """Feed relay messages for session_id into bus, reconnecting on failure."""
    while True:
        try:
            async for raw in client.lifecycle_messages(session_id):
                message = parse_message(raw, session_id)
                if message is not None:
                    bus.publish(message)
        except TransportError as e:
            logger.debug("relay: %s", e)
        await asyncio.sleep(RELAY_RETRY_SECONDS)


def _start_stdin_reader(queue: asyncio.Queue[str | None]) -> None:
    """Forward stdin lines into queue from a daemon thread. None marks EOF."""
    loop = asyncio.get_running_loop()

    def _read():
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line.strip())
        loop.call_soon_threadsafe(queue.put_nowait, None)

    threading.Thread(target=_read, daemon=True).start()


async def handle_commands(controller: PreviewController) -> None:
    """Interactive r/f/q commands while watching."""
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    _start_stdin_reader(queue)

    while not controller.closed:
        command = await queue.get()
        if command is None:
            return
        if command == "r":
            await controller.refresh()
        elif command == "f":
            controller.fullscreen()
        elif command == "q":
            controller.close()
        elif command:
            print("  commands: r (refresh), f (fullscreen), q (quit)")


def _read_source(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (FileNotFoundError, UnicodeDecodeError) as e:
        print(f"  Error: cannot read {path}: {e}")
        return None


def _build_controller(
    config: Config, client: PreviewClient, session_id: str, options: dict, open_browser: bool
) -> tuple[PreviewController, MessageBus]:
    bus = MessageBus()
    controller = PreviewController(
        client,
        session_id,
        bus=bus,
        surface=BrowserSurface(config.api_url, open_browser=open_browser),
        debounce_ms=config.debounce_ms,
        max_render_time_ms=config.max_render_time_ms,
        options=options,
        on_change=report_state,
    )
    return controller, bus


async def watch(path: Path, config: Config, session_id: str, options: dict, open_browser: bool) -> int:
    """Re-render path on every save until 'q' or Ctrl-C."""
    client = PreviewClient(config.api_url, config.ws_url)
    controller, bus = _build_controller(config, client, session_id, options, open_browser)
    relay = asyncio.create_task(pump_relay(client, session_id, bus))
    commands = asyncio.create_task(handle_commands(controller))

    print(f"Watching {path} (session {session_id})")
    last_mtime: int | None = None
    try:
        while not controller.closed:
            try:
                mtime = path.stat().st_mtime_ns
            except FileNotFoundError:
                mtime = None

            if mtime is not None and mtime != last_mtime:
                first = last_mtime is None
                last_mtime = mtime
                code = _read_source(path)
                if code is not None:
                    controller.edit(code)
                    if first:
                        await controller.refresh()

            await asyncio.sleep(POLL_SECONDS)
    finally:
        controller.close()
        relay.cancel()
        commands.cancel()
        await client.aclose()

    return 0


async def render(path: Path, config: Config, session_id: str, options: dict, open_browser: bool) -> int:
    """
    Build one preview.

    With a browser, waits for the sandbox's Ready or Error (or the render
    timeout). Without one, succeeds as soon as a document is built.
    """
    code = _read_source(path)
    if code is None:
        return 1

    client = PreviewClient(config.api_url, config.ws_url)
    controller, bus = _build_controller(config, client, session_id, options, open_browser)
    relay = asyncio.create_task(pump_relay(client, session_id, bus)) if open_browser else None

    try:
        controller.edit(code)
        await controller.refresh()

        if open_browser:
            state = await controller.wait_settled()
            return 0 if state == PreviewState.READY else 1

        return 0 if controller.state == PreviewState.RENDERING else 1
    finally:
        controller.close()
        if relay is not None:
            relay.cancel()
        await client.aclose()


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"preview-cli {__version__}")
        return

    if args["command"] is None or args["path"] is None:
        print_help()
        sys.exit(1)

    config = Config(api_url_override=args["api_url"])
    session_id = args["session_id"] or f"cli_{uuid.uuid4().hex[:12]}"
    path = Path(args["path"])
    runner = watch if args["command"] == "watch" else render

    try:
        code = asyncio.run(runner(path, config, session_id, args["options"], args["open_browser"]))
    except KeyboardInterrupt:
        print()
        code = 0

    sys.exit(code)


if __name__ == "__main__":
    main()
