"""Command line entry point for the media team reminder hub."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import uvicorn

from config.config import AppConfig, load_config, validate_config
from src.api.server import create_app
from src.app.reminder_app import ReminderApp
from src.utils.logger import log_info, log_error, setup_logging


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


async def _with_hub(config: AppConfig, action: Callable[[ReminderApp], Awaitable[Any]]) -> Any:
    """Start the hub without its polling loop, run ``action``, shut down."""
    hub = ReminderApp(config=config)
    await hub.startup(start_polling=False)
    try:
        return await action(hub)
    finally:
        await hub.shutdown()


def cmd_serve(config: AppConfig, args: argparse.Namespace) -> int:
    host = args.host or config.server.host
    port = args.port or config.server.port
    log_info(f"Starting reminder hub API on {host}:{port}")
    uvicorn.run(create_app(ReminderApp(config=config)), host=host, port=port, log_level="info")
    return 0


def cmd_check(config: AppConfig, args: argparse.Namespace) -> int:
    summary = asyncio.run(_with_hub(config, lambda hub: hub.check_reminders()))
    _print_json(summary)
    return 0


def cmd_import_birthdays(config: AppConfig, args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.exists():
        print(f"Error: file not found: {path}")
        return 1

    content = path.read_bytes()
    result = asyncio.run(_with_hub(config, lambda hub: hub.import_birthdays(path.name, content)))
    _print_json(result)
    return 0 if result["success"] else 1


def cmd_validate(config: AppConfig, args: argparse.Namespace) -> int:
    problems = validate_config(config)
    if not problems:
        print("Configuration OK")
        return 0

    print("Configuration problems:")
    for problem in problems:
        print(f"  - {problem}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reminder-hub",
        description="Google Calendar driven WhatsApp reminders for the media team",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API (with background polling)")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(handler=cmd_serve)

    check = subparsers.add_parser("check", help="Run one reminder batch and print the summary")
    check.set_defaults(handler=cmd_check)

    importer = subparsers.add_parser("import-birthdays", help="Create birthday entries from an XLSX/CSV roster")
    importer.add_argument("file")
    importer.set_defaults(handler=cmd_import_birthdays)

    validate = subparsers.add_parser("validate", help="Check the configuration for problems")
    validate.set_defaults(handler=cmd_validate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        log_error(f"Failed to load configuration: {e}")
        print(f"Error: {e}")
        return 1

    setup_logging(config.logging.level)

    try:
        return args.handler(config, args)
    except KeyboardInterrupt:
        print("\nExiting...")
        return 0
    except Exception as e:
        log_error(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
