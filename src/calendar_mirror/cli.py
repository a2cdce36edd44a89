"""Command-line interface for calendar mirror."""

import argparse
import asyncio
import logging
import sys

from calendar_mirror.config import get_settings


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def _init_db() -> None:
    from calendar_mirror.database.connection import close_db, create_tables, init_db

    await init_db()
    try:
        await create_tables()
    finally:
        await close_db()


async def _renew_webhooks() -> int:
    from calendar_mirror.calendar.webhooks import WebhookManager
    from calendar_mirror.database.connection import close_db, get_db, init_db

    await init_db()
    try:
        async with get_db() as session:
            return await WebhookManager(session).renew_expiring()
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Calendar Mirror - Google Calendar web backend"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL setting)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes"
    )

    subparsers.add_parser("init-db", help="Create database tables")

    subparsers.add_parser(
        "renew-webhooks",
        help="Recreate push-notification channels that are about to expire",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "calendar_mirror.api:create_app",
            factory=True,
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=args.reload,
            log_level=(args.log_level or settings.log_level).lower(),
        )
    elif args.command == "init-db":
        asyncio.run(_init_db())
        print("Database tables created.")
    elif args.command == "renew-webhooks":
        renewed = asyncio.run(_renew_webhooks())
        print(f"Renewed {renewed} webhook(s).")

    return 0


if __name__ == "__main__":
    sys.exit(main())
