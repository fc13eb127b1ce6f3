"""
Entry point.

Run:    python -m storefront serve [--host 127.0.0.1] [--port 8000]
Admin:  python -m storefront create-admin <username> <email> <password>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from kungfu import Ok, Error

from storefront.auth import Role, UserStore
from storefront.config import Settings, get_settings
from storefront.db import create_database
from storefront.web import create_app

logger = logging.getLogger("storefront")


async def _create_admin(settings: Settings, username: str, email: str, password: str) -> int:
    database = await create_database(
        settings.database_url,
        echo=settings.database_echo,
        busy_timeout=settings.database_busy_timeout,
    )
    try:
        users = UserStore(database, rounds=settings.password_rounds)
        match await users.register(username, email, password, role=Role.ADMIN):
            case Ok(user):
                print(f"Admin {user.username} created (id {user.id})")
                return 0
            case Error(e):
                print(f"Could not create admin: {e}", file=sys.stderr)
                return 1
    finally:
        await database.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="storefront")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="run the HTTP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    admin = commands.add_parser("create-admin", help="register an admin account")
    admin.add_argument("username")
    admin.add_argument("email")
    admin.add_argument("password")

    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "create-admin":
        return asyncio.run(_create_admin(settings, args.username, args.email, args.password))

    logger.info("Serving on %s:%s", args.host, args.port)
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
