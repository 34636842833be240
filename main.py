#!/usr/bin/env python3
"""
Identity service operator CLI.

Usage:
  python main.py init-db
  python main.py invite a@x.com

Configuration comes from the same environment variables / .env file as the
API (see core/config.py). `invite` runs the real Invite operation: it mints a
token and hands it to the configured mail gateway.
"""

import argparse
import asyncio
import logging
import sys

from auth.errors import IdentityError
from auth.store import UserStore
from auth.workflow import build_workflow
from core.config import get_settings


def _init_db(store: UserStore) -> int:
    # UserStore creates the schema on construction; ping confirms it is usable.
    if not store.ping():
        print("  [!] Database is not reachable.")
        return 1
    print("  Schema ready.")
    return 0


def _invite(store: UserStore, email: str) -> int:
    workflow = build_workflow(get_settings(), store)
    try:
        token = asyncio.run(workflow.invite(email))
    except IdentityError as exc:
        print(f"  [!] Invite failed: {exc.message}")
        return 1
    print(f"  Invite sent to {email}.")
    print(f"  Register token: {token}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="identity",
        description="Operator commands for the identity service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py invite a@x.com
  DEBUG=true python main.py invite a@x.com
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.add_parser("init-db", help="Create the users table if it does not exist")
    invite = sub.add_parser("invite", help="Mail a registration link to an email address")
    invite.add_argument("email", help="Address to invite")
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)-5s %(name)s %(message)s")

    store = UserStore(settings.database_url, pool_size=settings.db_pool_size)
    try:
        if args.command == "init-db":
            code = _init_db(store)
        else:
            code = _invite(store, args.email)
    finally:
        store.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
