#!/usr/bin/env python3
"""
Exploree Accounts -- operator commands.

Usage:
  python main.py seed-admin
  python main.py seed-admin --email admin@example.com --name "Ops" --password 's3cret!'
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload

Environment variables (see core/config.py):
  DATABASE_URL   SQLAlchemy URL of the accounts database.
  SECRET_KEY     JWT signing key shared with the downstream properties.
  DEBUG          true for local development (auto-generated SECRET_KEY).
"""

import argparse
import getpass
import logging
import sys

from accounts.models import Account, Profile
from accounts.store import AccountStore
from auth.models import Role
from auth.passwords import PasswordHasher
from core.config import get_settings

logger = logging.getLogger("exploree.cli")

_DEFAULT_ADMIN_EMAIL = "admin@exploree.africa"
_DEFAULT_ADMIN_NAME = "System Administrator"


def seed_admin(store: AccountStore, hasher: PasswordHasher, email: str, name: str, password: str) -> bool:
    """Create a SYSTEM_ADMIN account with its profile unless the email exists.

    Returns True if an account was created, False if it was already there.
    """
    if store.email_exists(email):
        return False
    account = Account(
        email=email.strip().lower(),
        name=name,
        password_hash=hasher.hash(password),
        role=Role.SYSTEM_ADMIN,
    )
    store.create_account(account, Profile(full_name=name, email=email.strip().lower()))
    return True


def _cmd_seed_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    password = args.password or getpass.getpass(f"Password for {args.email}: ")
    if not password:
        print("  [!] A password is required.")
        return 1

    store = AccountStore(settings.database_url)
    try:
        created = seed_admin(store, PasswordHasher(rounds=settings.bcrypt_rounds), args.email, args.name, password)
    finally:
        store.close()

    if created:
        print(f"System admin created: {args.email}")
    else:
        print(f"An account for {args.email} already exists -- nothing to do.")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Exploree Accounts operator commands.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed-admin", help="Create the first SYSTEM_ADMIN account.")
    seed.add_argument("--email", default=_DEFAULT_ADMIN_EMAIL, help="Login email of the admin.")
    seed.add_argument("--name", default=_DEFAULT_ADMIN_NAME, help="Display name of the admin.")
    seed.add_argument("--password", default=None, help="Password (prompted when omitted).")
    seed.set_defaults(func=_cmd_seed_admin)

    serve = sub.add_parser("serve", help="Run the API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development).")
    serve.set_defaults(func=_cmd_serve)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s %(message)s")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
