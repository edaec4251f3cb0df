from __future__ import annotations

import argparse
import getpass
import os
import sys
from pathlib import Path

from idrac_gateway.config import DEFAULT_DATABASE_PATH
from idrac_gateway.db.users import create_user, initialize_store, list_usernames
from idrac_gateway.errors import DuplicateUsernameError, PasswordHashError, StorageError


def _default_db_path() -> Path:
    return Path(os.environ.get("DATABASE_PATH") or DEFAULT_DATABASE_PATH)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m idrac_gateway.internal.manage_users",
        description="iDRAC gateway account maintenance (no API).",
    )
    parser.add_argument(
        "--db", type=Path, default=None, help="Override DATABASE_PATH (default ./data/idrac.db)"
    )
    parser.add_argument("--init", action="store_true", help="Initialize the credential store")
    parser.add_argument("--create-user", metavar="NAME", help="Create an account")
    parser.add_argument(
        "--password", default=None, help="Password for --create-user (prompted if omitted)"
    )
    parser.add_argument("--list-users", action="store_true", help="Print all usernames")
    args = parser.parse_args(argv)

    db_path = (args.db or _default_db_path()).expanduser()

    try:
        # Every action needs the schema; initializing is idempotent.
        if args.init or args.create_user or args.list_users:
            initialize_store(db_path)

        if args.create_user:
            password = args.password
            if password is None:
                password = getpass.getpass(f"Password for {args.create_user}: ")
            if not password:
                print("Password must not be empty", file=sys.stderr)
                return 2
            user_id = create_user(db_path, username=args.create_user, password=password)
            print(user_id)

        if args.list_users:
            for username in list_usernames(db_path):
                print(username)
    except DuplicateUsernameError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except (StorageError, PasswordHashError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
