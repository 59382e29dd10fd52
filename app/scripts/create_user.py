"""Create a FlatShare user account.

Usage:
    python -m app.scripts.create_user --username alice --password <password>
"""

from __future__ import annotations

import argparse
import sys

from app.db.session import SessionLocal
from app.services.auth import UsernameTakenError, create_user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a FlatShare user")
    parser.add_argument("--username", required=True, help="Username for the new user")
    parser.add_argument("--password", required=True, help="Password for the new user")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        try:
            user = create_user(db, args.username, args.password)
        except UsernameTakenError:
            print(f"User '{args.username}' already exists.")
            sys.exit(1)
        print(f"User '{user.username}' created successfully (id={user.id}).")
    finally:
        db.close()


if __name__ == "__main__":
    main()
