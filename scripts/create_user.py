#!/usr/bin/env python3
"""Create a CRM user account from the command line."""

from __future__ import annotations

import argparse
import getpass
import sys

from dotenv import load_dotenv

from crm_backend.api.errors import ApiError
from crm_backend.auth.repository import UserRepository
from crm_backend.auth.service import validate_email, validate_password_strength
from crm_backend.core.config import AppConfig
from crm_backend.core.mongo_migrations import apply_mongo_migrations
from crm_backend.core.security import hash_password
from crm_backend.core.store import DuplicateRecordError, StoreFactory


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Create a CRM user account.")
    parser.add_argument("email", help="Login email for the new user.")
    parser.add_argument(
        "--password",
        default="",
        help="Password for the new user. Prompted for when omitted.",
    )
    parser.add_argument(
        "--display-name",
        default="",
        help="Optional display name.",
    )
    return parser.parse_args()


def main() -> int:
    """Run script entrypoint."""
    load_dotenv()
    args = _parse_args()
    config = AppConfig.from_env()
    password = args.password or getpass.getpass("Password: ")

    try:
        email = validate_email(args.email)
        validate_password_strength(password)
    except ApiError as exc:
        print(f"Invalid input: {exc.detail['error']}", file=sys.stderr)
        return 2

    store = StoreFactory(
        mongo_uri=config.storage.mongo_uri,
        mongo_db=config.storage.mongo_db,
        data_dir=config.storage.data_dir,
        strict=True,
    )
    try:
        if store.database is not None:
            apply_mongo_migrations(store.database)
        users = UserRepository(store.collection("users", unique_fields=("id", "email")))
        try:
            user = users.create(
                email=email,
                password_hash=hash_password(
                    password, iterations=config.auth.password_iterations
                ),
                display_name=args.display_name.strip() or None,
            )
        except DuplicateRecordError:
            print(f"User already exists: {email}", file=sys.stderr)
            return 1
    finally:
        store.close()

    backend = "mongodb" if store.mongo_enabled else str(config.storage.data_dir)
    print(f"Created user {user.id} <{user.email}> in {backend}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
