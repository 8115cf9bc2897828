#!/usr/bin/env python3
"""First-time setup: reset the store and create the root group, admin and user."""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

from dotenv import load_dotenv

from fresh.auth.models import RoleKind, RoleLink, User, UserRoles
from fresh.auth.repository import UserRepository
from fresh.core.config import AppConfig
from fresh.core.logging import setup_logging
from fresh.core.mongo_migrations import apply_mongo_migrations
from fresh.core.security import hash_secret
from fresh.core.storage import COLLECTION_NAMES, DocumentStore
from fresh.roles.models import ROOT_GROUP_ID, Admin, AdminGroup, EntityRef, Name
from fresh.roles.repository import AdminGroupRepository, AdminRepository

APP_ROOT = Path(__file__).resolve().parents[1]
ROOT_USERNAME = "root"
ROOT_USER_ID = "000000000000000000000000"
ROOT_ADMIN_ID = "111111111111111111111111"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Clear all collections and create the root admin user."
    )
    parser.add_argument("--email", default="", help="Root user email.")
    parser.add_argument(
        "--password",
        default="",
        help="Root user password. Prompted for when omitted.",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before clearing collections.",
    )
    return parser.parse_args(argv)


def run_setup(store: DocumentStore, *, email: str, password: str) -> User:
    """Clear every collection and create the linked root records."""
    for name in COLLECTION_NAMES:
        store.collection(name).delete_many({})

    AdminGroupRepository(store).insert(AdminGroup(id=ROOT_GROUP_ID, name="Root"))
    AdminRepository(store).insert(
        Admin(
            id=ROOT_ADMIN_ID,
            name=Name(first="Root", last="Admin"),
            groups={ROOT_GROUP_ID: "Root"},
            user=EntityRef(id=ROOT_USER_ID, name=ROOT_USERNAME),
        )
    )
    return UserRepository(store).insert(
        User(
            id=ROOT_USER_ID,
            username=ROOT_USERNAME,
            email=email,
            password_hash=hash_secret(password).hash,
            roles=UserRoles(
                admin=RoleLink(kind=RoleKind.ADMIN, id=ROOT_ADMIN_ID, name="Root Admin")
            ),
        )
    )


def main(argv: list[str] | None = None) -> int:
    """Execute first-time setup flow."""
    args = _parse_args(argv)
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config.logging.level)

    email = args.email.strip() or input("Root user email: ").strip()
    password = args.password or getpass.getpass("Root user password: ")
    if not email or not password:
        print("ERROR: email and password are required.", file=sys.stderr)
        return 1
    if not args.yes:
        answer = input("This clears ALL collections. Continue? [y/N] ").strip().lower()
        if answer not in {"y", "yes"}:
            print("Aborted.")
            return 1

    store = DocumentStore.open(config.mongo, APP_ROOT)
    try:
        apply_mongo_migrations(store)
        user = run_setup(store, email=email, password=password)
        print(f"Created root user: {user.username} <{user.email}>")
        print(f"Storage: {'mongodb' if store.is_mongo else 'file'}")
        return 0
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
