#!/usr/bin/env python3
"""
Create a user account.

Neither PIN nor Google sign-in provisions accounts, so users are added here.

Usage:
    python scripts/create_user.py jane@example.com --name "Jane Doe"
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from pinauth.database import async_session_maker, engine
from pinauth.schemas.user import UserCreate
from pinauth.services.user_service import UserEmailConflictError, UserService


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user account.")
    parser.add_argument("email", help="Email address used to sign in")
    parser.add_argument("--name", help="Display name (defaults to the email's local part)")
    parser.add_argument("--avatar-url", help="Profile picture URL")
    return parser.parse_args(argv)


async def create_user(args: argparse.Namespace) -> int:
    try:
        user_data = UserCreate(
            email=args.email,
            display_name=args.name or args.email.split("@")[0],
            avatar_url=args.avatar_url,
        )
    except ValidationError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2

    async with async_session_maker() as db:
        try:
            user = await UserService(db).create(user_data)
        except UserEmailConflictError as e:
            print(str(e), file=sys.stderr)
            return 1
        await db.commit()

    print(f"Created user {user.id} <{user.email}>")
    return 0


async def main() -> int:
    try:
        return await create_user(parse_args())
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
