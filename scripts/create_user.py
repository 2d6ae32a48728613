"""
Create a portal user from the command line.

Usage example:

    python -m scripts.create_user \
        --email dosen@test.com --password password123 \
        --name "Dr. Test Lecturer" --role lecturer \
        --department "Teknik Informatika" --institution "Universitas Test" \
        --nidn 1234567890

With ``--print-hash`` nothing is written; the bcrypt digest is printed so the
row can be inserted by hand.  ``--create-tables`` creates missing tables first
(fresh development databases).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from auth.models import Role
from auth.password import hash_password
from database.helpers import IdentityRepository
from database.session import async_session_factory, create_tables, engine

logger = logging.getLogger("scripts.create_user")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a portal user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--role", default="lecturer", help="Role name (localised names such as 'dosen' accepted)")
    parser.add_argument("--department")
    parser.add_argument("--institution")
    parser.add_argument("--nidn")
    parser.add_argument("--nim")
    parser.add_argument("--print-hash", action="store_true", help="Print the password digest and exit")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables before inserting")
    return parser.parse_args(argv)


async def create_user(args: argparse.Namespace, role: Role) -> str:
    if args.create_tables:
        await create_tables()

    async with async_session_factory() as session:
        store = IdentityRepository(session)
        if await store.email_exists(args.email):
            raise SystemExit(f"User already exists: {args.email}")
        user = await store.create(
            email=args.email,
            password_hash=hash_password(args.password),
            name=args.name,
            role=role.value,
            department=args.department,
            institution=args.institution,
            nidn=args.nidn,
            nim=args.nim,
            is_active=True,
            email_verified=True,
        )
        await session.commit()
        return user.id


async def _run(args: argparse.Namespace, role: Role) -> str:
    try:
        return await create_user(args, role)
    finally:
        await engine.dispose()


def main(argv=None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = _parse_args(argv)
    try:
        role = Role.parse(args.role)
    except ValueError as exc:
        raise SystemExit(str(exc)) from None

    if args.print_hash:
        print(hash_password(args.password))
        return

    user_id = asyncio.run(_run(args, role))
    logger.info("Created %s %s (%s)", role.value, args.email, user_id)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main(sys.argv[1:])
